"""Core configuration, models, errors and RDF helpers."""
