"""podmesh command-line interface."""
