"""
podmesh Discovery

A shared directory where agents register and find each other by name
or declared capability.
"""

from podmesh.discovery.directory import (
    DIRECTORY_PATH,
    AgentDirectory,
    build_entry_triples,
    directory_url_for,
    parse_directory,
)

__all__ = [
    "DIRECTORY_PATH",
    "AgentDirectory",
    "build_entry_triples",
    "directory_url_for",
    "parse_directory",
]
