"""Structural parsing: source files to entity descriptors."""

from impactgraph.parser.core import parse_directory, parse_file, parse_files
from impactgraph.parser.models import (
    MARKER_TABLE,
    EntityDescriptor,
    EntityKind,
    Marker,
    MethodDescriptor,
)

__all__ = [
    "EntityDescriptor",
    "EntityKind",
    "MARKER_TABLE",
    "Marker",
    "MethodDescriptor",
    "parse_directory",
    "parse_file",
    "parse_files",
]
