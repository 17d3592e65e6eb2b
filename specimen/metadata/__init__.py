"""Type metadata: normalized schemas of the types being generated."""

from .reader import (
    FieldNode,
    TypeMetadataProvider,
    TypeMetadataReader,
    TypeNode,
    default_reader,
    read_type,
)
from .shapes import MISSING, ClassShape, Slot, TypeKind

__all__ = [
    "MISSING",
    "ClassShape",
    "FieldNode",
    "Slot",
    "TypeKind",
    "TypeMetadataProvider",
    "TypeMetadataReader",
    "TypeNode",
    "default_reader",
    "read_type",
]
