"""
Schema catalog package.

The catalog is the read-only source of entity types, bundles and field
descriptors consumed by the selection resolver. ``base`` defines the
interface and the field metadata types; ``memory`` provides a catalog
built from a mapping or a YAML document.
"""

from .base import Cardinality, EntityTypeDefinition, FieldDescriptor, SchemaCatalog
from .memory import InMemorySchemaCatalog

__all__ = [
    "Cardinality",
    "EntityTypeDefinition",
    "FieldDescriptor",
    "InMemorySchemaCatalog",
    "SchemaCatalog",
]
