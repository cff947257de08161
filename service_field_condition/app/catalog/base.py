"""
Schema catalog interface for the Field Condition service.

The catalog answers the lookups the configuration flow needs: which
content entity types exist, which bundles a type has and which fields a
bundle carries. It is read-only; callers that want caching wrap it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class Cardinality(str, Enum):
    """Field cardinality."""
    SINGLE = "single"
    UNLIMITED = "unlimited"


@dataclass(frozen=True)
class FieldDescriptor:
    """Schema metadata for one field on one bundle."""
    field_id: str
    label: str
    primary_property: str = "value"
    cardinality: Cardinality = Cardinality.SINGLE
    property_names: Tuple[str, ...] = ()
    computed: bool = False
    typed_data: bool = True

    def __post_init__(self):
        # Primary property always leads the property list
        names = tuple(self.property_names) or (self.primary_property,)
        if self.primary_property not in names:
            names = (self.primary_property,) + names
        elif names[0] != self.primary_property:
            names = (self.primary_property,) + tuple(n for n in names if n != self.primary_property)
        object.__setattr__(self, "property_names", names)

    @property
    def is_multiple(self) -> bool:
        return self.cardinality == Cardinality.UNLIMITED

    @property
    def selectable(self) -> bool:
        """Whether the field may be offered as a condition target.

        Computed fields are only offered when they are still exposed as
        typed data, i.e. they have values that can be read and compared.
        """
        return not (self.computed and not self.typed_data)


@dataclass(frozen=True)
class EntityTypeDefinition:
    """An entity type known to the catalog."""
    type_id: str
    label: str
    group: str = "content"
    bundles: Dict[str, str] = field(default_factory=dict)


FieldOption = Tuple[str, str, FieldDescriptor]


class SchemaCatalog(ABC):
    """Read-only schema lookups consumed by the selection resolver."""

    @abstractmethod
    def list_content_entity_types(self) -> List[Tuple[str, str]]:
        """Return ``(type_id, label)`` for every content entity type."""

    @abstractmethod
    def list_bundles(self, entity_type: str) -> List[Tuple[str, str]]:
        """Return ``(bundle_id, label)`` for an entity type."""

    @abstractmethod
    def list_bundle_fields(self, entity_type: str, bundle: str) -> List[FieldOption]:
        """Return ``(field_id, label, descriptor)`` for a single bundle."""

    def list_fields(self, entity_type: str, bundles: Sequence[str]) -> List[FieldOption]:
        """Return the fields shared by every bundle in ``bundles``.

        With one bundle this is that bundle's field list. With several
        bundles only fields whose id exists on every bundle survive, in the
        order of the first bundle. Fields that cannot be offered as
        condition targets are dropped.
        """
        if isinstance(bundles, str):
            bundles = [bundles]
        groups = [
            [option for option in self.list_bundle_fields(entity_type, bundle) if option[2].selectable]
            for bundle in bundles
        ]
        if not groups:
            return []

        shared_ids = set(field_id for field_id, _, _ in groups[0])
        for group in groups[1:]:
            shared_ids &= set(field_id for field_id, _, _ in group)

        return [option for option in groups[0] if option[0] in shared_ids]

    def get_field(self, entity_type: str, bundle: str, field_id: str) -> Optional[FieldDescriptor]:
        """Look up a single field descriptor."""
        for option_id, _, descriptor in self.list_bundle_fields(entity_type, bundle):
            if option_id == field_id:
                return descriptor
        return None
