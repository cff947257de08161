"""
In-memory schema catalog.

The catalog document has the following shape (YAML or an equivalent
mapping)::

    entity_types:
      node:
        label: Content
        group: content
        bundles:
          article:
            label: Article
            fields:
              title: {label: Title}
              tags: {label: Tags, cardinality: unlimited, primary_property: target_id}
              link: {label: Link, primary_property: uri, properties: [uri, title]}
"""

from typing import Any, Dict, List, Mapping, Tuple

import yaml

from shared.errors import CatalogError
from shared.logging import get_logger
from .base import Cardinality, EntityTypeDefinition, FieldDescriptor, FieldOption, SchemaCatalog


class InMemorySchemaCatalog(SchemaCatalog):
    """Schema catalog backed by a plain mapping."""

    def __init__(self, definition: Mapping[str, Any], content_group: str = "content"):
        self.logger = get_logger("field_condition.catalog")
        self.content_group = content_group
        self.entity_types: Dict[str, EntityTypeDefinition] = {}
        self.fields: Dict[Tuple[str, str], List[FieldOption]] = {}
        self._load(definition or {})

    @classmethod
    def from_yaml(cls, path: str, content_group: str = "content") -> "InMemorySchemaCatalog":
        """Load a catalog from a YAML document."""
        try:
            with open(path, "r", encoding="utf-8") as handle:
                definition = yaml.safe_load(handle) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CatalogError("Unable to read schema catalog", {"path": path, "error": str(e)})

        catalog = cls(definition, content_group=content_group)
        catalog.logger.info(
            "Schema catalog loaded",
            path=path,
            entity_types=len(catalog.entity_types)
        )
        return catalog

    def _load(self, definition: Mapping[str, Any]):
        entity_types = definition.get("entity_types", {})
        if not isinstance(entity_types, Mapping):
            raise CatalogError("'entity_types' must be a mapping")

        for type_id, type_info in entity_types.items():
            type_info = type_info or {}
            bundles: Dict[str, str] = {}

            for bundle_id, bundle_info in (type_info.get("bundles") or {}).items():
                bundle_info = bundle_info or {}
                # Bundles without a label are not exposed
                if bundle_info.get("label") is not None:
                    bundles[bundle_id] = str(bundle_info["label"])
                self.fields[(type_id, bundle_id)] = [
                    self._build_field(type_id, bundle_id, field_id, field_info or {})
                    for field_id, field_info in (bundle_info.get("fields") or {}).items()
                ]

            self.entity_types[type_id] = EntityTypeDefinition(
                type_id=type_id,
                label=str(type_info.get("label", type_id)),
                group=str(type_info.get("group", "content")),
                bundles=bundles
            )

    def _build_field(self, type_id: str, bundle_id: str, field_id: str, info: Mapping[str, Any]) -> FieldOption:
        try:
            cardinality = Cardinality(info.get("cardinality", Cardinality.SINGLE.value))
        except ValueError:
            raise CatalogError(
                "Unknown field cardinality",
                {
                    "entity_type": type_id,
                    "bundle": bundle_id,
                    "field": field_id,
                    "cardinality": info.get("cardinality")
                }
            )

        label = str(info.get("label", field_id))
        descriptor = FieldDescriptor(
            field_id=field_id,
            label=label,
            primary_property=str(info.get("primary_property", "value")),
            cardinality=cardinality,
            property_names=tuple(info.get("properties", ())),
            computed=bool(info.get("computed", False)),
            typed_data=bool(info.get("typed_data", True))
        )
        return field_id, label, descriptor

    def list_content_entity_types(self) -> List[Tuple[str, str]]:
        return [
            (type_id, definition.label)
            for type_id, definition in self.entity_types.items()
            if definition.group == self.content_group
        ]

    def list_bundles(self, entity_type: str) -> List[Tuple[str, str]]:
        definition = self.entity_types.get(entity_type)
        if definition is None:
            return []
        return list(definition.bundles.items())

    def list_bundle_fields(self, entity_type: str, bundle: str) -> List[FieldOption]:
        return list(self.fields.get((entity_type, bundle), []))
