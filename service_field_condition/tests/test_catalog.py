"""
Unit tests for the schema catalog.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import CatalogError
from shared.test_helpers import TestDataFactory
from service_field_condition.app.catalog import Cardinality, FieldDescriptor, InMemorySchemaCatalog


class TestInMemorySchemaCatalog:
    """Test cases for InMemorySchemaCatalog."""

    @pytest.fixture
    def catalog(self):
        """Create catalog from the shared test definition."""
        return InMemorySchemaCatalog(TestDataFactory.create_catalog_definition())

    def test_content_entity_types_only(self, catalog):
        """Only types in the content group are listed."""
        types = dict(catalog.list_content_entity_types())

        assert types == {"node": "Content", "taxonomy_term": "Taxonomy term"}
        assert "block" not in types

    def test_custom_content_group(self):
        """The content group name is configurable."""
        catalog = InMemorySchemaCatalog(
            TestDataFactory.create_catalog_definition(),
            content_group="configuration"
        )

        assert catalog.list_content_entity_types() == [("block", "Block")]

    def test_bundles_without_label_are_skipped(self, catalog):
        """Bundles lacking a label are not offered."""
        bundles = catalog.list_bundles("node")

        assert bundles == [("article", "Article"), ("page", "Basic page")]

    def test_bundles_for_unknown_type(self, catalog):
        """Unknown types have no bundles."""
        assert catalog.list_bundles("comment") == []

    def test_single_bundle_fields(self, catalog):
        """A single bundle lists its own selectable fields."""
        fields = catalog.list_fields("node", ["article"])

        assert [field_id for field_id, _, _ in fields] == ["title", "tags", "body", "field_link"]

    def test_computed_non_typed_fields_excluded(self, catalog):
        """Computed fields that are not typed data are not offered."""
        field_ids = [field_id for field_id, _, _ in catalog.list_fields("node", ["article"])]

        assert "path_alias" not in field_ids

    def test_multiple_bundles_intersect_fields(self, catalog):
        """Several bundles only share fields present on all of them."""
        fields = catalog.list_fields("node", ["article", "page"])

        assert [field_id for field_id, _, _ in fields] == ["title", "tags"]

    def test_bundle_string_accepted(self, catalog):
        """A bare bundle string is treated as a single bundle."""
        assert catalog.list_fields("node", "page") == catalog.list_fields("node", ["page"])

    def test_no_bundles_no_fields(self, catalog):
        """Without bundles there is nothing to intersect."""
        assert catalog.list_fields("node", []) == []

    def test_get_field(self, catalog):
        """Field descriptors carry cardinality and primary property."""
        descriptor = catalog.get_field("node", "article", "tags")

        assert descriptor.cardinality == Cardinality.UNLIMITED
        assert descriptor.primary_property == "target_id"
        assert descriptor.is_multiple is True
        assert catalog.get_field("node", "article", "missing") is None

    def test_unknown_cardinality_rejected(self):
        """A malformed catalog document raises CatalogError."""
        definition = {
            "entity_types": {
                "node": {
                    "bundles": {
                        "article": {"label": "Article", "fields": {"title": {"cardinality": "several"}}}
                    }
                }
            }
        }

        with pytest.raises(CatalogError) as exc_info:
            InMemorySchemaCatalog(definition)

        assert exc_info.value.code == "CATALOG_ERROR"

    def test_from_yaml(self, tmp_path):
        """Catalogs load from YAML documents."""
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "entity_types:\n"
            "  node:\n"
            "    label: Content\n"
            "    bundles:\n"
            "      article:\n"
            "        label: Article\n"
            "        fields:\n"
            "          title: {label: Title}\n"
        )

        catalog = InMemorySchemaCatalog.from_yaml(str(path))

        assert catalog.list_content_entity_types() == [("node", "Content")]
        assert catalog.list_fields("node", ["article"])[0][0] == "title"

    def test_from_yaml_missing_file(self, tmp_path):
        """Unreadable catalog files raise CatalogError."""
        with pytest.raises(CatalogError):
            InMemorySchemaCatalog.from_yaml(str(tmp_path / "missing.yaml"))


class TestFieldDescriptor:
    """Test cases for FieldDescriptor."""

    def test_primary_property_leads(self):
        """The primary property is always first in the property list."""
        descriptor = FieldDescriptor("field_link", "Link", primary_property="uri", property_names=("title", "uri"))

        assert descriptor.property_names == ("uri", "title")

    def test_primary_property_added(self):
        """A property list missing the primary property gets it prepended."""
        descriptor = FieldDescriptor("body", "Body", property_names=("format",))

        assert descriptor.property_names == ("value", "format")

    def test_selectable(self):
        """Computed fields stay selectable while they expose typed data."""
        assert FieldDescriptor("a", "A").selectable is True
        assert FieldDescriptor("b", "B", computed=True).selectable is True
        assert FieldDescriptor("c", "C", computed=True, typed_data=False).selectable is False
