"""
Unit tests for the field condition evaluator.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import ConfigurationBuildError
from shared.test_helpers import TestDataFactory, create_tag_values
from service_field_condition.app.catalog import InMemorySchemaCatalog
from service_field_condition.app.conditions.evaluator import ConditionEvaluator
from service_field_condition.app.conditions.models import CompareMethod, EntityFieldSnapshot, RuleConfiguration


@pytest.fixture
def evaluator():
    """Create ConditionEvaluator backed by the test catalog."""
    return ConditionEvaluator(InMemorySchemaCatalog(TestDataFactory.create_catalog_definition()))


def tags_rule(compare_method, captured, negate=False):
    return TestDataFactory.create_configuration(
        bundles=["article", "page"],
        entity_field="tags",
        compare_method=compare_method,
        captured_values=captured,
        negate=negate
    )


def tags_entity(*tags, bundle="article"):
    return TestDataFactory.create_snapshot(bundle=bundle, fields={"tags": create_tag_values(*tags)})


class TestPreconditions:
    """Test cases for the fail-closed preconditions."""

    @pytest.mark.parametrize("snapshot", [
        TestDataFactory.create_snapshot(),
        TestDataFactory.create_snapshot(entity_type="taxonomy_term", bundle="tags"),
        None,
    ])
    def test_no_entity_type_never_matches(self, evaluator, snapshot):
        """A rule without an entity type is false, negated or not."""
        for negate in (False, True):
            config = RuleConfiguration(negate=negate, entity_bundles=["article"], entity_field="title",
                                       captured_values=[{"value": "Hello"}])

            assert evaluator.evaluate(snapshot, config) is False
            assert evaluator.execute(snapshot, config) is False

    def test_no_entity(self, evaluator):
        """Without an entity there is nothing to match."""
        config = TestDataFactory.create_configuration(captured_values=[{"value": "Hello"}])

        assert evaluator.evaluate(None, config) is False

    def test_entity_type_mismatch(self, evaluator):
        """Another entity type never matches."""
        config = TestDataFactory.create_configuration(
            entity_type="taxonomy_term",
            bundles=["article"],
            captured_values=[{"value": "Hello"}]
        )

        assert evaluator.evaluate(TestDataFactory.create_snapshot(), config) is False

    def test_no_bundles(self, evaluator):
        """A rule without bundles never matches."""
        config = TestDataFactory.create_configuration(bundles=[], captured_values=[{"value": "Hello"}])

        assert evaluator.evaluate(TestDataFactory.create_snapshot(), config) is False

    def test_bundle_not_selected(self, evaluator):
        """Entities of unselected bundles never match."""
        config = TestDataFactory.create_configuration(captured_values=[{"value": "Hello"}])

        assert evaluator.evaluate(TestDataFactory.create_snapshot(bundle="page"), config) is False

    def test_legacy_bundle_string(self, evaluator):
        """Legacy single-string bundles are normalized before matching."""
        config = {
            "entity_type": "node",
            "entity_bundle": "article",
            "entity_field": "title",
            "captured_values": [{"value": "Hello"}],
        }

        assert evaluator.evaluate(TestDataFactory.create_snapshot(), config) is True

    def test_form_layout_record(self, evaluator):
        """Records keeping widget values under form_display are compared."""
        config = {
            "field_condition": {
                "entity_type": "node",
                "entity_bundle": ["article"],
                "entity_field": "title",
                "form_display": {"widget": [{"value": "Hello"}]},
            }
        }

        assert evaluator.evaluate(TestDataFactory.create_snapshot(), config) is True

    def test_field_missing_on_entity(self, evaluator):
        """A field the entity no longer has never matches."""
        config = TestDataFactory.create_configuration(captured_values=[{"value": "Hello"}])
        snapshot = TestDataFactory.create_snapshot(fields={"body": [{"value": "Hello"}]})

        assert evaluator.evaluate(snapshot, config) is False

    def test_no_field(self, evaluator):
        """A rule without a field never matches."""
        config = TestDataFactory.create_configuration(entity_field=None, captured_values=[])

        assert evaluator.evaluate(TestDataFactory.create_snapshot(), config) is False

    def test_nothing_captured(self, evaluator):
        """A rule that never captured values never matches."""
        config = TestDataFactory.create_configuration(captured_values=None)

        assert evaluator.evaluate(TestDataFactory.create_snapshot(fields={"title": []}), config) is False

    def test_capture_for_other_field(self, evaluator):
        """Values captured against another field are not compared."""
        config = TestDataFactory.create_configuration(captured_values=[{"value": "Hello"}])
        config["capture_context"] = {"entity_type": "node", "entity_field": "body"}

        assert evaluator.evaluate(TestDataFactory.create_snapshot(), config) is False

    def test_malformed_configuration_raises(self, evaluator):
        """Malformed stored rules are an error, not a false."""
        with pytest.raises(ConfigurationBuildError):
            evaluator.evaluate(TestDataFactory.create_snapshot(), {"entity_type": "node", "negate": "sometimes"})

    def test_snapshot_object_accepted(self, evaluator):
        """Snapshot objects and mappings evaluate alike."""
        config = TestDataFactory.create_configuration(captured_values=[{"value": "Hello"}])
        snapshot = EntityFieldSnapshot("node", "article", {"title": [{"value": "Hello"}]})

        assert evaluator.evaluate(snapshot, config) is True


class TestMatching:
    """End-to-end evaluation of configured rules."""

    def test_single_value_trim_insensitive(self, evaluator):
        """Trailing whitespace on the entity does not matter."""
        config = TestDataFactory.create_configuration(captured_values=[{"value": "Hello"}])
        snapshot = TestDataFactory.create_snapshot(fields={"title": [{"value": "Hello "}]})

        assert evaluator.evaluate(snapshot, config) is True

    def test_match_all_subset(self, evaluator):
        """Captured values that are a subset of live values match all."""
        config = tags_rule("match_all", create_tag_values("A", "B"))

        assert evaluator.evaluate(tags_entity("A", "B", "C"), config) is True

    def test_match_one_no_intersection(self, evaluator):
        """No shared value means no match."""
        config = tags_rule("match_one", create_tag_values("X"))

        assert evaluator.evaluate(tags_entity("A", "B", "C"), config) is False

    def test_both_empty(self, evaluator):
        """Both empty matches all but not one."""
        assert evaluator.evaluate(tags_entity(), tags_rule("match_all", [])) is True
        assert evaluator.evaluate(tags_entity(), tags_rule("match_one", [])) is False
        assert evaluator.evaluate(tags_entity(), tags_rule("strict_positional", [])) is True

    def test_other_bundle_of_selection(self, evaluator):
        """Entities of any selected bundle are evaluated."""
        config = tags_rule("match_all", create_tag_values("A"))

        assert evaluator.evaluate(tags_entity("A", bundle="page"), config) is True

    def test_primary_property_from_catalog(self, evaluator):
        """Relaxed policies compare the catalog's primary property."""
        config = tags_rule("match_one", [{"target_id": "A", "label": "Other"}])

        assert evaluator.evaluate(tags_entity("A"), config) is True

    def test_primary_property_from_snapshot(self):
        """Snapshots may carry the primary property themselves."""
        evaluator = ConditionEvaluator()
        config = tags_rule("match_all", [{"uri": "https://example.com"}])
        snapshot = TestDataFactory.create_snapshot(
            fields={"tags": [{"uri": "https://example.com", "title": "Example"}]},
            primary_properties={"tags": "uri"}
        )

        assert evaluator.evaluate(snapshot, config) is True

    def test_default_primary_property(self):
        """Without metadata the value property is compared."""
        evaluator = ConditionEvaluator()
        config = TestDataFactory.create_configuration(captured_values=[{"value": "Hello"}])

        assert evaluator.evaluate(TestDataFactory.create_snapshot(), config) is True


class TestNegation:
    """Test cases for caller-level negation."""

    def test_negated_match(self, evaluator):
        """Negation inverts a match."""
        config = tags_rule("match_all", create_tag_values("A"), negate=True)

        assert evaluator.evaluate(tags_entity("A"), config) is True
        assert evaluator.execute(tags_entity("A"), config) is False

    def test_negated_mismatch(self, evaluator):
        """Negation inverts a failed precondition too."""
        config = tags_rule("match_all", create_tag_values("A"), negate=True)

        assert evaluator.execute(tags_entity("A", bundle="draft"), config) is True

    def test_apply_negation(self, evaluator):
        """Negation applies to an already computed result."""
        negated = RuleConfiguration.from_storage(tags_rule("match_all", [], negate=True))
        inert = RuleConfiguration(negate=True)

        assert evaluator.apply_negation(negated, True) is False
        assert evaluator.apply_negation(negated, False) is True
        assert evaluator.apply_negation(inert, False) is False

    def test_execute_without_negation(self, evaluator):
        """Without negation execute matches evaluate."""
        config = tags_rule("match_one", create_tag_values("B"))

        assert evaluator.execute(tags_entity("A", "B"), config) is True


class TestCompare:
    """Truth tables for the compare policies."""

    @pytest.fixture
    def compare(self, evaluator):
        return evaluator.compare

    def test_match_all(self, compare):
        """Every captured value must be present, order and repeats ignored."""
        live = [{"value": "b"}, {"value": "a"}, {"value": "a"}]

        assert compare(live, [{"value": "a"}, {"value": "b"}], CompareMethod.MATCH_ALL) is True
        assert compare(live, [{"value": "a"}, {"value": "a"}], CompareMethod.MATCH_ALL) is True
        assert compare(live, [{"value": "a"}, {"value": "c"}], CompareMethod.MATCH_ALL) is False
        assert compare([], [{"value": "a"}], CompareMethod.MATCH_ALL) is False
        assert compare(live, [], CompareMethod.MATCH_ALL) is True

    def test_match_all_trims_both_sides(self, compare):
        """Captured and live values are compared trimmed."""
        assert compare([{"value": " a "}], [{"value": "a  "}], CompareMethod.MATCH_ALL) is True

    def test_match_one(self, compare):
        """At least one captured value must be present."""
        live = [{"value": "a"}, {"value": "b"}]

        assert compare(live, [{"value": "x"}, {"value": "b"}], CompareMethod.MATCH_ONE) is True
        assert compare(live, [{"value": "x"}], CompareMethod.MATCH_ONE) is False
        assert compare(live, [], CompareMethod.MATCH_ONE) is False
        assert compare([], [], CompareMethod.MATCH_ONE) is False

    def test_strict_positional(self, compare):
        """Lengths and every property at every delta must agree."""
        live = [{"uri": "/a", "title": "A"}, {"uri": "/b", "title": "B "}]

        assert compare(live, [{"uri": "/a", "title": "A"}, {"uri": "/b", "title": "B"}],
                       CompareMethod.STRICT_POSITIONAL) is True
        assert compare(live, [{"uri": "/a"}, {"uri": "/b"}], CompareMethod.STRICT_POSITIONAL) is True
        assert compare(live, [{"uri": "/b"}, {"uri": "/a"}], CompareMethod.STRICT_POSITIONAL) is False
        assert compare(live, [{"uri": "/a"}], CompareMethod.STRICT_POSITIONAL) is False
        assert compare(live, [{"uri": "/a", "title": "X"}, {"uri": "/b"}], CompareMethod.STRICT_POSITIONAL) is False
        assert compare([], [], CompareMethod.STRICT_POSITIONAL) is True

    def test_strict_positional_missing_live_property(self, compare):
        """A captured property the live value lacks only matches when empty."""
        assert compare([{"uri": "/a"}], [{"uri": "/a", "title": "A"}], CompareMethod.STRICT_POSITIONAL) is False
        assert compare([{"uri": "/a"}], [{"uri": "/a", "title": ""}], CompareMethod.STRICT_POSITIONAL) is True

    def test_compare_method_by_name(self, compare):
        """Compare methods may be given by their stored name."""
        assert compare([{"value": "a"}], [{"value": "a"}], "match_one") is True
