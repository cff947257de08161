"""
Field value condition evaluator.
"""

from typing import Any, List, Mapping, Optional, Union

from shared.logging import get_logger
from ..catalog.base import SchemaCatalog
from .models import (
    CapturedValueList, CompareMethod, EntityFieldSnapshot, RuleConfiguration,
    normalize_value
)

DEFAULT_PRIMARY_PROPERTY = "value"

SnapshotLike = Union[EntityFieldSnapshot, Mapping[str, Any], None]


class ConditionEvaluator:
    """Decide whether an entity's field values satisfy a stored rule.

    Evaluation is fail-closed: an incomplete rule or a rule pointing at
    schema the entity no longer has never matches. A catalog is optional
    and only consulted for the primary property of a field when the
    snapshot does not carry it.
    """

    def __init__(self, catalog: Optional[SchemaCatalog] = None):
        self.catalog = catalog
        self.logger = get_logger("field_condition.evaluator")

    def execute(self, snapshot: SnapshotLike, config) -> bool:
        """Evaluate and apply the rule's negation."""
        config = RuleConfiguration.from_storage(config)
        return self.apply_negation(config, self.evaluate(snapshot, config))

    @staticmethod
    def apply_negation(config: RuleConfiguration, result: bool) -> bool:
        """Negate an evaluation result when the rule asks for it.

        A rule without an entity type is inert and stays false even when
        negated.
        """
        if not config.entity_type:
            return False
        return not result if config.negate else result

    def evaluate(self, snapshot: SnapshotLike, config) -> bool:
        """Evaluate the rule before negation."""
        config = RuleConfiguration.from_storage(config)

        if not config.entity_type:
            return self._fail("No entity type configured")

        if snapshot is None:
            return self._fail("No entity in context")
        if isinstance(snapshot, Mapping):
            snapshot = EntityFieldSnapshot.from_mapping(snapshot)

        if snapshot.entity_type != config.entity_type:
            return self._fail("Entity type mismatch", expected=config.entity_type, actual=snapshot.entity_type)

        if not config.entity_bundles or snapshot.bundle not in config.bundle_set:
            return self._fail("Bundle not selected", bundle=snapshot.bundle, bundles=config.entity_bundles)

        if not config.entity_field or not snapshot.has_field(config.entity_field):
            return self._fail("Field missing", entity_field=config.entity_field)

        if config.captured_values is None or not config.has_current_capture():
            return self._fail("No captured values", entity_field=config.entity_field)

        live_values = snapshot.field_values(config.entity_field)
        primary = self._primary_property(snapshot, config.entity_field)

        return self.compare(live_values, config.captured_values, config.compare_method, primary)

    def compare(
        self,
        live_values: CapturedValueList,
        captured_values: CapturedValueList,
        compare_method: CompareMethod,
        primary_property: str = DEFAULT_PRIMARY_PROPERTY
    ) -> bool:
        """Compare live values with captured values under ``compare_method``."""
        compare_method = CompareMethod(compare_method)

        if compare_method == CompareMethod.STRICT_POSITIONAL:
            return self._match_positional(live_values, captured_values)

        live = self._primary_values(live_values, primary_property)
        captured = self._primary_values(captured_values, primary_property)

        if compare_method == CompareMethod.MATCH_ONE:
            return any(value in live for value in captured)

        return all(value in live for value in captured)

    def _match_positional(self, live_values: CapturedValueList, captured_values: CapturedValueList) -> bool:
        if len(live_values) != len(captured_values):
            return False

        for live, captured in zip(live_values, captured_values):
            for name, value in captured.items():
                if normalize_value(live.get(name)) != normalize_value(value):
                    return False
        return True

    def _primary_values(self, values: CapturedValueList, primary_property: str) -> List[str]:
        return [normalize_value(value.get(primary_property)) for value in values]

    def _primary_property(self, snapshot: EntityFieldSnapshot, field_id: str) -> str:
        primary = snapshot.primary_property(field_id)
        if primary:
            return primary

        if self.catalog is not None:
            descriptor = self.catalog.get_field(snapshot.entity_type, snapshot.bundle, field_id)
            if descriptor is not None:
                return descriptor.primary_property

        return DEFAULT_PRIMARY_PROPERTY

    def _fail(self, reason: str, **details) -> bool:
        self.logger.debug("Field condition not met", reason=reason, **details)
        return False
