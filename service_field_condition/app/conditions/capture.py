"""
Reference value capture for the Field Condition service.
"""

from typing import Any, Iterable, Mapping, Optional

from shared.logging import get_logger
from shared.errors import ConfigurationBuildError
from ..catalog.base import FieldDescriptor
from .models import (
    CaptureContext, CapturedValueList, CompareMethod, RuleConfiguration,
    is_empty_value, normalize_captured_value
)


def prune_empty(values: Iterable[Mapping[str, Any]]) -> CapturedValueList:
    """Drop deltas the user cleared."""
    return [normalize_captured_value(value) for value in values if not is_empty_value(value)]


class ValueCapture:
    """Keep captured values tied to the field they were captured against."""

    def __init__(self):
        self.logger = get_logger("field_condition.capture")

    def capture_defaults(self, config, field_descriptor: FieldDescriptor) -> CapturedValueList:
        """Return the values to pre-fill for ``field_descriptor``.

        Stored values are only reused when they were captured against the
        same entity type and field; anything else starts from nothing.
        """
        config = RuleConfiguration.from_storage(config)
        if not config.captured_values:
            return []

        if field_descriptor.field_id != config.entity_field or not config.has_current_capture():
            self.logger.info(
                "Captured values discarded for changed field",
                entity_type=config.entity_type,
                entity_field=field_descriptor.field_id,
                captured_against=config.capture_context.model_dump() if config.capture_context else None
            )
            return []

        return [dict(value) for value in config.captured_values]

    def apply_submission(
        self,
        config,
        field_descriptor: FieldDescriptor,
        submitted: Iterable[Mapping[str, Any]],
        compare_method: Optional[CompareMethod] = None
    ) -> RuleConfiguration:
        """Store submitted values, stripped of empty deltas, on the configuration."""
        config = RuleConfiguration.from_storage(config)
        if not config.entity_type or config.entity_field != field_descriptor.field_id:
            raise ConfigurationBuildError(
                "Cannot capture values for a field that is not selected",
                {"entity_field": config.entity_field, "field": field_descriptor.field_id}
            )

        properties = set(field_descriptor.property_names)
        values = prune_empty(
            {name: prop for name, prop in value.items() if name in properties}
            for value in submitted
        )

        update = {
            "captured_values": values,
            "capture_context": CaptureContext(
                entity_type=config.entity_type,
                entity_field=config.entity_field
            ),
        }
        if compare_method is not None and field_descriptor.is_multiple:
            update["compare_method"] = CompareMethod(compare_method)

        self.logger.debug(
            "Values captured",
            entity_type=config.entity_type,
            entity_field=config.entity_field,
            deltas=len(values)
        )
        return config.model_copy(update=update)
