"""
Widget rendering boundary for captured reference values.

Rendering real input controls belongs to the hosting UI. The service only
needs an input description to hand out and a way to read a submission
back into a captured value list.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..catalog.base import FieldDescriptor
from .models import CapturedValueList, normalize_captured_value, normalize_value


@dataclass
class InputSpec:
    """Input controls for one field, one row per delta."""
    field_id: str
    label: str
    properties: Tuple[str, ...]
    multiple: bool
    rows: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["properties"] = list(self.properties)
        return data


class WidgetRenderer(ABC):
    """Render input controls and parse submissions for a field."""

    @abstractmethod
    def render(self, field_descriptor: FieldDescriptor, prefill: Optional[CapturedValueList] = None) -> InputSpec:
        """Build the input description, pre-filled with captured values."""

    @abstractmethod
    def parse_submission(self, spec: InputSpec, raw_input: Any) -> CapturedValueList:
        """Turn submitted input into a captured value list."""


class TextWidgetRenderer(WidgetRenderer):
    """Plain text inputs, one per property."""

    def render(self, field_descriptor: FieldDescriptor, prefill: Optional[CapturedValueList] = None) -> InputSpec:
        properties = field_descriptor.property_names
        rows = [
            {name: normalize_value(value.get(name)) for name in properties}
            for value in (prefill or [])
        ]

        if field_descriptor.is_multiple:
            rows.append({name: "" for name in properties})
        elif not rows:
            rows = [{name: "" for name in properties}]
        else:
            rows = rows[:1]

        return InputSpec(
            field_id=field_descriptor.field_id,
            label=field_descriptor.label,
            properties=properties,
            multiple=field_descriptor.is_multiple,
            rows=rows
        )

    def parse_submission(self, spec: InputSpec, raw_input: Any) -> CapturedValueList:
        if raw_input is None:
            return []

        if isinstance(raw_input, Mapping):
            # Keyed by delta; keys such as "add_more" are controls, not values
            deltas = sorted((key for key in raw_input if str(key).isdigit()), key=lambda key: int(key))
            items = [raw_input[key] for key in deltas]
        else:
            items = list(raw_input)

        values: CapturedValueList = []
        for item in items:
            if isinstance(item, Mapping):
                value = {name: item.get(name) for name in spec.properties if name in item}
            else:
                value = {spec.properties[0]: item}
            values.append(normalize_captured_value(value))

        if not spec.multiple:
            values = values[:1]
        return values
