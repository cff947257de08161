"""
Rule data models for the Field Condition service.
"""

from typing import Dict, Any, Optional, List, Iterable, Mapping, Union
from dataclasses import dataclass, field
from enum import Enum

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

from shared.errors import ConfigurationBuildError
from ..catalog.base import FieldDescriptor

CapturedValue = Dict[str, str]
CapturedValueList = List[CapturedValue]


class CompareMethod(str, Enum):
    """How captured values are compared against live field values."""
    MATCH_ALL = "match_all"
    MATCH_ONE = "match_one"
    STRICT_POSITIONAL = "strict_positional"


class SelectionLevel(str, Enum):
    """Cascade levels, in resolution order."""
    ENTITY_TYPE = "entity_type"
    ENTITY_BUNDLE = "entity_bundle"
    ENTITY_FIELD = "entity_field"

    @classmethod
    def ordered(cls) -> List["SelectionLevel"]:
        return [cls.ENTITY_TYPE, cls.ENTITY_BUNDLE, cls.ENTITY_FIELD]

    @property
    def position(self) -> int:
        return SelectionLevel.ordered().index(self)

    def upstream(self) -> List["SelectionLevel"]:
        return SelectionLevel.ordered()[:self.position]


class ConfigurationState(str, Enum):
    """Configuration progress through the cascade."""
    EMPTY = "empty"
    TYPE_CHOSEN = "type_chosen"
    BUNDLES_CHOSEN = "bundles_chosen"
    FIELD_CHOSEN = "field_chosen"
    VALUES_CAPTURED = "values_captured"


def normalize_value(value: Any) -> str:
    """Normalize a single property value to a trimmed string."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_captured_value(value: Mapping[str, Any]) -> CapturedValue:
    """Normalize every property of one field value."""
    return {str(name): normalize_value(prop) for name, prop in value.items()}


def is_empty_value(value: Mapping[str, Any]) -> bool:
    """A value with no non-empty property carries nothing to compare."""
    return not any(normalize_value(prop) for prop in value.values())


class CaptureContext(BaseModel):
    """Field identity the captured values were recorded against."""
    entity_type: str
    entity_field: str


class RuleConfiguration(BaseModel):
    """Persisted field condition rule."""

    model_config = ConfigDict(populate_by_name=True)

    entity_type: Optional[str] = Field(None, description="Entity type ID")
    entity_bundles: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("entity_bundles", "entity_bundle"),
        description="Selected bundle IDs"
    )
    entity_field: Optional[str] = Field(None, description="Field ID")
    compare_method: CompareMethod = Field(CompareMethod.MATCH_ALL, description="Value compare method")
    captured_values: Optional[List[Dict[str, str]]] = Field(
        None,
        description="Reference values, one per delta; None when nothing was ever captured"
    )
    capture_context: Optional[CaptureContext] = Field(None, description="Field the values were captured against")
    negate: bool = Field(False, description="Invert the evaluation result")

    @model_validator(mode="before")
    @classmethod
    def _legacy_record(cls, data: Any) -> Any:
        """Read records stored in the older form layout.

        Those nest the rule under ``field_condition`` and keep the captured
        widget values under ``form_display.widget``.
        """
        if not isinstance(data, Mapping):
            return data

        data = dict(data)
        if isinstance(data.get("field_condition"), Mapping):
            nested = dict(data.pop("field_condition"))
            if "negate" in data:
                nested.setdefault("negate", data["negate"])
            data = nested

        form_display = data.pop("form_display", None)
        if isinstance(form_display, Mapping) and data.get("captured_values") is None:
            # A form display without widget values stored an empty capture
            data["captured_values"] = form_display.get("widget") or []

        # Single-bundle records predate compare methods and compared by delta
        bundle = data.get("entity_bundle", data.get("entity_bundles"))
        if isinstance(bundle, str) and data.get("compare_method") is None:
            data["compare_method"] = CompareMethod.STRICT_POSITIONAL
        return data

    @field_validator("entity_type", "entity_field", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("entity_bundles", mode="before")
    @classmethod
    def _normalize_bundles(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        elif isinstance(value, Mapping):
            value = list(value.values())
        elif isinstance(value, (set, frozenset)):
            value = sorted(value)
        elif not isinstance(value, Iterable):
            raise ValueError("entity bundles must be a string or a list of strings")

        bundles: List[str] = []
        for bundle in value:
            if isinstance(bundle, str):
                bundle = bundle.strip()
            if bundle and bundle not in bundles:
                bundles.append(bundle)
        return bundles

    @field_validator("captured_values", mode="before")
    @classmethod
    def _normalize_captured(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = [value[key] for key in sorted(value, key=_delta_sort_key) if str(key).isdigit()]
        elif isinstance(value, str) or not isinstance(value, Iterable):
            raise ValueError("captured values must be a list of mappings")

        captured = []
        for item in value:
            if not isinstance(item, Mapping):
                raise ValueError("each captured value must be a mapping of properties")
            captured.append(normalize_captured_value(item))
        return captured

    @property
    def bundle_set(self) -> frozenset:
        return frozenset(self.entity_bundles)

    @property
    def state(self) -> ConfigurationState:
        if not self.entity_type:
            return ConfigurationState.EMPTY
        if not self.entity_bundles:
            return ConfigurationState.TYPE_CHOSEN
        if not self.entity_field:
            return ConfigurationState.BUNDLES_CHOSEN
        if self.captured_values is None or not self.has_current_capture():
            return ConfigurationState.FIELD_CHOSEN
        return ConfigurationState.VALUES_CAPTURED

    def has_current_capture(self) -> bool:
        """Whether the captured values belong to the currently selected field.

        Records stored before capture contexts existed carry no context and
        are taken to belong to the field they are stored with.
        """
        if self.capture_context is None:
            return True
        return (
            self.capture_context.entity_type == self.entity_type
            and self.capture_context.entity_field == self.entity_field
        )

    def level_value(self, level: SelectionLevel) -> Union[str, List[str], None]:
        if level == SelectionLevel.ENTITY_TYPE:
            return self.entity_type
        if level == SelectionLevel.ENTITY_BUNDLE:
            return list(self.entity_bundles)
        return self.entity_field

    def cleared_from(self, level: SelectionLevel) -> "RuleConfiguration":
        """Return a copy with ``level`` and everything below it discarded."""
        update: Dict[str, Any] = {
            "entity_field": None,
            "compare_method": CompareMethod.MATCH_ALL,
            "captured_values": None,
            "capture_context": None,
        }
        if level.position <= SelectionLevel.ENTITY_BUNDLE.position:
            update["entity_bundles"] = []
        if level == SelectionLevel.ENTITY_TYPE:
            update["entity_type"] = None
        return self.model_copy(update=update, deep=True)

    def summary(self) -> str:
        """Human readable description of the rule."""
        return "Entity type: {}, Entity bundle: {} and Entity field: {}".format(
            self.entity_type or "-",
            ", ".join(self.entity_bundles) or "-",
            self.entity_field or "-",
        )

    def to_storage(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible storage record."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage(cls, record: Union["RuleConfiguration", Mapping[str, Any], None]) -> "RuleConfiguration":
        """Read a storage record, accepting the legacy single bundle form."""
        if isinstance(record, RuleConfiguration):
            return record
        if record is None:
            return cls()
        if not isinstance(record, Mapping):
            raise ConfigurationBuildError(
                "Stored configuration must be a mapping",
                {"type": type(record).__name__}
            )
        try:
            return cls.model_validate(dict(record))
        except PydanticValidationError as e:
            raise ConfigurationBuildError(
                "Stored configuration is malformed",
                {"errors": [
                    {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]}
                    for error in e.errors()
                ]}
            )


def _delta_sort_key(key: Any) -> int:
    return int(key) if str(key).isdigit() else -1


@dataclass
class EntityFieldSnapshot:
    """Live field values of one entity, pre-fetched by the caller."""
    entity_type: str
    bundle: str
    fields: Dict[str, CapturedValueList] = field(default_factory=dict)
    primary_properties: Dict[str, str] = field(default_factory=dict)

    def has_field(self, field_id: str) -> bool:
        return field_id in self.fields

    def field_values(self, field_id: str) -> CapturedValueList:
        """Return the field's values, trimmed like captured values."""
        values = self.fields.get(field_id) or []
        if isinstance(values, Mapping):
            values = [values]
        return [normalize_captured_value(value) for value in values]

    def primary_property(self, field_id: str) -> Optional[str]:
        return self.primary_properties.get(field_id)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EntityFieldSnapshot":
        return cls(
            entity_type=data["entity_type"],
            bundle=data["bundle"],
            fields=dict(data.get("fields") or {}),
            primary_properties=dict(data.get("primary_properties") or {})
        )


@dataclass
class LevelResolution:
    """Options and current value computed for one cascade level."""
    level: SelectionLevel
    options: Dict[str, str]
    current_value: Union[str, List[str], None]
    is_stale: bool = False
    config: Optional[RuleConfiguration] = None
    fields: Dict[str, FieldDescriptor] = field(default_factory=dict)

    @property
    def resolved(self) -> bool:
        return bool(self.current_value)


@dataclass
class ResolutionResult:
    """Outcome of one resolution pass over all cascade levels."""
    config: RuleConfiguration
    levels: Dict[SelectionLevel, LevelResolution] = field(default_factory=dict)
    field_descriptor: Optional[FieldDescriptor] = None
    stale_levels: List[SelectionLevel] = field(default_factory=list)

    @property
    def state(self) -> ConfigurationState:
        return self.config.state

    @property
    def compare_method_required(self) -> bool:
        return self.field_descriptor is not None and self.field_descriptor.is_multiple


class SnapshotPayload(BaseModel):
    """Request model for an entity snapshot."""
    entity_type: str = Field(..., description="Entity type ID")
    bundle: str = Field(..., description="Entity bundle ID")
    fields: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict, description="Live field values by field ID")
    primary_properties: Dict[str, str] = Field(default_factory=dict, description="Primary property by field ID")


class ResolveRequest(BaseModel):
    """Request model for a resolution round."""
    configuration: Dict[str, Any] = Field(default_factory=dict, description="Stored rule configuration")


class ChooseRequest(BaseModel):
    """Request model for applying one user choice."""
    configuration: Dict[str, Any] = Field(default_factory=dict, description="Stored rule configuration")
    level: SelectionLevel = Field(..., description="Cascade level being changed")
    value: Union[str, List[str], None] = Field(None, description="Chosen value")


class CaptureRequest(BaseModel):
    """Request model for capturing reference values."""
    configuration: Dict[str, Any] = Field(default_factory=dict, description="Stored rule configuration")
    submission: Union[List[Dict[str, Any]], Dict[str, Any]] = Field(
        default_factory=list,
        description="Submitted widget values, a list or a mapping keyed by delta"
    )
    compare_method: Optional[CompareMethod] = Field(None, description="Compare method for multi-value fields")


class EvaluateRequest(BaseModel):
    """Request model for evaluating a rule against an entity."""
    configuration: Dict[str, Any] = Field(default_factory=dict, description="Stored rule configuration")
    entity: Optional[SnapshotPayload] = Field(None, description="Entity snapshot")


class LevelResponse(BaseModel):
    """Response model for one resolved level."""
    level: SelectionLevel
    options: Dict[str, str]
    current_value: Union[str, List[str], None]
    is_stale: bool


class ResolveResponse(BaseModel):
    """Response model for a resolution round."""
    configuration: Dict[str, Any]
    state: ConfigurationState
    levels: List[LevelResponse]
    stale_levels: List[SelectionLevel] = Field(default_factory=list)
    compare_method_required: bool = False
    widget: Optional[Dict[str, Any]] = None


class EvaluateResponse(BaseModel):
    """Response model for an evaluation."""
    matched: bool = Field(..., description="Final result after negation")
    evaluated: bool = Field(..., description="Result before negation")
    negated: bool = Field(..., description="Whether negation was requested")
    state: ConfigurationState


class SummaryResponse(BaseModel):
    """Response model for a rule summary."""
    summary: str
    state: ConfigurationState
