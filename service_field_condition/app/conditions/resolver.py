"""
Cascading selection resolver for the Field Condition service.
"""

from typing import Dict, List, Union

from shared.logging import get_logger
from shared.errors import ConfigurationBuildError, ValidationError
from ..catalog.base import SchemaCatalog
from .models import (
    LevelResolution, ResolutionResult, RuleConfiguration, SelectionLevel
)

LevelValue = Union[str, List[str], None]


class ResolutionPass:
    """Levels registered while building one configuration round."""

    def __init__(self):
        self.levels: Dict[SelectionLevel, LevelResolution] = {}

    def register(self, resolution: LevelResolution):
        if resolution.level in self.levels:
            raise ConfigurationBuildError(
                "Conditional level already registered in this pass",
                {"level": resolution.level.value}
            )
        self.levels[resolution.level] = resolution


class SelectionResolver:
    """Resolve entity type, bundle and field levels against a schema catalog."""

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog
        self.logger = get_logger("field_condition.resolver")

    def resolve(self, config) -> ResolutionResult:
        """Resolve every level in order, stopping at the first unset one.

        Stale levels are stripped from the returned configuration together
        with everything below them.
        """
        config = RuleConfiguration.from_storage(config)
        resolution_pass = ResolutionPass()
        stale_levels: List[SelectionLevel] = []
        descriptor = None

        for level in SelectionLevel.ordered():
            resolution = self.resolve_level(config, level)
            resolution_pass.register(resolution)
            config = resolution.config

            if resolution.is_stale:
                stale_levels.append(level)
            if not resolution.resolved:
                break
            if level == SelectionLevel.ENTITY_FIELD:
                descriptor = resolution.fields.get(config.entity_field)

        return ResolutionResult(
            config=config,
            levels=resolution_pass.levels,
            field_descriptor=descriptor,
            stale_levels=stale_levels
        )

    def resolve_level(self, config, level: SelectionLevel) -> LevelResolution:
        """Compute options, current value and staleness for one level.

        Every level above ``level`` must already hold a value.
        """
        config = RuleConfiguration.from_storage(config)
        level = SelectionLevel(level)
        self._require_upstream(config, level)

        if level == SelectionLevel.ENTITY_TYPE:
            return self._resolve_entity_type(config)
        if level == SelectionLevel.ENTITY_BUNDLE:
            return self._resolve_entity_bundle(config)
        return self._resolve_entity_field(config)

    def choose(self, config, level: SelectionLevel, value: LevelValue) -> RuleConfiguration:
        """Apply one user choice and discard everything below it if it changed."""
        try:
            level = SelectionLevel(level)
        except ValueError:
            raise ValidationError("Unknown selection level", {"level": level})

        result = self.resolve(config)
        resolution = result.levels.get(level)
        if resolution is None:
            raise ValidationError(
                "Upstream selection is not resolved",
                {"level": level.value, "state": result.state.value}
            )

        value = self._normalize_choice(level, value)
        invalid = [item for item in self._as_list(value) if item not in resolution.options]
        if invalid:
            raise ValidationError(
                "Selected value is not a valid option",
                {"level": level.value, "invalid": invalid}
            )

        current = result.config.level_value(level)
        if set(self._as_list(current)) == set(self._as_list(value)):
            return result.config

        updated = result.config.cleared_from(level)
        attribute = "entity_bundles" if level == SelectionLevel.ENTITY_BUNDLE else level.value
        updated = updated.model_copy(update={attribute: value})

        self.logger.info(
            "Selection changed",
            level=level.value,
            previous=current,
            value=value
        )
        return updated

    def _resolve_entity_type(self, config: RuleConfiguration) -> LevelResolution:
        level = SelectionLevel.ENTITY_TYPE
        options = self._level_options(config, level)

        if not self._is_valid(config, level, options):
            return self._stale(level, options, config, config.entity_type)

        return LevelResolution(level, options, config.entity_type, False, config)

    def _resolve_entity_bundle(self, config: RuleConfiguration) -> LevelResolution:
        level = SelectionLevel.ENTITY_BUNDLE
        options = self._level_options(config, level)

        if not self._is_valid(config, level, options):
            return self._stale(level, options, config, list(config.entity_bundles))

        return LevelResolution(level, options, list(config.entity_bundles), False, config)

    def _resolve_entity_field(self, config: RuleConfiguration) -> LevelResolution:
        level = SelectionLevel.ENTITY_FIELD
        field_options = self.catalog.list_fields(config.entity_type, config.entity_bundles)
        options = {field_id: label for field_id, label, _ in field_options}
        descriptors = {field_id: descriptor for field_id, _, descriptor in field_options}

        if config.entity_field and config.entity_field not in options:
            resolution = self._stale(level, options, config, config.entity_field)
            resolution.fields = descriptors
            return resolution

        return LevelResolution(level, options, config.entity_field, False, config, descriptors)

    def _stale(self, level: SelectionLevel, options: Dict[str, str], config: RuleConfiguration, stored) -> LevelResolution:
        self.logger.info(
            "Stale selection discarded",
            level=level.value,
            stored=stored,
            entity_type=config.entity_type
        )
        cleared = config.cleared_from(level)
        return LevelResolution(level, options, cleared.level_value(level), True, cleared)

    def _require_upstream(self, config: RuleConfiguration, level: SelectionLevel):
        for upstream in level.upstream():
            if not config.level_value(upstream):
                raise ConfigurationBuildError(
                    "Cannot resolve level before its upstream levels",
                    {"level": level.value, "missing": upstream.value}
                )
            if not self._is_valid(config, upstream, self._level_options(config, upstream)):
                raise ConfigurationBuildError(
                    "Cannot resolve level beneath a stale selection",
                    {"level": level.value, "stale": upstream.value}
                )

    def _level_options(self, config: RuleConfiguration, level: SelectionLevel) -> Dict[str, str]:
        if level == SelectionLevel.ENTITY_TYPE:
            return dict(self.catalog.list_content_entity_types())
        return dict(self.catalog.list_bundles(config.entity_type))

    @staticmethod
    def _is_valid(config: RuleConfiguration, level: SelectionLevel, options: Dict[str, str]) -> bool:
        if level == SelectionLevel.ENTITY_TYPE:
            return not config.entity_type or config.entity_type in options
        # Any lost bundle invalidates the whole selection, it is never narrowed
        return config.bundle_set.issubset(options)

    def _normalize_choice(self, level: SelectionLevel, value: LevelValue) -> LevelValue:
        if level == SelectionLevel.ENTITY_BUNDLE:
            bundles: List[str] = []
            for bundle in self._as_list(value):
                if bundle not in bundles:
                    bundles.append(bundle)
            return bundles

        if isinstance(value, list):
            raise ValidationError("Only one value may be chosen for this level", {"level": level.value})
        if isinstance(value, str):
            value = value.strip()
        return value or None

    @staticmethod
    def _as_list(value: LevelValue) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value.strip()] if value.strip() else []
        return [item.strip() for item in value if item and item.strip()]
