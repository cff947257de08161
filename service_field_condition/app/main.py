"""
Field Condition service.
"""

import time
from typing import List, Optional

from fastapi import HTTPException, Query

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.logging import set_condition_context

from .catalog import InMemorySchemaCatalog, SchemaCatalog
from .conditions.capture import ValueCapture
from .conditions.evaluator import ConditionEvaluator
from .conditions.models import (
    CaptureRequest, ChooseRequest, EntityFieldSnapshot, EvaluateRequest,
    EvaluateResponse, LevelResponse, ResolutionResult, ResolveRequest,
    ResolveResponse, RuleConfiguration, SummaryResponse
)
from .conditions.resolver import SelectionResolver
from .conditions.widgets import TextWidgetRenderer, WidgetRenderer


class FieldConditionService(BaseService):
    """Field condition service implementation."""

    def __init__(
        self,
        catalog: Optional[SchemaCatalog] = None,
        widget_renderer: Optional[WidgetRenderer] = None,
        config: Optional[ServiceConfig] = None
    ):
        super().__init__("field_condition", 8020, config=config)

        self.catalog = catalog or self._load_catalog()
        self.resolver = SelectionResolver(self.catalog)
        self.capture = ValueCapture()
        self.evaluator = ConditionEvaluator(self.catalog)
        self.widget_renderer = widget_renderer or TextWidgetRenderer()

        self._setup_field_condition_routes()

    def _load_catalog(self) -> SchemaCatalog:
        """Load the schema catalog named in configuration."""
        if self.config.catalog_file:
            return InMemorySchemaCatalog.from_yaml(
                self.config.catalog_file,
                content_group=self.config.content_group
            )

        self.logger.warning("No schema catalog configured, starting with an empty catalog")
        return InMemorySchemaCatalog({}, content_group=self.config.content_group)

    def _setup_field_condition_routes(self):
        """Set up field-condition-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "field_condition",
                "message": "Field Condition Service",
                "version": "1.0.0",
                "capabilities": ["resolve", "capture", "evaluate"]
            }

        @self.app.get("/catalog/entity-types")
        async def list_entity_types():
            """List content entity types."""
            return {"options": dict(self.catalog.list_content_entity_types())}

        @self.app.get("/catalog/{entity_type}/bundles")
        async def list_bundles(entity_type: str):
            """List bundles of an entity type."""
            options = dict(self.catalog.list_bundles(entity_type))
            if not options:
                raise HTTPException(status_code=404, detail="Entity type has no bundles")
            return {"entity_type": entity_type, "options": options}

        @self.app.get("/catalog/{entity_type}/fields")
        async def list_fields(entity_type: str, bundle: List[str] = Query(...)):
            """List fields shared by the given bundles."""
            fields = self.catalog.list_fields(entity_type, bundle)
            return {
                "entity_type": entity_type,
                "bundles": bundle,
                "options": {field_id: label for field_id, label, _ in fields},
                "cardinality": {field_id: descriptor.cardinality.value for field_id, _, descriptor in fields}
            }

        @self.app.post("/conditions/resolve", response_model=ResolveResponse)
        async def resolve_condition(request: ResolveRequest):
            """Run one resolution round over a stored configuration."""
            return self._resolve(RuleConfiguration.from_storage(request.configuration))

        @self.app.post("/conditions/choose", response_model=ResolveResponse)
        async def choose_level(request: ChooseRequest):
            """Apply one user choice and resolve the result."""
            config = self.resolver.choose(request.configuration, request.level, request.value)
            return self._resolve(config)

        @self.app.post("/conditions/capture", response_model=ResolveResponse)
        async def capture_values(request: CaptureRequest):
            """Capture reference values for the selected field."""
            result = self.resolver.resolve(request.configuration)
            self._record_resolution(result)
            if result.field_descriptor is None:
                raise HTTPException(status_code=409, detail="No field selected for capture")

            spec = self.widget_renderer.render(result.field_descriptor)
            submitted = self.widget_renderer.parse_submission(spec, request.submission)
            config = self.capture.apply_submission(
                result.config,
                result.field_descriptor,
                submitted,
                compare_method=request.compare_method
            )
            self.logger.info(
                "Reference values captured",
                entity_type=config.entity_type,
                entity_field=config.entity_field,
                deltas=len(config.captured_values or [])
            )
            return self._resolve(config)

        @self.app.post("/conditions/evaluate", response_model=EvaluateResponse)
        async def evaluate_condition(request: EvaluateRequest):
            """Evaluate a stored configuration against an entity snapshot."""
            config = RuleConfiguration.from_storage(request.configuration)
            snapshot = None
            if request.entity is not None:
                snapshot = EntityFieldSnapshot.from_mapping(request.entity.model_dump())
                set_condition_context(f"{config.entity_type}:{config.entity_field}")

            start_time = time.time()
            evaluated = self.evaluator.evaluate(snapshot, config)
            matched = self.evaluator.apply_negation(config, evaluated)

            if self.config.enable_metrics:
                self.metrics.record_evaluation(
                    "match" if matched else "no_match",
                    time.time() - start_time
                )

            return EvaluateResponse(
                matched=matched,
                evaluated=evaluated,
                negated=config.negate,
                state=config.state
            )

        @self.app.post("/conditions/summary", response_model=SummaryResponse)
        async def summarize_condition(request: ResolveRequest):
            """Describe a stored configuration."""
            config = RuleConfiguration.from_storage(request.configuration)
            return SummaryResponse(summary=config.summary(), state=config.state)

    def _resolve(self, config: RuleConfiguration) -> ResolveResponse:
        result = self.resolver.resolve(config)
        self._record_resolution(result)

        widget = None
        if result.field_descriptor is not None:
            prefill = self.capture.capture_defaults(result.config, result.field_descriptor)
            widget = self.widget_renderer.render(result.field_descriptor, prefill).to_dict()

        return ResolveResponse(
            configuration=result.config.to_storage(),
            state=result.state,
            levels=[
                LevelResponse(
                    level=resolution.level,
                    options=resolution.options,
                    current_value=resolution.current_value,
                    is_stale=resolution.is_stale
                )
                for resolution in result.levels.values()
            ],
            stale_levels=result.stale_levels,
            compare_method_required=result.compare_method_required,
            widget=widget
        )

    def _record_resolution(self, result: ResolutionResult):
        if self.config.enable_metrics:
            self.metrics.record_resolution([level.value for level in result.stale_levels])
        if result.stale_levels:
            self.logger.info(
                "Resolution discarded stale levels",
                stale_levels=[level.value for level in result.stale_levels],
                state=result.state.value
            )

    async def _check_dependencies(self):
        """Check field condition service dependencies."""
        return {
            "catalog": "ok" if self.catalog.list_content_entity_types() else "empty"
        }


def create_app(catalog: Optional[SchemaCatalog] = None, config: Optional[ServiceConfig] = None):
    """Create field condition service application."""
    service = FieldConditionService(catalog=catalog, config=config)
    return service.app


if __name__ == "__main__":
    service = FieldConditionService()
    service.run()
