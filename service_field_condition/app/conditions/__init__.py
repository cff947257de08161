"""
Field conditions package.

Defines the rule configuration model, the cascading selection resolver,
reference value capture and the evaluator used by the Field Condition
Service. A rule answers one question: does an entity of a chosen type and
bundle carry a chosen field whose values match the captured reference
values?

Modules of interest:
- models: RuleConfiguration, entity snapshots and request/response models.
- resolver: Entity type -> bundle(s) -> field cascade with stale detection.
- capture: Reference values tied to the field they were captured against.
- evaluator: Fail-closed comparison under match_all, match_one and
  strict_positional.
- widgets: Input rendering and submission parsing boundary.
"""
