"""
Field Condition Service package.

This package decides whether an entity's field values match a stored
reference rule, and keeps that rule consistent while it is being
configured. It provides:

- app.main: API surface for resolution rounds, value capture, evaluation
  and health.
- app.catalog: Schema catalog interface and the in-memory catalog.
- app.conditions: Rule model, selection resolver, value capture and
  evaluator.

Guidelines:
- The service is stateless; configurations travel with each request.
- Evaluation is fail-closed: incomplete or drifted rules never match.
- Stale selections are repaired, not reported as errors.
"""
