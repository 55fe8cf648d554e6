"""
Default data-flow catalog seeded into every new project workflow.

The catalog is plain data. Deployments can replace it without touching the
engine by setting ``app.config["DATA_FLOW_DEFAULTS"]`` to a list of dicts
with the same keys; ``resolve_default_catalog()`` picks the override when
present. Bump DEFAULT_DATA_FLOWS_VERSION whenever the built-in list changes.
"""

from flask import current_app, has_app_context

DEFAULT_DATA_FLOWS_VERSION = "2025.1"

DEFAULT_DATA_FLOWS: tuple[dict, ...] = (
    # Step 1 -> 2: name and raw idea
    {"source_step_id": 1, "target_step_id": 2, "source_field": "appName",
     "target_field": "projectName", "transform_type": "copy"},
    {"source_step_id": 1, "target_step_id": 2, "source_field": "appIdea",
     "target_field": "initialIdea", "transform_type": "copy"},
    # Step 2 -> 3: project summary and audience
    {"source_step_id": 2, "target_step_id": 3, "source_field": "elevatorPitch",
     "target_field": "projectSummary", "transform_type": "copy"},
    {"source_step_id": 2, "target_step_id": 3, "source_field": "targetAudience",
     "target_field": "primaryUsers", "transform_type": "copy"},
    # Step 3 -> 4: personas feed feature planning
    {"source_step_id": 3, "target_step_id": 4, "source_field": "userPersonas",
     "target_field": "targetUsers", "transform_type": "aggregate",
     "transform_config": {"type": "concat", "separator": "\n"}},
    # Step 4 -> 5
    {"source_step_id": 4, "target_step_id": 5, "source_field": "coreFeatures",
     "target_field": "featureList", "transform_type": "copy"},
    # Step 5 -> 6
    {"source_step_id": 5, "target_step_id": 6, "source_field": "primaryUserFlow",
     "target_field": "mainWorkflow", "transform_type": "copy"},
)


def resolve_default_catalog() -> list[dict]:
    """Return the configured catalog override, else the built-in list."""
    if has_app_context():
        override = current_app.config.get("DATA_FLOW_DEFAULTS")
        if override is not None:
            return [dict(entry) for entry in override]
    return [dict(entry) for entry in DEFAULT_DATA_FLOWS]
