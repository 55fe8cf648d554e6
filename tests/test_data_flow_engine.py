"""
Data-flow propagator tests (service layer).

Covers relationship CRUD validation, process_data_flow / apply_mappings_to_step
properties, ordering, transform failure isolation and default seeding.
Uses session-scoped `app` and autouse `session` from conftest.py.
"""

import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.workflow import DataFlowRelationship, StepResponse
from app.services import data_flow_service as dfs
from app.services import workflow_service
from app.services.data_flow_defaults import DEFAULT_DATA_FLOWS


# ── Helpers ──────────────────────────────────────────────────────────────


@pytest.fixture()
def bare_workflow(app, project, monkeypatch):
    """Started workflow with an empty default catalog."""
    monkeypatch.setitem(app.config, "DATA_FLOW_DEFAULTS", [])
    wf = workflow_service.create_workflow(project)
    db.session.commit()
    return wf


def _save(project, step_id, responses, completed=None):
    _, row = workflow_service.save_step(project, step_id, responses, completed=completed)
    db.session.commit()
    return row


def _rel(project, source, target, source_field, target_field, transform_type=None, config=None):
    rel = dfs.create_relationship(
        project.id, source, target, source_field, target_field, transform_type, config,
    )
    db.session.commit()
    return rel


def _step(project, step_id):
    return workflow_service.get_step_response(project, step_id)


# ═══════════════════════════════════════════════════════════════
# Dot paths
# ═══════════════════════════════════════════════════════════════

def test_get_path_resolves_nested_and_reports_missing():
    data = {"persona": {"name": "Ada", "age": None}}
    assert dfs.get_path(data, "persona.name") == "Ada"
    assert dfs.get_path(data, "persona.age") is None
    assert dfs.get_path(data, "persona.city", default="?") == "?"
    assert dfs.get_path(data, "persona.name.first", default="?") == "?"


def test_set_path_creates_intermediate_objects():
    data = {"persona": "flat"}
    dfs.set_path(data, "persona.name", "Ada")
    dfs.set_path(data, "summary", "x")
    assert data == {"persona": {"name": "Ada"}, "summary": "x"}


# ═══════════════════════════════════════════════════════════════
# Relationship CRUD
# ═══════════════════════════════════════════════════════════════

def test_create_relationship_defaults_active(bare_workflow, project):
    rel = _rel(project, 1, 2, "appIdea", "context")
    assert rel.is_active is True
    assert rel.transform_type is None
    assert rel.to_dict()["project_id"] == project.id


@pytest.mark.parametrize("source, target", [(0, 2), (1, 10), (-1, 3)])
def test_create_relationship_rejects_out_of_range_steps(project, source, target):
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, source, target, "a", "b")


def test_create_relationship_rejects_non_integer_steps(project):
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, "1", 2, "a", "b")
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, True, 2, "a", "b")


def test_create_relationship_rejects_self_loop(app, project, monkeypatch):
    monkeypatch.setitem(app.config, "DATA_FLOW_ALLOW_BACKWARD", True)
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, 3, 3, "a", "b")


def test_backward_edges_rejected_unless_enabled(app, project, monkeypatch):
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, 5, 2, "a", "b")

    monkeypatch.setitem(app.config, "DATA_FLOW_ALLOW_BACKWARD", True)
    rel = dfs.create_relationship(project.id, 5, 2, "a", "b")
    assert (rel.source_step_id, rel.target_step_id) == (5, 2)


def test_create_relationship_rejects_unknown_transform(project):
    with pytest.raises(ValidationError) as exc:
        dfs.create_relationship(project.id, 1, 2, "a", "b", "reverse")
    assert "uppercase" in exc.value.details["allowed"]


def test_create_relationship_rejects_bad_fields_and_config(project):
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, 1, 2, "", "b")
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, 1, 2, "a", "x" * 201)
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, 1, 2, "a..b", "c")
    with pytest.raises(ValidationError):
        dfs.create_relationship(project.id, 1, 2, "a", "b", "join", ["bad"])


def test_duplicate_relationship_conflicts(bare_workflow, project):
    _rel(project, 1, 2, "appIdea", "context")
    with pytest.raises(ConflictError):
        dfs.create_relationship(project.id, 1, 2, "appIdea", "context", "uppercase")


def test_list_relationships_ordered_by_source_then_target(bare_workflow, project):
    _rel(project, 3, 4, "a", "b")
    _rel(project, 1, 3, "a", "b")
    _rel(project, 1, 2, "z", "y")
    _rel(project, 1, 2, "a", "b")

    pairs = [(r.source_step_id, r.target_step_id, r.source_field) for r in dfs.list_relationships(project.id)]
    assert pairs == [(1, 2, "z"), (1, 2, "a"), (1, 3, "a"), (3, 4, "a")]


def test_get_relationship_missing_raises():
    with pytest.raises(NotFoundError):
        dfs.get_relationship(9999)


def test_delete_relationship(bare_workflow, project):
    rel = _rel(project, 1, 2, "a", "b")
    dfs.delete_relationship(rel)
    db.session.commit()
    assert dfs.list_relationships(project.id) == []


# ═══════════════════════════════════════════════════════════════
# process_data_flow
# ═══════════════════════════════════════════════════════════════

@pytest.mark.parametrize("value", ["Habit tracker", 7, 2.5, True, None, ["a", "b"], {"k": [1]}])
def test_copy_preserves_type_and_content(bare_workflow, project, value):
    _save(project, 1, {"field": value})
    _rel(project, 1, 2, "field", "target")

    result = dfs.process_data_flow(project.id, 1, 2)
    assert len(result.mappings) == 1
    mapped = result.mappings[0].value
    assert mapped == value
    assert type(mapped) is type(value)


def test_missing_source_field_contributes_no_mapping(bare_workflow, project):
    _save(project, 1, {"appName": "Habits"})
    _rel(project, 1, 2, "appIdea", "context")

    result = dfs.process_data_flow(project.id, 1, 2)
    assert result.mappings == []
    assert result.errors == []


def test_process_without_source_row_returns_empty(bare_workflow, project):
    _rel(project, 1, 2, "appIdea", "context")
    assert dfs.process_data_flow(project.id, 1, 2).mappings == []


def test_process_does_not_write(bare_workflow, project):
    _save(project, 1, {"appIdea": "Habit tracker"})
    _rel(project, 1, 2, "appIdea", "context")

    dfs.process_data_flow(project.id, 1, 2)
    assert _step(project, 2) is None


def test_habit_tracker_scenario(bare_workflow, project):
    _save(project, 1, {"appIdea": "Habit tracker"})
    _save(project, 2, {"notes": "keep me", "valueProp": "Streaks"})
    _rel(project, 1, 2, "appIdea", "context")

    result = dfs.process_data_flow(project.id, 1, 2)
    assert [(m.target_field, m.value) for m in result.mappings] == [("context", "Habit tracker")]

    row = dfs.apply_mappings_to_step(project.id, 2, result.mappings)
    db.session.commit()
    assert row.responses == {"notes": "keep me", "valueProp": "Streaks", "context": "Habit tracker"}


def test_inactive_relationship_is_skipped_but_still_listed(bare_workflow, project):
    _save(project, 1, {"appIdea": "Habit tracker"})
    rel = _rel(project, 1, 2, "appIdea", "context")

    dfs.toggle_relationship(rel, False)
    db.session.commit()

    assert dfs.process_data_flow(project.id, 1, 2).mappings == []
    listed = dfs.list_relationships(project.id)
    assert [r.id for r in listed] == [rel.id]
    assert listed[0].is_active is False
    assert dfs.list_relationships(project.id, active_only=True) == []


def test_nested_source_and_target_paths(bare_workflow, project):
    _save(project, 3, {"persona": {"name": "Ada", "role": "PM"}})
    _rel(project, 3, 4, "persona.name", "users.primary.name")

    dfs.process_and_apply(project.id, 3, 4)
    db.session.commit()
    assert _step(project, 4).responses == {"users": {"primary": {"name": "Ada"}}}


def test_transforms_are_applied(bare_workflow, project):
    _save(project, 3, {"userPersonas": ["Ann", "Bob"], "appName": "habits"})
    _rel(project, 3, 4, "userPersonas", "targetUsers", "aggregate", {"type": "concat", "separator": "\n"})
    _rel(project, 3, 4, "appName", "title", "uppercase")

    result = dfs.process_data_flow(project.id, 3, 4)
    assert {m.target_field: m.value for m in result.mappings} == {
        "targetUsers": "Ann\nBob",
        "title": "HABITS",
    }


def test_transform_error_is_isolated_per_relationship(bare_workflow, project):
    _save(project, 1, {"appName": 42, "appIdea": "Habit tracker"})
    bad = _rel(project, 1, 2, "appName", "projectName", "uppercase")
    _rel(project, 1, 2, "appIdea", "initialIdea")

    result, row = dfs.process_and_apply(project.id, 1, 2)
    db.session.commit()

    assert [m.target_field for m in result.mappings] == ["initialIdea"]
    assert len(result.errors) == 1
    assert result.errors[0].relationship_id == bad.id
    assert result.errors[0].transform_type == "uppercase"
    assert row.responses == {"initialIdea": "Habit tracker"}


def test_malformed_transform_config_does_not_abort_batch(bare_workflow, project):
    _save(project, 1, {"persona": {"name": "Ann"}, "appIdea": "Habit"})
    bad = _rel(project, 1, 2, "persona", "who", "extract", {"field": ["name"]})
    _rel(project, 1, 2, "appIdea", "context")

    result, row = dfs.process_and_apply(project.id, 1, 2)
    db.session.commit()

    assert [m.target_field for m in result.mappings] == ["context"]
    assert [e.relationship_id for e in result.errors] == [bad.id]
    assert row.responses == {"context": "Habit"}


def test_completion_still_applies_valid_mappings_beside_a_broken_one(bare_workflow, project):
    _rel(project, 1, 2, "persona", "who", "extract", {"field": ["name"]})
    _rel(project, 1, 2, "appIdea", "context")

    _save(project, 1, {"persona": {"name": "Ann"}, "appIdea": "Habit"}, completed=True)
    assert _step(project, 2).responses == {"context": "Habit"}


def test_stored_unknown_transform_is_reported_not_copied(bare_workflow, project):
    _save(project, 1, {"appIdea": "Habit tracker"})
    legacy = DataFlowRelationship(
        project_id=project.id, source_step_id=1, target_step_id=2,
        source_field="appIdea", target_field="context", transform_type="legacy_magic",
    )
    db.session.add(legacy)
    db.session.commit()

    result = dfs.process_data_flow(project.id, 1, 2)
    assert result.mappings == []
    assert result.errors[0].relationship_id == legacy.id


def test_last_created_relationship_wins_on_shared_target(bare_workflow, project):
    _save(project, 1, {"appName": "First", "appIdea": "Second"})
    first = _rel(project, 1, 2, "appName", "title")
    second = _rel(project, 1, 2, "appIdea", "title")
    assert first.id < second.id

    result, row = dfs.process_and_apply(project.id, 1, 2)
    db.session.commit()
    assert [m.relationship_id for m in result.mappings] == [first.id, second.id]
    assert row.responses["title"] == "Second"


# ═══════════════════════════════════════════════════════════════
# apply_mappings_to_step
# ═══════════════════════════════════════════════════════════════

def test_apply_creates_target_row_not_completed(bare_workflow, project):
    row = dfs.apply_mappings_to_step(project.id, 5, [{"target_field": "featureList", "value": ["a"]}])
    db.session.commit()
    assert row.completed is False
    assert row.responses == {"featureList": ["a"]}


def test_apply_never_touches_completed_or_other_fields(bare_workflow, project):
    _save(project, 1, {"appIdea": "x", "problemSolving": "y"}, completed=True)
    _, row = workflow_service.save_step(project, 2, {"keep": 1}, completed=True, ai_suggestions="tip")
    db.session.commit()

    row = dfs.apply_mappings_to_step(project.id, 2, [{"target_field": "context", "value": "v"}])
    db.session.commit()
    assert row.completed is True
    assert row.ai_suggestions == "tip"
    assert row.responses == {"keep": 1, "context": "v"}


def test_apply_is_idempotent(bare_workflow, project):
    _save(project, 2, {"keep": 1})
    mappings = [
        {"target_field": "context", "value": "v"},
        {"target_field": "nested.value", "value": [1, 2]},
    ]
    dfs.apply_mappings_to_step(project.id, 2, mappings)
    db.session.commit()
    once = dict(_step(project, 2).responses)

    dfs.apply_mappings_to_step(project.id, 2, mappings)
    db.session.commit()
    assert _step(project, 2).responses == once


def test_empty_mapping_list_leaves_step_unchanged(bare_workflow, project):
    _save(project, 1, {"appName": "Habits"})
    original = _save(project, 2, {"notes": "keep me"})
    before = (dict(original.responses), original.completed, original.updated_at)
    _rel(project, 1, 2, "appIdea", "context")

    result = dfs.process_data_flow(project.id, 1, 2)
    row = dfs.apply_mappings_to_step(project.id, 2, result.mappings)
    db.session.commit()

    after = db.session.get(StepResponse, row.id)
    assert (after.responses, after.completed, after.updated_at) == before


def test_empty_mapping_list_without_workflow_returns_none(project):
    assert dfs.apply_mappings_to_step(project.id, 2, []) is None


def test_apply_without_workflow_raises_not_found(project):
    with pytest.raises(NotFoundError):
        dfs.apply_mappings_to_step(project.id, 2, [{"target_field": "a", "value": 1}])


def test_apply_rejects_malformed_mapping(bare_workflow, project):
    with pytest.raises(ValidationError):
        dfs.apply_mappings_to_step(project.id, 2, [{"value": 1}])


def test_applied_value_is_a_copy(bare_workflow, project):
    _save(project, 1, {"features": ["a"]})
    _rel(project, 1, 2, "features", "features")
    dfs.process_and_apply(project.id, 1, 2)
    db.session.commit()

    _save(project, 1, {"features": ["a", "b"]})
    assert _step(project, 2).responses == {"features": ["a"]}


# ═══════════════════════════════════════════════════════════════
# process_and_apply / propagate_from_step
# ═══════════════════════════════════════════════════════════════

def test_dry_run_computes_without_writing(bare_workflow, project):
    _save(project, 1, {"appIdea": "Habit tracker"})
    _rel(project, 1, 2, "appIdea", "context")

    result, row = dfs.process_and_apply(project.id, 1, 2, dry_run=True)
    assert row is None
    assert result.to_dict()["mappings"][0]["value"] == "Habit tracker"
    assert _step(project, 2) is None


def test_propagate_from_step_reaches_every_target(bare_workflow, project):
    _save(project, 1, {"appIdea": "Habit tracker", "appName": "Habits"})
    _rel(project, 1, 2, "appIdea", "context")
    _rel(project, 1, 4, "appName", "product")
    inactive = _rel(project, 1, 5, "appName", "product")
    dfs.toggle_relationship(inactive, False)
    db.session.commit()

    results = dfs.propagate_from_step(project.id, 1)
    db.session.commit()

    assert [r.target_step_id for r in results] == [2, 4]
    assert _step(project, 2).responses == {"context": "Habit tracker"}
    assert _step(project, 4).responses == {"product": "Habits"}
    assert _step(project, 5) is None


# ═══════════════════════════════════════════════════════════════
# Default catalog
# ═══════════════════════════════════════════════════════════════

def test_workflow_creation_seeds_default_catalog(workflow, project):
    rels = dfs.list_relationships(project.id)
    assert len(rels) == len(DEFAULT_DATA_FLOWS)
    assert {(r.source_step_id, r.source_field, r.target_step_id, r.target_field) for r in rels} == {
        (d["source_step_id"], d["source_field"], d["target_step_id"], d["target_field"])
        for d in DEFAULT_DATA_FLOWS
    }


def test_seeding_defaults_twice_creates_nothing_new(workflow, project):
    created = dfs.create_default_data_flows(project.id)
    db.session.commit()
    assert created == []
    assert len(dfs.list_relationships(project.id)) == len(DEFAULT_DATA_FLOWS)


def test_injected_catalog_overrides_builtin(app, project, monkeypatch):
    monkeypatch.setitem(app.config, "DATA_FLOW_DEFAULTS", [
        {"source_step_id": 1, "target_step_id": 9, "source_field": "appName",
         "target_field": "title", "transform_type": "uppercase"},
    ])
    workflow_service.create_workflow(project)
    db.session.commit()

    rels = dfs.list_relationships(project.id)
    assert [(r.source_step_id, r.target_step_id, r.transform_type) for r in rels] == [(1, 9, "uppercase")]


def test_explicit_catalog_argument_wins(bare_workflow, project):
    created = dfs.create_default_data_flows(project.id, catalog=[
        {"source_step_id": 2, "target_step_id": 3, "source_field": "a", "target_field": "b",
         "is_active": False},
    ])
    db.session.commit()
    assert len(created) == 1
    assert created[0].is_active is False
