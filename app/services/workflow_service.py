"""
Workflow service — the nine-step progression state machine.

State per project:
    current_step  1..9, only ever moves forward, one step at a time
    is_completed  set once step 9 is saved as completed

Transition rule applied by ``save_step``:
    completed and step_id == current_step and step_id < 9  → current_step + 1
    completed and step_id == 9                             → is_completed, completed_at
Everything else (saving earlier steps, auto-saves, un-completing a step)
leaves current_step where it is.

When a step ends up completed the data-flow propagator runs from it
(unless DATA_FLOW_AUTO_PROPAGATE is off). Propagation problems are logged
and never fail the save.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app, has_app_context

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.project import Project
from app.models.workflow import FIRST_STEP, LAST_STEP, ProjectWorkflow, StepResponse
from app.services import data_flow_service
from app.services.step_catalog import list_steps, total_steps, validate_step_id

logger = logging.getLogger(__name__)

# Estimate bounds for the time-remaining hint
MIN_MINUTES_PER_STEP = 15
MAX_MINUTES_PER_STEP = 30
MAX_ESTIMATE_MINUTES = 180
MIN_STEPS_FOR_ESTIMATE = 2
MIN_HOURS_FOR_ESTIMATE = 0.5


def _utcnow():
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _auto_propagate_enabled() -> bool:
    if not has_app_context():
        return True
    return bool(current_app.config.get("DATA_FLOW_AUTO_PROPAGATE", True))


# ═══════════════════════════════════════════════════════════════
# Workflow lifecycle
# ═══════════════════════════════════════════════════════════════

def get_workflow(project: Project) -> ProjectWorkflow | None:
    return ProjectWorkflow.query.filter_by(project_id=project.id).first()


def require_workflow(project: Project) -> ProjectWorkflow:
    workflow = get_workflow(project)
    if workflow is None:
        raise NotFoundError(resource="ProjectWorkflow", resource_id=project.id)
    return workflow


def _new_workflow(project: Project) -> ProjectWorkflow:
    workflow = ProjectWorkflow(project_id=project.id, current_step=FIRST_STEP, is_completed=False)
    db.session.add(workflow)
    db.session.flush()
    data_flow_service.create_default_data_flows(project.id)
    logger.info("Workflow created id=%s project=%s", workflow.id, project.id)
    return workflow


def create_workflow(project: Project) -> ProjectWorkflow:
    """Start the wizard for ``project`` and seed its default data flows.

    Raises:
        ConflictError: the project already has a workflow.
    """
    if get_workflow(project) is not None:
        raise ConflictError("ProjectWorkflow", "project_id", str(project.id))
    return _new_workflow(project)


def get_or_create_workflow(project: Project) -> ProjectWorkflow:
    return get_workflow(project) or _new_workflow(project)


# ═══════════════════════════════════════════════════════════════
# Step responses
# ═══════════════════════════════════════════════════════════════

def get_step_response(project: Project, step_id: int) -> StepResponse | None:
    step_id = validate_step_id(step_id)
    workflow = get_workflow(project)
    if workflow is None:
        return None
    return StepResponse.query.filter_by(workflow_id=workflow.id, step_id=step_id).first()


def save_step(
    project: Project,
    step_id: int,
    responses: dict | None = None,
    completed: bool | None = None,
    ai_suggestions: str | None = None,
) -> tuple[ProjectWorkflow, StepResponse]:
    """Upsert the answers for one step and advance the workflow.

    ``responses`` replaces the stored answer bag when given.
    ``completed=None`` and ``ai_suggestions=None`` leave the stored
    values alone, which is what auto-save sends.

    Returns:
        (workflow, step_response) after the transition.
    """
    step_id = validate_step_id(step_id)
    if responses is not None and not isinstance(responses, dict):
        raise ValidationError("responses must be an object", details={"responses": type(responses).__name__})
    if completed is not None and not isinstance(completed, bool):
        raise ValidationError("completed must be a boolean", details={"completed": completed})

    workflow = get_or_create_workflow(project)
    row = StepResponse.query.filter_by(workflow_id=workflow.id, step_id=step_id).first()
    if row is None:
        row = StepResponse(step_id=step_id, responses={}, completed=False)
        workflow.responses.append(row)

    if responses is not None:
        row.responses = dict(responses)
    if completed is not None:
        row.completed = completed
    if ai_suggestions is not None:
        row.ai_suggestions = ai_suggestions
    db.session.flush()

    _advance(workflow, step_id, bool(completed))
    db.session.flush()

    if completed and _auto_propagate_enabled():
        _propagate_quietly(project.id, step_id)

    return workflow, row


def _advance(workflow: ProjectWorkflow, step_id: int, completed: bool) -> None:
    if not completed:
        return
    if step_id == LAST_STEP:
        if not workflow.is_completed:
            workflow.is_completed = True
            workflow.completed_at = _utcnow()
            logger.info("Workflow id=%s completed", workflow.id)
        return
    if step_id == workflow.current_step:
        workflow.current_step = step_id + 1
        logger.info("Workflow id=%s advanced to step %s", workflow.id, workflow.current_step)


def _propagate_quietly(project_id: int, step_id: int) -> None:
    try:
        data_flow_service.propagate_from_step(project_id, step_id)
    except Exception:
        logger.exception("Data flow propagation failed project=%s step=%s", project_id, step_id)


# ═══════════════════════════════════════════════════════════════
# Navigation
# ═══════════════════════════════════════════════════════════════

def step_rows(workflow: ProjectWorkflow) -> list[StepResponse]:
    return (
        StepResponse.query.filter_by(workflow_id=workflow.id)
        .order_by(StepResponse.step_id)
        .all()
    )


def _completed_ids(workflow: ProjectWorkflow) -> set[int]:
    return {r.step_id for r in step_rows(workflow) if r.completed}


def can_navigate_to_step(workflow: ProjectWorkflow, target_step: int) -> bool:
    """Whether the wizard UI may open ``target_step``.

    Step 1 and completed steps are always open. Beyond that a user can
    revisit any step up to current_step, and open current_step + 1 once
    the current step is completed.
    """
    target_step = validate_step_id(target_step, "target_step")
    if target_step == FIRST_STEP:
        return True
    completed = _completed_ids(workflow)
    if target_step in completed:
        return True
    if target_step > workflow.current_step + 1:
        return False
    if target_step <= workflow.current_step:
        return True
    return workflow.current_step in completed


def step_status(workflow: ProjectWorkflow, step_id: int) -> str:
    """One of ``completed``, ``current``, ``locked``, ``available``."""
    step_id = validate_step_id(step_id)
    if step_id in _completed_ids(workflow):
        return "completed"
    if step_id == workflow.current_step:
        return "current"
    if not can_navigate_to_step(workflow, step_id):
        return "locked"
    return "available"


def navigation_state(workflow: ProjectWorkflow, step_id: int | None = None) -> dict:
    step_id = workflow.current_step if step_id is None else validate_step_id(step_id)
    completed = len(_completed_ids(workflow))
    return {
        "step_id": step_id,
        "can_go_previous": step_id > FIRST_STEP,
        "can_go_next": step_id < LAST_STEP and can_navigate_to_step(workflow, step_id + 1),
        "is_first_step": step_id == FIRST_STEP,
        "is_last_step": step_id == LAST_STEP,
        "current_step": workflow.current_step,
        "completed_steps": completed,
        "total_steps": total_steps(),
        "percent_complete": round(completed / total_steps() * 100),
        "steps": [
            {"step_id": s.id, "title": s.title, "status": step_status(workflow, s.id)}
            for s in list_steps()
        ],
    }


# ═══════════════════════════════════════════════════════════════
# Progress
# ═══════════════════════════════════════════════════════════════

def estimate_minutes_remaining(completed_steps: int, started_at: datetime | None, now: datetime | None = None) -> float | None:
    """Time-remaining hint, or None when there is not enough signal.

    Needs at least two completed steps and half an hour of history; the
    per-step pace is clamped to 15..30 minutes and estimates above three
    hours are suppressed.
    """
    if completed_steps < MIN_STEPS_FOR_ESTIMATE or started_at is None:
        return None
    now = now or _utcnow()
    hours_spent = (now - _aware(started_at)).total_seconds() / 3600
    if hours_spent < MIN_HOURS_FOR_ESTIMATE:
        return None

    remaining = total_steps() - completed_steps
    pace = max(MIN_MINUTES_PER_STEP, min(MAX_MINUTES_PER_STEP, hours_spent / completed_steps * 60))
    estimate = remaining * pace
    if estimate > MAX_ESTIMATE_MINUTES:
        return None
    return estimate


def project_progress(project: Project, now: datetime | None = None) -> dict:
    workflow = get_workflow(project)
    rows = {r.step_id: r for r in step_rows(workflow)} if workflow else {}
    completed_steps = sum(1 for r in rows.values() if r.completed)
    last_activity = max((_aware(r.updated_at) for r in rows.values() if r.updated_at), default=None)

    estimate = None
    if workflow is not None and not workflow.is_completed:
        estimate = estimate_minutes_remaining(completed_steps, workflow.started_at, now)

    return {
        "project_id": project.id,
        "project_name": project.name,
        "description": project.description,
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
        "current_step": workflow.current_step if workflow else FIRST_STEP,
        "completed_steps": completed_steps,
        "total_steps": total_steps(),
        "percent_complete": round(completed_steps / total_steps() * 100),
        "is_completed": bool(workflow and workflow.is_completed),
        "completed_at": workflow.completed_at.isoformat() if workflow and workflow.completed_at else None,
        "estimated_minutes_remaining": estimate,
        "last_activity": last_activity.isoformat() if last_activity else None,
        "step_statuses": [
            {
                "step_id": s.id,
                "title": s.title,
                "completed": bool(rows.get(s.id) and rows[s.id].completed),
                "has_data": bool(rows.get(s.id) and rows[s.id].responses),
            }
            for s in list_steps()
        ],
    }


def progress_stats(progress_rows: list[dict]) -> dict:
    total = len(progress_rows)
    completed = sum(1 for p in progress_rows if p["is_completed"])
    return {
        "total": total,
        "completed": completed,
        "in_progress": sum(1 for p in progress_rows if not p["is_completed"] and p["completed_steps"] > 0),
        "not_started": sum(1 for p in progress_rows if p["completed_steps"] == 0),
        "completion_rate": round(completed / total * 100) if total else 0,
    }
