"""
Workflow Blueprint — wizard state and step answers.

  GET  /api/v1/workflow/steps                              — step catalog
  POST /api/v1/projects/<pid>/workflow                     — start the wizard (409 if started)
  GET  /api/v1/projects/<pid>/workflow                     — workflow + responses
  GET  /api/v1/projects/<pid>/workflow/navigation          — per-step status, prev/next
  GET  /api/v1/projects/<pid>/workflow/steps/<step_id>     — one step's answers
  PUT  /api/v1/projects/<pid>/workflow/steps/<step_id>     — save answers / complete a step

PUT body: { "responses": {...}, "completed": true|false, "ai_suggestions": "..." }
``completed`` may be omitted for auto-save; the stored flag is kept.
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_user_id, require_user
from app.services import project_service, workflow_service
from app.services.step_catalog import get_step, list_steps
from app.utils.errors import E, api_error, register_service_error_handlers
from app.utils.helpers import db_commit_or_error, json_body, parse_step_id

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow_bp", __name__, url_prefix="/api/v1")

register_service_error_handlers(workflow_bp, logger)


@workflow_bp.route("/workflow/steps", methods=["GET"])
def list_wizard_steps():
    return jsonify({"steps": [s.to_dict() for s in list_steps()], "total": len(list_steps())}), 200


@workflow_bp.route("/projects/<int:pid>/workflow", methods=["POST"])
@require_user
def create_workflow(pid):
    project = project_service.get_owned_project(pid, current_user_id())
    workflow = workflow_service.create_workflow(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(workflow.to_dict()), 201


@workflow_bp.route("/projects/<int:pid>/workflow", methods=["GET"])
@require_user
def get_workflow(pid):
    project = project_service.get_owned_project(pid, current_user_id())
    workflow = workflow_service.require_workflow(project)
    return jsonify(workflow.to_dict()), 200


@workflow_bp.route("/projects/<int:pid>/workflow/navigation", methods=["GET"])
@require_user
def navigation(pid):
    project = project_service.get_owned_project(pid, current_user_id())
    workflow = workflow_service.require_workflow(project)
    step_id = None
    if "step_id" in request.args:
        step_id, err = parse_step_id(request.args.get("step_id"))
        if err:
            return err
    return jsonify(workflow_service.navigation_state(workflow, step_id)), 200


@workflow_bp.route("/projects/<int:pid>/workflow/steps/<step_id>", methods=["GET"])
@require_user
def get_step_response(pid, step_id):
    step_id, err = parse_step_id(step_id)
    if err:
        return err
    project = project_service.get_owned_project(pid, current_user_id())
    row = workflow_service.get_step_response(project, step_id)
    body = {
        "step": get_step(step_id).to_dict(),
        "response": row.to_dict() if row else None,
    }
    workflow = workflow_service.get_workflow(project)
    if workflow is not None:
        body["status"] = workflow_service.step_status(workflow, step_id)
    return jsonify(body), 200


@workflow_bp.route("/projects/<int:pid>/workflow/steps/<step_id>", methods=["PUT"])
@require_user
def save_step(pid, step_id):
    step_id, err = parse_step_id(step_id)
    if err:
        return err
    data, err = json_body()
    if err:
        return err

    responses = data.get("responses")
    if responses is not None and not isinstance(responses, dict):
        return api_error(E.VALIDATION_INVALID, "responses must be an object")
    completed = data.get("completed")
    if completed is not None and not isinstance(completed, bool):
        return api_error(E.VALIDATION_INVALID, "completed must be a boolean")
    ai_suggestions = data.get("ai_suggestions")
    if ai_suggestions is not None and not isinstance(ai_suggestions, str):
        return api_error(E.VALIDATION_INVALID, "ai_suggestions must be a string")

    project = project_service.get_owned_project(pid, current_user_id())
    workflow, row = workflow_service.save_step(
        project, step_id,
        responses=responses, completed=completed, ai_suggestions=ai_suggestions,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({
        "response": row.to_dict(),
        "workflow": workflow.to_dict(include_responses=False),
    }), 200
