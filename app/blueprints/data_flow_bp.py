"""
Data Flow Blueprint — relationship CRUD and propagation.

  GET    /api/v1/projects/<pid>/data-flows            — list (?active_only=true)
  POST   /api/v1/projects/<pid>/data-flows            — create a relationship
  POST   /api/v1/projects/<pid>/data-flows/process    — run source → target (dry_run optional)
  POST   /api/v1/projects/<pid>/data-flows/defaults   — seed the default catalog
  PUT    /api/v1/data-flows/<rid>                     — toggle is_active
  DELETE /api/v1/data-flows/<rid>                     — delete

Every route resolves the owning project first; the propagator never runs
for a project the caller does not own.
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_user_id, require_user
from app.services import data_flow_service, project_service
from app.services.data_flow_transforms import known_transforms
from app.utils.errors import E, api_error, register_service_error_handlers
from app.utils.helpers import db_commit_or_error, json_body, parse_step_id

logger = logging.getLogger(__name__)

data_flow_bp = Blueprint("data_flow_bp", __name__, url_prefix="/api/v1")

register_service_error_handlers(data_flow_bp, logger)


def _owned_relationship(rid):
    rel = data_flow_service.get_relationship(rid)
    project_service.get_owned_project(rel.project_id, current_user_id())
    return rel


def _flag(value) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@data_flow_bp.route("/projects/<int:pid>/data-flows", methods=["GET"])
@require_user
def list_data_flows(pid):
    project_service.get_owned_project(pid, current_user_id())
    rels = data_flow_service.list_relationships(pid, active_only=_flag(request.args.get("active_only", "")))
    return jsonify({
        "items": [r.to_dict() for r in rels],
        "total": len(rels),
        "transforms": known_transforms(),
    }), 200


@data_flow_bp.route("/projects/<int:pid>/data-flows", methods=["POST"])
@require_user
def create_data_flow(pid):
    """
    Body: {
        source_step_id, target_step_id, source_field, target_field,
        transform_type?, transform_config?, is_active?
    }
    """
    data, err = json_body()
    if err:
        return err

    source_step_id, err = parse_step_id(data.get("source_step_id"), "source_step_id")
    if err:
        return err
    target_step_id, err = parse_step_id(data.get("target_step_id"), "target_step_id")
    if err:
        return err
    for name in ("source_field", "target_field"):
        if not isinstance(data.get(name), str) or not data[name].strip():
            return api_error(E.VALIDATION_REQUIRED, f"{name} is required")
    is_active = data.get("is_active", True)
    if not isinstance(is_active, bool):
        return api_error(E.VALIDATION_INVALID, "is_active must be a boolean")

    project_service.get_owned_project(pid, current_user_id())
    rel = data_flow_service.create_relationship(
        pid, source_step_id, target_step_id,
        data["source_field"], data["target_field"],
        data.get("transform_type"), data.get("transform_config"),
        is_active=is_active,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(rel.to_dict()), 201


@data_flow_bp.route("/projects/<int:pid>/data-flows/process", methods=["POST"])
@require_user
def process_data_flow(pid):
    """
    Body: { source_step_id, target_step_id, dry_run? }

    Returns the computed mappings and per-relationship errors; unless
    dry_run is set the mappings are written into the target step.
    """
    data, err = json_body()
    if err:
        return err
    source_step_id, err = parse_step_id(data.get("source_step_id"), "source_step_id")
    if err:
        return err
    target_step_id, err = parse_step_id(data.get("target_step_id"), "target_step_id")
    if err:
        return err
    dry_run = data.get("dry_run", False)
    if not isinstance(dry_run, bool):
        return api_error(E.VALIDATION_INVALID, "dry_run must be a boolean")

    project_service.get_owned_project(pid, current_user_id())
    result, row = data_flow_service.process_and_apply(
        pid, source_step_id, target_step_id, dry_run=dry_run,
    )
    if not dry_run:
        err = db_commit_or_error()
        if err:
            return err

    body = result.to_dict()
    body["dry_run"] = dry_run
    body["target_response"] = row.to_dict() if row else None
    return jsonify(body), 200


@data_flow_bp.route("/projects/<int:pid>/data-flows/defaults", methods=["POST"])
@require_user
def seed_default_data_flows(pid):
    project_service.get_owned_project(pid, current_user_id())
    created = data_flow_service.create_default_data_flows(pid)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"created": [r.to_dict() for r in created], "total": len(created)}), 201


@data_flow_bp.route("/data-flows/<int:rid>", methods=["PUT"])
@require_user
def update_data_flow(rid):
    """Body: { "is_active": true|false }"""
    data, err = json_body()
    if err:
        return err
    if "is_active" not in data:
        return api_error(E.VALIDATION_REQUIRED, "is_active is required")
    if not isinstance(data["is_active"], bool):
        return api_error(E.VALIDATION_INVALID, "is_active must be a boolean")

    rel = _owned_relationship(rid)
    data_flow_service.toggle_relationship(rel, data["is_active"])
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(rel.to_dict()), 200


@data_flow_bp.route("/data-flows/<int:rid>", methods=["DELETE"])
@require_user
def delete_data_flow(rid):
    rel = _owned_relationship(rid)
    data_flow_service.delete_relationship(rel)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Data flow deleted", "id": rid}), 200
