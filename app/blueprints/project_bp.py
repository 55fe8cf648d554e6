"""
Project Blueprint — CRUD and progress for the caller's projects.

  GET    /api/v1/projects                 — list (updated_at desc, paginated)
  POST   /api/v1/projects                 — create
  GET    /api/v1/projects/progress        — progress of every project + stats
  GET    /api/v1/projects/<pid>           — detail
  PUT    /api/v1/projects/<pid>           — update name / description
  DELETE /api/v1/projects/<pid>           — delete (cascades to wizard data)
  GET    /api/v1/projects/<pid>/progress  — progress of one project
"""

import logging

from flask import Blueprint, jsonify

from app.auth import current_user_id, require_user
from app.blueprints import paginate_query
from app.models.project import Project
from app.services import project_service, workflow_service
from app.utils.errors import register_service_error_handlers
from app.utils.helpers import db_commit_or_error, json_body

logger = logging.getLogger(__name__)

project_bp = Blueprint("project_bp", __name__, url_prefix="/api/v1")

register_service_error_handlers(project_bp, logger)


@project_bp.route("/projects", methods=["GET"])
@require_user
def list_projects():
    query = (
        Project.query
        .filter(Project.owner_id == current_user_id())
        .order_by(Project.updated_at.desc(), Project.id.desc())
    )
    items, total = paginate_query(query, default_limit=50, max_limit=200)
    return jsonify({"items": [p.to_dict() for p in items], "total": total}), 200


@project_bp.route("/projects", methods=["POST"])
@require_user
def create_project():
    """
    Body: { "name": "...", "description": "..." }
    """
    data, err = json_body()
    if err:
        return err
    project = project_service.create_project(owner_id=current_user_id(), data=data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/progress", methods=["GET"])
@require_user
def all_progress():
    rows = [
        workflow_service.project_progress(p)
        for p in project_service.list_projects(current_user_id())
    ]
    return jsonify({"projects": rows, "stats": workflow_service.progress_stats(rows)}), 200


@project_bp.route("/projects/<int:pid>", methods=["GET"])
@require_user
def get_project(pid):
    project = project_service.get_owned_project(pid, current_user_id())
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:pid>", methods=["PUT"])
@require_user
def update_project(pid):
    data, err = json_body()
    if err:
        return err
    project = project_service.get_owned_project(pid, current_user_id())
    project_service.update_project(project=project, data=data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:pid>", methods=["DELETE"])
@require_user
def delete_project(pid):
    project = project_service.get_owned_project(pid, current_user_id())
    project_service.delete_project(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Project deleted", "id": pid}), 200


@project_bp.route("/projects/<int:pid>/progress", methods=["GET"])
@require_user
def project_progress(pid):
    project = project_service.get_owned_project(pid, current_user_id())
    return jsonify(workflow_service.project_progress(project)), 200
