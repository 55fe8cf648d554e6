"""Project CRUD service with strict owner checks."""

from __future__ import annotations

import logging

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.project import Project

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def get_owned_project(project_id: int, owner_id: int | None) -> Project:
    """Return the project when ``owner_id`` owns it.

    Missing and foreign projects raise the same NotFoundError so the
    response never reveals that someone else's project exists.
    """
    if owner_id is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    project = Project.query.filter_by(id=project_id, owner_id=owner_id).first()
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def list_projects(owner_id: int) -> list[Project]:
    """List the owner's projects, most recently updated first."""
    return (
        Project.query
        .filter(Project.owner_id == owner_id)
        .order_by(Project.updated_at.desc(), Project.id.desc())
        .all()
    )


def _clean_name(value) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": value})
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"name must be at most {NAME_MAX_LENGTH} characters", details={"name": value},
        )
    return name


def _clean_description(value) -> str | None:
    if value is None:
        return None
    description = str(value).strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"description must be at most {DESCRIPTION_MAX_LENGTH} characters",
            details={"description": len(description)},
        )
    return description or None


def _ensure_unique_name(owner_id: int, name: str, exclude_id: int | None = None) -> None:
    query = Project.query.filter(Project.owner_id == owner_id, Project.name == name)
    if exclude_id is not None:
        query = query.filter(Project.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Project", "name", name)


def create_project(*, owner_id: int, data: dict) -> Project:
    """Create a project for ``owner_id``. Flushes; the caller commits."""
    name = _clean_name(data.get("name"))
    description = _clean_description(data.get("description"))
    _ensure_unique_name(owner_id, name)

    project = Project(owner_id=owner_id, name=name, description=description)
    db.session.add(project)
    db.session.flush()
    logger.info("Project created id=%s owner=%s", project.id, owner_id)
    return project


def update_project(*, project: Project, data: dict) -> Project:
    """Update name and/or description of an already ownership-checked project."""
    if "name" in data:
        name = _clean_name(data.get("name"))
        _ensure_unique_name(project.owner_id, name, exclude_id=project.id)
        project.name = name
    if "description" in data:
        project.description = _clean_description(data.get("description"))

    db.session.flush()
    return project


def delete_project(project: Project) -> None:
    """Delete a project; workflow, step responses and data flows cascade."""
    logger.info("Project deleted id=%s owner=%s", project.id, project.owner_id)
    db.session.delete(project)
    db.session.flush()
