"""
Data-flow propagator.

Copies answers from earlier wizard steps into later ones according to the
project's DataFlowRelationship rows:

    process_data_flow       read-only: compute mappings for (source → target)
    apply_mappings_to_step  merge computed mappings into the target step
    process_and_apply       both, optionally as a dry run
    propagate_from_step     every active (source_step → *) pair at once
    create_default_data_flows  seed the default catalog into a project

Field names are dot-separated paths into the StepResponse.responses bag
("persona.name"). A source field that is absent is skipped; a present
``None`` is copied. Transform failures are reported per relationship and
do not stop the rest of the batch.

Services flush only; the calling blueprint commits.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from flask import current_app, has_app_context

from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    TransformError,
    ValidationError,
)
from app.models import db
from app.models.workflow import DataFlowRelationship, ProjectWorkflow, StepResponse
from app.services.data_flow_defaults import resolve_default_catalog
from app.services.data_flow_transforms import apply_transform, is_known_transform, known_transforms
from app.services.step_catalog import validate_step_id

logger = logging.getLogger(__name__)

FIELD_MAX_LENGTH = 200

_MISSING = object()


@dataclass(frozen=True)
class FieldMapping:
    source_field: str
    target_field: str
    value: Any
    relationship_id: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MappingError:
    relationship_id: int
    transform_type: str | None
    error: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DataFlowResult:
    source_step_id: int
    target_step_id: int
    mappings: list[FieldMapping] = field(default_factory=list)
    errors: list[MappingError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "source_step_id": self.source_step_id,
            "target_step_id": self.target_step_id,
            "mappings": [m.to_dict() for m in self.mappings],
            "errors": [e.to_dict() for e in self.errors],
        }


# ── Dot-path helpers ─────────────────────────────────────────────────────────

def get_path(data: Any, path: str, default: Any = _MISSING) -> Any:
    """Resolve ``"a.b.c"`` inside nested dicts; ``default`` when any hop is missing."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def set_path(data: dict, path: str, value: Any) -> None:
    """Write ``value`` at ``"a.b.c"``, creating (or replacing non-dict) intermediates."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


# ── Relationship CRUD ────────────────────────────────────────────────────────

def _allow_backward() -> bool:
    if not has_app_context():
        return False
    return bool(current_app.config.get("DATA_FLOW_ALLOW_BACKWARD", False))


def _ordered(query):
    return query.order_by(
        DataFlowRelationship.source_step_id,
        DataFlowRelationship.target_step_id,
        DataFlowRelationship.created_at,
        DataFlowRelationship.id,
    )


def list_relationships(project_id: int, *, active_only: bool = False) -> list[DataFlowRelationship]:
    query = DataFlowRelationship.query.filter(DataFlowRelationship.project_id == project_id)
    if active_only:
        query = query.filter(DataFlowRelationship.is_active.is_(True))
    return _ordered(query).all()


def get_relationship(relationship_id: int) -> DataFlowRelationship:
    rel = db.session.get(DataFlowRelationship, relationship_id)
    if rel is None:
        raise NotFoundError(resource="DataFlowRelationship", resource_id=relationship_id)
    return rel


def _validate_field(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string", details={name: value})
    value = value.strip()
    if len(value) > FIELD_MAX_LENGTH:
        raise ValidationError(
            f"{name} must be at most {FIELD_MAX_LENGTH} characters", details={name: value},
        )
    if any(not part for part in value.split(".")):
        raise ValidationError(f"{name} has an empty path segment", details={name: value})
    return value


def create_relationship(
    project_id: int,
    source_step_id: int,
    target_step_id: int,
    source_field: str,
    target_field: str,
    transform_type: str | None = None,
    transform_config: dict | None = None,
    *,
    is_active: bool = True,
) -> DataFlowRelationship:
    """Declare that ``source_field`` of one step feeds ``target_field`` of another.

    Raises:
        ValidationError: step ids out of range, self-loop, backward edge
            (unless DATA_FLOW_ALLOW_BACKWARD), bad field, unknown transform.
        ConflictError: the same edge already exists for this project.
    """
    source_step_id = validate_step_id(source_step_id, "source_step_id")
    target_step_id = validate_step_id(target_step_id, "target_step_id")
    if source_step_id == target_step_id:
        raise ValidationError(
            "source_step_id and target_step_id must differ",
            details={"source_step_id": source_step_id, "target_step_id": target_step_id},
        )
    if source_step_id > target_step_id and not _allow_backward():
        raise ValidationError(
            "Data can only flow forward: source_step_id must be before target_step_id",
            details={"source_step_id": source_step_id, "target_step_id": target_step_id},
        )

    source_field = _validate_field(source_field, "source_field")
    target_field = _validate_field(target_field, "target_field")

    if transform_type is not None and not isinstance(transform_type, str):
        raise ValidationError("transform_type must be a string", details={"transform_type": transform_type})
    transform_type = (transform_type or "").strip() or None
    if not is_known_transform(transform_type):
        raise ValidationError(
            f"Unknown transform_type '{transform_type}'",
            details={"transform_type": transform_type, "allowed": known_transforms()},
        )
    if transform_config is not None and not isinstance(transform_config, dict):
        raise ValidationError(
            "transform_config must be an object", details={"transform_config": transform_config},
        )

    existing = DataFlowRelationship.query.filter_by(
        project_id=project_id,
        source_step_id=source_step_id,
        target_step_id=target_step_id,
        source_field=source_field,
        target_field=target_field,
    ).first()
    if existing is not None:
        raise ConflictError(
            "DataFlowRelationship", "edge",
            f"{source_step_id}.{source_field} -> {target_step_id}.{target_field}",
        )

    rel = DataFlowRelationship(
        project_id=project_id,
        source_step_id=source_step_id,
        target_step_id=target_step_id,
        source_field=source_field,
        target_field=target_field,
        transform_type=transform_type,
        transform_config=transform_config,
        is_active=bool(is_active),
    )
    db.session.add(rel)
    db.session.flush()
    logger.info(
        "Data flow created id=%s project=%s %s.%s -> %s.%s transform=%s",
        rel.id, project_id, source_step_id, source_field, target_step_id, target_field,
        transform_type or "copy",
    )
    return rel


def toggle_relationship(rel: DataFlowRelationship, is_active: bool) -> DataFlowRelationship:
    rel.is_active = bool(is_active)
    db.session.flush()
    logger.info("Data flow id=%s is_active=%s", rel.id, rel.is_active)
    return rel


def delete_relationship(rel: DataFlowRelationship) -> None:
    logger.info("Data flow id=%s deleted (project=%s)", rel.id, rel.project_id)
    db.session.delete(rel)
    db.session.flush()


# ── Propagation ──────────────────────────────────────────────────────────────

def _workflow_for(project_id: int) -> ProjectWorkflow | None:
    return ProjectWorkflow.query.filter_by(project_id=project_id).first()


def _step_row(workflow: ProjectWorkflow | None, step_id: int) -> StepResponse | None:
    if workflow is None:
        return None
    return StepResponse.query.filter_by(workflow_id=workflow.id, step_id=step_id).first()


def process_data_flow(project_id: int, source_step_id: int, target_step_id: int) -> DataFlowResult:
    """Compute the mappings active relationships produce for one step pair.

    Never writes. Relationships run in (created_at, id) order so later
    ones win when several feed the same target field.
    """
    source_step_id = validate_step_id(source_step_id, "source_step_id")
    target_step_id = validate_step_id(target_step_id, "target_step_id")
    result = DataFlowResult(source_step_id, target_step_id)

    relationships = _ordered(
        DataFlowRelationship.query.filter(
            DataFlowRelationship.project_id == project_id,
            DataFlowRelationship.source_step_id == source_step_id,
            DataFlowRelationship.target_step_id == target_step_id,
            DataFlowRelationship.is_active.is_(True),
        )
    ).all()
    if not relationships:
        return result

    source_row = _step_row(_workflow_for(project_id), source_step_id)
    source_data = (source_row.responses if source_row else None) or {}

    for rel in relationships:
        value = get_path(source_data, rel.source_field)
        if value is _MISSING:
            continue
        try:
            value = apply_transform(rel.transform_type, copy.deepcopy(value), rel.transform_config)
        except TransformError as exc:
            logger.warning(
                "Data flow id=%s project=%s transform failed: %s", rel.id, project_id, exc,
            )
            result.errors.append(MappingError(rel.id, rel.transform_type, str(exc)))
            continue
        result.mappings.append(FieldMapping(rel.source_field, rel.target_field, value, rel.id))

    return result


def _mapping_pair(mapping) -> tuple[str, Any]:
    if isinstance(mapping, FieldMapping):
        return mapping.target_field, mapping.value
    if isinstance(mapping, dict) and isinstance(mapping.get("target_field"), str):
        return mapping["target_field"], mapping.get("value")
    raise ValidationError("Each mapping needs a target_field and a value", details={"mapping": mapping})


def apply_mappings_to_step(
    project_id: int,
    target_step_id: int,
    mappings: Iterable[FieldMapping | dict],
) -> StepResponse | None:
    """Merge ``mappings`` into the target step's responses, in order.

    Only the named target fields change; ``completed`` and
    ``ai_suggestions`` are left alone. The step row is created (not
    completed) when missing. An empty mapping list writes nothing and
    returns the existing row, if any.

    Raises:
        NotFoundError: mappings were given but the project has no workflow.
    """
    target_step_id = validate_step_id(target_step_id, "target_step_id")
    pairs = [_mapping_pair(m) for m in mappings]
    workflow = _workflow_for(project_id)

    if not pairs:
        return _step_row(workflow, target_step_id)
    if workflow is None:
        raise NotFoundError(resource="ProjectWorkflow", resource_id=project_id)

    row = _step_row(workflow, target_step_id)
    if row is None:
        row = StepResponse(step_id=target_step_id, responses={}, completed=False)
        workflow.responses.append(row)

    merged = copy.deepcopy(row.responses or {})
    for target_field, value in pairs:
        set_path(merged, target_field, copy.deepcopy(value))
    # JSON columns only notice reassignment
    row.responses = merged
    db.session.flush()
    logger.debug(
        "Applied %d mapping(s) to project=%s step=%s", len(pairs), project_id, target_step_id,
    )
    return row


def process_and_apply(
    project_id: int,
    source_step_id: int,
    target_step_id: int,
    *,
    dry_run: bool = False,
) -> tuple[DataFlowResult, StepResponse | None]:
    result = process_data_flow(project_id, source_step_id, target_step_id)
    if dry_run or not result.mappings:
        return result, None
    row = apply_mappings_to_step(project_id, target_step_id, result.mappings)
    return result, row


def propagate_from_step(project_id: int, source_step_id: int) -> list[DataFlowResult]:
    """Run every active relationship leaving ``source_step_id``, target by target."""
    source_step_id = validate_step_id(source_step_id, "source_step_id")
    targets = [
        t for (t,) in db.session.query(DataFlowRelationship.target_step_id)
        .filter(
            DataFlowRelationship.project_id == project_id,
            DataFlowRelationship.source_step_id == source_step_id,
            DataFlowRelationship.is_active.is_(True),
        )
        .distinct()
        .order_by(DataFlowRelationship.target_step_id)
        .all()
    ]
    results = []
    for target_step_id in targets:
        result, _ = process_and_apply(project_id, source_step_id, target_step_id)
        results.append(result)
    if results:
        logger.info(
            "Propagated project=%s from step=%s to steps=%s (%d mapping(s), %d error(s))",
            project_id, source_step_id, targets,
            sum(len(r.mappings) for r in results), sum(len(r.errors) for r in results),
        )
    return results


def create_default_data_flows(project_id: int, catalog: list[dict] | None = None) -> list[DataFlowRelationship]:
    """Seed the default relationship catalog into a project.

    Entries that already exist are skipped, so calling this twice is
    harmless. Returns only the rows created by this call.
    """
    entries = resolve_default_catalog() if catalog is None else catalog
    created = []
    for entry in entries:
        try:
            rel = create_relationship(
                project_id,
                entry["source_step_id"],
                entry["target_step_id"],
                entry["source_field"],
                entry["target_field"],
                entry.get("transform_type"),
                entry.get("transform_config"),
                is_active=entry.get("is_active", True),
            )
        except ConflictError:
            continue
        created.append(rel)
    logger.info("Seeded %d default data flow(s) for project=%s", len(created), project_id)
    return created
