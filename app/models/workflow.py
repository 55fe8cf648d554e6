"""
Wizard workflow models.

    ProjectWorkflow       1:1 with Project; tracks current_step / completion
    StepResponse          per-step answer bag, unique (workflow_id, step_id)
    DataFlowRelationship  declared field mapping between two steps of a project

Step ids are the fixed integers FIRST_STEP..LAST_STEP.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON

from app.models import db

FIRST_STEP = 1
LAST_STEP = 9


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class ProjectWorkflow(db.Model):
    __tablename__ = "project_workflows"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    current_step = db.Column(db.Integer, nullable=False, default=FIRST_STEP)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    project = db.relationship("Project", back_populates="workflow")
    responses = db.relationship(
        "StepResponse", back_populates="workflow",
        order_by="StepResponse.step_id",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        db.CheckConstraint(
            f"current_step >= {FIRST_STEP} AND current_step <= {LAST_STEP}",
            name="ck_project_workflows_current_step",
        ),
    )

    def to_dict(self, include_responses: bool = True) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "current_step": self.current_step,
            "is_completed": self.is_completed,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_responses:
            d["responses"] = [r.to_dict() for r in self.responses]
        return d

    def __repr__(self) -> str:
        return f"<ProjectWorkflow {self.id}: project={self.project_id} step={self.current_step}>"


class StepResponse(db.Model):
    __tablename__ = "step_responses"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(
        db.Integer,
        db.ForeignKey("project_workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_id = db.Column(db.Integer, nullable=False)
    responses = db.Column(JSON, nullable=False, default=dict)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    ai_suggestions = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    workflow = db.relationship("ProjectWorkflow", back_populates="responses")

    __table_args__ = (
        db.UniqueConstraint("workflow_id", "step_id", name="uq_step_responses_workflow_step"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "step_id": self.step_id,
            "responses": self.responses or {},
            "completed": self.completed,
            "ai_suggestions": self.ai_suggestions,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<StepResponse {self.id}: step={self.step_id} completed={self.completed}>"


class DataFlowRelationship(db.Model):
    """source_field of step source_step_id feeds target_field of step target_step_id."""

    __tablename__ = "data_flow_relationships"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_step_id = db.Column(db.Integer, nullable=False)
    target_step_id = db.Column(db.Integer, nullable=False)
    source_field = db.Column(db.String(200), nullable=False)
    target_field = db.Column(db.String(200), nullable=False)
    transform_type = db.Column(db.String(50), nullable=True)
    transform_config = db.Column(JSON, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    project = db.relationship("Project", back_populates="data_flows")

    __table_args__ = (
        db.UniqueConstraint(
            "project_id", "source_step_id", "target_step_id", "source_field", "target_field",
            name="uq_data_flow_relationships_edge",
        ),
        db.Index("ix_data_flow_relationships_pair", "project_id", "source_step_id", "target_step_id"),
        db.CheckConstraint(
            f"source_step_id >= {FIRST_STEP} AND source_step_id <= {LAST_STEP}",
            name="ck_data_flow_relationships_source_step",
        ),
        db.CheckConstraint(
            f"target_step_id >= {FIRST_STEP} AND target_step_id <= {LAST_STEP}",
            name="ck_data_flow_relationships_target_step",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "source_step_id": self.source_step_id,
            "target_step_id": self.target_step_id,
            "source_field": self.source_field,
            "target_field": self.target_field,
            "transform_type": self.transform_type,
            "transform_config": self.transform_config,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return (
            f"<DataFlowRelationship {self.id}: "
            f"{self.source_step_id}.{self.source_field} -> {self.target_step_id}.{self.target_field}>"
        )
