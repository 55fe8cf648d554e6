"""initial_wizard_schema

Create users, projects, project_workflows, step_responses and
data_flow_relationships.

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5c1e7a9d2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=True),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True, server_default="active"),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_email", "users", ["email"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("owner_id", "name", name="uq_projects_owner_name"),
        )
        op.create_index("ix_projects_owner_id", "projects", ["owner_id"])

    if "project_workflows" not in existing_tables:
        op.create_table(
            "project_workflows",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint(
                "current_step >= 1 AND current_step <= 9",
                name="ck_project_workflows_current_step",
            ),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )

    if "step_responses" not in existing_tables:
        op.create_table(
            "step_responses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workflow_id", sa.Integer(), nullable=False),
            sa.Column("step_id", sa.Integer(), nullable=False),
            sa.Column("responses", sa.JSON(), nullable=False),
            sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("ai_suggestions", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["workflow_id"], ["project_workflows.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("workflow_id", "step_id", name="uq_step_responses_workflow_step"),
        )
        op.create_index("ix_step_responses_workflow_id", "step_responses", ["workflow_id"])

    if "data_flow_relationships" not in existing_tables:
        op.create_table(
            "data_flow_relationships",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("source_step_id", sa.Integer(), nullable=False),
            sa.Column("target_step_id", sa.Integer(), nullable=False),
            sa.Column("source_field", sa.String(length=200), nullable=False),
            sa.Column("target_field", sa.String(length=200), nullable=False),
            sa.Column("transform_type", sa.String(length=50), nullable=True),
            sa.Column("transform_config", sa.JSON(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint(
                "source_step_id >= 1 AND source_step_id <= 9",
                name="ck_data_flow_relationships_source_step",
            ),
            sa.CheckConstraint(
                "target_step_id >= 1 AND target_step_id <= 9",
                name="ck_data_flow_relationships_target_step",
            ),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "project_id", "source_step_id", "target_step_id", "source_field", "target_field",
                name="uq_data_flow_relationships_edge",
            ),
        )
        op.create_index("ix_data_flow_relationships_project_id", "data_flow_relationships", ["project_id"])
        op.create_index(
            "ix_data_flow_relationships_pair",
            "data_flow_relationships",
            ["project_id", "source_step_id", "target_step_id"],
        )


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "data_flow_relationships" in existing_tables:
        op.drop_index("ix_data_flow_relationships_pair", table_name="data_flow_relationships")
        op.drop_index("ix_data_flow_relationships_project_id", table_name="data_flow_relationships")
        op.drop_table("data_flow_relationships")
    if "step_responses" in existing_tables:
        op.drop_index("ix_step_responses_workflow_id", table_name="step_responses")
        op.drop_table("step_responses")
    if "project_workflows" in existing_tables:
        op.drop_table("project_workflows")
    if "projects" in existing_tables:
        op.drop_index("ix_projects_owner_id", table_name="projects")
        op.drop_table("projects")
    if "users" in existing_tables:
        op.drop_index("ix_users_email", table_name="users")
        op.drop_table("users")
