"""Initial schema: projects and pull_requests

Revision ID: 5e2a91c0d7b4
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5e2a91c0d7b4"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("source_type", sa.String(length=20), nullable=False),
        sa.Column("source_value", sa.String(length=1024), nullable=False),
        sa.Column("project_type", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("auto_fix_status", sa.String(length=20), nullable=False),
        sa.Column("auto_fix_report", sa.Text(), nullable=True),
        sa.Column("auto_fix_logs", sa.Text(), nullable=True),
        sa.Column("auto_fixed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ready_for_deploy", sa.Boolean(), nullable=False),
        sa.Column("normalized_folder_path", sa.String(length=1024), nullable=True),
        sa.Column("env_vars", sa.JSON(), nullable=False),
        sa.Column("deployed_url", sa.String(length=1024), nullable=True),
        sa.Column("last_deploy_id", sa.String(length=255), nullable=True),
        sa.Column("last_deploy_status", sa.String(length=50), nullable=True),
        sa.Column("render_service_id", sa.String(length=255), nullable=True),
        sa.Column("railway_service_id", sa.String(length=255), nullable=True),
        sa.Column("qa_report", sa.Text(), nullable=True),
        sa.Column("qa_logs", sa.Text(), nullable=True),
        sa.Column("deploy_logs", sa.Text(), nullable=True),
        sa.Column("last_pr_number", sa.Integer(), nullable=False),
        sa.Column("health_failures", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_projects_status", "projects", ["status"])

    op.create_table(
        "pull_requests",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "project_id",
            sa.String(length=64),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("pr_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("diff_json", sa.JSON(), nullable=False),
        sa.Column("patch_folder_path", sa.String(length=1024), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "pr_number"),
    )
    op.create_index("ix_pull_requests_project_id", "pull_requests", ["project_id"])


def downgrade() -> None:
    op.drop_index("ix_pull_requests_project_id", table_name="pull_requests")
    op.drop_table("pull_requests")
    op.drop_index("ix_projects_status", table_name="projects")
    op.drop_table("projects")
