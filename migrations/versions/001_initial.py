"""Create repository, analysis job, component, evidence and tech doc tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

JOB_STATUSES = ("pending", "running", "succeeded", "failed")
COMPONENT_TYPES = (
    "language",
    "framework",
    "library",
    "ui_component",
    "state_management",
    "validation",
    "animation",
    "database",
    "cache",
    "ci_cd",
    "tooling",
    "infra",
    "testing",
    "other",
)


def upgrade() -> None:
    op.create_table(
        "repos",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("url", sa.String(512), nullable=False),
        sa.Column("owner", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("default_branch", sa.String(255), nullable=False, server_default="main"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_repos_url", "repos", ["url"], unique=True)

    op.create_table(
        "analysis_jobs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "repo_id",
            sa.Integer,
            sa.ForeignKey("repos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*JOB_STATUSES, name="analysis_job_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_analysis_jobs_repo_id", "analysis_jobs", ["repo_id"])
    op.create_index("ix_analysis_jobs_status", "analysis_jobs", ["status"])
    op.create_index("ix_analysis_jobs_status_created", "analysis_jobs", ["status", "created_at"])
    op.create_index("ix_analysis_jobs_repo_created", "analysis_jobs", ["repo_id", "created_at"])

    op.create_table(
        "detected_components",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "repo_id",
            sa.Integer,
            sa.ForeignKey("repos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "type",
            sa.Enum(*COMPONENT_TYPES, name="component_type"),
            nullable=False,
            server_default="other",
        ),
        sa.Column("version", sa.String(100), nullable=True),
        sa.Column("confidence", sa.Float, nullable=False, server_default="0"),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_detected_components_repo_id", "detected_components", ["repo_id"])

    op.create_table(
        "evidence",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "component_id",
            sa.Integer,
            sa.ForeignKey("detected_components.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("snippet", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_evidence_component_id", "evidence", ["component_id"])

    op.create_table(
        "tech_docs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("documentation_url", sa.String(1024), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_tech_docs_name", "tech_docs", ["name"], unique=True)


def downgrade() -> None:
    op.drop_table("tech_docs")
    op.drop_table("evidence")
    op.drop_table("detected_components")
    op.drop_table("analysis_jobs")
    op.drop_table("repos")

    sa.Enum(name="component_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="analysis_job_status").drop(op.get_bind(), checkfirst=True)
