"""Project model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProjectStatus(str, Enum):
    """Externally visible lifecycle status."""

    REGISTERED = "registered"
    QA_RUNNING = "qa_running"
    QA_PASSED = "qa_passed"
    QA_FAILED = "qa_failed"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    DEPLOY_FAILED = "deploy_failed"


class AutoFixStatus(str, Enum):
    """Auto-Fix sub-state, independent of ``ProjectStatus``."""

    NONE = "none"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class SourceType(str, Enum):
    GITHUB = "github"
    REPLIT = "replit"
    ZIP = "zip"
    OTHER = "other"


class ProjectType(str, Enum):
    """Classification produced by the (external) project classifier."""

    STATIC_WEB = "static_web"
    NODE_BACKEND = "node_backend"
    NEXTJS = "nextjs"
    REACT_SPA = "react_spa"
    UNKNOWN = "unknown"


class Project(Base):
    """A tracked codebase and everything the pipeline has learned about it."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    source_type: Mapped[str] = mapped_column(String(20), default=SourceType.OTHER.value)
    source_value: Mapped[str] = mapped_column(String(1024), default="")
    project_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), default=ProjectStatus.REGISTERED.value, index=True
    )

    # Auto-Fix
    auto_fix_status: Mapped[str] = mapped_column(String(20), default=AutoFixStatus.NONE.value)
    auto_fix_report: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_fix_logs: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_fixed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ready_for_deploy: Mapped[bool] = mapped_column(Boolean, default=False)

    # Owned by the normalization step; None means the code is not on disk
    normalized_folder_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # {KEY: {"value": str, "is_secret": bool}}
    env_vars: Mapped[dict] = mapped_column(JSON, default=dict)

    # Deployment provider echo state
    deployed_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    last_deploy_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_deploy_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    render_service_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    railway_service_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Audit trails
    qa_report: Mapped[str | None] = mapped_column(Text, nullable=True)
    qa_logs: Mapped[str | None] = mapped_column(Text, nullable=True)
    deploy_logs: Mapped[str | None] = mapped_column(Text, nullable=True)

    last_pr_number: Mapped[int] = mapped_column(Integer, default=0)

    # Consecutive failed liveness probes, persisted so restarts don't forget them
    health_failures: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name}, status={self.status})>"
