"""Pull request model for Auto-Fix change-sets."""

from enum import Enum

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PullRequestStatus(str, Enum):
    OPEN = "open"
    MERGED = "merged"
    CLOSED = "closed"


class PullRequest(Base):
    """One Auto-Fix change-set, staged in ``patch_folder_path``."""

    __tablename__ = "pull_requests"
    __table_args__ = (UniqueConstraint("project_id", "pr_number"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )
    pr_number: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=PullRequestStatus.OPEN.value)

    # Ordered list of FileDiff dicts
    diff_json: Mapped[list] = mapped_column(JSON, default=list)
    patch_folder_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<PullRequest(id={self.id}, project={self.project_id}, "
            f"number={self.pr_number}, status={self.status})>"
        )
