"""Database models package."""

from .base import Base
from .project import AutoFixStatus, Project, ProjectStatus, ProjectType, SourceType
from .pull_request import PullRequest, PullRequestStatus

__all__ = [
    "AutoFixStatus",
    "Base",
    "Project",
    "ProjectStatus",
    "ProjectType",
    "PullRequest",
    "PullRequestStatus",
    "SourceType",
]
