"""Pydantic schemas for the HTTP API."""

from .project import (
    AUTO_READY_MESSAGE,
    AutoFixRead,
    DeployStatusRead,
    EnvAutoFixResult,
    EnvVarsRead,
    EnvVarsUpdate,
    EnvVarsUpdateResult,
    EnvVarValue,
    ProjectCreate,
    ProjectFilesRead,
    ProjectRead,
    ProjectUpdate,
    ProvidersRead,
)
from .pull_request import PullRequestRead

__all__ = [
    "AUTO_READY_MESSAGE",
    "AutoFixRead",
    "DeployStatusRead",
    "EnvAutoFixResult",
    "EnvVarValue",
    "EnvVarsRead",
    "EnvVarsUpdate",
    "EnvVarsUpdateResult",
    "ProjectCreate",
    "ProjectFilesRead",
    "ProjectRead",
    "ProjectUpdate",
    "ProvidersRead",
    "PullRequestRead",
]
