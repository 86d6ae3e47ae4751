"""Deployment coordinator and providers."""

from .base import DeployOutcome
from .coordinator import DeploymentCoordinator
from .deploy_log import DeployLog

__all__ = ["DeployLog", "DeployOutcome", "DeploymentCoordinator"]
