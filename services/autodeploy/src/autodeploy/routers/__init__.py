"""API routers."""

from . import health, projects, pull_requests

__all__ = ["health", "projects", "pull_requests"]
