"""FastAPI dependencies resolving components from the app container."""

from fastapi import Request

from .container import Container
from .lifecycle import LifecycleOrchestrator
from .pull_requests import PullRequestService
from .storage import ProjectStore


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_store(request: Request) -> ProjectStore:
    return get_container(request).store


def get_orchestrator(request: Request) -> LifecycleOrchestrator:
    return get_container(request).orchestrator


def get_pull_request_service(request: Request) -> PullRequestService:
    return get_container(request).pull_requests
