"""Autodeploy service - FastAPI app plus the self-healing monitor.

Run with:
    uvicorn autodeploy.main:create_app --factory
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import structlog

from shared.logging_config import setup_logging

from . import __version__, routers
from .config import Settings, get_settings
from .container import Container, build_container
from .database import create_schema
from .errors import (
    InvalidStateError,
    MissingArtifactError,
    NotFoundError,
    OperationInProgressError,
)
from .middleware import correlation_middleware

logger = structlog.get_logger()

ERROR_STATUS_CODES: list[tuple[type[Exception], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (OperationInProgressError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_400_BAD_REQUEST),
    (MissingArtifactError, status.HTTP_400_BAD_REQUEST),
]


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.warning(
            "request_rejected",
            status_code=status_code,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(container: Container | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the app.

    A pre-built ``container`` is used as-is (tests); otherwise one is built
    from settings when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app_settings = settings or get_settings()
        setup_logging(
            service_name=app_settings.service_name,
            log_format=app_settings.log_format,
            log_level=app_settings.log_level,
        )
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container(app_settings)
        current: Container = app.state.container

        if current.settings.auto_create_schema:
            await create_schema(current.engine)
        await current.orchestrator.recover_interrupted()
        if current.settings.monitor_enabled:
            current.monitor.start()

        logger.info("autodeploy_started", version=__version__)
        yield
        await current.aclose()
        logger.info("autodeploy_stopped")

    app = FastAPI(
        title="Autodeploy",
        description="Deployment lifecycle orchestrator: auto-fix, QA, deploy, self-healing",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    app.middleware("http")(correlation_middleware)
    for exc_type, status_code in ERROR_STATUS_CODES:
        app.add_exception_handler(exc_type, _error_handler(status_code))

    app.include_router(routers.health.router)
    app.include_router(routers.projects.router, prefix="/api")
    app.include_router(routers.pull_requests.router, prefix="/api")
    return app
