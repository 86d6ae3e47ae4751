"""Structured logging configuration.

structlog is layered over the standard library so that third-party loggers
(uvicorn, httpx, sqlalchemy) and our own events end up in the same stream.
Output is JSON in production and a colored console view in development.

Usage:
    from shared.logging_config import setup_logging
    import structlog

    setup_logging(service_name="autodeploy")
    logger = structlog.get_logger()
    logger.info("project_registered", project_id=project.id)
"""

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog and stdlib logging for a service process.

    Args:
        service_name: Bound to every event as ``service``.
                     Falls back to SERVICE_NAME env var or "autodeploy".
        log_format: "json" for production, "console" for development.
                   Falls back to LOG_FORMAT env var or "console".
        log_level: DEBUG, INFO, WARNING or ERROR.
                  Falls back to LOG_LEVEL env var or "INFO".
    """
    service_name = service_name or os.getenv("SERVICE_NAME", "autodeploy")
    log_format = log_format or os.getenv("LOG_FORMAT", "console")
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    numeric_level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors = _shared_processors()
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger().info(
        "logging_initialized",
        service=service_name,
        log_format=log_format,
        log_level=log_level,
    )


def bind_project_context(project_id: str, action: str | None = None) -> None:
    """Attach project/action identifiers to every event in the current context.

    Background tasks run in their own asyncio context, so binding here does not
    leak into the request that spawned them.
    """
    if action is None:
        structlog.contextvars.bind_contextvars(project_id=project_id)
    else:
        structlog.contextvars.bind_contextvars(project_id=project_id, action=action)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, optionally named."""
    return structlog.get_logger(name)
