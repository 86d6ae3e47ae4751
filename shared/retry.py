"""Retry policy for calls to external services.

A ``RetryPolicy`` is plain data: how many attempts, how long to back off and
which errors are worth another try. ``RetryPolicy.run`` is the combinator that
applies it to any coroutine function, using tenacity for the attempt loop.

Usage:
    policy = RetryPolicy(max_attempts=3, backoff=0.5, is_retryable=is_transient_http_error)
    response = await policy.run(client.post, url, json=payload)
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

HTTP_SERVER_ERROR = 500


def always_retry(_: BaseException) -> bool:
    return True


def is_transient_http_error(exc: BaseException) -> bool:
    """Transport failures and 5xx replies are retried; 4xx replies are not."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= HTTP_SERVER_ERROR
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """How a single external call is retried."""

    max_attempts: int = 3
    backoff: float = 0.5
    max_backoff: float = 10.0
    is_retryable: Callable[[BaseException], bool] = always_retry

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Call ``fn`` until it succeeds, the error is not retryable or attempts run out.

        The last error is re-raised unchanged.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff, max=self.max_backoff),
            retry=retry_if_exception(self.is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await fn(*args, **kwargs)
        return result


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "external_call_retry",
        attempt=retry_state.attempt_number,
        error=str(exc) if exc else None,
        error_type=type(exc).__name__ if exc else None,
    )


NO_RETRY = RetryPolicy(max_attempts=1, backoff=0)
