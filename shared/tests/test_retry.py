"""Tests for the retry policy combinator."""

from unittest.mock import AsyncMock

import httpx
import pytest

from shared.retry import NO_RETRY, RetryPolicy, is_transient_http_error


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com")
    return httpx.HTTPStatusError(
        "error", request=request, response=httpx.Response(code, request=request)
    )


class TestIsTransientHttpError:
    def test_transport_error_is_transient(self):
        assert is_transient_http_error(httpx.ConnectError("refused")) is True

    def test_timeout_is_transient(self):
        assert is_transient_http_error(httpx.ReadTimeout("slow")) is True

    def test_server_error_is_transient(self):
        assert is_transient_http_error(_status_error(503)) is True

    def test_client_error_is_not_transient(self):
        assert is_transient_http_error(_status_error(404)) is False

    def test_other_errors_are_not_transient(self):
        assert is_transient_http_error(ValueError("bad")) is False


class TestRetryPolicy:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        fn = AsyncMock(return_value="ok")

        result = await RetryPolicy(max_attempts=3, backoff=0).run(fn, "a", key="b")

        assert result == "ok"
        fn.assert_awaited_once_with("a", key="b")

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        fn = AsyncMock(side_effect=[httpx.ConnectError("down"), httpx.ConnectError("down"), "ok"])
        policy = RetryPolicy(max_attempts=3, backoff=0, is_retryable=is_transient_http_error)

        assert await policy.run(fn) == "ok"
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_reraises_last_error_when_exhausted(self):
        fn = AsyncMock(side_effect=httpx.ConnectError("still down"))
        policy = RetryPolicy(max_attempts=2, backoff=0, is_retryable=is_transient_http_error)

        with pytest.raises(httpx.ConnectError, match="still down"):
            await policy.run(fn)
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_not_retried(self):
        fn = AsyncMock(side_effect=_status_error(400))
        policy = RetryPolicy(max_attempts=5, backoff=0, is_retryable=is_transient_http_error)

        with pytest.raises(httpx.HTTPStatusError):
            await policy.run(fn)
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_retry_policy_calls_once(self):
        fn = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await NO_RETRY.run(fn)
        fn.assert_awaited_once()
