"""Shared HTTP plumbing for deploy provider clients."""

from typing import Any

import httpx
import structlog

from shared.retry import NO_RETRY, RetryPolicy

from ..errors import ExternalServiceError

logger = structlog.get_logger()

HTTP_SERVER_ERROR = 500


class ProviderClient:
    """Bearer-token JSON client with a retry policy.

    Transport errors and 5xx replies go through the retry policy; whatever
    still fails is raised as ``ExternalServiceError``.
    """

    service_name = "provider"
    base_url = ""

    def __init__(
        self,
        token: str,
        *,
        timeout: float = 30.0,
        retry_policy: RetryPolicy = NO_RETRY,
    ):
        if not token:
            raise ValueError(f"{self.service_name} token is required")
        self.token = token
        self.timeout = timeout
        self.retry_policy = retry_policy

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and return the response, even for 4xx replies."""
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        url = f"{self.base_url}{path}"

        async def attempt() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(method, url, headers=headers, **kwargs)
                if resp.status_code >= HTTP_SERVER_ERROR:
                    resp.raise_for_status()
                return resp

        try:
            return await self.retry_policy.run(attempt)
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                self.service_name,
                f"{method} {path} returned {e.response.status_code}: {e.response.text[:500]}",
                e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(
                "provider_request_failed",
                provider=self.service_name,
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExternalServiceError(self.service_name, f"{method} {path}: {e}") from e

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body; non-2xx raises."""
        resp = await self._send(method, path, **kwargs)
        if resp.is_error:
            raise ExternalServiceError(
                self.service_name,
                f"{method} {path} returned {resp.status_code}: {resp.text[:500]}",
                resp.status_code,
            )
        if not resp.content:
            return None
        return resp.json()
