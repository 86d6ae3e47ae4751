"""Vercel API client (content-addressed deployments)."""

from dataclasses import dataclass, field
import re
from typing import Any

import httpx
import structlog

from ..errors import ExternalServiceError
from .base import ProviderClient

logger = structlog.get_logger()

ENV_TARGETS = ["production", "preview", "development"]
HTTP_BAD_REQUEST = 400


@dataclass(frozen=True)
class FileEntry:
    """One file of a deployment, identified by its SHA-1 digest."""

    file: str
    sha: str
    size: int


@dataclass
class VercelDeployment:
    """Reply to a deployment request.

    ``missing`` lists digests Vercel does not have yet; when it is non-empty no
    deployment was created and the caller must upload those blobs and resubmit.
    """

    id: str | None = None
    url: str | None = None
    ready_state: str | None = None
    missing: list[str] = field(default_factory=list)


class VercelClient(ProviderClient):
    """Client for the Vercel REST API."""

    service_name = "vercel"
    base_url = "https://api.vercel.com"

    def __init__(self, token: str, team_id: str | None = None, **kwargs: Any):
        super().__init__(token, **kwargs)
        self.team_id = team_id

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self.team_id:
            params["teamId"] = self.team_id
        return params

    async def create_deployment(self, name: str, files: list[FileEntry]) -> VercelDeployment:
        """Request a production deployment that references files by digest."""
        body = {
            "name": name,
            "target": "production",
            "files": [{"file": f.file, "sha": f.sha, "size": f.size} for f in files],
            "projectSettings": {"framework": None},
        }
        resp = await self._send("POST", "/v13/deployments", params=self._params(), json=body)

        if resp.status_code == HTTP_BAD_REQUEST:
            body = _json_or_none(resp)
            error = (body.get("error") if isinstance(body, dict) else None) or {}
            if error.get("code") == "missing_files":
                missing = list(error.get("missing") or [])
                logger.info("vercel_missing_files", name=name, missing_count=len(missing))
                return VercelDeployment(missing=missing)

        if resp.is_error:
            raise ExternalServiceError(
                self.service_name,
                f"deployment failed ({resp.status_code}): {resp.text[:500]}",
                resp.status_code,
            )

        data = _json_or_none(resp)
        if not isinstance(data, dict):
            raise ExternalServiceError(
                self.service_name, f"deployment reply is not JSON: {resp.text[:500]}"
            )
        url = data.get("url")
        return VercelDeployment(
            id=data.get("id"),
            url=f"https://{url}" if url and not url.startswith("http") else url,
            ready_state=data.get("readyState"),
        )

    async def upload_file(self, digest: str, content: bytes) -> None:
        """Upload one blob; Vercel keys it by the SHA-1 digest header."""
        await self._request(
            "POST",
            "/v2/files",
            params=self._params(),
            content=content,
            headers={
                "Content-Type": "application/octet-stream",
                "x-vercel-digest": digest,
            },
        )

    async def upsert_env(self, project_name: str, key: str, value: str, is_secret: bool) -> None:
        """Create or overwrite one environment variable on a Vercel project."""
        await self._request(
            "POST",
            f"/v10/projects/{project_name}/env",
            params=self._params(upsert="true"),
            json={
                "key": key,
                "value": value,
                "type": "encrypted" if is_secret else "plain",
                "target": ENV_TARGETS,
            },
        )


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def vercel_project_name(name: str) -> str:
    """Vercel project names are lowercase with a restricted alphabet."""
    slug = re.sub(r"[^a-z0-9._-]", "-", name.lower())
    slug = re.sub(r"-{2,}", "-", slug).strip("-")
    return slug[:100] or "project"
