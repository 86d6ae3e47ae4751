"""Render API client (managed web services)."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from .base import ProviderClient

logger = structlog.get_logger()


class DeployPhase(str, Enum):
    """Provider-neutral deploy status written to ``last_deploy_status``."""

    PENDING = "pending"
    BUILDING = "building"
    LIVE = "live"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeployPhase.LIVE, DeployPhase.FAILED)


_RENDER_PHASES = {
    "created": DeployPhase.PENDING,
    "queued": DeployPhase.PENDING,
    "build_in_progress": DeployPhase.BUILDING,
    "update_in_progress": DeployPhase.BUILDING,
    "pre_deploy_in_progress": DeployPhase.BUILDING,
    "live": DeployPhase.LIVE,
    "canceled": DeployPhase.FAILED,
    "deactivated": DeployPhase.FAILED,
}


def map_render_status(status: str | None) -> DeployPhase:
    """Translate a Render deploy status; unknown values count as pending."""
    if not status:
        return DeployPhase.PENDING
    if status.endswith("_failed"):
        return DeployPhase.FAILED
    return _RENDER_PHASES.get(status, DeployPhase.PENDING)


@dataclass
class RenderService:
    id: str
    url: str | None


@dataclass
class RenderDeploy:
    id: str
    status: str


class RenderClient(ProviderClient):
    """Client for the Render REST API."""

    service_name = "render"
    base_url = "https://api.render.com/v1"

    def __init__(self, token: str, owner_id: str | None = None, region: str = "oregon", **kwargs: Any):
        super().__init__(token, **kwargs)
        self.owner_id = owner_id
        self.region = region

    async def create_service(
        self,
        name: str,
        repo: str,
        build_command: str,
        start_command: str,
        env_vars: dict[str, str],
    ) -> RenderService:
        body = {
            "type": "web_service",
            "name": name,
            "ownerId": self.owner_id,
            "repo": repo,
            "autoDeploy": "no",
            "envVars": [{"key": k, "value": v} for k, v in env_vars.items()],
            "serviceDetails": {
                "env": "node",
                "region": self.region,
                "envSpecificDetails": {
                    "buildCommand": build_command,
                    "startCommand": start_command,
                },
            },
        }
        data = await self._request("POST", "/services", json=body)
        service = data.get("service", data)
        details = service.get("serviceDetails") or {}
        logger.info("render_service_created", service_id=service["id"], name=name)
        return RenderService(id=service["id"], url=details.get("url"))

    async def get_service(self, service_id: str) -> RenderService:
        data = await self._request("GET", f"/services/{service_id}")
        details = data.get("serviceDetails") or {}
        return RenderService(id=data["id"], url=details.get("url"))

    async def create_database(self, name: str) -> str:
        """Provision a free Postgres instance and return its id."""
        data = await self._request(
            "POST",
            "/postgres",
            json={
                "name": f"{name}-db",
                "ownerId": self.owner_id,
                "plan": "free",
                "region": self.region,
                "version": "16",
            },
        )
        return data["id"]

    async def trigger_deploy(self, service_id: str) -> RenderDeploy:
        data = await self._request("POST", f"/services/{service_id}/deploys", json={})
        return RenderDeploy(id=data["id"], status=data.get("status", "created"))

    async def get_deploy(self, service_id: str, deploy_id: str) -> RenderDeploy:
        data = await self._request("GET", f"/services/{service_id}/deploys/{deploy_id}")
        return RenderDeploy(id=data.get("id", deploy_id), status=data.get("status", ""))

    async def update_env_vars(self, service_id: str, env_vars: dict[str, str]) -> None:
        """Replace the service's environment variables."""
        await self._request(
            "PUT",
            f"/services/{service_id}/env-vars",
            json=[{"key": k, "value": v} for k, v in env_vars.items()],
        )
