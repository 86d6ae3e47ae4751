"""Managed web service deployment through Render."""

from pathlib import Path
import re

import structlog

from shared.models import Project, ProjectType, SourceType

from ..autofix.env_discovery import env_values
from ..clients.render import DeployPhase, RenderClient, map_render_status
from ..commands import resolve_project_commands
from ..errors import ExternalServiceError
from ..storage import ProjectStore
from .base import DeployOutcome
from .deploy_log import DeployLog
from .poller import DeployStatusPoller

logger = structlog.get_logger()

PROVIDER = "render"

# Project types that get a database alongside the web service
DATABASE_PROJECT_TYPES = {ProjectType.NODE_BACKEND.value, ProjectType.NEXTJS.value}

_GITHUB_REPO = re.compile(r"github\.com[/:]([^/]+)/([^/#?]+?)(?:\.git)?/?$")


def github_repo_url(project: Project) -> str | None:
    if project.source_type != SourceType.GITHUB.value or not project.source_value:
        return None
    match = _GITHUB_REPO.search(project.source_value.strip())
    if not match:
        return None
    return f"https://github.com/{match.group(1)}/{match.group(2)}"


class ManagedServiceDeployer:
    """Creates the Render service on first use, then triggers a deploy.

    The outcome is returned while the deploy is still running; the poller
    writes the final status.
    """

    def __init__(self, client: RenderClient, store: ProjectStore, poller: DeployStatusPoller):
        self.client = client
        self.store = store
        self.poller = poller

    async def deploy(self, project: Project, folder: Path, log: DeployLog) -> DeployOutcome:
        service_id = project.render_service_id
        service_url = project.deployed_url

        if not service_id:
            service_id, service_url = await self._create_service(project, folder, log)

        deploy = await self.client.trigger_deploy(service_id)
        phase = map_render_status(deploy.status)
        await self.store.update_project(
            project.id,
            last_deploy_id=deploy.id,
            last_deploy_status=phase.value,
            deployed_url=service_url,
        )
        await log.info(f"Render deploy {deploy.id} triggered ({phase.value})")

        async def fetch_status() -> DeployPhase:
            current = await self.client.get_deploy(service_id, deploy.id)
            return map_render_status(current.status)

        self.poller.schedule(project.id, deploy.id, fetch_status)
        return DeployOutcome(
            success=True,
            provider=PROVIDER,
            deployed_url=service_url,
            deploy_id=deploy.id,
            status=phase.value,
            in_progress=True,
        )

    async def _create_service(
        self, project: Project, folder: Path, log: DeployLog
    ) -> tuple[str, str | None]:
        repo = github_repo_url(project)
        if repo is None:
            raise ExternalServiceError(PROVIDER, "Render requires a GitHub repository source")

        if project.project_type in DATABASE_PROJECT_TYPES:
            await self._provision_database(project, log)

        commands = resolve_project_commands(folder)
        build_command = " && ".join(c for c in (commands.install, commands.build) if c)
        service = await self.client.create_service(
            name=project.name,
            repo=repo,
            build_command=build_command or "npm install",
            start_command=commands.start or "npm start",
            env_vars=env_values(project.env_vars),
        )
        await self.store.update_project(project.id, render_service_id=service.id)
        await log.info(f"Created Render service {service.id}")
        return service.id, service.url

    async def _provision_database(self, project: Project, log: DeployLog) -> None:
        """Best effort; a failure here never blocks the deploy."""
        try:
            database_id = await self.client.create_database(project.name)
        except ExternalServiceError as e:
            logger.warning("render_database_provision_failed", project_id=project.id, error=str(e))
            await log.warning(f"Database provisioning skipped: {e.message}")
            return
        await log.info(f"Provisioned Render database {database_id}")
