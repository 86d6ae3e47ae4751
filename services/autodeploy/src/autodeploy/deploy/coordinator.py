"""Deployment coordinator: provider selection and the deploy log."""

from pathlib import Path

import structlog

from shared.models import Project

from ..errors import ExternalServiceError
from ..storage import ProjectStore
from .base import DeployOutcome
from .content_addressed import ContentAddressedDeployer
from .deploy_log import DeployLog
from .local import LocalProcessDeployer
from .managed import ManagedServiceDeployer

logger = structlog.get_logger()


class DeploymentCoordinator:
    """Picks a provider once per call, in a fixed priority order.

    1. Vercel (content-addressed), when configured. Strict: its failure is the
       result, nothing else is tried.
    2. Render (managed service), when configured. Falls back on failure.
    3. A local process on this host.
    """

    def __init__(
        self,
        store: ProjectStore,
        local: LocalProcessDeployer,
        content_addressed: ContentAddressedDeployer | None = None,
        managed: ManagedServiceDeployer | None = None,
    ):
        self.store = store
        self.local = local
        self.content_addressed = content_addressed
        self.managed = managed

    async def deploy(self, project: Project) -> DeployOutcome:
        log = DeployLog(self.store, project.id)
        await log.reset()
        await log.info(f"Deploy started for {project.name}")

        if not project.normalized_folder_path or not Path(project.normalized_folder_path).is_dir():
            await log.error("Normalized folder is missing; nothing to deploy")
            return DeployOutcome.failed("none", "Normalized folder is missing")
        folder = Path(project.normalized_folder_path)

        if self.content_addressed is not None:
            await log.info("Deploying via Vercel")
            try:
                return await self.content_addressed.deploy(project, folder, log)
            except ExternalServiceError as e:
                logger.error("vercel_deploy_failed", project_id=project.id, error=str(e))
                await log.error(f"Vercel deploy failed: {e.message}")
                return DeployOutcome.failed("vercel", e.message)

        if self.managed is not None:
            await log.info("Deploying via Render")
            try:
                return await self.managed.deploy(project, folder, log)
            except ExternalServiceError as e:
                logger.warning("render_deploy_failed_falling_back", project_id=project.id, error=str(e))
                await log.warning(f"Render deploy failed, falling back to local process: {e.message}")

        await log.info("Deploying as a local process")
        return await self.local.deploy(project, folder, log)
