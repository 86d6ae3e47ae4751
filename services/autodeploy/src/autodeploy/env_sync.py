"""Pushes a project's environment variables to every configured provider."""

import structlog

from shared.models import Project

from .autofix.env_discovery import env_values
from .clients import RailwayClient, RenderClient, VercelClient
from .clients.vercel import vercel_project_name
from .errors import ExternalServiceError

logger = structlog.get_logger()


class EnvSyncService:
    """Provider sync is best effort: each failure becomes a warning string."""

    def __init__(
        self,
        vercel: VercelClient | None = None,
        render: RenderClient | None = None,
        railway: RailwayClient | None = None,
    ):
        self.vercel = vercel
        self.render = render
        self.railway = railway

    async def sync(self, project: Project, env_vars: dict | None = None) -> list[str]:
        """Sync ``env_vars`` (default: the project's own) and return warnings."""
        env_vars = project.env_vars if env_vars is None else env_vars
        if not env_vars:
            return []

        warnings = []
        if self.vercel is not None:
            name = vercel_project_name(project.name)
            for key, entry in env_vars.items():
                try:
                    await self.vercel.upsert_env(
                        name, key, str(entry.get("value", "")), bool(entry.get("is_secret"))
                    )
                except ExternalServiceError as e:
                    warnings.append(f"Vercel sync failed for {key}: {e.message}")

        if self.render is not None and project.render_service_id:
            try:
                await self.render.update_env_vars(project.render_service_id, env_values(env_vars))
            except ExternalServiceError as e:
                warnings.append(f"Render sync failed: {e.message}")

        if self.railway is not None and project.railway_service_id:
            try:
                await self.railway.upsert_variables(
                    project.railway_service_id, env_values(env_vars)
                )
            except ExternalServiceError as e:
                warnings.append(f"Railway sync failed: {e.message}")

        if warnings:
            logger.warning("env_sync_warnings", project_id=project.id, warnings=warnings)
        else:
            logger.info("env_sync_completed", project_id=project.id, count=len(env_vars))
        return warnings
