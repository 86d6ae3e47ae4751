"""Per-project deploy log persisted on the project record."""

from datetime import UTC, datetime

from ..storage import ProjectStore


class DeployLog:
    """Appends ``[ISO] [LEVEL] message`` lines to ``Project.deploy_logs``."""

    def __init__(self, store: ProjectStore, project_id: str):
        self.store = store
        self.project_id = project_id

    async def reset(self) -> None:
        await self.store.update_project(self.project_id, deploy_logs="")

    async def write(self, level: str, message: str) -> None:
        timestamp = datetime.now(UTC).isoformat()
        await self.store.append_deploy_log(
            self.project_id, f"[{timestamp}] [{level.upper()}] {message}\n"
        )

    async def info(self, message: str) -> None:
        await self.write("info", message)

    async def warning(self, message: str) -> None:
        await self.write("warn", message)

    async def error(self, message: str) -> None:
        await self.write("error", message)
