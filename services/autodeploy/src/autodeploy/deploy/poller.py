"""Background polling of managed-provider deploy status.

Each project has at most one scheduled poll. Scheduling a new one cancels the
stale entry so an old deploy can never overwrite the record of a newer one.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from shared.logging_config import bind_project_context
from shared.models import ProjectStatus

from ..clients.render import DeployPhase
from ..storage import ProjectStore
from .deploy_log import DeployLog

logger = structlog.get_logger()

POLL_TIMEOUT_STATUS = "poll_timeout"
POLL_CANCELLED_STATUS = "poll_cancelled"

StatusFetcher = Callable[[], Awaitable[DeployPhase]]


class DeployStatusPoller:
    def __init__(self, store: ProjectStore, interval: float, max_attempts: int):
        self.store = store
        self.interval = interval
        self.max_attempts = max_attempts
        self._tasks: dict[str, asyncio.Task] = {}
        self._shutting_down = False

    def schedule(self, project_id: str, deploy_id: str, fetch_status: StatusFetcher) -> asyncio.Task:
        """Start polling ``deploy_id``, superseding any poll already running."""
        self.cancel(project_id)
        task = asyncio.create_task(
            self._poll(project_id, deploy_id, fetch_status),
            name=f"deploy-poll-{project_id}",
        )
        self._tasks[project_id] = task
        task.add_done_callback(lambda t, pid=project_id: self._forget(pid, t))
        logger.info("deploy_poll_scheduled", project_id=project_id, deploy_id=deploy_id)
        return task

    def cancel(self, project_id: str) -> bool:
        task = self._tasks.pop(project_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("deploy_poll_cancelled", project_id=project_id)
        return True

    def is_polling(self, project_id: str) -> bool:
        task = self._tasks.get(project_id)
        return task is not None and not task.done()

    async def join(self, project_id: str) -> None:
        task = self._tasks.get(project_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop every poll; each one marks its deploy failed as it unwinds."""
        self._shutting_down = True
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _forget(self, project_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(project_id) is task:
            del self._tasks[project_id]

    async def _poll(self, project_id: str, deploy_id: str, fetch_status: StatusFetcher) -> None:
        bind_project_context(project_id, action="deploy_poll")
        log = DeployLog(self.store, project_id)
        try:
            await self._poll_until_terminal(project_id, deploy_id, fetch_status, log)
        except asyncio.CancelledError:
            # A superseded poll leaves the record to its replacement
            if self._shutting_down:
                await self.store.update_project(
                    project_id,
                    status=ProjectStatus.DEPLOY_FAILED.value,
                    last_deploy_status=POLL_CANCELLED_STATUS,
                )
                await log.error(f"Stopped polling deploy {deploy_id}: service shutting down")
                logger.warning("deploy_poll_interrupted", deploy_id=deploy_id)
            raise

    async def _poll_until_terminal(
        self, project_id: str, deploy_id: str, fetch_status: StatusFetcher, log: DeployLog
    ) -> None:
        last_phase: DeployPhase | None = None

        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.interval)
            try:
                phase = await fetch_status()
            except Exception as e:
                logger.warning(
                    "deploy_poll_failed",
                    deploy_id=deploy_id,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if phase != last_phase:
                last_phase = phase
                await self.store.update_project(project_id, last_deploy_status=phase.value)
                await log.info(f"Deploy {deploy_id} status: {phase.value}")

            if phase == DeployPhase.LIVE:
                await self.store.update_project(
                    project_id, status=ProjectStatus.DEPLOYED.value, health_failures=0
                )
                logger.info("deploy_live", deploy_id=deploy_id, attempts=attempt)
                return
            if phase == DeployPhase.FAILED:
                await self.store.update_project(project_id, status=ProjectStatus.DEPLOY_FAILED.value)
                await log.error(f"Deploy {deploy_id} failed")
                logger.warning("deploy_failed_remote", deploy_id=deploy_id)
                return

        await self.store.update_project(
            project_id,
            status=ProjectStatus.DEPLOY_FAILED.value,
            last_deploy_status=POLL_TIMEOUT_STATUS,
        )
        await log.error(f"Gave up polling deploy {deploy_id} after {self.max_attempts} attempts")
        logger.warning("deploy_poll_timeout", deploy_id=deploy_id, attempts=self.max_attempts)
