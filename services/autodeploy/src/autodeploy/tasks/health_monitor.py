"""Self-healing monitor - probes deployed projects and redeploys dead ones."""

import asyncio
import time

import httpx
import structlog

from shared.models import Project, ProjectStatus

from ..errors import InvalidStateError
from ..lifecycle import LifecycleOrchestrator
from ..storage import ProjectStore

logger = structlog.get_logger()

RECOVERY_STATUS = "recovery_triggered"


class SelfHealingMonitor:
    """Counts consecutive probe failures per project and redeploys at a threshold.

    The counter lives on the project record so it survives restarts. Ticks and
    exit notifications are serialized by one lock.
    """

    def __init__(
        self,
        store: ProjectStore,
        orchestrator: LifecycleOrchestrator,
        interval: float = 300.0,
        probe_timeout: float = 10.0,
        failure_threshold: int = 3,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.interval = interval
        self.probe_timeout = probe_timeout
        self.failure_threshold = failure_threshold
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    async def probe(self, url: str) -> bool:
        """GET the URL; only a 2xx reply counts as alive."""
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=self.probe_timeout, follow_redirects=True
            ) as client:
                resp = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(
                "health_probe_error",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        healthy = resp.is_success
        logger.info(
            "health_probe",
            url=url,
            status_code=resp.status_code,
            status="healthy" if healthy else "unhealthy",
            response_time_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return healthy

    async def check_once(self) -> None:
        """Probe every deployed project once."""
        async with self._lock:
            projects = await self.store.list_monitored_projects()
            if not projects:
                logger.debug("health_check_no_projects")
                return

            logger.info("health_check_start", projects_count=len(projects))
            healthy_count = 0
            for project in projects:
                if await self.probe(project.deployed_url):
                    healthy_count += 1
                    if project.health_failures:
                        await self.store.reset_health_failures(project.id)
                else:
                    await self._record_failure(project)

            logger.info(
                "health_check_complete",
                healthy_count=healthy_count,
                unhealthy_count=len(projects) - healthy_count,
            )

    async def notify_process_exit(self, project_id: str, returncode: int | None) -> None:
        """A locally deployed process died; count it as a failed probe."""
        async with self._lock:
            project = await self.store.get_project(project_id)
            if project is None or project.status != ProjectStatus.DEPLOYED.value:
                return
            logger.warning("monitored_process_exited", project_id=project_id, returncode=returncode)
            await self._record_failure(project)

    async def _record_failure(self, project: Project) -> None:
        failures = await self.store.increment_health_failures(project.id)
        logger.warning(
            "project_unhealthy",
            project_id=project.id,
            failures=failures,
            threshold=self.failure_threshold,
        )
        if failures < self.failure_threshold:
            return

        if self.orchestrator.is_busy(project.id):
            logger.info("recovery_skipped_busy", project_id=project.id)
            return

        await self.store.update_project(
            project.id, health_failures=0, last_deploy_status=RECOVERY_STATUS
        )
        logger.warning("recovery_triggered", project_id=project.id, failures=failures)
        try:
            result = await self.orchestrator.redeploy(project.id)
        except InvalidStateError as e:
            # Covers OperationInProgressError; the next tick will see it again
            logger.info("recovery_rejected", project_id=project.id, error=str(e))
            return
        logger.info("recovery_finished", project_id=project.id, status=result.status)

    async def run_forever(self) -> None:
        logger.info("health_monitor_started", interval_sec=self.interval)
        while True:
            try:
                await self.check_once()
            except Exception as e:
                logger.error(
                    "health_monitor_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="health-monitor")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("health_monitor_stopped")
