"""Lifecycle orchestrator.

A transition request is validated and flipped to its in-progress marker under
one lock, then the work runs as a background task. At most one task runs per
project: a second request while one is running is rejected, not queued.
Whatever happens inside the task, a terminal state is written when it ends.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog

from shared.logging_config import bind_project_context
from shared.models import AutoFixStatus, Project, ProjectStatus

from ..autofix.service import AutoFixService
from ..deploy import DeploymentCoordinator, DeployLog, DeployOutcome
from ..deploy.poller import DeployStatusPoller
from ..errors import OperationInProgressError
from ..storage import ProjectStore
from .qa import QARunner
from .transitions import LifecycleAction, check_transition

logger = structlog.get_logger()

INTERRUPTED = "Interrupted by a service restart"


class LifecycleOrchestrator:
    def __init__(
        self,
        store: ProjectStore,
        qa: QARunner,
        autofix: AutoFixService,
        coordinator: DeploymentCoordinator,
        poller: DeployStatusPoller,
    ):
        self.store = store
        self.qa = qa
        self.autofix = autofix
        self.coordinator = coordinator
        self.poller = poller
        self._lock = asyncio.Lock()
        self._tasks: dict[str, asyncio.Task] = {}

    def is_busy(self, project_id: str) -> bool:
        task = self._tasks.get(project_id)
        return task is not None and not task.done()

    async def request_transition(self, project_id: str, action: LifecycleAction) -> Project:
        """Start ``action`` in the background and return the in-progress project.

        Raises:
            NotFoundError: Unknown project
            OperationInProgressError: Another action is running for this project
            InvalidStateError: The action is illegal from the current state
        """
        project, _ = await self._start(project_id, action)
        return project

    async def redeploy(self, project_id: str) -> Project:
        """Run the deploy transition and wait for it; used by the health monitor."""
        _, task = await self._start(project_id, LifecycleAction.DEPLOY)
        await task
        return await self.store.require_project(project_id)

    async def join(self, project_id: str) -> None:
        """Wait for the project's running task, if any."""
        task = self._tasks.get(project_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    @asynccontextmanager
    async def guard_delete(self, project_id: str) -> AsyncIterator[None]:
        """Hold the transition lock while a project is removed.

        Raises:
            OperationInProgressError: An action is running for this project
        """
        async with self._lock:
            if self.is_busy(project_id):
                raise OperationInProgressError(
                    f"Cannot delete project {project_id} while it is busy"
                )
            yield

    async def recover_interrupted(self) -> int:
        """Fail operations that a previous process left marked as running.

        Called once at startup, before any transition can be requested.
        """
        stale = await self.store.list_in_progress_projects()
        for project in stale:
            if project.auto_fix_status == AutoFixStatus.RUNNING.value:
                await self._write_failure(project.id, LifecycleAction.AUTO_FIX, INTERRUPTED)
            if project.status == ProjectStatus.QA_RUNNING.value:
                await self._write_failure(project.id, LifecycleAction.RUN_QA, INTERRUPTED)
            elif project.status == ProjectStatus.DEPLOYING.value:
                await self._write_failure(project.id, LifecycleAction.DEPLOY, INTERRUPTED)
            logger.warning(
                "interrupted_operation_recovered",
                project_id=project.id,
                status=project.status,
                auto_fix_status=project.auto_fix_status,
            )
        return len(stale)

    async def shutdown(self) -> None:
        """Cancel running tasks; each one records a failure state as it unwinds."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.poller.shutdown()

    async def _start(self, project_id: str, action: LifecycleAction) -> tuple[Project, asyncio.Task]:
        async with self._lock:
            project = await self.store.require_project(project_id)
            if self.is_busy(project_id):
                raise OperationInProgressError(
                    f"Another operation is already running for project {project_id}"
                )
            rule = check_transition(project, action)
            project = await self.store.update_project(project_id, **rule.in_progress)

            task = asyncio.create_task(
                self._run(project_id, action), name=f"{action.value}-{project_id}"
            )
            self._tasks[project_id] = task
            task.add_done_callback(lambda t, pid=project_id: self._forget(pid, t))

        logger.info("lifecycle_transition_started", project_id=project_id, action=action.value)
        return project, task

    def _forget(self, project_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(project_id) is task:
            del self._tasks[project_id]

    async def _run(self, project_id: str, action: LifecycleAction) -> None:
        bind_project_context(project_id, action=action.value)
        try:
            if action == LifecycleAction.RUN_QA:
                await self._run_qa(project_id)
            elif action == LifecycleAction.DEPLOY:
                await self._run_deploy(project_id)
            else:
                await self._run_autofix(project_id)
        except asyncio.CancelledError:
            logger.warning("lifecycle_task_cancelled")
            await self._write_failure(project_id, action, "Operation cancelled during shutdown")
            raise
        except Exception as e:
            logger.error(
                "lifecycle_task_crashed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await self._write_failure(project_id, action, f"{type(e).__name__}: {e}")

    async def _run_qa(self, project_id: str) -> None:
        project = await self.store.require_project(project_id)
        result = await self.qa.run(project)
        status = ProjectStatus.QA_PASSED if result.passed else ProjectStatus.QA_FAILED
        await self.store.update_project(project_id, status=status.value, qa_report=result.report)
        if result.logs:
            await self.store.append_log(project_id, "qa_logs", result.logs + "\n")
        logger.info("qa_finished", status=status.value)

    async def _run_deploy(self, project_id: str) -> None:
        project = await self.store.require_project(project_id)
        self.poller.cancel(project_id)
        outcome = await self.coordinator.deploy(project)
        await self._record_deploy(project_id, outcome)

    async def _record_deploy(self, project_id: str, outcome: DeployOutcome) -> None:
        if outcome.in_progress:
            # The poller owns the terminal status from here
            logger.info("deploy_handed_to_poller", provider=outcome.provider)
            return

        if outcome.success:
            await self.store.update_project(
                project_id,
                status=ProjectStatus.DEPLOYED.value,
                deployed_url=outcome.deployed_url,
                last_deploy_id=outcome.deploy_id,
                last_deploy_status=outcome.status,
                health_failures=0,
            )
            logger.info("deploy_succeeded", provider=outcome.provider, url=outcome.deployed_url)
            return

        await self.store.update_project(
            project_id,
            status=ProjectStatus.DEPLOY_FAILED.value,
            last_deploy_status=outcome.status or "failed",
        )
        logger.warning("deploy_failed", provider=outcome.provider, error=outcome.error)

    async def _run_autofix(self, project_id: str) -> None:
        project = await self.store.require_project(project_id)
        result = await self.autofix.repair(project)

        fields = {
            "auto_fix_status": result.status.value,
            "auto_fix_report": result.report,
            "ready_for_deploy": result.ready_for_deploy,
            "auto_fixed_at": datetime.now(UTC),
        }
        if result.env_vars is not None:
            fields["env_vars"] = result.env_vars
        await self.store.update_project(project_id, **fields)
        await self.store.append_log(
            project_id, "auto_fix_logs", "".join(f"{a}\n" for a in result.actions)
        )
        logger.info("autofix_finished", status=result.status.value)

    async def _write_failure(self, project_id: str, action: LifecycleAction, message: str) -> None:
        if action == LifecycleAction.RUN_QA:
            await self.store.update_project(
                project_id,
                status=ProjectStatus.QA_FAILED.value,
                qa_report=f"QA failed: {message}",
            )
        elif action == LifecycleAction.DEPLOY:
            await self.store.update_project(
                project_id,
                status=ProjectStatus.DEPLOY_FAILED.value,
                last_deploy_status="failed",
            )
            await DeployLog(self.store, project_id).error(f"Deploy failed: {message}")
        else:
            await self.store.update_project(
                project_id,
                auto_fix_status=AutoFixStatus.FAILED.value,
                auto_fix_report=f"Auto-fix failed: {message}",
                ready_for_deploy=False,
            )
