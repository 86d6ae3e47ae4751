"""Object graph for one running service."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine
import structlog

from .autofix.ai_repair import AIFileRepairer
from .autofix.remediation import Remediator
from .autofix.repair_loop import BuildRepairLoop
from .autofix.service import AutoFixService
from .autofix.verification import TestRepairPass
from .clients import CodeRepairClient, RailwayClient, RenderClient, VercelClient
from .clients.llm import LLMFactory
from .commands import CommandRunner
from .config import Settings
from .database import create_engine, create_session_maker
from .deploy import DeploymentCoordinator
from .deploy.content_addressed import ContentAddressedDeployer
from .deploy.local import LocalProcessDeployer
from .deploy.managed import ManagedServiceDeployer
from .deploy.poller import DeployStatusPoller
from .env_sync import EnvSyncService
from .lifecycle import LifecycleOrchestrator
from .lifecycle.qa import QARunner
from .pull_requests import PullRequestService
from .storage import ProjectStore
from .tasks.health_monitor import SelfHealingMonitor

logger = structlog.get_logger()


@dataclass
class Container:
    settings: Settings
    engine: AsyncEngine
    store: ProjectStore
    pull_requests: PullRequestService
    env_sync: EnvSyncService
    local: LocalProcessDeployer
    poller: DeployStatusPoller
    orchestrator: LifecycleOrchestrator
    monitor: SelfHealingMonitor

    async def aclose(self) -> None:
        await self.monitor.stop()
        await self.orchestrator.shutdown()
        await self.local.stop_all()
        await self.engine.dispose()


def build_container(
    settings: Settings,
    runner: CommandRunner | None = None,
    repair_client: CodeRepairClient | None = None,
) -> Container:
    """Wire every component from settings.

    ``runner`` and ``repair_client`` can be injected; otherwise a real
    subprocess runner is used and the repair client is built when LLM
    credentials are configured.
    """
    runner = runner or CommandRunner()
    if repair_client is None and settings.llm_configured:
        repair_client = CodeRepairClient(
            LLMFactory.create_llm(settings), timeout=settings.llm_timeout_sec
        )

    engine = create_engine(settings.database_url)
    store = ProjectStore(create_session_maker(engine))

    client_options = {
        "timeout": settings.http_timeout_sec,
        "retry_policy": settings.http_retry_policy(),
    }
    vercel = (
        VercelClient(settings.vercel_token, team_id=settings.vercel_team_id, **client_options)
        if settings.vercel_token
        else None
    )
    render = (
        RenderClient(
            settings.render_api_token,
            owner_id=settings.render_owner_id,
            region=settings.render_region,
            **client_options,
        )
        if settings.render_api_token
        else None
    )
    railway = RailwayClient(settings.railway_token, **client_options) if settings.railway_token else None

    pull_requests = PullRequestService(store)
    env_sync = EnvSyncService(vercel=vercel, render=render, railway=railway)

    repairer = AIFileRepairer(repair_client)
    autofix = AutoFixService(
        runner=runner,
        build_loop=BuildRepairLoop(
            runner,
            Remediator(runner, settings.install_timeout_sec),
            repairer,
            build_timeout=settings.build_timeout_sec,
            max_cycles=settings.autofix_max_cycles,
        ),
        test_repair=TestRepairPass(runner, repairer, settings.test_timeout_sec),
        pull_requests=pull_requests,
        env_sync=env_sync,
        patches_dir=settings.patches_dir,
        install_timeout=settings.install_timeout_sec,
        auto_merge=settings.auto_merge_pull_requests,
    )

    poller = DeployStatusPoller(
        store,
        interval=settings.render_poll_interval_sec,
        max_attempts=settings.render_poll_max_attempts,
    )
    local = LocalProcessDeployer(
        runner,
        logs_dir=settings.process_logs_dir,
        host=settings.local_host,
        install_timeout=settings.install_timeout_sec,
        build_timeout=settings.build_timeout_sec,
        startup_grace=settings.local_startup_grace_sec,
    )
    coordinator = DeploymentCoordinator(
        store,
        local=local,
        content_addressed=ContentAddressedDeployer(vercel) if vercel else None,
        managed=ManagedServiceDeployer(render, store, poller) if render else None,
    )

    orchestrator = LifecycleOrchestrator(
        store,
        qa=QARunner(runner, repair_client, settings.test_timeout_sec),
        autofix=autofix,
        coordinator=coordinator,
        poller=poller,
    )
    monitor = SelfHealingMonitor(
        store,
        orchestrator,
        interval=settings.health_check_interval_sec,
        probe_timeout=settings.health_probe_timeout_sec,
        failure_threshold=settings.health_failure_threshold,
    )
    local.on_exit = monitor.notify_process_exit

    logger.info(
        "container_built",
        vercel=vercel is not None,
        render=render is not None,
        railway=railway is not None,
        llm=repair_client is not None,
    )
    return Container(
        settings=settings,
        engine=engine,
        store=store,
        pull_requests=pull_requests,
        env_sync=env_sync,
        local=local,
        poller=poller,
        orchestrator=orchestrator,
        monitor=monitor,
    )
