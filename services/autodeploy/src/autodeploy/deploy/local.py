"""Local process fallback: run the project on this host."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
import os
from pathlib import Path
import shlex
import socket
import sys

import structlog

from shared.models import Project

from ..autofix.env_discovery import env_values
from ..commands import CommandRunner, resolve_project_commands
from .base import DeployOutcome
from .deploy_log import DeployLog

logger = structlog.get_logger()

PROVIDER = "local"
LOG_TAIL_CHARS = 2000

ExitHandler = Callable[[str, int | None], Awaitable[None]]


def find_free_port(host: str = "127.0.0.1") -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


@dataclass
class LocalProcess:
    """A project process started by this service."""

    project_id: str
    process: asyncio.subprocess.Process
    port: int
    log_path: Path
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    stop_requested: bool = False
    watcher: asyncio.Task | None = None

    @property
    def is_alive(self) -> bool:
        return self.process.returncode is None


class LocalProcessDeployer:
    """Installs, builds and starts a project as a supervised child process.

    One process per project; deploying again stops the previous one first.
    When a process exits without being asked to, ``on_exit`` is awaited so the
    monitor can treat it as a failed probe.
    """

    def __init__(
        self,
        runner: CommandRunner,
        logs_dir: Path,
        host: str = "localhost",
        install_timeout: float = 600,
        build_timeout: float = 300,
        startup_grace: float = 3.0,
    ):
        self.runner = runner
        self.logs_dir = logs_dir
        self.host = host
        self.install_timeout = install_timeout
        self.build_timeout = build_timeout
        self.startup_grace = startup_grace
        self.on_exit: ExitHandler | None = None
        self._processes: dict[str, LocalProcess] = {}

    def get(self, project_id: str) -> LocalProcess | None:
        return self._processes.get(project_id)

    def log_path(self, project_id: str) -> Path:
        return self.logs_dir / f"{project_id}.log"

    async def deploy(self, project: Project, folder: Path, log: DeployLog) -> DeployOutcome:
        await self.stop(project.id)

        commands = resolve_project_commands(folder)
        env = {**env_values(project.env_vars)}

        if commands.install:
            await log.info(f"Running {commands.install}")
            result = await self.runner.run(commands.install, folder, self.install_timeout, env=env)
            if not result.ok:
                await log.error(f"Install failed: {result.output[-LOG_TAIL_CHARS:]}")
                return DeployOutcome.failed(PROVIDER, "Dependency install failed")

        if commands.build:
            await log.info(f"Running {commands.build}")
            result = await self.runner.run(commands.build, folder, self.build_timeout, env=env)
            if not result.ok:
                await log.error(f"Build failed: {result.output[-LOG_TAIL_CHARS:]}")
                return DeployOutcome.failed(PROVIDER, "Build failed")

        port = find_free_port()
        start_command = commands.start
        if start_command is None and (folder / "index.html").is_file():
            start_command = f"{shlex.quote(sys.executable)} -m http.server {port}"
        if start_command is None:
            await log.error("No start command and no index.html; nothing to run")
            return DeployOutcome.failed(PROVIDER, "No start command")

        env["PORT"] = str(port)
        handle = await self._spawn(project.id, start_command, folder, port, env)
        await log.info(f"Started `{start_command}` (pid {handle.process.pid}) on port {port}")

        await asyncio.sleep(self.startup_grace)
        if not handle.is_alive:
            tail = self._log_tail(handle.log_path)
            await log.error(f"Process exited during startup (code {handle.process.returncode}): {tail}")
            return DeployOutcome.failed(PROVIDER, "Process exited during startup")

        url = f"http://{self.host}:{port}"
        await log.info(f"Local deployment live at {url}")
        return DeployOutcome(
            success=True,
            provider=PROVIDER,
            deployed_url=url,
            deploy_id=f"local-{handle.process.pid}",
            status="running",
        )

    async def _spawn(
        self, project_id: str, command: str, folder: Path, port: int, env: dict[str, str]
    ) -> LocalProcess:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.log_path(project_id)
        with log_path.open("ab") as log_file:
            process = await asyncio.create_subprocess_exec(
                *shlex.split(command),
                cwd=str(folder),
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
                env={**os.environ, **env},
            )

        handle = LocalProcess(project_id=project_id, process=process, port=port, log_path=log_path)
        handle.watcher = asyncio.create_task(self._watch(handle), name=f"local-watch-{project_id}")
        self._processes[project_id] = handle
        logger.info("local_process_started", project_id=project_id, pid=process.pid, port=port)
        return handle

    async def _watch(self, handle: LocalProcess) -> None:
        returncode = await handle.process.wait()
        if self._processes.get(handle.project_id) is handle:
            del self._processes[handle.project_id]

        if handle.stop_requested:
            logger.info("local_process_stopped", project_id=handle.project_id, returncode=returncode)
            return

        logger.warning("local_process_exited", project_id=handle.project_id, returncode=returncode)
        if self.on_exit is not None:
            try:
                await self.on_exit(handle.project_id, returncode)
            except Exception as e:
                logger.error(
                    "local_exit_handler_failed",
                    project_id=handle.project_id,
                    error=str(e),
                    exc_info=True,
                )

    async def stop(self, project_id: str, timeout: float = 5.0) -> bool:
        """Terminate the project's process; kill it if it ignores SIGTERM."""
        handle = self._processes.pop(project_id, None)
        if handle is None:
            return False

        handle.stop_requested = True
        if handle.is_alive:
            handle.process.terminate()
            try:
                await asyncio.wait_for(handle.process.wait(), timeout=timeout)
            except TimeoutError:
                logger.warning("local_process_kill", project_id=project_id)
                handle.process.kill()
                await handle.process.wait()
        if handle.watcher is not None:
            await asyncio.gather(handle.watcher, return_exceptions=True)
        return True

    async def stop_all(self) -> None:
        for project_id in list(self._processes):
            await self.stop(project_id)

    @staticmethod
    def _log_tail(path: Path) -> str:
        try:
            return path.read_text(errors="replace")[-LOG_TAIL_CHARS:]
        except OSError:
            return ""
