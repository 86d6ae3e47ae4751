"""Auto-Fix pass over one project.

The pass works on a staged copy of the normalized folder so a failed or
unwanted repair never touches the code the deployers read. A successful pass
that changed files becomes a pull request.
"""

from dataclasses import dataclass, field
from pathlib import Path
import shutil
import uuid

import structlog

from shared.models import AutoFixStatus, Project, PullRequest

from ..commands import CommandRunner, resolve_project_commands
from ..env_sync import EnvSyncService
from ..errors import InvalidStateError, MissingArtifactError
from ..files import copy_tree
from ..pull_requests import PullRequestService
from .env_discovery import discover_env_vars, merge_env_vars, write_env_example
from .project_fixes import apply_project_type_fixes
from .readiness import check_ready_for_deploy
from .repair_loop import BuildRepairLoop
from .verification import TestRepairPass, configure_headless_tests

logger = structlog.get_logger()


@dataclass
class AutoFixResult:
    status: AutoFixStatus
    report: str
    ready_for_deploy: bool
    actions: list[str] = field(default_factory=list)
    # Merged env vars when discovery found new keys, else None
    env_vars: dict | None = None
    pull_request: PullRequest | None = None


def build_report(
    project_type: str,
    actions: list[str],
    ready_for_deploy: bool,
    status: AutoFixStatus,
) -> str:
    lines = [
        "Auto-fix Report",
        "===============",
        "",
        f"Project type: {project_type}",
        f"Status: {status.value}",
        "",
        "Actions taken:",
    ]
    lines.extend(f"  - {action}" for action in actions)
    verdict = "ready" if ready_for_deploy else "NOT ready"
    lines.extend(["", f"Result: Project is {verdict} for deployment."])
    return "\n".join(lines)


class AutoFixService:
    def __init__(
        self,
        runner: CommandRunner,
        build_loop: BuildRepairLoop,
        test_repair: TestRepairPass,
        pull_requests: PullRequestService,
        env_sync: EnvSyncService,
        patches_dir: Path,
        install_timeout: float,
        auto_merge: bool = True,
    ):
        self.runner = runner
        self.build_loop = build_loop
        self.test_repair = test_repair
        self.pull_requests = pull_requests
        self.env_sync = env_sync
        self.patches_dir = patches_dir
        self.install_timeout = install_timeout
        self.auto_merge = auto_merge

    def _failed(self, project: Project, actions: list[str], message: str) -> AutoFixResult:
        actions.append(message)
        report = build_report(
            project.project_type or "unknown", actions, False, AutoFixStatus.FAILED
        )
        return AutoFixResult(
            status=AutoFixStatus.FAILED,
            report=report,
            ready_for_deploy=False,
            actions=actions,
        )

    async def repair(self, project: Project) -> AutoFixResult:
        actions: list[str] = []
        try:
            source = self._require_folder(project)
        except MissingArtifactError as e:
            return self._failed(project, actions, str(e))

        staged = self.patches_dir / project.id / uuid.uuid4().hex
        try:
            staged.parent.mkdir(parents=True, exist_ok=True)
            copy_tree(source, staged)
            return await self._repair_staged(project, source, staged, actions)
        except (OSError, MissingArtifactError, InvalidStateError) as e:
            logger.error(
                "autofix_aborted",
                project_id=project.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            _discard(staged)
            return self._failed(project, actions, f"Auto-fix failed: {e}")

    @staticmethod
    def _require_folder(project: Project) -> Path:
        if not project.normalized_folder_path:
            raise MissingArtifactError("No normalized folder path found. Run normalization first.")
        folder = Path(project.normalized_folder_path)
        if not folder.is_dir():
            raise MissingArtifactError(f"Normalized folder does not exist: {folder}")
        return folder

    async def _repair_staged(
        self,
        project: Project,
        source: Path,
        staged: Path,
        actions: list[str],
    ) -> AutoFixResult:
        project_type = project.project_type or "unknown"
        actions.extend(apply_project_type_fixes(staged, project.project_type, project.name))

        commands = resolve_project_commands(staged)
        if commands.install:
            install = await self.runner.run(commands.install, staged, self.install_timeout)
            if install.ok:
                actions.append("Installed dependencies")
            else:
                actions.append(f"Dependency install failed (exit code {install.returncode})")

        build = await self.build_loop.run(staged, commands.build)
        actions.extend(build.actions)

        actions.extend(await self.test_repair.run(staged, commands.test))
        actions.extend(configure_headless_tests(staged))

        env_vars = await self._discover_env(project, staged, actions)

        ready = check_ready_for_deploy(project.project_type, staged)
        status = AutoFixStatus.SUCCESS if build.success else AutoFixStatus.FAILED

        pull_request = None
        if status == AutoFixStatus.SUCCESS:
            pull_request = await self._record_changes(project, source, staged, actions)
        else:
            _discard(staged)

        logger.info(
            "autofix_completed",
            project_id=project.id,
            status=status.value,
            cycles=build.cycles,
            ready_for_deploy=ready,
            pr_number=pull_request.pr_number if pull_request else None,
        )
        return AutoFixResult(
            status=status,
            report=build_report(project_type, actions, ready, status),
            ready_for_deploy=ready,
            actions=actions,
            env_vars=env_vars,
            pull_request=pull_request,
        )

    async def _discover_env(self, project: Project, staged: Path, actions: list[str]) -> dict | None:
        discovered = discover_env_vars(staged)
        example_action = write_env_example(staged, discovered)
        if example_action:
            actions.append(example_action)

        merged, added = merge_env_vars(project.env_vars, discovered)
        if not added:
            return None

        actions.append(f"Discovered {len(added)} environment variables: {', '.join(added)}")
        warnings = await self.env_sync.sync(project, merged)
        actions.extend(f"Warning: {w}" for w in warnings)
        return merged

    async def _record_changes(
        self,
        project: Project,
        source: Path,
        staged: Path,
        actions: list[str],
    ) -> PullRequest | None:
        pull_request = await self.pull_requests.create(project.id, source, staged, list(actions))
        if pull_request is None:
            _discard(staged)
            actions.append("No file changes to propose")
            return None

        actions.append(f"Opened {pull_request.title}")
        if self.auto_merge:
            pull_request = await self.pull_requests.merge(pull_request.id)
            actions.append(f"Merged PR #{pull_request.pr_number} into the project")
        return pull_request


def _discard(staged: Path) -> None:
    if not staged.exists():
        return
    try:
        shutil.rmtree(staged)
    except OSError as e:
        logger.warning("staged_folder_cleanup_failed", path=str(staged), error=str(e))
