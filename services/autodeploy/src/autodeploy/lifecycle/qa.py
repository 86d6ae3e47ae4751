"""Quality verification before deploy."""

from dataclasses import dataclass
from pathlib import Path

import structlog

from shared.models import Project

from ..autofix.readiness import check_ready_for_deploy
from ..clients.repair import AnalysisReport, CodeRepairClient, RepairRequest, RepairTask
from ..commands import CommandRunner, resolve_project_commands
from ..errors import ExternalServiceError
from ..files import iter_files

logger = structlog.get_logger()

# Files whose content is shown to the analysis service, in priority order
KEY_FILES = (
    "package.json",
    "index.html",
    "server.js",
    "app.js",
    "index.js",
    "next.config.js",
    "vite.config.ts",
    "vite.config.js",
)
MAX_LISTED_FILES = 200
MAX_SAMPLE_CHARS = 12_000
MAX_TEST_OUTPUT_CHARS = 3000


@dataclass
class QAResult:
    passed: bool
    report: str
    logs: str = ""


def project_sample(folder: Path) -> str:
    """File listing plus the content of a few key files, capped in size."""
    files = [rel.as_posix() for rel in iter_files(folder)]
    parts = ["File tree:"]
    parts.extend(f"  {name}" for name in files[:MAX_LISTED_FILES])
    if len(files) > MAX_LISTED_FILES:
        parts.append(f"  ... {len(files) - MAX_LISTED_FILES} more files")

    budget = MAX_SAMPLE_CHARS
    for name in KEY_FILES:
        path = folder / name
        if budget <= 0 or not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8")[:budget]
        except UnicodeDecodeError:
            continue
        budget -= len(content)
        parts.append(f"\n--- {name} ---\n{content}")
    return "\n".join(parts)


class QARunner:
    """Readiness check, project tests and a structured AI review.

    The project passes only if all three pass. The AI review is skipped, and
    says so in the report, when no code-repair client is configured.
    """

    def __init__(
        self,
        runner: CommandRunner,
        repair_client: CodeRepairClient | None,
        test_timeout: float,
    ):
        self.runner = runner
        self.repair_client = repair_client
        self.test_timeout = test_timeout

    async def run(self, project: Project) -> QAResult:
        folder = Path(project.normalized_folder_path) if project.normalized_folder_path else None
        if folder is None or not folder.is_dir():
            return QAResult(
                passed=False,
                report=_render_report(["Normalized folder is missing; nothing to check."], False),
            )

        lines = []
        logs = []

        ready = check_ready_for_deploy(project.project_type, folder)
        lines.append(
            f"Readiness: {'PASS' if ready else 'FAIL'} (project type: {project.project_type or 'unknown'})"
        )

        tests_ok = True
        commands = resolve_project_commands(folder)
        if commands.test:
            result = await self.runner.run(commands.test, folder, self.test_timeout, env={"CI": "true"})
            tests_ok = result.ok
            logs.append(result.output[-MAX_TEST_OUTPUT_CHARS:])
            status = "PASS" if result.ok else f"FAIL (exit code {result.returncode})"
            lines.append(f"Tests: {status}")
        else:
            lines.append("Tests: SKIPPED (no test script)")

        analysis_ok, analysis_lines = await self._analyze(project, folder, lines)
        lines.extend(analysis_lines)

        passed = ready and tests_ok and analysis_ok
        logger.info(
            "qa_completed",
            project_id=project.id,
            passed=passed,
            ready=ready,
            tests_ok=tests_ok,
            analysis_ok=analysis_ok,
        )
        return QAResult(passed=passed, report=_render_report(lines, passed), logs="\n".join(logs))

    async def _analyze(
        self, project: Project, folder: Path, checks: list[str]
    ) -> tuple[bool, list[str]]:
        if self.repair_client is None:
            return True, ["Analysis: SKIPPED (no LLM credentials configured)"]

        request = RepairRequest(
            task=RepairTask.ANALYZE,
            file_path=project.name,
            error_or_findings="\n".join(checks),
            file_content=project_sample(folder),
        )
        try:
            report: AnalysisReport = await self.repair_client.analyze(request)
        except ExternalServiceError as e:
            return False, [f"Analysis: FAIL (service error: {e.message})"]

        lines = [f"Analysis: {report.verdict.upper()} - {report.summary}".rstrip(" -")]
        if report.findings:
            lines.append("Findings:")
            for finding in report.findings:
                location = f"{finding.file_path}: " if finding.file_path else ""
                lines.append(f"  - [{finding.severity}] {location}{finding.message}")
        return report.passed, lines


def _render_report(lines: list[str], passed: bool) -> str:
    return "\n".join(
        ["QA Report", "=========", "", *lines, "", f"Verdict: {'PASS' if passed else 'FAIL'}"]
    )
