"""Single-pass test repair and headless browser configuration."""

from pathlib import Path
import re

import structlog

from ..commands import CommandRunner
from ..errors import TestFailureError
from ..files import iter_files
from .ai_repair import AIFileRepairer

logger = structlog.get_logger()

_HEADLESS_FALSE = re.compile(r"(headless\s*:\s*)false")
_KARMA_CHROME = re.compile(r"(['\"])Chrome\1")
_SCRIPT_SUFFIXES = {".js", ".ts", ".mjs", ".cjs"}


class TestRepairPass:
    """Runs the test suite once and, on failure, repairs the file the trace names."""

    __test__ = False

    def __init__(self, runner: CommandRunner, repairer: AIFileRepairer, test_timeout: float):
        self.runner = runner
        self.repairer = repairer
        self.test_timeout = test_timeout

    async def _run_tests(self, folder: Path, command: str) -> None:
        result = await self.runner.run(command, folder, self.test_timeout, env={"CI": "true"})
        if not result.ok:
            raise TestFailureError(result.output, result.returncode)

    async def run(self, folder: Path, test_command: str | None) -> list[str]:
        if not test_command:
            return ["No test script declared; test repair skipped"]

        try:
            await self._run_tests(folder, test_command)
        except TestFailureError as e:
            logger.info("tests_failed_before_repair", returncode=e.returncode)
            return [await self.repairer.repair_from_error(folder, e.output, label="test")]
        return ["Tests passed"]


def configure_headless_tests(folder: Path) -> list[str]:
    """Rewrite browser test configs to run headless. No AI involved."""
    actions = []
    for rel in iter_files(folder):
        if rel.suffix not in _SCRIPT_SUFFIXES:
            continue
        path = folder / rel
        is_playwright = rel.name.startswith("playwright.config")
        is_karma = rel.name.startswith("karma.conf")
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue

        updated = content
        if is_karma:
            updated = _KARMA_CHROME.sub(r"\1ChromeHeadless\1", updated)
        if is_playwright or "puppeteer" in updated:
            updated = _HEADLESS_FALSE.sub(r"\1true", updated)

        if updated != content:
            path.write_text(updated, encoding="utf-8")
            actions.append(f"Configured headless browser tests in {rel.as_posix()}")

    return actions
