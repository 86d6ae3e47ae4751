"""Subprocess execution and per-project command discovery.

Every build, test, install and start command goes through ``CommandRunner`` so
the Auto-Fix loop, QA and the local deployer can be exercised in tests with a
fake runner instead of real ``npm`` processes.
"""

import asyncio
from dataclasses import dataclass
import json
import os
from pathlib import Path
import shlex

import structlog

logger = structlog.get_logger()

# Output kept per command; enough for error classification and reports
MAX_OUTPUT_CHARS = 20_000

# What ``npm init`` writes when a project has no tests
NPM_DEFAULT_TEST_SCRIPT = 'echo "Error: no test specified" && exit 1'


@dataclass
class CommandResult:
    """Outcome of one subprocess run."""

    command: str
    returncode: int | None
    output: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


class CommandRunner:
    """Runs shell-free commands with a timeout, capturing stdout and stderr together."""

    async def run(
        self,
        command: str,
        cwd: Path,
        timeout: float,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        args = shlex.split(command)
        logger.debug("command_started", command=command, cwd=str(cwd), timeout=timeout)

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env={**os.environ, **(env or {})},
            )
        except OSError as e:
            logger.warning("command_spawn_failed", command=command, error=str(e))
            return CommandResult(command=command, returncode=127, output=str(e))

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError:
            process.kill()
            stdout, _ = await process.communicate()
            output = _decode(stdout)
            logger.warning("command_timeout", command=command, timeout=timeout)
            return CommandResult(
                command=command,
                returncode=None,
                output=f"{output}\nCommand timed out after {timeout}s",
                timed_out=True,
            )

        result = CommandResult(
            command=command,
            returncode=process.returncode,
            output=_decode(stdout),
        )
        logger.info(
            "command_finished",
            command=command,
            returncode=result.returncode,
            output_length=len(result.output),
        )
        return result


def _decode(data: bytes | None) -> str:
    text = (data or b"").decode(errors="replace")
    if len(text) > MAX_OUTPUT_CHARS:
        return text[-MAX_OUTPUT_CHARS:]
    return text


@dataclass
class ProjectCommands:
    """Commands a project declares, or None when it declares none."""

    install: str | None = None
    build: str | None = None
    test: str | None = None
    start: str | None = None


def read_package_json(folder: Path) -> dict | None:
    package_json = folder / "package.json"
    if not package_json.is_file():
        return None
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("package_json_unreadable", path=str(package_json), error=str(e))
        return None
    return data if isinstance(data, dict) else None


def write_package_json(folder: Path, data: dict) -> None:
    (folder / "package.json").write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def resolve_project_commands(folder: Path) -> ProjectCommands:
    """Derive install/build/test/start commands from the project's manifest."""
    package = read_package_json(folder)
    if package is not None:
        scripts = package.get("scripts") or {}
        test_script = scripts.get("test")
        return ProjectCommands(
            install="npm install",
            build="npm run build" if scripts.get("build") else None,
            test="npm test" if test_script and test_script != NPM_DEFAULT_TEST_SCRIPT else None,
            start="npm start" if scripts.get("start") else None,
        )

    if (folder / "requirements.txt").is_file():
        return ProjectCommands(install="pip install -r requirements.txt")

    return ProjectCommands()
