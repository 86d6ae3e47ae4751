"""Shared fixtures for autodeploy tests."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
import json
from pathlib import Path

import pytest
import pytest_asyncio

from autodeploy.commands import CommandResult
from autodeploy.config import Settings
from autodeploy.database import create_engine, create_schema, create_session_maker
from autodeploy.storage import ProjectStore


@dataclass
class RunnerCall:
    command: str
    cwd: Path
    env: dict[str, str] | None


@dataclass
class FakeRunner:
    """Scripted stand-in for ``CommandRunner``.

    ``script`` maps a command to the results it returns in order; the last
    result repeats once the list runs out. Unscripted commands succeed.
    """

    script: dict[str, list[CommandResult]] = field(default_factory=dict)
    calls: list[RunnerCall] = field(default_factory=list)
    side_effects: dict[str, object] = field(default_factory=dict)

    def on(self, command: str, *results: tuple[int, str]) -> "FakeRunner":
        self.script[command] = [
            CommandResult(command=command, returncode=code, output=output)
            for code, output in results
        ]
        return self

    async def run(self, command, cwd, timeout, env=None):
        self.calls.append(RunnerCall(command=command, cwd=Path(cwd), env=env))
        effect = self.side_effects.get(command)
        if effect is not None:
            effect(Path(cwd))
        results = self.script.get(command)
        if not results:
            return CommandResult(command=command, returncode=0, output="")
        if len(results) > 1:
            return results.pop(0)
        return results[0]

    @property
    def commands(self) -> list[str]:
        return [call.command for call in self.calls]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        workspace_root=tmp_path / "workspace",
        monitor_enabled=False,
        vercel_token=None,
        render_api_token=None,
        railway_token=None,
        openai_api_key=None,
        open_router_key=None,
        render_poll_interval_sec=0,
        render_poll_max_attempts=3,
        local_startup_grace_sec=0,
        http_retry_backoff_sec=0,
    )


@pytest_asyncio.fixture
async def store(settings: Settings) -> AsyncGenerator[ProjectStore, None]:
    engine = create_engine(settings.database_url)
    await create_schema(engine)
    yield ProjectStore(create_session_maker(engine))
    await engine.dispose()


def write_node_project(folder: Path, scripts: dict[str, str] | None = None, **files: str) -> Path:
    """Create a minimal npm project plus extra files keyed by relative path."""
    folder.mkdir(parents=True, exist_ok=True)
    package = {"name": folder.name, "version": "1.0.0", "scripts": scripts or {}}
    (folder / "package.json").write_text(json.dumps(package, indent=2))
    for name, content in files.items():
        path = folder / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return folder


@pytest.fixture
def node_project(tmp_path: Path):
    def _make(name: str = "app", scripts: dict[str, str] | None = None, **files: str) -> Path:
        return write_node_project(tmp_path / "normalized" / name, scripts, **files)

    return _make
