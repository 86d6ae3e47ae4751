"""Bounded build -> diagnose -> patch loop."""

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ..commands import CommandRunner
from ..errors import BuildError
from .ai_repair import AIFileRepairer
from .remediation import Remediator
from .signatures import classify_error

logger = structlog.get_logger()


@dataclass
class BuildLoopResult:
    success: bool
    cycles: int
    actions: list[str] = field(default_factory=list)
    last_output: str = ""


class BuildRepairLoop:
    """Repairs a failing build, at most ``max_cycles`` times.

    A cycle is: diagnose the last failure, apply one fix, rebuild. The first
    build is not a cycle, so a run makes at most ``max_cycles + 1`` builds and
    ``max_cycles`` fixes. Known signatures are tried before the code-repair
    service.
    """

    def __init__(
        self,
        runner: CommandRunner,
        remediator: Remediator,
        repairer: AIFileRepairer,
        build_timeout: float,
        max_cycles: int = 3,
    ):
        self.runner = runner
        self.remediator = remediator
        self.repairer = repairer
        self.build_timeout = build_timeout
        self.max_cycles = max_cycles

    async def _build(self, folder: Path, command: str) -> None:
        result = await self.runner.run(command, folder, self.build_timeout)
        if not result.ok:
            raise BuildError(result.output, result.returncode)

    async def run(self, folder: Path, build_command: str | None) -> BuildLoopResult:
        if not build_command:
            return BuildLoopResult(success=True, cycles=0, actions=["No build step declared"])

        actions: list[str] = []
        try:
            await self._build(folder, build_command)
        except BuildError as e:
            failure = e
        else:
            actions.append("Build succeeded without changes")
            return BuildLoopResult(success=True, cycles=0, actions=actions)

        for cycle in range(1, self.max_cycles + 1):
            signature = classify_error(failure.output)
            if signature is not None:
                action = await self.remediator.apply(signature, folder)
            else:
                action = await self.repairer.repair_from_error(folder, failure.output)
            actions.append(action)
            logger.info(
                "build_repair_cycle",
                cycle=cycle,
                signature=signature.kind.value if signature else None,
                action=action,
            )

            try:
                await self._build(folder, build_command)
            except BuildError as e:
                failure = e
                continue

            actions.append(f"Build succeeded after {cycle} repair cycle(s)")
            return BuildLoopResult(success=True, cycles=cycle, actions=actions)

        actions.append(f"Build still failing after {self.max_cycles} repair cycles; giving up")
        logger.warning("build_repair_exhausted", cycles=self.max_cycles)
        return BuildLoopResult(
            success=False,
            cycles=self.max_cycles,
            actions=actions,
            last_output=failure.output,
        )
