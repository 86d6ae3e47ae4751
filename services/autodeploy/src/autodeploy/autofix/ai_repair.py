"""AI-assisted repair of a single file named in an error trace."""

from pathlib import Path
import re

import structlog

from ..clients.repair import CodeRepairClient, RepairRequest, RepairTask
from ..errors import ExternalServiceError
from ..files import EXCLUDED_DIRS

logger = structlog.get_logger()

_SOURCE_PATH = re.compile(
    r"((?:[A-Za-z]:)?[\w@./\\-]+\.(?:tsx|ts|jsx|js|mjs|cjs|json|vue|svelte))(?=[:(\s'\"]|$)",
    re.MULTILINE,
)


def extract_file_path(error_text: str, folder: Path) -> str | None:
    """Return the first path in ``error_text`` that names a project file on disk.

    Absolute paths inside ``folder`` are made relative; paths inside dependency
    folders are skipped since rewriting them would not survive a reinstall.
    """
    root = folder.resolve()
    for match in _SOURCE_PATH.finditer(error_text):
        raw = match.group(1).replace("\\", "/")
        candidate = Path(raw)
        if candidate.is_absolute():
            try:
                candidate = candidate.resolve().relative_to(root)
            except ValueError:
                continue
        rel = Path(*[p for p in candidate.parts if p not in (".", "")])
        if not rel.parts or any(part in EXCLUDED_DIRS or part == ".." for part in rel.parts):
            continue
        if (root / rel).is_file():
            return rel.as_posix()
    return None


class AIFileRepairer:
    """Sends one file plus its error to the code-repair service and writes the result."""

    def __init__(self, client: CodeRepairClient | None):
        self.client = client

    async def repair_from_error(self, folder: Path, error_text: str, label: str = "build") -> str:
        """Attempt one repair and return the action log entry describing it."""
        file_path = extract_file_path(error_text, folder)
        if file_path is None:
            return f"Detected {label} errors but could not identify file to fix"

        if self.client is None:
            return f"AI code repair unavailable (no LLM credentials); {file_path} left unchanged"

        target = folder / file_path
        try:
            content = target.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return f"Skipped AI repair of {file_path}: not a text file"

        try:
            fixed = await self.client.repair(
                RepairRequest(
                    task=RepairTask.REPAIR,
                    file_path=file_path,
                    error_or_findings=error_text,
                    file_content=content,
                )
            )
        except ExternalServiceError as e:
            logger.warning("ai_repair_failed", file_path=file_path, error=str(e))
            return f"Attempted AI code repair of {file_path} but failed: {e.message}"

        target.write_text(fixed, encoding="utf-8")
        logger.info("ai_repair_applied", file_path=file_path, label=label)
        return f"Repaired {label} error in {file_path} with AI code repair"
