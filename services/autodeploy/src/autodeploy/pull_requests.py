"""Diff engine and pull-request lifecycle for Auto-Fix change-sets.

A pull request records the difference between a project's normalized folder
and the staged copy Auto-Fix worked on. Merging copies the staged tree over the
normalized folder and removes deleted paths; closing only changes the status.
"""

from enum import Enum
from pathlib import Path
import shutil

from pydantic import BaseModel
import structlog

from shared.models import PullRequest, PullRequestStatus

from .errors import InvalidStateError, MissingArtifactError
from .files import iter_files, resolve_inside
from .storage import ProjectStore

logger = structlog.get_logger()

# Larger files and non-UTF-8 files are recorded with a placeholder
MAX_DIFF_FILE_BYTES = 100 * 1024
PLACEHOLDER = "[Binary or large file - not shown]"


class ChangeType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class FileDiff(BaseModel):
    """One file-level change; ``added`` has no ``before``, ``removed`` no ``after``."""

    file: str
    change: ChangeType
    before: str | None = None
    after: str | None = None

    def to_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def _display(data: bytes) -> str:
    if len(data) > MAX_DIFF_FILE_BYTES:
        return PLACEHOLDER
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return PLACEHOLDER


def compute_diff(old_folder: Path, new_folder: Path) -> list[FileDiff]:
    """File-level differences between two trees, ordered by path."""
    old_files = set(iter_files(old_folder)) if old_folder.is_dir() else set()
    new_files = set(iter_files(new_folder)) if new_folder.is_dir() else set()

    diffs = []
    for rel in sorted(old_files | new_files):
        name = rel.as_posix()
        if rel not in new_files:
            before = (old_folder / rel).read_bytes()
            diffs.append(FileDiff(file=name, change=ChangeType.REMOVED, before=_display(before)))
        elif rel not in old_files:
            after = (new_folder / rel).read_bytes()
            diffs.append(FileDiff(file=name, change=ChangeType.ADDED, after=_display(after)))
        else:
            before = (old_folder / rel).read_bytes()
            after = (new_folder / rel).read_bytes()
            if before != after:
                diffs.append(
                    FileDiff(
                        file=name,
                        change=ChangeType.MODIFIED,
                        before=_display(before),
                        after=_display(after),
                    )
                )
    return diffs


def pr_title(pr_number: int) -> str:
    return f"Auto-Fix Update (PR #{pr_number})"


class PullRequestService:
    """Creates, merges and closes Auto-Fix pull requests."""

    def __init__(self, store: ProjectStore):
        self.store = store

    async def create(
        self,
        project_id: str,
        base_folder: Path,
        staged_folder: Path,
        actions: list[str],
    ) -> PullRequest | None:
        """Record ``staged_folder`` as a PR against ``base_folder``.

        Returns None when the trees are identical; no PR number is consumed.
        """
        diffs = compute_diff(base_folder, staged_folder)
        if not diffs:
            logger.info("pull_request_skipped_no_changes", project_id=project_id)
            return None

        pr_number = await self.store.next_pr_number(project_id)
        return await self.store.create_pull_request(
            project_id=project_id,
            pr_number=pr_number,
            title=pr_title(pr_number),
            description="\n".join(actions),
            status=PullRequestStatus.OPEN.value,
            diff_json=[d.to_json() for d in diffs],
            patch_folder_path=str(staged_folder),
        )

    async def merge(self, pr_id: str) -> PullRequest:
        """Apply the staged tree to the project's normalized folder."""
        pr = await self.store.require_pull_request(pr_id)
        self._require_open(pr)
        project = await self.store.require_project(pr.project_id)

        if not project.normalized_folder_path:
            raise MissingArtifactError(f"Project {project.id} has no normalized folder")
        if not pr.patch_folder_path or not Path(pr.patch_folder_path).is_dir():
            raise MissingArtifactError(f"Patch folder for PR #{pr.pr_number} is missing")

        apply_patch(Path(pr.patch_folder_path), Path(project.normalized_folder_path), pr.diff_json)

        merged = await self.store.update_pull_request(pr.id, status=PullRequestStatus.MERGED.value)
        logger.info("pull_request_merged", project_id=pr.project_id, pr_number=pr.pr_number)
        return merged

    async def close(self, pr_id: str) -> PullRequest:
        """Discard a PR. The filesystem is left untouched."""
        pr = await self.store.require_pull_request(pr_id)
        self._require_open(pr)
        closed = await self.store.update_pull_request(pr.id, status=PullRequestStatus.CLOSED.value)
        logger.info("pull_request_closed", project_id=pr.project_id, pr_number=pr.pr_number)
        return closed

    @staticmethod
    def _require_open(pr: PullRequest) -> None:
        if pr.status != PullRequestStatus.OPEN.value:
            raise InvalidStateError(f"Pull request #{pr.pr_number} is already {pr.status}")


def apply_patch(patch_folder: Path, target_folder: Path, diff_json: list[dict]) -> None:
    """Copy every staged file into ``target_folder``, then delete removed paths."""
    target_folder.mkdir(parents=True, exist_ok=True)
    for rel in iter_files(patch_folder):
        destination = target_folder / rel
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(patch_folder / rel, destination)

    for entry in diff_json:
        if entry.get("change") == ChangeType.REMOVED.value:
            removed = resolve_inside(target_folder, entry["file"])
            removed.unlink(missing_ok=True)
