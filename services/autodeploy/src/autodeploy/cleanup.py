"""Removal of a deleted project's files."""

from pathlib import Path
import shutil

import structlog

from shared.models import Project

from .config import Settings

logger = structlog.get_logger()

# Folders the upload/normalization collaborators create per project
WORKSPACE_PROJECT_DIRS = ("uploads", "normalized", "zip-analysis")


def project_artifact_paths(settings: Settings, project: Project) -> list[Path]:
    paths = [settings.patches_dir / project.id, settings.process_logs_dir / f"{project.id}.log"]
    paths.extend(settings.workspace_root / name / project.id for name in WORKSPACE_PROJECT_DIRS)
    if project.normalized_folder_path:
        paths.append(Path(project.normalized_folder_path))
    return paths


def remove_project_artifacts(settings: Settings, project: Project) -> list[str]:
    """Delete everything the project left on disk; failures are logged only.

    Paths outside the workspace root are never removed.
    """
    root = settings.workspace_root.resolve()
    removed = []
    for path in project_artifact_paths(settings, project):
        resolved = path.resolve()
        if not resolved.is_relative_to(root):
            logger.warning("cleanup_skipped_outside_workspace", project_id=project.id, path=str(path))
            continue
        if not resolved.exists():
            continue
        try:
            if resolved.is_dir():
                shutil.rmtree(resolved)
            else:
                resolved.unlink()
        except OSError as e:
            logger.warning("cleanup_failed", project_id=project.id, path=str(path), error=str(e))
            continue
        removed.append(str(path))

    logger.info("project_artifacts_removed", project_id=project.id, removed=removed)
    return removed
