"""Structural readiness check per project type."""

from pathlib import Path

from shared.models import ProjectType

NODE_ENTRY_FILES = ("server.js", "app.js", "index.js", "main.js")


def check_ready_for_deploy(project_type: str | None, folder: Path) -> bool:
    """True when the folder holds the minimum files its project type needs.

    This is a file-existence assertion, not a build result.
    """
    if project_type == ProjectType.STATIC_WEB.value:
        return (folder / "index.html").is_file()
    if project_type == ProjectType.NODE_BACKEND.value:
        return (folder / "package.json").is_file() and any(
            (folder / name).is_file() for name in NODE_ENTRY_FILES
        )
    if project_type in (ProjectType.NEXTJS.value, ProjectType.REACT_SPA.value):
        return (folder / "package.json").is_file()
    return False
