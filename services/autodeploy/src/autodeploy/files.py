"""Filesystem helpers shared by Auto-Fix, the diff engine and deployers."""

from collections.abc import Iterator
from pathlib import Path
import shutil

# Dependency, VCS and build-cache folders never take part in diffs, copies or uploads
EXCLUDED_DIRS = frozenset({"node_modules", ".git", ".next"})


def iter_files(root: Path) -> Iterator[Path]:
    """Yield every regular file under ``root`` as a path relative to it, sorted."""
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root)
        if any(part in EXCLUDED_DIRS for part in rel.parts):
            continue
        if path.is_file() and not path.is_symlink():
            yield rel


def copy_tree(source: Path, destination: Path) -> None:
    """Copy a project tree without its excluded folders."""
    shutil.copytree(
        source,
        destination,
        ignore=shutil.ignore_patterns(*EXCLUDED_DIRS),
        symlinks=True,
    )


def resolve_inside(root: Path, relative: str) -> Path:
    """Join ``relative`` onto ``root``, refusing paths that escape it."""
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root.resolve()):
        raise ValueError(f"Path escapes project folder: {relative}")
    return candidate
