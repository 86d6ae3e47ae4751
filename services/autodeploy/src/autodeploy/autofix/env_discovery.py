"""Discovery of environment variables referenced by source code."""

from pathlib import Path
import re

from ..files import iter_files

SOURCE_SUFFIXES = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte", ".py"}

ENV_PATTERNS = (
    re.compile(r"process\.env\.([A-Z_][A-Z0-9_]*)"),
    re.compile(r"process\.env\[\s*['\"]([A-Z_][A-Z0-9_]*)['\"]\s*\]"),
    re.compile(r"import\.meta\.env\.([A-Z_][A-Z0-9_]*)"),
    re.compile(r"os\.environ\[\s*['\"]([A-Z_][A-Z0-9_]*)['\"]\s*\]"),
    re.compile(r"os\.environ\.get\(\s*['\"]([A-Z_][A-Z0-9_]*)['\"]"),
    re.compile(r"os\.getenv\(\s*['\"]([A-Z_][A-Z0-9_]*)['\"]"),
)

IGNORED_VARS = frozenset({"NODE_ENV"})
SECRET_MARKERS = ("KEY", "SECRET", "TOKEN", "PASSWORD", "PASS", "PRIVATE", "CREDENTIAL", "DATABASE_URL")


def is_secret_name(name: str) -> bool:
    return any(marker in name for marker in SECRET_MARKERS)


def discover_env_vars(folder: Path) -> list[str]:
    """Return the sorted set of variable names referenced under ``folder``."""
    found: set[str] = set()
    for rel in iter_files(folder):
        if rel.suffix not in SOURCE_SUFFIXES:
            continue
        try:
            content = (folder / rel).read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue
        for pattern in ENV_PATTERNS:
            found.update(pattern.findall(content))
    return sorted(found - IGNORED_VARS)


def merge_env_vars(existing: dict | None, discovered: list[str]) -> tuple[dict, list[str]]:
    """Add discovered names with empty values; existing entries are never overwritten."""
    merged = dict(existing or {})
    added = []
    for name in discovered:
        if name not in merged:
            merged[name] = {"value": "", "is_secret": is_secret_name(name)}
            added.append(name)
    return merged, added


def write_env_example(folder: Path, names: list[str]) -> str | None:
    """Create ``.env.example`` listing ``names``; leaves an existing file alone."""
    env_example = folder / ".env.example"
    if env_example.exists():
        return ".env.example already exists"
    if not names:
        return None
    env_example.write_text("".join(f"{name}=\n" for name in names), encoding="utf-8")
    return f"Generated .env.example with {len(names)} variables"


def env_values(env_vars: dict | None) -> dict[str, str]:
    """Flatten ``{KEY: {value, is_secret}}`` into ``{KEY: value}``."""
    return {key: str((entry or {}).get("value", "")) for key, entry in (env_vars or {}).items()}
