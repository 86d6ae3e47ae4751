"""Deterministic fixes for known error signatures."""

from pathlib import Path
import shutil

import structlog

from ..commands import CommandRunner
from .signatures import ErrorSignature, SignatureKind

logger = structlog.get_logger()

POSTCSS_CONFIGS = (
    "postcss.config.js",
    "postcss.config.cjs",
    "postcss.config.mjs",
    "postcss.config.ts",
    "postcss.config.json",
    ".postcssrc",
    ".postcssrc.json",
)
LOCKFILES = ("package-lock.json", "npm-shrinkwrap.json")


class Remediator:
    """Applies the remediation for a signature and describes what it did."""

    def __init__(self, runner: CommandRunner, install_timeout: float):
        self.runner = runner
        self.install_timeout = install_timeout

    async def apply(self, signature: ErrorSignature, folder: Path) -> str:
        logger.info(
            "remediation_started",
            kind=signature.kind.value,
            detail=signature.detail,
        )
        if signature.kind == SignatureKind.MISSING_MODULE:
            return await self._install_package(folder, signature.detail)
        if signature.kind == SignatureKind.PACKAGE_EXPORT:
            return await self._upgrade_package(folder, signature.detail)
        if signature.kind == SignatureKind.STYLESHEET_TOOLCHAIN:
            return self._disable_postcss(folder)
        if signature.kind == SignatureKind.LEGACY_CRYPTO:
            return await self._reinstall_clean(folder)
        raise ValueError(f"No remediation for {signature.kind}")

    async def _install_package(self, folder: Path, package: str | None) -> str:
        if not package:
            return "Missing module detected but no package name could be determined"
        result = await self.runner.run(f"npm install {package}", folder, self.install_timeout)
        if result.ok:
            return f"Installed missing dependency {package}"
        return f"Failed to install missing dependency {package}"

    async def _upgrade_package(self, folder: Path, package: str | None) -> str:
        if package:
            result = await self.runner.run(
                f"npm install {package}@latest", folder, self.install_timeout
            )
            if result.ok:
                return f"Upgraded {package} to latest to fix package export error"
            return f"Failed to upgrade {package}"
        result = await self.runner.run("npm install", folder, self.install_timeout)
        if result.ok:
            return "Reinstalled dependencies to fix package export error"
        return "Failed to reinstall dependencies"

    def _disable_postcss(self, folder: Path) -> str:
        disabled = []
        for name in POSTCSS_CONFIGS:
            config = folder / name
            if config.is_file():
                config.rename(config.with_name(f"{name}.disabled"))
                disabled.append(name)
        if not disabled:
            return "Stylesheet toolchain error detected but no PostCSS config found"
        return f"Disabled conflicting stylesheet config: {', '.join(disabled)}"

    async def _reinstall_clean(self, folder: Path) -> str:
        node_modules = folder / "node_modules"
        if node_modules.is_dir():
            shutil.rmtree(node_modules)
        for name in LOCKFILES:
            (folder / name).unlink(missing_ok=True)
        result = await self.runner.run("npm install", folder, self.install_timeout)
        if result.ok:
            return "Cleared node_modules and lockfile, reinstalled dependencies"
        return "Cleared node_modules and lockfile, but reinstall failed"
