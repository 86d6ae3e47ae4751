"""Classification of build output into known error signatures.

The table is ordered and the first match wins. Classification is pure text
processing so it can be tested without running a build.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
import re


class SignatureKind(str, Enum):
    MISSING_MODULE = "missing_module"
    PACKAGE_EXPORT = "package_export"
    STYLESHEET_TOOLCHAIN = "stylesheet_toolchain"
    LEGACY_CRYPTO = "legacy_crypto"


@dataclass(frozen=True)
class ErrorSignature:
    """A recognised failure and the detail needed to remediate it.

    ``detail`` is the package name for MISSING_MODULE, the offending package
    (if named) for PACKAGE_EXPORT, and None otherwise.
    """

    kind: SignatureKind
    detail: str | None = None


_MISSING_MODULE_PATTERNS = (
    re.compile(r"Cannot find module ['\"]([^'\"]+)['\"]"),
    re.compile(r"Cannot find package ['\"]([^'\"]+)['\"]"),
    re.compile(r"Module not found: (?:Error: )?Can't resolve ['\"]([^'\"]+)['\"]"),
    re.compile(r"Failed to resolve import ['\"]([^'\"]+)['\"]"),
)

_PACKAGE_EXPORT_PATTERNS = (
    re.compile(r"ERR_PACKAGE_PATH_NOT_EXPORTED"),
    re.compile(r"ERR_REQUIRE_ESM"),
    re.compile(r"does not provide an export named"),
)
_NODE_MODULES_PACKAGE = re.compile(r"node_modules[/\\]((?:@[\w.-]+[/\\])?[\w.-]+)")

_STYLESHEET_PATTERNS = (
    re.compile(r"Loading PostCSS Plugin failed", re.IGNORECASE),
    re.compile(r"PostCSS plugin", re.IGNORECASE),
    re.compile(r"postcss\.config\.\w+"),
)

_LEGACY_CRYPTO_PATTERNS = (
    re.compile(r"ERR_OSSL_EVP_UNSUPPORTED"),
    re.compile(r"digital envelope routines::unsupported"),
)


def package_name(specifier: str) -> str | None:
    """Reduce an import specifier to an installable package name.

    Relative and absolute paths are not packages; ``node:`` builtins are not
    installable either.
    """
    if specifier.startswith((".", "/", "node:")) or not specifier:
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2]) if len(parts) >= 2 else None
    return parts[0]


def _match_missing_module(text: str) -> ErrorSignature | None:
    for pattern in _MISSING_MODULE_PATTERNS:
        for match in pattern.finditer(text):
            name = package_name(match.group(1))
            if name:
                return ErrorSignature(SignatureKind.MISSING_MODULE, name)
    return None


def _match_package_export(text: str) -> ErrorSignature | None:
    if not any(p.search(text) for p in _PACKAGE_EXPORT_PATTERNS):
        return None
    package = _NODE_MODULES_PACKAGE.search(text)
    return ErrorSignature(
        SignatureKind.PACKAGE_EXPORT,
        package.group(1).replace("\\", "/") if package else None,
    )


def _match_stylesheet(text: str) -> ErrorSignature | None:
    if any(p.search(text) for p in _STYLESHEET_PATTERNS):
        return ErrorSignature(SignatureKind.STYLESHEET_TOOLCHAIN)
    return None


def _match_legacy_crypto(text: str) -> ErrorSignature | None:
    if any(p.search(text) for p in _LEGACY_CRYPTO_PATTERNS):
        return ErrorSignature(SignatureKind.LEGACY_CRYPTO)
    return None


SIGNATURE_MATCHERS: tuple[Callable[[str], ErrorSignature | None], ...] = (
    _match_missing_module,
    _match_package_export,
    _match_stylesheet,
    _match_legacy_crypto,
)


def classify_error(text: str) -> ErrorSignature | None:
    """Return the first known signature found in build output, or None."""
    for matcher in SIGNATURE_MATCHERS:
        signature = matcher(text)
        if signature is not None:
            return signature
    return None
