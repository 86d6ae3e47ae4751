import pytest

from autodeploy.autofix.signatures import (
    ErrorSignature,
    SignatureKind,
    classify_error,
    package_name,
)


class TestPackageName:
    @pytest.mark.parametrize(
        ("specifier", "expected"),
        [
            ("axios", "axios"),
            ("lodash/merge", "lodash"),
            ("@tanstack/react-query", "@tanstack/react-query"),
            ("@tanstack/react-query/devtools", "@tanstack/react-query"),
            ("./utils", None),
            ("../lib/api", None),
            ("/abs/path", None),
            ("node:fs", None),
            ("@scope", None),
            ("", None),
        ],
    )
    def test_package_name(self, specifier, expected):
        assert package_name(specifier) == expected


class TestClassifyError:
    def test_missing_module(self):
        output = "Error: Cannot find module 'axios'\nRequire stack:\n- /app/src/api.js"
        assert classify_error(output) == ErrorSignature(SignatureKind.MISSING_MODULE, "axios")

    def test_webpack_cannot_resolve(self):
        output = "Module not found: Error: Can't resolve 'react-icons/fa' in '/app/src'"
        assert classify_error(output) == ErrorSignature(
            SignatureKind.MISSING_MODULE, "react-icons"
        )

    def test_relative_import_is_not_a_missing_package(self):
        assert classify_error("Module not found: Can't resolve './Header'") is None

    def test_package_export_names_offending_package(self):
        output = (
            "Error [ERR_PACKAGE_PATH_NOT_EXPORTED]: Package subpath './lib' is not defined "
            "by \"exports\" in /app/node_modules/@scope/widget/package.json"
        )
        assert classify_error(output) == ErrorSignature(
            SignatureKind.PACKAGE_EXPORT, "@scope/widget"
        )

    def test_package_export_without_package(self):
        signature = classify_error("Error [ERR_REQUIRE_ESM]: require() of ES Module")
        assert signature == ErrorSignature(SignatureKind.PACKAGE_EXPORT, None)

    def test_stylesheet_toolchain(self):
        output = "Error: Loading PostCSS Plugin failed: Cannot find 'tailwindcss'"
        assert classify_error(output).kind == SignatureKind.STYLESHEET_TOOLCHAIN

    def test_legacy_crypto(self):
        output = "Error: error:0308010C:digital envelope routines::unsupported"
        assert classify_error(output) == ErrorSignature(SignatureKind.LEGACY_CRYPTO)

    def test_first_match_wins(self):
        output = "ERR_OSSL_EVP_UNSUPPORTED\nCannot find module 'dotenv'"
        assert classify_error(output).kind == SignatureKind.MISSING_MODULE

    def test_unknown_output(self):
        assert classify_error("src/App.tsx(3,1): error TS1005: ';' expected.") is None
