#!/usr/bin/env python3
"""Tests for headerlib/package_verification.py

Installed versions are mocked through importlib.metadata.version so the tests
do not depend on what happens to be installed.
"""

import pytest
from importlib.metadata import PackageNotFoundError
from typing import Any, Dict
from unittest.mock import patch

from headerlib.constants import EXIT_RUNTIME_ERROR
from headerlib.package_verification import (
    PACKAGE_REQUIREMENTS,
    REQUIRED_PACKAGE_ORDER,
    check_all_packages,
    check_package_version,
    main,
    require_package,
)


def fake_versions(installed: Dict[str, str]) -> Any:
    def _version(name: str) -> str:
        if name not in installed:
            raise PackageNotFoundError(name)
        return installed[name]

    return _version


class TestPackageRequirements:
    """Test the requirement table."""

    def test_runtime_dependencies_listed(self) -> None:
        assert set(PACKAGE_REQUIREMENTS) == {"networkx", "packaging", "colorama"}
        assert set(REQUIRED_PACKAGE_ORDER) == set(PACKAGE_REQUIREMENTS)
        assert REQUIRED_PACKAGE_ORDER[0] == "packaging"


class TestCheckPackageVersion:
    """Test check_package_version function."""

    def test_installed_and_new_enough(self) -> None:
        with patch("headerlib.package_verification.version", fake_versions({"networkx": "3.2.1"})):
            assert check_package_version("networkx") == (True, True, "3.2.1")

    def test_too_old_raises(self) -> None:
        with patch("headerlib.package_verification.version", fake_versions({"networkx": "2.5"})):
            with pytest.raises(ImportError, match="too old"):
                check_package_version("networkx")

    def test_too_old_without_raise(self) -> None:
        with patch("headerlib.package_verification.version", fake_versions({"networkx": "2.5"})):
            assert check_package_version("networkx", raise_on_error=False) == (True, False, "2.5")

    def test_missing_without_raise(self) -> None:
        with patch("headerlib.package_verification.version", fake_versions({})):
            assert check_package_version("colorama", raise_on_error=False) == (False, False, None)

    def test_missing_raises_with_install_hint(self) -> None:
        with patch("headerlib.package_verification.version", fake_versions({})):
            with pytest.raises(ImportError, match="pip install 'colorama>=0.4.6'"):
                check_package_version("colorama")

    def test_unknown_package_without_version(self) -> None:
        with pytest.raises(ValueError, match="No version requirement"):
            check_package_version("not_a_known_package")


class TestRequirePackage:
    """Test require_package function."""

    def test_available_package_passes(self) -> None:
        with patch("headerlib.package_verification.version", fake_versions({"networkx": "3.4"})):
            require_package("networkx", "test context")

    def test_missing_package_exits(self, capsys: Any) -> None:
        with patch("headerlib.package_verification.version", fake_versions({})):
            with pytest.raises(SystemExit) as exc_info:
                require_package("networkx", "inclusion graph analysis")
        assert exc_info.value.code == EXIT_RUNTIME_ERROR
        err = capsys.readouterr().err
        assert "networkx is required for inclusion graph analysis" in err
        assert "pip install 'networkx>=2.8.8'" in err

    def test_old_package_exits(self, capsys: Any) -> None:
        with patch("headerlib.package_verification.version", fake_versions({"networkx": "2.0"})):
            with pytest.raises(SystemExit):
                require_package("networkx", "test feature")
        assert "too old" in capsys.readouterr().err

    def test_unknown_package_exits(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            require_package("unknown_package_not_in_registry", "test")
        assert exc_info.value.code == EXIT_RUNTIME_ERROR


class TestCheckAllPackages:
    """Test check_all_packages function."""

    def test_all_ok(self, capsys: Any) -> None:
        installed = {"networkx": "3.4", "packaging": "24.2", "colorama": "0.4.6"}
        with patch("headerlib.package_verification.version", fake_versions(installed)):
            assert check_all_packages() is True
        assert "All required packages are available" in capsys.readouterr().out

    def test_missing_package_reported(self, capsys: Any) -> None:
        with patch("headerlib.package_verification.version", fake_versions({"packaging": "24.2", "colorama": "0.4.6"})):
            assert check_all_packages() is False
        captured = capsys.readouterr()
        assert "networkx not installed" in captured.err
        assert "pip install" in captured.out

    def test_cli_check_all(self, monkeypatch: Any) -> None:
        monkeypatch.setattr("sys.argv", ["package_verification.py", "--check-all"])
        with patch("headerlib.package_verification.check_all_packages", return_value=False):
            assert main() == 1
