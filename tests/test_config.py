from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from kabob.config import ConfigError, load_settings
from kabob.package_manager import PackageManager


def _args(**kwargs: object) -> argparse.Namespace:
    defaults: dict[str, object] = {"cwd": None, "package_manager": None, "yes": False, "no_input": False}
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


def test_flag_beats_environment(tmp_path: Path) -> None:
    settings = load_settings(
        _args(cwd=str(tmp_path), package_manager="yarn"),
        {"KABOB_PACKAGE_MANAGER": "pnpm"},
        stdin_isatty=True,
    )
    assert settings.cwd == tmp_path.resolve()
    assert settings.package_manager is PackageManager.YARN
    assert settings.interactive is True


def test_environment_override_and_no_input(tmp_path: Path) -> None:
    settings = load_settings(
        _args(cwd=str(tmp_path), yes=True),
        {"KABOB_PACKAGE_MANAGER": "pnpm", "KABOB_NO_INPUT": "1"},
        stdin_isatty=True,
    )
    assert settings.package_manager is PackageManager.PNPM
    assert settings.assume_yes is True
    assert settings.interactive is False


def test_non_tty_stdin_disables_prompts(tmp_path: Path) -> None:
    settings = load_settings(_args(cwd=str(tmp_path)), {}, stdin_isatty=False)
    assert settings.package_manager is None
    assert settings.interactive is False


def test_invalid_values_raise_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Unsupported package manager"):
        load_settings(_args(cwd=str(tmp_path)), {"KABOB_PACKAGE_MANAGER": "bun"}, stdin_isatty=False)
    with pytest.raises(ConfigError, match="not a directory"):
        load_settings(_args(cwd=str(tmp_path / "missing")), {}, stdin_isatty=False)
