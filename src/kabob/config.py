from __future__ import annotations

import argparse
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from kabob.package_manager import PackageManager, PackageManagerError

ENV_PACKAGE_MANAGER = "KABOB_PACKAGE_MANAGER"
ENV_NO_INPUT = "KABOB_NO_INPUT"

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    """Per-invocation configuration passed explicitly to every command."""

    cwd: Path
    package_manager: PackageManager | None = None
    assume_yes: bool = False
    interactive: bool = True


def _env_flag(env: Mapping[str, str], key: str) -> bool:
    return env.get(key, "").strip().lower() in _TRUTHY


def load_settings(args: argparse.Namespace, env: Mapping[str, str], *, stdin_isatty: bool | None = None) -> Settings:
    raw_cwd = getattr(args, "cwd", None)
    cwd = Path(raw_cwd).expanduser().resolve() if raw_cwd else Path.cwd()
    if not cwd.is_dir():
        raise ConfigError(f"--cwd is not a directory: {cwd}")

    pm_value = getattr(args, "package_manager", None) or env.get(ENV_PACKAGE_MANAGER) or None
    package_manager: PackageManager | None = None
    if pm_value:
        try:
            package_manager = PackageManager.parse(pm_value)
        except PackageManagerError as e:
            raise ConfigError(str(e)) from e

    if stdin_isatty is None:
        stdin_isatty = sys.stdin.isatty()
    interactive = stdin_isatty and not getattr(args, "no_input", False) and not _env_flag(env, ENV_NO_INPUT)

    return Settings(
        cwd=cwd,
        package_manager=package_manager,
        assume_yes=bool(getattr(args, "yes", False)),
        interactive=interactive,
    )
