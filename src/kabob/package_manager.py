"""
Package-manager detection and command resolution.

Detection is lockfile based. Commands are produced from a static table keyed by :class:`PackageManager`, so the
resolver stays a pure function; :func:`run_command` is the only place that spawns a process.
"""

from __future__ import annotations

import enum
import os
import shlex
import shutil
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


class PackageManagerError(RuntimeError):
    pass


class PackageManager(enum.Enum):
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"

    @property
    def binary(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> PackageManager:
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            allowed = ", ".join(m.value for m in cls)
            raise PackageManagerError(f"Unsupported package manager {value!r} (allowed: {allowed}).") from e


# Priority order matters: the first lockfile kind found anywhere up the tree wins.
LOCKFILES: tuple[tuple[str, PackageManager], ...] = (
    ("yarn.lock", PackageManager.YARN),
    ("package-lock.json", PackageManager.NPM),
    ("pnpm-lock.yaml", PackageManager.PNPM),
)
DEFAULT_PACKAGE_MANAGER = PackageManager.NPM

ACTIONS = ("add", "remove", "install", "run")


@dataclass(frozen=True)
class CommandTable:
    add: tuple[str, ...]
    remove: tuple[str, ...]
    install: tuple[str, ...]
    run: tuple[str, ...]
    dev_flag: str
    # When set, clean/frozen installs replace the install subcommand instead of adding a flag.
    strict_install: tuple[str, ...] | None
    frozen_flag: str | None
    clean_flag: str | None


COMMANDS: dict[PackageManager, CommandTable] = {
    PackageManager.NPM: CommandTable(
        add=("install",),
        remove=("uninstall",),
        install=("install",),
        run=("run",),
        dev_flag="--save-dev",
        strict_install=("ci",),
        frozen_flag=None,
        clean_flag=None,
    ),
    PackageManager.YARN: CommandTable(
        add=("add",),
        remove=("remove",),
        install=("install",),
        run=("run",),
        dev_flag="--dev",
        strict_install=None,
        frozen_flag="--frozen-lockfile",
        clean_flag="--force",
    ),
    PackageManager.PNPM: CommandTable(
        add=("add",),
        remove=("remove",),
        install=("install",),
        run=("run",),
        dev_flag="--save-dev",
        strict_install=None,
        frozen_flag="--frozen-lockfile",
        clean_flag="--force",
    ),
}


def find_up(filename: str, start: Path) -> Path | None:
    cur = start.resolve()
    for candidate in [cur, *cur.parents]:
        path = candidate / filename
        if path.is_file():
            return path
    return None


def detect_package_manager(start: Path, *, override: PackageManager | None = None) -> PackageManager:
    if override is not None:
        return override
    for filename, pm in LOCKFILES:
        if find_up(filename, start) is not None:
            return pm
    return DEFAULT_PACKAGE_MANAGER


def resolve_command(
    pm: PackageManager,
    action: str,
    packages: Sequence[str] = (),
    *,
    dev: bool = False,
    clean: bool = False,
    frozen: bool = False,
) -> list[str]:
    """Map ``(manager, action, targets)`` to an argv whose first token is the manager binary.

    ``packages`` holds dependency names for ``add``/``remove`` and the script name (plus arguments) for ``run``.
    """

    table = COMMANDS[pm]
    if action not in ACTIONS:
        raise PackageManagerError(f"Could not resolve {action!r} command for {pm.value}")

    if action == "install":
        if packages:
            raise PackageManagerError("install does not take package arguments")
        if (clean or frozen) and table.strict_install is not None:
            return [pm.binary, *table.strict_install]
        argv = [pm.binary, *table.install]
        if frozen and table.frozen_flag:
            argv.append(table.frozen_flag)
        if clean and table.clean_flag:
            argv.append(table.clean_flag)
        return argv

    if not packages:
        what = "a script" if action == "run" else "at least one package"
        raise PackageManagerError(f"{action} requires {what}")

    subcommand: tuple[str, ...] = getattr(table, action)
    argv = [pm.binary, *subcommand, *packages]
    if dev and action == "add":
        argv.append(table.dev_flag)
    return argv


def format_command(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in argv)


def _resolve_argv(argv: list[str]) -> list[str]:
    """Resolve argv[0] via PATH for cross-platform execution.

    On Windows the package manager entrypoints are `.cmd` shims. `subprocess.run()` cannot execute `.cmd`/`.bat`
    files directly, so they are invoked via `cmd.exe /c`.
    """

    if not argv:
        raise PackageManagerError("Internal error: empty argv")

    cmd = argv[0]
    if any(sep and sep in cmd for sep in ("/", "\\", os.path.sep, os.path.altsep)):
        return argv

    resolved = shutil.which(cmd)
    if resolved is None:
        return argv

    if os.name == "nt":
        suffix = Path(resolved).suffix.lower()
        if suffix in {".cmd", ".bat"}:
            comspec = os.environ.get("ComSpec", "cmd.exe")
            return [comspec, "/d", "/c", resolved, *argv[1:]]

    return [resolved, *argv[1:]]


def run_command(argv: list[str], *, cwd: Path) -> None:
    """Run ``argv`` in ``cwd`` with inherited stdio; raise on a missing binary or non-zero exit."""

    resolved_argv = _resolve_argv(argv)
    print(f"+ ({cwd}) {format_command(argv)}", file=sys.stderr)
    try:
        cp = subprocess.run(resolved_argv, cwd=str(cwd), check=False)
    except FileNotFoundError as exc:
        raise PackageManagerError(f"Command not found: {Path(argv[0]).name!r}. Is it installed and on PATH?") from exc
    except OSError as exc:
        raise PackageManagerError(f"Failed to execute {argv[0]!r}: {exc}") from exc
    if cp.returncode != 0:
        raise PackageManagerError(f"`{format_command(argv)}` failed in {cwd} (exit {cp.returncode})")
