from __future__ import annotations

import sys
from collections.abc import Iterable
from pathlib import Path

from kabob.manifest import DEPENDENCY_FIELDS, read_manifest, write_manifest
from kabob.package_manager import PackageManager

WORKSPACE_VERSION_TOKEN = "workspace:*"
ANY_VERSION_TOKEN = "*"


def version_token(pm: PackageManager) -> str:
    return WORKSPACE_VERSION_TOKEN if pm is PackageManager.PNPM else ANY_VERSION_TOKEN


def _bare_name(dep: str) -> str:
    # Accept "name@workspace:*" as produced by interactive internal selection.
    name, _, _ = dep.partition("@workspace:")
    return name


def add_internal_dependencies(
    workspace_dir: Path,
    names: Iterable[str],
    pm: PackageManager,
    *,
    dev: bool = False,
) -> list[str]:
    """Write internal dependency entries into a member manifest.

    Parameters
    ----------
    workspace_dir:
        Member directory containing ``package.json``.
    names:
        Full package names of other workspace members.
    pm:
        Governing package manager; selects the version token.
    dev:
        Write to ``devDependencies`` instead of ``dependencies``.

    Returns
    -------
    list[str]
        Names written, in input order. A member never depends on itself, and a name
        moved between ``dependencies`` and ``devDependencies`` is dropped from the other map.
    """

    manifest = read_manifest(workspace_dir)
    self_name = manifest.get("name")
    field = "devDependencies" if dev else "dependencies"
    other_field = "dependencies" if dev else "devDependencies"
    deps = manifest.get(field)
    if not isinstance(deps, dict):
        deps = {}
    other = manifest.get(other_field)

    token = version_token(pm)
    written: list[str] = []
    for dep in names:
        name = _bare_name(dep)
        if name == self_name:
            print(f"WARNING: {name} cannot depend on itself (skipping)", file=sys.stderr)
            continue
        deps[name] = token
        # A dependency lives in exactly one of the two maps.
        if isinstance(other, dict):
            other.pop(name, None)
        if name not in written:
            written.append(name)

    if written:
        manifest[field] = deps
        write_manifest(workspace_dir, manifest)
    return written


def remove_dependencies(workspace_dir: Path, names: Iterable[str]) -> list[str]:
    """Delete dependency keys from a member manifest; names that are absent are ignored."""

    manifest = read_manifest(workspace_dir)
    removed: list[str] = []
    for dep in names:
        name = _bare_name(dep)
        for field in DEPENDENCY_FIELDS:
            deps = manifest.get(field)
            if isinstance(deps, dict) and name in deps:
                del deps[name]
                if name not in removed:
                    removed.append(name)

    if removed:
        write_manifest(workspace_dir, manifest)
    return removed
