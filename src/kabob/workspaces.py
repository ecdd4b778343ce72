from __future__ import annotations

import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Any

import yaml

from kabob.manifest import MANIFEST_FILENAME, ManifestError, manifest_path, read_manifest

PNPM_WORKSPACE_FILENAME = "pnpm-workspace.yaml"
DEFAULT_PATTERNS = ("packages/*", "apps/*")
IGNORED_DIR_NAMES = frozenset({"node_modules"})
INTERNAL_VERSION_SUFFIX = "@workspace:*"


class WorkspaceError(RuntimeError):
    pass


@dataclass(frozen=True)
class Workspace:
    path: Path
    manifest: dict[str, Any]

    @property
    def name(self) -> str | None:
        name = self.manifest.get("name")
        return name if isinstance(name, str) and name else None

    @property
    def version(self) -> str:
        version = self.manifest.get("version")
        return version if isinstance(version, str) and version else "0.0.0"

    @property
    def description(self) -> str:
        description = self.manifest.get("description")
        return description if isinstance(description, str) else ""

    @property
    def is_private(self) -> bool:
        return bool(self.manifest.get("private", False))

    @property
    def display_name(self) -> str:
        return self.name or self.path.name


def find_root_manifest(start: Path) -> Path:
    cur = start.resolve()
    for candidate in [cur, *cur.parents]:
        path = manifest_path(candidate)
        if path.is_file():
            return path
    raise WorkspaceError(f"No {MANIFEST_FILENAME} found in {cur} or any parent directory")


def manifest_workspace_patterns(manifest: dict[str, Any]) -> list[str]:
    raw = manifest.get("workspaces")
    if isinstance(raw, dict):
        raw = raw.get("packages")
    if not isinstance(raw, list):
        return []
    return [p for p in raw if isinstance(p, str) and p.strip()]


def read_pnpm_workspace_patterns(root_dir: Path) -> list[str] | None:
    path = root_dir / PNPM_WORKSPACE_FILENAME
    if not path.exists():
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise WorkspaceError(f"Failed to parse {path}: {e}") from e
    except OSError as e:
        raise WorkspaceError(f"Failed to read {path}: {e}") from e
    if data is None:
        return []
    if not isinstance(data, dict):
        raise WorkspaceError(f"Unexpected {PNPM_WORKSPACE_FILENAME} shape (expected mapping): {path}")
    packages = data.get("packages")
    if packages is None:
        return []
    if not isinstance(packages, list):
        raise WorkspaceError(f"Invalid `packages` in {path} (expected list)")
    return [str(p) for p in packages if isinstance(p, str) and p.strip()]


def workspace_patterns(root_dir: Path, manifest: dict[str, Any]) -> list[str]:
    """Pick workspace globs: manifest field, then pnpm-workspace.yaml, then the packages/apps default."""

    patterns = manifest_workspace_patterns(manifest)
    if patterns:
        return patterns
    pnpm_patterns = read_pnpm_workspace_patterns(root_dir)
    if pnpm_patterns:
        return pnpm_patterns
    return list(DEFAULT_PATTERNS)


def _split_alternatives(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current = ""
    for ch in body:
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        if ch == "{":
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
        current += ch
    parts.append(current)
    return parts


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` groups the way npm and pnpm workspace globs do.

    ``packages/{ui,core}`` becomes ``["packages/ui", "packages/core"]``. Groups nest; a group without a
    comma is kept literally.
    """

    depth = 0
    start = -1
    for idx, ch in enumerate(pattern):
        if ch == "{":
            if depth == 0:
                start = idx
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth != 0:
                continue
            alternatives = _split_alternatives(pattern[start + 1 : idx])
            if len(alternatives) < 2:
                continue
            prefix, suffix = pattern[:start], pattern[idx + 1 :]
            out: list[str] = []
            for alternative in alternatives:
                for expanded in expand_braces(prefix + alternative + suffix):
                    if expanded not in out:
                        out.append(expanded)
            return out
    return [pattern]


def _manifest_glob(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    if normalized.startswith("/") or PureWindowsPath(normalized).is_absolute():
        raise WorkspaceError(f"Workspace pattern must be relative to the workspace root: {pattern}")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.rstrip("/")
    if normalized.endswith(MANIFEST_FILENAME):
        return normalized
    if not normalized or normalized == ".":
        return MANIFEST_FILENAME
    return f"{normalized}/{MANIFEST_FILENAME}"


def _glob_dirs(root_dir: Path, pattern: str) -> set[Path]:
    out: set[Path] = set()
    for expanded in expand_braces(pattern):
        glob = _manifest_glob(expanded)
        # Hidden directories only match when the pattern names them.
        literal_parts = set(glob.split("/"))
        for match in root_dir.glob(glob):
            try:
                parts = match.relative_to(root_dir).parts
            except ValueError:
                parts = match.parts
            if any(part in IGNORED_DIR_NAMES for part in parts):
                continue
            if any(part.startswith(".") and part not in literal_parts for part in parts[:-1]):
                continue
            if match.is_file():
                out.add(match.parent.resolve())
    return out


def expand_patterns(root_dir: Path, patterns: Iterable[str]) -> list[Path]:
    root_dir = root_dir.resolve()
    included: set[Path] = set()
    excluded: set[Path] = set()
    for pattern in patterns:
        if pattern.startswith("!"):
            excluded |= _glob_dirs(root_dir, pattern[1:])
        else:
            included |= _glob_dirs(root_dir, pattern)
    return sorted(included - excluded)


def discover_workspaces(start: Path) -> list[Path]:
    root_manifest = find_root_manifest(start)
    root_dir = root_manifest.parent
    try:
        manifest = read_manifest(root_dir)
    except ManifestError as e:
        raise WorkspaceError(str(e)) from e
    return expand_patterns(root_dir, workspace_patterns(root_dir, manifest))


def load_workspaces(dirs: Iterable[Path]) -> list[Workspace]:
    out: list[Workspace] = []
    for directory in dirs:
        try:
            manifest = read_manifest(directory)
        except ManifestError as e:
            print(f"WARNING: skipping workspace {directory}: {e}", file=sys.stderr)
            continue
        out.append(Workspace(path=directory, manifest=manifest))
    return out


def find_internal_packages(start: Path) -> list[Workspace]:
    return [ws for ws in load_workspaces(discover_workspaces(start)) if ws.name is not None]


def resolve_internal_names(requested: Iterable[str], workspaces: Iterable[Workspace]) -> list[str]:
    names = [ws.name for ws in workspaces if ws.name is not None]
    resolved: list[str] = []
    for raw in requested:
        wanted = raw[: -len(INTERNAL_VERSION_SUFFIX)] if raw.endswith(INTERNAL_VERSION_SUFFIX) else raw
        match = next((n for n in names if n == wanted), None)
        if match is None:
            candidates = [n for n in names if n.endswith(f"/{wanted}")]
            if len(candidates) > 1:
                raise WorkspaceError(f"Ambiguous internal package {raw}: matches {', '.join(candidates)}")
            match = candidates[0] if candidates else None
        if match is None:
            raise WorkspaceError(f"Internal package not found: {raw}")
        if match not in resolved:
            resolved.append(match)
    return resolved


def select_workspace(value: str, *, cwd: Path) -> Path:
    directory = (cwd / value).resolve()
    if not manifest_path(directory).is_file():
        raise WorkspaceError(f"Invalid workspace path: {value} (no {MANIFEST_FILENAME})")
    return directory


def workspace_kind(workspace: Workspace, root_dir: Path) -> str:
    try:
        rel = workspace.path.resolve().relative_to(root_dir.resolve())
    except ValueError:
        return "package"
    return "app" if rel.parts and rel.parts[0] == "apps" else "package"
