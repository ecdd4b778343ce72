from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

MANIFEST_FILENAME = "package.json"
TURBO_CONFIG_FILENAME = "turbo.json"
DEPENDENCY_FIELDS = ("dependencies", "devDependencies")

_DEPENDENCY_MAP_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": {"type": "string"},
}

MANIFEST_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "version": {"type": "string"},
        "description": {"type": "string"},
        "private": {"type": "boolean"},
        "scripts": {"type": "object", "additionalProperties": {"type": "string"}},
        "dependencies": _DEPENDENCY_MAP_SCHEMA,
        "devDependencies": _DEPENDENCY_MAP_SCHEMA,
        "workspaces": {
            "anyOf": [
                {"type": "array", "items": {"type": "string"}},
                {
                    "type": "object",
                    "properties": {"packages": {"type": "array", "items": {"type": "string"}}},
                },
            ]
        },
    },
}


class ManifestError(RuntimeError):
    pass


def manifest_path(directory: Path) -> Path:
    return directory / MANIFEST_FILENAME


def validate_manifest(manifest: Any) -> list[str]:
    """Return human-readable schema violations for a parsed ``package.json``."""

    validator = Draft202012Validator(MANIFEST_SCHEMA)
    errors = sorted(validator.iter_errors(manifest), key=lambda e: str(e.path))
    formatted: list[str] = []
    for error in errors:
        path = "$"
        for part in error.path:
            path += f"[{part!r}]" if isinstance(part, int) else f".{part}"
        formatted.append(f"{path}: {error.message}")
    return formatted


def _read_json_object(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ManifestError(f"Missing file: {path}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Failed to parse {path}: {e}") from e
    except OSError as e:
        raise ManifestError(f"Failed to read {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ManifestError(f"Unexpected JSON shape (expected object): {path}")
    return raw


def read_manifest(directory: Path) -> dict[str, Any]:
    """Load and validate ``<directory>/package.json``.

    Raises
    ------
    ManifestError
        When the file is missing, unreadable, not a JSON object, or violates
        :data:`MANIFEST_SCHEMA`.
    """

    path = manifest_path(directory)
    manifest = _read_json_object(path)
    problems = validate_manifest(manifest)
    if problems:
        raise ManifestError(f"Invalid manifest {path}: " + "; ".join(problems))
    return manifest


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write ``payload`` as pretty JSON via a temp file in the same directory, then rename."""

    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        # mkstemp creates 0600 files; keep the permissions of the file being replaced.
        try:
            mode = path.stat().st_mode & 0o777
        except FileNotFoundError:
            mode = 0o644
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except Exception:
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError:
            pass
        raise


def write_manifest(directory: Path, manifest: dict[str, Any]) -> Path:
    path = manifest_path(directory)
    try:
        write_json_atomic(path, manifest)
    except OSError as e:
        raise ManifestError(f"Failed to write {path}: {e}") from e
    return path


def read_turbo_config(directory: Path) -> dict[str, Any] | None:
    path = directory / TURBO_CONFIG_FILENAME
    if not path.exists():
        return None
    return _read_json_object(path)


def turbo_tasks(config: dict[str, Any]) -> list[str]:
    # turbo 1.x uses "pipeline"; 2.x renamed it to "tasks".
    for key in ("tasks", "pipeline"):
        section = config.get(key)
        if isinstance(section, dict):
            return sorted(str(name) for name in section)
    return []
