from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml

from kabob.manifest import TURBO_CONFIG_FILENAME, write_json_atomic, write_manifest
from kabob.package_manager import PackageManager
from kabob.templates import PackageTemplate
from kabob.workspaces import DEFAULT_PATTERNS, PNPM_WORKSPACE_FILENAME, Workspace

PackageKind = Literal["package", "app"]
KIND_DIRS: dict[str, str] = {"package": "packages", "app": "apps"}

_SCOPE_PART = r"[a-z0-9-~][a-z0-9-._~]*"
PACKAGE_NAME_RE = re.compile(rf"^(@{_SCOPE_PART}/)?{_SCOPE_PART}$")
SCOPE_RE = re.compile(rf"^{_SCOPE_PART}$")
VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(-[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?$")

DEFAULT_VERSION = "0.0.1"


class ScaffoldError(RuntimeError):
    pass


@dataclass(frozen=True)
class PackageDetails:
    name: str
    version: str = DEFAULT_VERSION
    description: str = ""
    author: str = ""
    private: bool = False

    @property
    def basename(self) -> str:
        return self.name.rsplit("/", 1)[-1]


def validate_package_name(name: str) -> None:
    if not PACKAGE_NAME_RE.match(name):
        raise ScaffoldError(
            f"Invalid package name {name!r}. Names must be lowercase and can only contain alphanumeric characters, "
            "hyphens, dots, underscores, and tildes, with an optional @scope/ prefix."
        )


def validate_scope(scope: str) -> None:
    if not SCOPE_RE.match(scope):
        raise ScaffoldError(f"Invalid scope {scope!r}. Scopes must be lowercase (without the leading @).")


def validate_version(version: str) -> None:
    if not VERSION_RE.match(version):
        raise ScaffoldError(f"Invalid version {version!r}. Use semantic versioning (e.g. 1.0.0, 0.1.0-beta.1).")


def apply_scope(name: str, scope: str | None) -> str:
    if not scope or name.startswith("@"):
        return name
    scope = scope.lstrip("@")
    validate_scope(scope)
    return f"@{scope}/{name}"


def naming_hints(name: str, kind: PackageKind) -> list[str]:
    base = name.rsplit("/", 1)[-1]
    hints: list[str] = []
    if kind == "package":
        if base == "ui":
            hints.append('Consider being more specific for UI packages, e.g. "@repo/ui-core", "@repo/ui-components".')
        if base in {"config", "configs"}:
            hints.append(
                'Consider being more specific for config packages, e.g. "@repo/eslint-config", "@repo/tsconfig".'
            )
    elif base in {"web", "app", "client"}:
        hints.append('Consider a more descriptive app name, e.g. "admin", "dashboard", "docs".')
    return hints


def build_package_manifest(details: PackageDetails, template: PackageTemplate) -> dict[str, Any]:
    manifest: dict[str, Any] = {
        "name": details.name,
        "version": details.version,
        "description": details.description,
        "author": details.author,
        "private": details.private,
        "main": "dist/index.js",
        "types": "dist/index.d.ts",
    }
    manifest.update(template.package_json)
    manifest["dependencies"] = {dep: "*" for dep in template.dependencies}
    manifest["devDependencies"] = {dep: "*" for dep in template.dev_dependencies}
    return manifest


def _remove_partial(target: Path) -> None:
    try:
        shutil.rmtree(target)
    except OSError:
        pass


def create_package(root_dir: Path, details: PackageDetails, *, kind: PackageKind, template: PackageTemplate) -> Path:
    """Create ``<root>/packages/<basename>`` (or ``apps/``) from ``template``.

    An existing target directory is never touched.
    """

    validate_package_name(details.name)
    validate_version(details.version)
    if kind not in KIND_DIRS:
        raise ScaffoldError(f"Unknown package type {kind!r} (expected 'package' or 'app')")

    target = root_dir / KIND_DIRS[kind] / details.basename
    if target.exists():
        raise ScaffoldError(f"Directory already exists: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        target.mkdir()
    except FileExistsError as e:
        raise ScaffoldError(f"Directory already exists: {target}") from e

    try:
        (target / "src").mkdir()
        write_manifest(target, build_package_manifest(details, template))
        write_json_atomic(target / "tsconfig.json", template.tsconfig)
        for rel, content in template.files.items():
            file_path = target / rel
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
    except Exception:
        _remove_partial(target)
        raise
    return target


def delete_package(workspace: Workspace, *, root_dir: Path) -> None:
    target = workspace.path.resolve()
    if target == root_dir.resolve():
        raise ScaffoldError("Refusing to delete the workspace root")
    shutil.rmtree(target)


_ROOT_SCRIPTS = {
    "build": "turbo run build",
    "dev": "turbo run dev",
    "lint": "turbo run lint",
    "test": "turbo run test",
    "clean": "turbo run clean",
}

_ROOT_DEV_DEPENDENCIES = {
    "turbo": "^1.10.0",
    "typescript": "^5.0.0",
    "@types/node": "^18.0.0",
    "eslint": "^8.0.0",
    "prettier": "^3.0.0",
}

TURBO_CONFIG: dict[str, Any] = {
    "$schema": "https://turbo.build/schema.json",
    "globalDependencies": ["**/.env.*local"],
    "pipeline": {
        "build": {"dependsOn": ["^build"], "outputs": ["dist/**"]},
        "lint": {},
        "dev": {"cache": False, "persistent": True},
        "test": {},
    },
}

ROOT_TSCONFIG: dict[str, Any] = {
    "$schema": "https://json.schemastore.org/tsconfig",
    "compilerOptions": {
        "target": "es2017",
        "module": "commonjs",
        "moduleResolution": "node",
        "esModuleInterop": True,
        "forceConsistentCasingInFileNames": True,
        "strict": True,
        "skipLibCheck": True,
    },
}

GITIGNORE = """\
# dependencies
node_modules
.pnp
.pnp.js

# testing
coverage

# build
dist
build

# misc
.DS_Store
*.pem

# debug
npm-debug.log*
yarn-debug.log*
yarn-error.log*
.pnpm-debug.log*

# local env files
.env*.local

# turbo
.turbo

# typescript
*.tsbuildinfo
"""


def init_workspace(
    parent_dir: Path,
    name: str,
    *,
    description: str = "",
    author: str = "",
    pm: PackageManager = PackageManager.NPM,
) -> Path:
    """Create a new monorepo root at ``<parent_dir>/<name>``."""

    validate_package_name(name)
    workspace_dir = parent_dir / name
    if workspace_dir.exists():
        raise ScaffoldError(f"Directory already exists: {workspace_dir}")

    workspace_dir.mkdir(parents=True)
    try:
        for kind_dir in KIND_DIRS.values():
            (workspace_dir / kind_dir).mkdir()

        root_manifest: dict[str, Any] = {
            "name": name,
            "version": DEFAULT_VERSION,
            "private": True,
            "description": description,
            "author": author,
            "workspaces": list(DEFAULT_PATTERNS),
            "scripts": dict(_ROOT_SCRIPTS),
            "devDependencies": dict(_ROOT_DEV_DEPENDENCIES),
        }
        write_manifest(workspace_dir, root_manifest)
        write_json_atomic(workspace_dir / TURBO_CONFIG_FILENAME, TURBO_CONFIG)
        write_json_atomic(workspace_dir / "tsconfig.json", ROOT_TSCONFIG)
        (workspace_dir / ".gitignore").write_text(GITIGNORE, encoding="utf-8")

        if pm is PackageManager.PNPM:
            (workspace_dir / PNPM_WORKSPACE_FILENAME).write_text(
                yaml.safe_dump({"packages": list(DEFAULT_PATTERNS)}, sort_keys=False),
                encoding="utf-8",
            )
    except Exception:
        _remove_partial(workspace_dir)
        raise
    return workspace_dir
