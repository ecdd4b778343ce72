"""
kabob: monorepo workspace administration CLI.

Commands print progress to stdout; warnings, errors and echoed subprocess commands go to stderr. Every handler
returns an exit code; `main` converts known errors into `ERROR: ...` and exit status 1.
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import TypeVar

from kabob import __version__
from kabob.config import ConfigError, Settings, load_settings
from kabob.dependencies import add_internal_dependencies, remove_dependencies
from kabob.manifest import ManifestError, read_manifest, read_turbo_config, turbo_tasks
from kabob.package_manager import (
    PackageManager,
    PackageManagerError,
    detect_package_manager,
    format_command,
    resolve_command,
    run_command,
)
from kabob.scaffold import (
    PackageDetails,
    ScaffoldError,
    apply_scope,
    create_package,
    delete_package,
    init_workspace,
    naming_hints,
    validate_package_name,
)
from kabob.templates import DEFAULT_TEMPLATE, TemplateError, get_template, list_templates
from kabob.workspaces import (
    Workspace,
    WorkspaceError,
    discover_workspaces,
    find_internal_packages,
    find_root_manifest,
    load_workspaces,
    manifest_workspace_patterns,
    read_pnpm_workspace_patterns,
    resolve_internal_names,
    select_workspace,
    workspace_kind,
)

KNOWN_ERRORS = (ConfigError, ManifestError, WorkspaceError, PackageManagerError, ScaffoldError, TemplateError)

T = TypeVar("T")


def _eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def _rel(path: Path, settings: Settings) -> str:
    try:
        return os.path.relpath(path, settings.cwd)
    except ValueError:
        return str(path)


def _detect(settings: Settings) -> PackageManager:
    return detect_package_manager(settings.cwd, override=settings.package_manager)


def _parse_selection(raw: str, count: int) -> list[int]:
    raw = raw.strip().lower()
    if raw in {"a", "all", "*"}:
        return list(range(count))
    picked: list[int] = []
    for token in raw.replace(",", " ").split():
        if "-" in token:
            lo_s, _, hi_s = token.partition("-")
            lo, hi = int(lo_s), int(hi_s)
            indexes = range(lo, hi + 1)
        else:
            indexes = range(int(token), int(token) + 1)
        for idx in indexes:
            if idx < 1 or idx > count:
                raise ValueError(f"{idx} is out of range")
            if idx - 1 not in picked:
                picked.append(idx - 1)
    return picked


def prompt_select(items: Sequence[T], *, labels: Sequence[str], message: str, settings: Settings) -> list[T]:
    """Numbered multi-select on stdin. Accepts `1,3`, `2-4`, or `a` for all."""

    if not items:
        return []
    if not settings.interactive:
        raise ConfigError(f"{message} Input is disabled; pass explicit targets (e.g. --workspace or --all).")

    print(message)
    for idx, label in enumerate(labels, start=1):
        print(f"  {idx}) {label}")
    while True:
        raw = input("Select (e.g. 1,3 or 2-4; 'a' for all): ")
        try:
            picked = _parse_selection(raw, len(items))
        except ValueError as e:
            print(f"Invalid selection: {e}")
            continue
        if not picked:
            print("Please select at least one entry.")
            continue
        return [items[i] for i in picked]


def confirm(message: str, settings: Settings) -> bool:
    if settings.assume_yes:
        return True
    if not settings.interactive:
        raise ConfigError(f"{message} Input is disabled; pass --yes to confirm.")
    answer = input(f"{message} [y/N]: ")
    return answer.strip().lower() in {"y", "yes"}


def _select_workspaces(args: argparse.Namespace, settings: Settings, *, message: str) -> list[Workspace]:
    if args.workspace:
        selected: list[Workspace] = []
        for value in args.workspace:
            directory = select_workspace(value, cwd=settings.cwd)
            selected.append(Workspace(path=directory, manifest=read_manifest(directory)))
        return selected

    workspaces = load_workspaces(discover_workspaces(settings.cwd))
    if not workspaces:
        raise WorkspaceError("No workspaces found")
    if args.all:
        return workspaces
    labels = [f"{ws.display_name} ({_rel(ws.path, settings)})" for ws in workspaces]
    return prompt_select(workspaces, labels=labels, message=message, settings=settings)


def _internal_names(args: argparse.Namespace, settings: Settings, *, verb: str) -> list[str]:
    internal = find_internal_packages(settings.cwd)
    if not internal:
        raise WorkspaceError("No internal packages found")
    requested: list[str] = list(args.packages)
    if not requested:
        labels = [f"{ws.name}@{ws.version}" + (f" - {ws.description}" if ws.description else "") for ws in internal]
        picked = prompt_select(
            internal, labels=labels, message=f"Select internal packages to {verb}:", settings=settings
        )
        requested = [ws.name for ws in picked if ws.name is not None]
    return resolve_internal_names(requested, internal)


def _for_each_workspace(
    targets: Sequence[Workspace],
    action: Callable[[Workspace], None],
    *,
    keep_going: bool,
    what: str,
) -> None:
    failures: list[str] = []
    for ws in targets:
        try:
            action(ws)
        except (PackageManagerError, ManifestError) as e:
            if not keep_going:
                raise
            _eprint(f"ERROR: {ws.display_name}: {e}")
            failures.append(f"{ws.display_name} ({e})")
    if failures:
        raise PackageManagerError(f"{what} failed in:\n" + "\n".join(f"- {f}" for f in failures))


def _trailing_install(pm: PackageManager, settings: Settings) -> None:
    root_dir = find_root_manifest(settings.cwd).parent
    print("\nRunning install to update dependencies...")
    run_command(resolve_command(pm, "install"), cwd=root_dir)


def cmd_add(args: argparse.Namespace, settings: Settings) -> int:
    pm = _detect(settings)
    if args.internal:
        names = _internal_names(args, settings, verb="add")
    elif args.packages:
        names = list(args.packages)
    else:
        raise ConfigError("Please specify packages to add (or use --internal)")

    targets = _select_workspaces(args, settings, message="Select workspaces to add dependencies to:")
    print(f"Using package manager: {pm.value}")

    def _apply(ws: Workspace) -> None:
        print(f"\nAdding {', '.join(names)} to {ws.display_name} ({_rel(ws.path, settings)})")
        if args.internal:
            written = add_internal_dependencies(ws.path, names, pm, dev=args.dev)
            if written:
                print(f"✓ Added internal dependencies to {ws.display_name}: {', '.join(written)}")
            return
        run_command(resolve_command(pm, "add", names, dev=args.dev), cwd=ws.path)

    _for_each_workspace(targets, _apply, keep_going=args.keep_going, what="Adding dependencies")

    if args.internal and not args.no_install:
        _trailing_install(pm, settings)
    print("\nDependencies added successfully!")
    return 0


def cmd_remove(args: argparse.Namespace, settings: Settings) -> int:
    pm = _detect(settings)
    if args.internal:
        names = _internal_names(args, settings, verb="remove")
    elif args.packages:
        names = list(args.packages)
    else:
        raise ConfigError("Please specify packages to remove (or use --internal)")

    targets = _select_workspaces(args, settings, message="Select workspaces to remove dependencies from:")
    print(f"Using package manager: {pm.value}")

    def _apply(ws: Workspace) -> None:
        print(f"\nRemoving {', '.join(names)} from {ws.display_name} ({_rel(ws.path, settings)})")
        if args.internal:
            removed = remove_dependencies(ws.path, names)
            if removed:
                print(f"✓ Removed internal dependencies from {ws.display_name}: {', '.join(removed)}")
            else:
                print(f"Nothing to remove in {ws.display_name}")
            return
        run_command(resolve_command(pm, "remove", names), cwd=ws.path)

    _for_each_workspace(targets, _apply, keep_going=args.keep_going, what="Removing dependencies")

    if args.internal and not args.no_install:
        _trailing_install(pm, settings)
    print("\nDependencies removed successfully!")
    return 0


def cmd_install(args: argparse.Namespace, settings: Settings) -> int:
    pm = _detect(settings)
    argv = resolve_command(pm, "install", clean=args.clean, frozen=args.frozen)
    targets = _select_workspaces(args, settings, message="Select workspaces to install dependencies in:")

    def _apply(ws: Workspace) -> None:
        print(f"\nInstalling dependencies in {ws.display_name} ({_rel(ws.path, settings)})")
        run_command(argv, cwd=ws.path)

    _for_each_workspace(targets, _apply, keep_going=args.keep_going, what="Install")
    print("\nDependencies installed successfully!")
    return 0


def cmd_workspace_init(args: argparse.Namespace, settings: Settings) -> int:
    pm = _detect(settings)
    workspace_dir = init_workspace(
        settings.cwd,
        args.name,
        description=args.description or "",
        author=args.author or "",
        pm=pm,
    )
    print(f"✓ Created workspace at {workspace_dir}")
    print("\nNext steps:")
    print(f"  1. cd {_rel(workspace_dir, settings)}")
    print(f"  2. {format_command(resolve_command(pm, 'install'))}")
    print("  3. Create your first package with: kabob package create <name>")
    return 0


def cmd_workspace_info(args: argparse.Namespace, settings: Settings) -> int:
    root_manifest = find_root_manifest(settings.cwd)
    root_dir = root_manifest.parent
    manifest = read_manifest(root_dir)
    pm = _detect(settings)

    print("Workspace Information:")
    print(f"  Root: {root_dir}")
    print(f"  Package Manager: {pm.value}")
    print(f"  Name: {manifest.get('name', '')}")
    print(f"  Version: {manifest.get('version', '')}")
    for key in ("description", "author"):
        value = manifest.get(key)
        if isinstance(value, str) and value:
            print(f"  {key.capitalize()}: {value}")

    print("\nWorkspace Patterns:")
    patterns = manifest_workspace_patterns(manifest)
    if patterns:
        for pattern in patterns:
            print(f"  - {pattern}")
    else:
        print("  No workspace patterns defined")

    pnpm_patterns = read_pnpm_workspace_patterns(root_dir)
    if pnpm_patterns:
        print("\npnpm Workspace Patterns:")
        for pattern in pnpm_patterns:
            print(f"  - {pattern}")

    scripts = manifest.get("scripts")
    if isinstance(scripts, dict) and scripts:
        print("\nAvailable Scripts:")
        for name, script in scripts.items():
            print(f"  {name}: {script}")

    turbo = read_turbo_config(root_dir)
    if turbo is not None:
        tasks = turbo_tasks(turbo)
        print("\nTurbo Tasks:")
        print("  " + (", ".join(tasks) if tasks else "(none)"))

    members = discover_workspaces(settings.cwd)
    print(f"\nMembers: {len(members)}")
    return 0


def cmd_package_create(args: argparse.Namespace, settings: Settings) -> int:
    root_dir = find_root_manifest(settings.cwd).parent
    root_manifest = read_manifest(root_dir)
    template = get_template(args.template)

    name = apply_scope(args.name, args.scope)
    validate_package_name(name)
    for hint in naming_hints(name, args.type):
        _eprint(f"TIP: {hint}")

    private = args.private if args.private is not None else args.type == "app"
    author = args.author
    if author is None:
        root_author = root_manifest.get("author")
        author = root_author if isinstance(root_author, str) else ""
    details = PackageDetails(
        name=name,
        version=args.pkg_version,
        description=args.description or "",
        author=author,
        private=private,
    )

    target = create_package(root_dir, details, kind=args.type, template=template)
    pm = _detect(settings)
    print(f"✓ Created {args.type} {name} at {_rel(target, settings)} using {template.label} template")
    print("\nNext steps:")
    print(f"  1. Install dependencies: {format_command(resolve_command(pm, 'install'))}")
    print(f"  2. Depend on it from another workspace: kabob add --internal {name}")
    print("  3. Write your code in src/")
    return 0


def cmd_package_delete(args: argparse.Namespace, settings: Settings) -> int:
    root_dir = find_root_manifest(settings.cwd).parent
    internal = find_internal_packages(settings.cwd)
    (full_name,) = resolve_internal_names([args.name], internal)
    workspace = next(ws for ws in internal if ws.name == full_name)

    if not confirm(f"Are you sure you want to delete {full_name}? This cannot be undone.", settings):
        print("Operation cancelled")
        return 0

    delete_package(workspace, root_dir=root_dir)
    print(f"✓ Deleted package: {full_name}")
    return 0


def cmd_package_list(args: argparse.Namespace, settings: Settings) -> int:
    root_dir = find_root_manifest(settings.cwd).parent
    internal = find_internal_packages(settings.cwd)
    if not internal:
        print("No packages found.")
        return 0

    grouped: dict[str, list[Workspace]] = {"app": [], "package": []}
    for ws in internal:
        grouped[workspace_kind(ws, root_dir)].append(ws)

    for kind, title in (("app", "Apps"), ("package", "Packages")):
        if not grouped[kind]:
            continue
        print(f"{title}:")
        for ws in grouped[kind]:
            marker = " [private]" if ws.is_private else ""
            print(f"  {ws.name}@{ws.version} ({_rel(ws.path, settings)}){marker}")
            if ws.description:
                print(f"    {ws.description}")
    return 0


def cmd_package_template(args: argparse.Namespace, settings: Settings) -> int:
    for template in list_templates():
        print(f"{template.key}\t{template.name}\t{template.description}")
    return 0


def _add_target_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-w",
        "--workspace",
        action="append",
        default=[],
        help="Target a specific workspace directory (repeatable).",
    )
    p.add_argument("--all", action="store_true", help="Target every discovered workspace.")
    p.add_argument("--keep-going", action="store_true", help="Continue with remaining workspaces after a failure.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kabob", description="Manage monorepo workspaces.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--cwd", help="Run as if started in this directory.")
    parser.add_argument(
        "--package-manager",
        choices=[pm.value for pm in PackageManager],
        help="Skip lockfile detection and use this package manager.",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Answer yes to confirmation prompts.")
    parser.add_argument("--no-input", action="store_true", help="Never prompt; fail when a choice is required.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_ws = sub.add_parser("workspace", help="Create or inspect a workspace root.")
    ws_sub = p_ws.add_subparsers(dest="workspace_cmd", required=True)
    p_ws_init = ws_sub.add_parser("init", help="Initialize a new workspace in a new directory.")
    p_ws_init.add_argument("name")
    p_ws_init.add_argument("--description")
    p_ws_init.add_argument("--author")
    p_ws_init.set_defaults(func=cmd_workspace_init)
    p_ws_info = ws_sub.add_parser("info", help="Show information about the current workspace.")
    p_ws_info.set_defaults(func=cmd_workspace_info)

    p_pkg = sub.add_parser("package", help="Manage workspace packages and apps.")
    pkg_sub = p_pkg.add_subparsers(dest="package_cmd", required=True)
    p_create = pkg_sub.add_parser("create", help="Create a new package or app from a template.")
    p_create.add_argument("name", help="Package name, optionally scoped (@scope/name).")
    p_create.add_argument("-t", "--type", choices=["package", "app"], default="package")
    p_create.add_argument("--template", default=DEFAULT_TEMPLATE, help="Template key (see `kabob package template`).")
    p_create.add_argument("--scope", help="Scope to prefix an unscoped name with (without @).")
    p_create.add_argument("--description")
    p_create.add_argument("--author", help="Defaults to the root manifest's author.")
    p_create.add_argument("--version", dest="pkg_version", default="0.0.1")
    vis = p_create.add_mutually_exclusive_group()
    vis.add_argument("--private", dest="private", action="store_true", default=None)
    vis.add_argument("--public", dest="private", action="store_false")
    p_create.set_defaults(func=cmd_package_create)
    p_delete = pkg_sub.add_parser("delete", help="Delete a package directory.")
    p_delete.add_argument("name")
    p_delete.set_defaults(func=cmd_package_delete)
    p_list = pkg_sub.add_parser("list", help="List workspace packages and apps.")
    p_list.set_defaults(func=cmd_package_list)
    p_tpl = pkg_sub.add_parser("template", help="List available package templates.")
    p_tpl.set_defaults(func=cmd_package_template)

    p_add = sub.add_parser("add", help="Add dependencies to workspaces.")
    p_add.add_argument("packages", nargs="*")
    _add_target_args(p_add)
    p_add.add_argument("--internal", action="store_true", help="Add other workspace members as dependencies.")
    p_add.add_argument("-D", "--dev", action="store_true", help="Add as a development dependency.")
    p_add.add_argument("--no-install", action="store_true", help="Skip the install after internal changes.")
    p_add.set_defaults(func=cmd_add)

    p_remove = sub.add_parser("remove", help="Remove dependencies from workspaces.")
    p_remove.add_argument("packages", nargs="*")
    _add_target_args(p_remove)
    p_remove.add_argument("--internal", action="store_true", help="Remove workspace members from dependencies.")
    p_remove.add_argument("--no-install", action="store_true", help="Skip the install after internal changes.")
    p_remove.set_defaults(func=cmd_remove)

    p_install = sub.add_parser("install", help="Install dependencies in workspaces.")
    _add_target_args(p_install)
    p_install.add_argument("--clean", action="store_true", help="Clean install (npm ci, --force elsewhere).")
    p_install.add_argument("--frozen", action="store_true", help="Fail instead of updating the lockfile.")
    p_install.set_defaults(func=cmd_install)

    return parser


def main(argv: list[str] | None = None, *, env: Mapping[str, str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = load_settings(args, os.environ if env is None else env)
        return int(args.func(args, settings))
    except KNOWN_ERRORS as exc:
        _eprint(f"ERROR: {exc}")
        return 1
    except KeyboardInterrupt:
        _eprint("\nInterrupted. Exiting.")
        return 130
    except EOFError:
        _eprint("\nERROR: input closed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
