from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from kabob import cli
from kabob.config import Settings
from kabob.package_manager import PackageManagerError


def _write_pkg(directory: Path, payload: dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps(payload), encoding="utf-8")
    return directory


def _read_pkg(directory: Path) -> dict[str, Any]:
    return json.loads((directory / "package.json").read_text(encoding="utf-8"))


def _run(root: Path, *argv: str) -> int:
    return cli.main(["--cwd", str(root), *argv], env={})


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = _write_pkg(tmp_path / "repo", {"name": "repo", "private": True, "workspaces": ["packages/*", "apps/*"]})
    _write_pkg(root / "packages" / "ui", {"name": "@repo/ui", "version": "1.0.0"})
    _write_pkg(root / "apps" / "web", {"name": "web", "version": "0.1.0", "dependencies": {"react": "^18"}})
    return root


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[list[str], Path]]:
    recorded: list[tuple[list[str], Path]] = []

    def fake_run_command(argv: list[str], *, cwd: Path) -> None:
        recorded.append((argv, cwd))

    monkeypatch.setattr(cli, "run_command", fake_run_command)
    return recorded


def test_create_then_list_reports_new_package(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _write_pkg(tmp_path / "mono", {"workspaces": ["packages/*"]})

    assert _run(root, "package", "create", "@scope/foo", "--version", "0.3.0", "--description", "Foo") == 0
    assert (root / "packages" / "foo" / "package.json").is_file()
    capsys.readouterr()

    assert _run(root, "package", "list") == 0
    out = capsys.readouterr().out
    assert "Packages:" in out
    assert "@scope/foo@0.3.0 (packages/foo)" in out
    assert "Foo" in out


def test_create_app_defaults_to_private_and_root_author(tmp_path: Path) -> None:
    root = _write_pkg(tmp_path / "mono", {"name": "mono", "author": "Team"})

    assert _run(root, "package", "create", "admin", "--type", "app", "--scope", "repo", "--template", "basic-jit") == 0

    manifest = _read_pkg(root / "apps" / "admin")
    assert manifest["name"] == "@repo/admin"
    assert manifest["private"] is True
    assert manifest["author"] == "Team"


def test_create_into_existing_directory_fails(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    before = (repo / "packages" / "ui" / "package.json").read_text(encoding="utf-8")

    assert _run(repo, "package", "create", "@other/ui") == 1

    assert "already exists" in capsys.readouterr().err
    assert (repo / "packages" / "ui" / "package.json").read_text(encoding="utf-8") == before


def test_add_external_runs_manager_in_each_workspace(
    repo: Path, calls: list[tuple[list[str], Path]], capsys: pytest.CaptureFixture[str]
) -> None:
    assert _run(repo, "add", "lodash", "-D", "--all") == 0

    assert calls == [
        (["npm", "install", "lodash", "--save-dev"], (repo / "apps" / "web").resolve()),
        (["npm", "install", "lodash", "--save-dev"], (repo / "packages" / "ui").resolve()),
    ]
    assert "Using package manager: npm" in capsys.readouterr().out


def test_add_internal_under_pnpm_rewrites_manifest_then_installs(
    repo: Path, calls: list[tuple[list[str], Path]]
) -> None:
    (repo / "pnpm-lock.yaml").write_text("", encoding="utf-8")

    assert _run(repo, "add", "ui", "--internal", "-w", "apps/web") == 0

    assert _read_pkg(repo / "apps" / "web")["dependencies"] == {"react": "^18", "@repo/ui": "workspace:*"}
    assert calls == [(["pnpm", "install"], repo.resolve())]


def test_add_internal_unknown_package_fails(repo: Path, calls: list[tuple[list[str], Path]]) -> None:
    assert _run(repo, "add", "nope", "--internal", "--all") == 1
    assert calls == []


def test_remove_internal_missing_dependency_is_a_no_op(
    repo: Path, calls: list[tuple[list[str], Path]], capsys: pytest.CaptureFixture[str]
) -> None:
    before = (repo / "apps" / "web" / "package.json").read_text(encoding="utf-8")

    assert _run(repo, "remove", "@repo/ui", "--internal", "-w", "apps/web", "--no-install") == 0

    assert (repo / "apps" / "web" / "package.json").read_text(encoding="utf-8") == before
    assert "Nothing to remove" in capsys.readouterr().out
    assert calls == []


def test_remove_external_uses_manager_uninstall(repo: Path, calls: list[tuple[list[str], Path]]) -> None:
    (repo / "yarn.lock").write_text("", encoding="utf-8")

    assert _run(repo, "remove", "react", "-w", "apps/web") == 0

    assert calls == [(["yarn", "remove", "react"], (repo / "apps" / "web").resolve())]


def test_install_failure_aborts_batch(repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[Path] = []

    def failing_run_command(argv: list[str], *, cwd: Path) -> None:
        seen.append(cwd)
        raise PackageManagerError(f"`{' '.join(argv)}` failed in {cwd} (exit 1)")

    monkeypatch.setattr(cli, "run_command", failing_run_command)

    assert _run(repo, "install", "--all", "--frozen") == 1
    assert len(seen) == 1

    seen.clear()
    assert _run(repo, "install", "--all", "--keep-going") == 1
    assert len(seen) == 2


def test_install_clean_under_npm_uses_ci(repo: Path, calls: list[tuple[list[str], Path]]) -> None:
    assert _run(repo, "install", "-w", "packages/ui", "--clean") == 0
    assert calls == [(["npm", "ci"], (repo / "packages" / "ui").resolve())]


def test_targets_required_without_input(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(repo, "--no-input", "install") == 1
    assert "pass explicit targets" in capsys.readouterr().err


def test_add_without_packages_fails(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(repo, "add", "--all") == 1
    assert "Please specify packages to add" in capsys.readouterr().err


def test_missing_root_manifest_exits_with_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "package", "list") == 1
    assert "ERROR: No package.json found" in capsys.readouterr().err


def test_absolute_workspace_pattern_exits_with_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _write_pkg(tmp_path / "repo", {"name": "repo", "workspaces": [str(tmp_path / "elsewhere" / "*")]})

    assert _run(root, "package", "list") == 1
    assert "ERROR: Workspace pattern must be relative" in capsys.readouterr().err


def test_package_delete_ambiguous_short_name_fails(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write_pkg(repo / "packages" / "other-ui", {"name": "@other/ui", "version": "1.0.0"})

    assert _run(repo, "--yes", "package", "delete", "ui") == 1

    assert "ERROR: Ambiguous internal package ui" in capsys.readouterr().err
    assert (repo / "packages" / "ui").is_dir()
    assert (repo / "packages" / "other-ui").is_dir()


def test_package_delete_declined_is_a_no_op(
    repo: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "confirm", lambda message, settings: False)

    assert _run(repo, "package", "delete", "ui") == 0

    assert (repo / "packages" / "ui").is_dir()
    assert "Operation cancelled" in capsys.readouterr().out


def test_package_delete_with_yes(repo: Path) -> None:
    assert _run(repo, "--yes", "package", "delete", "@repo/ui") == 0
    assert not (repo / "packages" / "ui").exists()
    assert (repo / "apps" / "web").is_dir()


def test_workspace_init_and_info(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "--package-manager", "pnpm", "workspace", "init", "acme", "--description", "Acme") == 0
    root = tmp_path / "acme"
    assert (root / "pnpm-workspace.yaml").is_file()
    assert "pnpm install" in capsys.readouterr().out

    _write_pkg(root / "packages" / "core", {"name": "@acme/core"})
    (root / "pnpm-lock.yaml").write_text("", encoding="utf-8")
    assert _run(root, "workspace", "info") == 0
    out = capsys.readouterr().out
    assert "Package Manager: pnpm" in out
    assert "Name: acme" in out
    assert "Description: Acme" in out
    assert "  - packages/*" in out
    assert "pnpm Workspace Patterns:" in out
    assert "build: turbo run build" in out
    assert "build, dev, lint, test" in out
    assert "Members: 1" in out


def test_package_template_lists_keys(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "package", "template") == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split("\t")[0] for line in lines][:2] == ["basic-jit", "basic-aot"]


def test_prompt_select_accepts_ranges_and_retries(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    answers = iter(["9", "", "1, 3-4"])
    monkeypatch.setattr("builtins.input", lambda prompt: next(answers))
    settings = Settings(cwd=tmp_path, interactive=True)

    picked = cli.prompt_select(["a", "b", "c", "d"], labels=["a", "b", "c", "d"], message="Pick:", settings=settings)

    assert picked == ["a", "c", "d"]
    out = capsys.readouterr().out
    assert "Invalid selection: 9 is out of range" in out
    assert "Please select at least one entry." in out


def test_confirm_honours_assume_yes(tmp_path: Path) -> None:
    assert cli.confirm("Delete?", Settings(cwd=tmp_path, assume_yes=True, interactive=False)) is True
