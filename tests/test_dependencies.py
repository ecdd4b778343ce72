from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from kabob.dependencies import add_internal_dependencies, remove_dependencies, version_token
from kabob.package_manager import PackageManager


def _write_pkg(directory: Path, payload: dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps(payload), encoding="utf-8")
    return directory


def _read_pkg(directory: Path) -> dict[str, Any]:
    return json.loads((directory / "package.json").read_text(encoding="utf-8"))


def test_version_token_per_manager() -> None:
    assert version_token(PackageManager.PNPM) == "workspace:*"
    assert version_token(PackageManager.NPM) == "*"
    assert version_token(PackageManager.YARN) == "*"


def test_add_internal_dependency_under_pnpm(tmp_path: Path) -> None:
    web = _write_pkg(tmp_path / "web", {"name": "web", "dependencies": {"react": "^18.0.0"}})

    written = add_internal_dependencies(web, ["@repo/ui"], PackageManager.PNPM)

    assert written == ["@repo/ui"]
    assert _read_pkg(web)["dependencies"] == {"react": "^18.0.0", "@repo/ui": "workspace:*"}


@pytest.mark.parametrize("pm", [PackageManager.NPM, PackageManager.YARN])
def test_add_internal_dependency_under_npm_and_yarn(tmp_path: Path, pm: PackageManager) -> None:
    web = _write_pkg(tmp_path / "web", {"name": "web"})

    add_internal_dependencies(web, ["@repo/ui@workspace:*"], pm)

    assert _read_pkg(web)["dependencies"] == {"@repo/ui": "*"}


def test_add_internal_dev_dependency_overwrites_existing_token(tmp_path: Path) -> None:
    web = _write_pkg(tmp_path / "web", {"name": "web", "devDependencies": {"@repo/config": "*"}})

    add_internal_dependencies(web, ["@repo/config"], PackageManager.PNPM, dev=True)

    manifest = _read_pkg(web)
    assert manifest["devDependencies"] == {"@repo/config": "workspace:*"}
    assert "dependencies" not in manifest


def test_add_moves_dependency_between_maps(tmp_path: Path) -> None:
    web = _write_pkg(tmp_path / "web", {"name": "web", "dependencies": {"@repo/ui": "workspace:*", "react": "^18"}})

    add_internal_dependencies(web, ["@repo/ui"], PackageManager.PNPM, dev=True)
    manifest = _read_pkg(web)
    assert manifest["dependencies"] == {"react": "^18"}
    assert manifest["devDependencies"] == {"@repo/ui": "workspace:*"}

    add_internal_dependencies(web, ["@repo/ui"], PackageManager.PNPM)
    manifest = _read_pkg(web)
    assert manifest["dependencies"] == {"react": "^18", "@repo/ui": "workspace:*"}
    assert manifest["devDependencies"] == {}


def test_add_skips_self_dependency(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ui = _write_pkg(tmp_path / "ui", {"name": "@repo/ui"})
    before = (ui / "package.json").read_text(encoding="utf-8")

    assert add_internal_dependencies(ui, ["@repo/ui"], PackageManager.NPM) == []

    assert (ui / "package.json").read_text(encoding="utf-8") == before
    assert "cannot depend on itself" in capsys.readouterr().err


def test_remove_deletes_from_both_maps(tmp_path: Path) -> None:
    web = _write_pkg(
        tmp_path / "web",
        {
            "name": "web",
            "dependencies": {"@repo/ui": "workspace:*", "react": "^18"},
            "devDependencies": {"@repo/ui": "*"},
        },
    )

    assert remove_dependencies(web, ["@repo/ui"]) == ["@repo/ui"]

    manifest = _read_pkg(web)
    assert manifest["dependencies"] == {"react": "^18"}
    assert manifest["devDependencies"] == {}


def test_remove_missing_dependency_is_a_no_op(tmp_path: Path) -> None:
    web = _write_pkg(tmp_path / "web", {"name": "web", "dependencies": {"react": "^18"}})
    before = (web / "package.json").read_text(encoding="utf-8")

    assert remove_dependencies(web, ["@repo/absent"]) == []

    assert (web / "package.json").read_text(encoding="utf-8") == before
