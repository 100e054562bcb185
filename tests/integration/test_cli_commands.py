"""Integration tests for the ``homefiles`` CLI commands."""

from __future__ import annotations

import importlib
import json
import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from homefiles.cli import app as cli_app
from tests.utils import write_file

runner = CliRunner()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture()
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture()
def env(state_dir: Path) -> dict[str, str | None]:
    """Environment isolating each run from the caller's settings."""
    return {
        "HOMEFILES_STATE_DIR": str(state_dir),
        "HOMEFILES_ROOT": None,
        "HOMEFILES_BACKUP_EXT": None,
        "HOMEFILES_DRY_RUN": None,
        "HOMEFILES_VERBOSE": None,
        "HOMEFILES_CONFIG": None,
        "XDG_CONFIG_HOME": None,
    }


def _write_config(tmp_path: Path, home: Path, files: str) -> Path:
    """Write a declaration file rooted at *home* with the given ``files`` block."""
    path = tmp_path / "dotfiles" / "homefiles.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"root: {home}\nfiles:\n{files}", encoding="utf-8")
    return path


PROFILE = """\
  .profile:
    text: "export EDITOR=vi\\n"
  bin/hello:
    text: "#!/bin/sh\\necho hello\\n"
    executable: true
"""


def _invoke(env: dict[str, str | None], *args: str):
    return runner.invoke(cli_app, list(args), env=env)


# ---------------------------------------------------------------------------
# switch
# ---------------------------------------------------------------------------


class TestSwitch:
    def test_first_switch_links_files(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)

        result = _invoke(env, "switch", "-c", str(config))

        assert result.exit_code == 0, result.output
        assert "Activated generation 1" in result.output
        assert (home / ".profile").read_text() == "export EDITOR=vi\n"
        assert os.access(home / "bin" / "hello", os.X_OK)

    def test_second_switch_reuses_generation(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)
        _invoke(env, "switch", "-c", str(config))

        result = _invoke(env, "switch", "-c", str(config))

        assert result.exit_code == 0, result.output
        assert "reusing generation 1" in result.output

    def test_json_report(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)

        result = _invoke(env, "switch", "-c", str(config), "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["incoming"] == 1
        assert data["outgoing"] is None
        assert data["created"] == [".profile", "bin/hello"]
        assert data["ok"] is True

    def test_collision_aborts(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)
        write_file(home / ".profile", "mine\n")

        result = _invoke(env, "switch", "-c", str(config))

        assert result.exit_code == 1
        assert "in the way" in result.output
        assert (home / ".profile").read_text() == "mine\n"
        assert not os.path.lexists(home / "bin" / "hello")

    def test_backup_flag_moves_collisions_aside(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)
        write_file(home / ".profile", "mine\n")

        result = _invoke(env, "switch", "-c", str(config), "-b", "bak")

        assert result.exit_code == 0, result.output
        assert (home / ".profile.bak").read_text() == "mine\n"
        assert (home / ".profile").is_symlink()

    def test_backup_ext_from_environment(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)
        write_file(home / ".profile", "mine\n")
        env["HOMEFILES_BACKUP_EXT"] = "orig"

        result = _invoke(env, "switch", "-c", str(config))

        assert result.exit_code == 0, result.output
        assert (home / ".profile.orig").read_text() == "mine\n"

    def test_dry_run_changes_nothing(self, tmp_path: Path, home: Path, env, state_dir: Path) -> None:
        config = _write_config(tmp_path, home, PROFILE)

        result = _invoke(env, "switch", "-c", str(config), "--dry-run")

        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert list(home.iterdir()) == []
        assert not os.path.lexists(state_dir / "current")

    def test_failing_hook_exits_non_zero(self, tmp_path: Path, home: Path, env) -> None:
        files = '  app.conf:\n    text: "x=1\\n"\n    on_change: "exit 4"\n'
        config = _write_config(tmp_path, home, files)

        result = _invoke(env, "switch", "-c", str(config))

        assert result.exit_code == 1
        assert "failed" in result.output
        assert (home / "app.conf").read_text() == "x=1\n"

    def test_duplicate_targets_rejected(self, tmp_path: Path, home: Path, env) -> None:
        files = '  one:\n    target: same\n    text: "1"\n  two:\n    target: same\n    text: "2"\n'
        config = _write_config(tmp_path, home, files)

        result = _invoke(env, "switch", "-c", str(config))

        assert result.exit_code == 1
        assert "Conflicting managed target files" in result.output
        assert list(home.iterdir()) == []

    def test_corrupt_manifest_reported(
        self, tmp_path: Path, home: Path, env, state_dir: Path
    ) -> None:
        config = _write_config(tmp_path, home, PROFILE)
        _invoke(env, "switch", "-c", str(config))
        (state_dir / "generations" / "1" / "manifest.json").write_text("{not json")

        result = _invoke(env, "switch", "-c", str(config))

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Invalid manifest" in result.output

    def test_missing_config(self, tmp_path: Path, env) -> None:
        result = _invoke(env, "switch", "-c", str(tmp_path / "missing.yaml"))

        assert result.exit_code == 1
        assert "not found" in result.output


# ---------------------------------------------------------------------------
# build / check / generations
# ---------------------------------------------------------------------------


class TestPlanningCommands:
    def test_build_does_not_activate(self, tmp_path: Path, home: Path, env, state_dir: Path) -> None:
        config = _write_config(tmp_path, home, PROFILE)

        result = _invoke(env, "build", "-c", str(config))

        assert result.exit_code == 0, result.output
        assert "Generation 1" in result.output
        assert (state_dir / "generations" / "1" / "manifest.json").is_file()
        assert not os.path.lexists(state_dir / "current")
        assert list(home.iterdir()) == []

    def test_check_passes(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)

        result = _invoke(env, "check", "-c", str(config))

        assert result.exit_code == 0, result.output
        assert "No collisions" in result.output

    def test_check_reports_collisions(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)
        write_file(home / ".profile", "mine\n")

        result = _invoke(env, "check", "-c", str(config))

        assert result.exit_code == 1
        assert "in the way" in result.output


class TestGenerations:
    def test_no_generations(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)

        result = _invoke(env, "generations", "-c", str(config))

        assert result.exit_code == 0, result.output
        assert "No generations yet" in result.output

    def test_lists_generations_as_json(self, tmp_path: Path, home: Path, env) -> None:
        config = _write_config(tmp_path, home, PROFILE)
        _invoke(env, "switch", "-c", str(config))
        config.write_text(config.read_text() + '  extra:\n    text: "e"\n', encoding="utf-8")
        _invoke(env, "switch", "-c", str(config))

        result = _invoke(env, "generations", "-c", str(config), "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [g["number"] for g in data] == [1, 2]
        assert [g["current"] for g in data] == [False, True]
        assert data[1]["previous"] == 1
        assert data[1]["files"] == 3


def test_version() -> None:
    result = runner.invoke(cli_app, ["version"])
    assert result.exit_code == 0
    assert result.output.strip()


def test_generations_with_corrupt_manifest(tmp_path: Path, home: Path, env, state_dir: Path) -> None:
    config = _write_config(tmp_path, home, PROFILE)
    _invoke(env, "switch", "-c", str(config))
    (state_dir / "generations" / "1" / "manifest.json").write_text("{not json")

    result = _invoke(env, "generations", "-c", str(config))

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Invalid manifest" in result.output


def test_main_module_import_does_not_run_cli() -> None:
    module = importlib.import_module("homefiles.__main__")
    assert callable(module.main)
