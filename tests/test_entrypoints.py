from __future__ import annotations

import runpy
import sys
from pathlib import Path

import pytest


def test_init_exports_version() -> None:
    import taskspace

    assert taskspace.__all__ == ["__version__"]
    assert isinstance(taskspace.__version__, str)
    assert taskspace.__version__


def test_main_module_import_exposes_cli_main() -> None:
    import taskspace.__main__ as main_mod
    import taskspace.cli as cli

    assert main_mod.main is cli.main


def test_main_module_exec_uses_cli_return_code(monkeypatch: pytest.MonkeyPatch) -> None:
    import taskspace.cli as cli

    monkeypatch.setattr(cli, "main", lambda: 17)

    with pytest.raises(SystemExit) as exc:
        runpy.run_module("taskspace.__main__", run_name="__main__")

    assert exc.value.code == 17


def test_main_module_help_lists_subcommands(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(sys, "argv", ["taskspace", "--help"])

    with pytest.raises(SystemExit) as exc:
        runpy.run_module("taskspace.__main__", run_name="__main__")

    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert out.startswith("usage: taskspace")
    for command in ("init", "status", "next", "complete", "validate"):
        assert command in out


def test_main_module_runs_status_against_saved_plan(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    from taskspace.generator import generate_plan
    from taskspace.progress import WORKSPACE_ENV
    from taskspace.state import save_state

    save_state(tmp_path, generate_plan("maintenance", str(tmp_path), "chore/deps", [], "next"))
    monkeypatch.setenv(WORKSPACE_ENV, str(tmp_path))
    monkeypatch.setattr(sys, "argv", ["taskspace", "status"])

    with pytest.raises(SystemExit) as exc:
        runpy.run_module("taskspace.__main__", run_name="__main__")

    assert exc.value.code == 0
    assert "# Execution Plan: maintenance" in capsys.readouterr().out
