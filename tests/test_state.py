from __future__ import annotations

import json
from pathlib import Path

import pytest

import taskspace.state as state_mod
from taskspace.errors import PersistenceError
from taskspace.generator import generate_plan
from taskspace.plan import ExecutionPlan, StepStatus
from taskspace.state import STATE_FILE, create_checkpoint, load_state, save_state, state_path
from taskspace.tracker import update_step_status


def _plan(workspace: Path) -> ExecutionPlan:
    return generate_plan("issue-fix", str(workspace), "fix/login", [2312], "next")


def test_load_state_returns_none_when_never_started(tmp_path: Path) -> None:
    assert load_state(tmp_path) is None


def test_save_then_load_returns_equal_plan(tmp_path: Path) -> None:
    plan = update_step_status(_plan(tmp_path), "analyze-requirements", StepStatus.IN_PROGRESS)

    save_state(tmp_path, plan)
    loaded = load_state(tmp_path)

    assert loaded is not None
    assert loaded.plan == plan
    assert loaded.checkpoints == ()
    assert loaded.last_saved


def test_state_file_uses_camel_case_layout(tmp_path: Path) -> None:
    save_state(tmp_path, _plan(tmp_path))

    raw = json.loads((tmp_path / STATE_FILE).read_text(encoding="utf-8"))

    assert set(raw) == {"executionPlan", "checkpoints", "lastSaved"}
    assert raw["executionPlan"]["workflowType"] == "issue-fix"
    assert raw["executionPlan"]["issueIds"] == [2312]


def test_each_save_appends_its_checkpoint(tmp_path: Path) -> None:
    plan = _plan(tmp_path)
    first = create_checkpoint("ANALYZE", "analyze-requirements", "first", ["analysis-notes.md"])
    second = create_checkpoint("ANALYZE", "reproduce-issue", "second")

    save_state(tmp_path, plan, first)
    save_state(tmp_path, plan)
    save_state(tmp_path, plan, second)
    loaded = load_state(tmp_path)

    assert loaded is not None
    assert [c.message for c in loaded.checkpoints] == ["first", "second"]
    assert loaded.checkpoints[0].artifacts == ("analysis-notes.md",)


def test_checkpoint_ids_are_unique_and_increasing() -> None:
    ids = [create_checkpoint("P", "s", str(i)).id for i in range(5)]

    assert len(set(ids)) == 5
    stamps = [int(i.split("-", 1)[1]) for i in ids]
    assert stamps == sorted(stamps)
    assert all(i.startswith("checkpoint-") for i in ids)


def test_corrupt_state_raises_persistence_error(tmp_path: Path) -> None:
    state_path(tmp_path).write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError, match="Failed to load"):
        load_state(tmp_path)


def test_state_without_plan_raises_persistence_error(tmp_path: Path) -> None:
    state_path(tmp_path).write_text('{"checkpoints": []}', encoding="utf-8")

    with pytest.raises(PersistenceError):
        load_state(tmp_path)


def test_misspelled_status_raises_persistence_error(tmp_path: Path) -> None:
    plan = update_step_status(_plan(tmp_path), "analyze-requirements", StepStatus.COMPLETED)
    save_state(tmp_path, plan)
    path = state_path(tmp_path)
    raw = json.loads(path.read_text(encoding="utf-8"))
    raw["executionPlan"]["phases"][0]["steps"][0]["status"] = "complteed"
    path.write_text(json.dumps(raw), encoding="utf-8")

    with pytest.raises(PersistenceError, match="complteed"):
        load_state(tmp_path)


def test_version_mismatch_loads_with_warning(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    save_state(tmp_path, _plan(tmp_path))
    path = state_path(tmp_path)
    raw = json.loads(path.read_text(encoding="utf-8"))
    raw["executionPlan"]["version"] = "0.9.0"
    path.write_text(json.dumps(raw), encoding="utf-8")

    loaded = load_state(tmp_path)

    assert loaded is not None
    assert loaded.plan.version == "0.9.0"
    assert "plan version 0.9.0" in capsys.readouterr().err


def test_failed_write_keeps_previous_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    plan = _plan(tmp_path)
    save_state(tmp_path, plan)
    before = state_path(tmp_path).read_text(encoding="utf-8")

    def boom(src: str, dst: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(state_mod.os, "replace", boom)

    changed = update_step_status(plan, "analyze-requirements", StepStatus.COMPLETED)
    with pytest.raises(PersistenceError, match="disk full"):
        save_state(tmp_path, changed)

    assert state_path(tmp_path).read_text(encoding="utf-8") == before
    assert [p.name for p in tmp_path.iterdir()] == [STATE_FILE]
