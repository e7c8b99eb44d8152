"""Workspace state persistence (`<workspace>/.workspace-state.json`).

The state file is the only memory a task has between CLI invocations. It holds:

    {
      "executionPlan": {...},   # ExecutionPlan.to_dict()
      "checkpoints": [...],     # append-only audit trail
      "lastSaved": "2024-01-01T00:00:00.000Z"
    }

Semantics
- `load_state()` returns None when the file does not exist ("never started") and raises
  `PersistenceError` when it exists but cannot be read or parsed ("corrupted"). A plan
  written by a different plan version is loaded with a warning on stderr.
- `save_state()` keeps every checkpoint already on disk and appends the new one (if
  any). The plan is written as given; saving never restamps it, so `load_state()`
  returns a plan equal to the one saved.
- Writes are atomic (temp file in the same directory + `os.replace`), so an interrupted
  save leaves the previous state intact. There is no cross-process locking: the last
  writer wins.
- Nothing here is retried; every OS or parse failure surfaces as `PersistenceError`.
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Iterable

from .errors import PersistenceError
from .plan import PLAN_VERSION, Checkpoint, ExecutionPlan, ExecutionState, now_iso

STATE_FILE = ".workspace-state.json"

_last_checkpoint_ms = 0


def state_path(workspace_path: Path | str) -> Path:
    return Path(workspace_path) / STATE_FILE


def load_state(workspace_path: Path | str) -> ExecutionState | None:
    path = state_path(workspace_path)
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        state = ExecutionState.from_dict(raw)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise PersistenceError(f"Failed to load workspace state from {path}: {exc}") from exc

    if state.plan.version != PLAN_VERSION:
        print(
            f"[taskspace] warning: {path} was written by plan version {state.plan.version} "
            f"(current {PLAN_VERSION})",
            file=sys.stderr,
        )
    return state


def save_state(
    workspace_path: Path | str,
    plan: ExecutionPlan,
    checkpoint: Checkpoint | None = None,
) -> ExecutionState:
    prior = load_state(workspace_path)
    checkpoints = tuple(prior.checkpoints) if prior is not None else ()
    if checkpoint is not None:
        checkpoints += (checkpoint,)

    state = ExecutionState(plan=plan, checkpoints=checkpoints, last_saved=now_iso())
    path = state_path(workspace_path)
    try:
        _atomic_write_json(path, state.to_dict())
    except OSError as exc:
        raise PersistenceError(f"Failed to save workspace state to {path}: {exc}") from exc
    return state


def create_checkpoint(phase: str, step: str, message: str, artifacts: Iterable[str] = ()) -> Checkpoint:
    global _last_checkpoint_ms
    ms = max(int(time.time() * 1000), _last_checkpoint_ms + 1)
    _last_checkpoint_ms = ms
    return Checkpoint(
        id=f"checkpoint-{ms}",
        phase=phase,
        step=step,
        message=message,
        timestamp=now_iso(),
        artifacts=tuple(str(a) for a in artifacts),
    )


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, indent=2, ensure_ascii=True) + "\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
