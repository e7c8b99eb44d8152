"""Step commands: load the saved plan, apply one change, save it back.

Each function is one stateless CLI invocation's worth of work against the state file in
`workspace`:

- `start_step`: mark a step in-progress (no gate; starting early is allowed).
- `check_step`: run the gate without changing anything.
- `complete_step`: run the gate; when it passes, mark the step completed and save with
  a checkpoint listing the step's exact artifacts. A blocked gate, or a step that is
  already completed, leaves the state file untouched (`checkpoint` is `None`).
- `record_checkpoint`: append a free-form checkpoint for the current phase/step.
- `validate_workspace`: required-step completion plus the plan's validation rules.

`StateNotFound` is raised when the workspace has no state file.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .errors import StateNotFound
from .gate import GateResult, RuleCheck, enforce_step_completion, evaluate_validation_rules
from .plan import Checkpoint, ExecutionPlan, ExecutionState, StepStatus
from .report import RequiredStepsCheck, validate_required_steps
from .state import create_checkpoint, load_state, save_state
from .tracker import update_step_status

WORKSPACE_ENV = "TASKSPACE_WORKSPACE"


@dataclass(frozen=True)
class CompletionResult:
    gate: GateResult
    plan: ExecutionPlan
    checkpoint: Checkpoint | None = None


@dataclass(frozen=True)
class ValidationReport:
    required: RequiredStepsCheck
    rules: RuleCheck

    @property
    def is_valid(self) -> bool:
        return self.required.is_valid and self.rules.is_valid


def resolve_workspace(arg: str | None) -> Path:
    env = os.environ.get(WORKSPACE_ENV)
    return Path(arg or env or Path.cwd()).expanduser().resolve()


def require_state(workspace: Path) -> ExecutionState:
    state = load_state(workspace)
    if state is None:
        raise StateNotFound(f"No execution plan in {workspace}; run `taskspace init` first")
    return state


def start_step(workspace: Path, step_id: str) -> ExecutionPlan:
    state = require_state(workspace)
    plan = update_step_status(state.plan, step_id, StepStatus.IN_PROGRESS)
    save_state(workspace, plan)
    print(f"[taskspace] started: {step_id}", file=sys.stderr)
    return plan


def check_step(workspace: Path, step_id: str) -> GateResult:
    return enforce_step_completion(workspace, require_state(workspace).plan, step_id)


def complete_step(workspace: Path, step_id: str, message: str | None = None) -> CompletionResult:
    state = require_state(workspace)
    if state.plan.find_step(step_id).status == StepStatus.COMPLETED:
        print(f"[taskspace] already completed: {step_id}", file=sys.stderr)
        return CompletionResult(gate=GateResult(can_proceed=True), plan=state.plan)

    gate = enforce_step_completion(workspace, state.plan, step_id)
    if not gate.can_proceed:
        print(f"[taskspace] blocked: {step_id} ({len(gate.issues)} issue(s))", file=sys.stderr)
        return CompletionResult(gate=gate, plan=state.plan)

    plan = update_step_status(state.plan, step_id, StepStatus.COMPLETED)
    step = plan.find_step(step_id)
    checkpoint = create_checkpoint(
        step.phase,
        step.id,
        message or f"Completed {step.name}",
        [a.path for a in step.exact_artifacts],
    )
    save_state(workspace, plan, checkpoint)
    print(f"[taskspace] completed: {step_id} (plan {plan.status.value})", file=sys.stderr)
    return CompletionResult(gate=gate, plan=plan, checkpoint=checkpoint)


def record_checkpoint(workspace: Path, message: str, artifacts: Iterable[str] = ()) -> Checkpoint:
    state = require_state(workspace)
    plan = state.plan
    checkpoint = create_checkpoint(plan.current_phase or "", plan.current_step or "", message, artifacts)
    save_state(workspace, plan, checkpoint)
    print(f"[taskspace] checkpoint: {checkpoint.id}", file=sys.stderr)
    return checkpoint


def validate_workspace(workspace: Path) -> ValidationReport:
    plan = require_state(workspace).plan
    return ValidationReport(
        required=validate_required_steps(plan),
        rules=evaluate_validation_rules(workspace, plan),
    )
