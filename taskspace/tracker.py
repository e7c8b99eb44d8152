"""Step status transitions.

`update_step_status()` is a pure function: it returns a new `ExecutionPlan` and never
touches the one it was given.

Transitions
- Status only advances: pending -> in-progress -> completed (skipping in-progress is
  allowed). Moving backwards raises `InvalidTransition`.
- Entering `in-progress` stamps `started_at` and points `current_step`/`current_phase`
  at the step.
- Entering `completed` stamps `completed_at` (and `started_at` when the step was never
  started).
- Re-applying the step's current status changes nothing, timestamps included.

Rollup (`recompute_statuses`) runs after every transition, unconditionally:
- phase: completed iff all required steps completed (all steps, when none is required;
  never for an empty phase); in-progress iff any step is non-pending; pending otherwise.
- plan: completed iff all required phases completed; in-progress iff any phase is
  non-pending; pending otherwise.
"""

from __future__ import annotations

from dataclasses import replace

from .errors import InvalidTransition
from .plan import ExecutionPlan, Phase, Step, StepStatus, now_iso


def update_step_status(plan: ExecutionPlan, step_id: str, new_status: StepStatus) -> ExecutionPlan:
    new_status = StepStatus(new_status)
    step = plan.find_step(step_id)

    if new_status.rank < step.status.rank:
        raise InvalidTransition(
            f"Cannot move step {step_id} from {step.status.value} back to {new_status.value}"
        )

    if new_status == step.status:
        return recompute_statuses(plan)

    now = now_iso()
    changes: dict[str, object] = {"status": new_status}
    if new_status == StepStatus.IN_PROGRESS:
        changes["started_at"] = now
    elif new_status == StepStatus.COMPLETED:
        changes["completed_at"] = now
        if step.started_at is None:
            changes["started_at"] = now
    updated = replace(step, **changes)

    phases = tuple(
        replace(p, steps=tuple(updated if s.id == step_id else s for s in p.steps)) for p in plan.phases
    )
    plan = replace(plan, phases=phases, updated_at=now)
    if new_status == StepStatus.IN_PROGRESS:
        plan = replace(plan, current_step=step_id, current_phase=updated.phase or plan.phase_of(step_id).id)
    return recompute_statuses(plan)


def recompute_statuses(plan: ExecutionPlan) -> ExecutionPlan:
    phases = tuple(replace(p, status=phase_status(p)) for p in plan.phases)
    return replace(plan, phases=phases, status=_plan_status(phases))


def phase_status(phase: Phase) -> StepStatus:
    return _rollup(phase.steps)


def _plan_status(phases: tuple[Phase, ...]) -> StepStatus:
    return _rollup(phases)


def _rollup(children: tuple[Step, ...] | tuple[Phase, ...]) -> StepStatus:
    required = [c for c in children if c.is_required] or list(children)
    if required and all(c.status == StepStatus.COMPLETED for c in required):
        return StepStatus.COMPLETED
    if any(c.status != StepStatus.PENDING for c in children):
        return StepStatus.IN_PROGRESS
    return StepStatus.PENDING
