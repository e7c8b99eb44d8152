from __future__ import annotations

import itertools

import pytest

from taskspace.errors import InvalidTransition, StepNotFound
from taskspace.generator import generate_plan
from taskspace.plan import ExecutionPlan, Phase, Step, StepStatus
from taskspace.tracker import phase_status, recompute_statuses, update_step_status


def _plan() -> ExecutionPlan:
    return generate_plan("issue-fix", "/ws", "fix/login", [2312], "next")


def _statuses(plan: ExecutionPlan) -> tuple:
    return (
        plan.status,
        tuple(p.status for p in plan.phases),
        tuple(s.status for s in plan.iter_steps()),
    )


def _complete_all(plan: ExecutionPlan, step_ids: list[str]) -> ExecutionPlan:
    for step_id in step_ids:
        plan = update_step_status(plan, step_id, StepStatus.COMPLETED)
    return plan


def test_update_returns_new_plan_and_leaves_input_untouched() -> None:
    plan = _plan()
    before = plan.to_dict()

    updated = update_step_status(plan, "analyze-requirements", StepStatus.IN_PROGRESS)

    assert updated is not plan
    assert plan.to_dict() == before
    assert plan.find_step("analyze-requirements").status == StepStatus.PENDING
    assert updated.find_step("analyze-requirements").status == StepStatus.IN_PROGRESS


def test_in_progress_stamps_start_and_moves_current_pointer() -> None:
    plan = update_step_status(_plan(), "design-approach", StepStatus.IN_PROGRESS)

    step = plan.find_step("design-approach")
    assert step.started_at is not None
    assert step.completed_at is None
    assert plan.current_step == "design-approach"
    assert plan.current_phase == "DESIGN"
    assert plan.find_phase("DESIGN").status == StepStatus.IN_PROGRESS
    assert plan.status == StepStatus.IN_PROGRESS


def test_completed_stamps_completion() -> None:
    plan = update_step_status(_plan(), "analyze-requirements", StepStatus.COMPLETED)

    step = plan.find_step("analyze-requirements")
    assert step.status == StepStatus.COMPLETED
    assert step.completed_at is not None
    assert step.started_at is not None


def test_completing_twice_is_idempotent() -> None:
    once = update_step_status(_plan(), "analyze-requirements", StepStatus.COMPLETED)
    twice = update_step_status(once, "analyze-requirements", StepStatus.COMPLETED)

    assert _statuses(once) == _statuses(twice)
    assert twice.find_step("analyze-requirements") == once.find_step("analyze-requirements")


def test_regression_is_rejected() -> None:
    plan = update_step_status(_plan(), "analyze-requirements", StepStatus.COMPLETED)

    with pytest.raises(InvalidTransition, match="back to in-progress"):
        update_step_status(plan, "analyze-requirements", StepStatus.IN_PROGRESS)
    with pytest.raises(ValueError):
        update_step_status(plan, "analyze-requirements", StepStatus.PENDING)


def test_unknown_step_raises() -> None:
    with pytest.raises(StepNotFound):
        update_step_status(_plan(), "nope", StepStatus.COMPLETED)


def test_phase_completes_once_required_steps_complete_in_any_order() -> None:
    plan = _plan()
    analyze = plan.find_phase("ANALYZE")
    required = [s.id for s in analyze.steps if s.is_required]

    for order in itertools.permutations(required):
        result = _complete_all(plan, list(order))
        assert result.find_phase("ANALYZE").status == StepStatus.COMPLETED


def test_phase_ignores_optional_steps_for_completion() -> None:
    plan = _plan()
    document = plan.find_phase("DOCUMENT")
    required = [s.id for s in document.steps if s.is_required]
    optional = [s.id for s in document.steps if not s.is_required]
    assert optional

    result = _complete_all(plan, required)

    assert result.find_phase("DOCUMENT").status == StepStatus.COMPLETED
    assert all(result.find_step(s).status == StepStatus.PENDING for s in optional)


def test_plan_completes_when_all_required_steps_complete() -> None:
    plan = _plan()
    required = [s.id for s in plan.iter_steps() if s.is_required]

    result = _complete_all(plan, required[:-1])
    assert result.status == StepStatus.IN_PROGRESS

    result = update_step_status(result, required[-1], StepStatus.COMPLETED)
    assert result.status == StepStatus.COMPLETED
    assert all(p.status == StepStatus.COMPLETED for p in result.phases)


def test_recompute_statuses_is_idempotent() -> None:
    plan = update_step_status(_plan(), "analyze-requirements", StepStatus.IN_PROGRESS)

    assert recompute_statuses(recompute_statuses(plan)) == recompute_statuses(plan)


def test_phase_without_required_steps_never_completes_vacuously() -> None:
    assert phase_status(Phase(id="EMPTY", name="Empty", steps=())) == StepStatus.PENDING

    optional = (
        Step(id="a", name="A", phase="P", is_required=False, status=StepStatus.COMPLETED),
        Step(id="b", name="B", phase="P", is_required=False),
    )
    assert phase_status(Phase(id="P", name="P", steps=optional)) == StepStatus.IN_PROGRESS
