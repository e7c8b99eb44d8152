"""Read-only views over an execution plan: what is next, what is missing, a summary.

All functions here are pure. "Canonical order" is phase order, then step order within
each phase (`ExecutionPlan.iter_steps()`).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .plan import ExecutionPlan, Step, StepStatus


@dataclass(frozen=True)
class RequiredStepsCheck:
    is_valid: bool
    missing_steps: list[str] = field(default_factory=list)


def next_step(plan: ExecutionPlan) -> Step | None:
    """First pending step in canonical order, ignoring dependencies."""
    return next((s for s in plan.iter_steps() if s.status == StepStatus.PENDING), None)


def ready_steps(plan: ExecutionPlan) -> list[Step]:
    """Pending steps whose dependencies are all completed."""
    completed = {s.id for s in plan.iter_steps() if s.status == StepStatus.COMPLETED}
    return [
        s
        for s in plan.iter_steps()
        if s.status == StepStatus.PENDING and all(d in completed for d in s.dependencies)
    ]


def mandatory_incomplete_steps(plan: ExecutionPlan) -> list[Step]:
    return [s for s in plan.iter_steps() if s.is_required and s.status != StepStatus.COMPLETED]


def validate_required_steps(plan: ExecutionPlan) -> RequiredStepsCheck:
    missing = [f"{plan.phase_of(s.id).name} > {s.name}" for s in mandatory_incomplete_steps(plan)]
    return RequiredStepsCheck(is_valid=not missing, missing_steps=missing)


def plan_summary(plan: ExecutionPlan) -> str:
    lines = [
        f"# Execution Plan: {plan.workflow_type}",
        f"Branch: {plan.branch_name}",
        f"Status: {plan.status.value}",
        f"Current Phase: {plan.current_phase}",
        "",
        "## Progress Summary:",
    ]
    for phase in plan.phases:
        done = sum(1 for s in phase.steps if s.status == StepStatus.COMPLETED)
        required = sum(1 for s in phase.steps if s.is_required)
        lines.append(
            f"- **{phase.name}**: {done}/{len(phase.steps)} steps ({required} required) - {phase.status.value}"
        )

    remaining = mandatory_incomplete_steps(plan)
    if remaining:
        lines += ["", "## ⚠️ MANDATORY STEPS REMAINING:", ""]
        for step in remaining:
            lines.append(f"- **{plan.phase_of(step.id).name} > {step.name}**: {step.description}")

    lines += ["", "## Required Artifacts:", ""]
    lines += [f"- {a.path}" for a in plan.metadata.required_artifacts]
    return "\n".join(lines)
