"""Execution plan generation from a workflow catalog.

`generate_plan()` is the only place that knows about workflow types: it instantiates
the template for one type into an `ExecutionPlan` with every phase/step `pending`,
and precomputes the plan-level aggregates (`required_artifacts`, `validation_rules`)
so the tracker, gate, and reporter only ever look at the plan itself.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Any, Mapping

from .catalog import DEFAULT_CATALOG, Catalog, PhaseTemplate, StepTemplate, validate_template
from .errors import UnknownWorkflowType
from .plan import Artifact, ExecutionPlan, Phase, PlanMetadata, Step, StepStatus, now_iso


def generate_plan(
    workflow_type: str,
    workspace_path: str,
    branch_name: str,
    issue_ids: Iterable[int],
    project_key: str,
    issue_data: Sequence[Mapping[str, Any]] = (),
    selected_prompts: Sequence[str] = (),
    *,
    catalog: Catalog = DEFAULT_CATALOG,
) -> ExecutionPlan:
    template = catalog.get(workflow_type)
    if template is None:
        raise UnknownWorkflowType(workflow_type, list(catalog.keys()))
    validate_template(template)

    issue_ids = tuple(int(i) for i in issue_ids)
    phase_templates = _drop_issue_only_steps(template.phases) if not issue_ids else template.phases
    phases = tuple(_instantiate_phase(p) for p in phase_templates)

    timestamp = now_iso()
    first_phase = phases[0]
    return ExecutionPlan(
        id=f"{workflow_type}-{branch_name}-{int(time.time() * 1000)}",
        workflow_type=workflow_type,
        workspace_path=str(workspace_path),
        branch_name=branch_name,
        issue_ids=issue_ids,
        status=StepStatus.PENDING,
        current_phase=first_phase.id,
        current_step=(first_phase.steps[0].id if first_phase.steps else None),
        phases=phases,
        metadata=PlanMetadata(
            project_key=project_key,
            issue_data=tuple(dict(d) for d in issue_data),
            selected_prompts=tuple(str(p) for p in selected_prompts),
            required_artifacts=_flatten_artifacts(phases),
            validation_rules=template.validation_rules,
        ),
        created_at=timestamp,
        updated_at=timestamp,
    )


def _instantiate_phase(template: PhaseTemplate) -> Phase:
    return Phase(
        id=template.id,
        name=template.name,
        description=template.description,
        is_required=template.is_required,
        status=StepStatus.PENDING,
        steps=tuple(
            Step(
                id=s.id,
                name=s.name,
                phase=template.id,
                description=s.description,
                dependencies=s.dependencies,
                artifacts=s.artifacts,
                validations=s.validations,
                estimated_duration=s.estimated_duration,
                is_required=s.is_required,
                status=StepStatus.PENDING,
            )
            for s in template.steps
        ),
    )


def _flatten_artifacts(phases: Iterable[Phase]) -> tuple[Artifact, ...]:
    seen: dict[Artifact, None] = {}
    for phase in phases:
        for step in phase.steps:
            for artifact in step.artifacts:
                seen.setdefault(artifact, None)
    return tuple(seen)


def _drop_issue_only_steps(phases: Sequence[PhaseTemplate]) -> tuple[PhaseTemplate, ...]:
    """Remove `requires_issues` steps, rewiring dependents onto the removed steps' own dependencies."""
    dropped = {s.id: s for p in phases for s in p.steps if s.requires_issues}
    if not dropped:
        return tuple(phases)

    def resolve(deps: Iterable[str]) -> tuple[str, ...]:
        out: list[str] = []
        for dep in deps:
            replacement = resolve(dropped[dep].dependencies) if dep in dropped else (dep,)
            for r in replacement:
                if r not in out:
                    out.append(r)
        return tuple(out)

    kept: list[PhaseTemplate] = []
    for phase in phases:
        steps: list[StepTemplate] = [
            replace(s, dependencies=resolve(s.dependencies))
            for s in phase.steps
            if s.id not in dropped
        ]
        # A phase made only of issue-only steps has nothing left to track.
        if steps:
            kept.append(replace(phase, steps=tuple(steps)))
    return tuple(kept)
