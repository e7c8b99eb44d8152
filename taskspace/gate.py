"""Dependency and artifact admission checks.

`enforce_step_completion()` answers "may this step be marked completed?". Rejections
are returned as human-readable strings, never raised; only an unknown step id raises
(`StepNotFound`), since that is a caller bug rather than a state of the work.

Order of checks
1. The step must exist in the plan.
2. Optional steps always pass: gating is reserved for required steps.
3. Every dependency must be `completed`; each unmet one adds
   `Dependency step "<name>" must be completed first`.
4. Every EXACT artifact must exist under the workspace; the missing ones are listed in
   a single `Missing required artifacts: a, b` issue. GLOB artifacts pass unchecked.

Validation rules are not part of the gate. `evaluate_validation_rules()` reports on
them separately for `taskspace validate`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .errors import StepNotFound
from .plan import Artifact, ArtifactKind, ExecutionPlan, RuleType, Step, StepStatus, ValidationRule


@dataclass(frozen=True)
class GateResult:
    can_proceed: bool
    issues: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ArtifactCheck:
    is_valid: bool
    missing_artifacts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RuleOutcome:
    rule: ValidationRule
    passed: bool
    detail: str


@dataclass(frozen=True)
class RuleCheck:
    is_valid: bool
    outcomes: list[RuleOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[RuleOutcome]:
        return [o for o in self.outcomes if not o.passed]


def enforce_step_completion(workspace_path: Path | str, plan: ExecutionPlan, step_id: str) -> GateResult:
    step = plan.find_step(step_id)
    if not step.is_required:
        return GateResult(can_proceed=True, issues=[])

    issues: list[str] = []
    for dep_id in step.dependencies:
        try:
            dep = plan.find_step(dep_id)
        except StepNotFound:
            issues.append(f'Dependency step "{dep_id}" is not part of this plan')
            continue
        if dep.status != StepStatus.COMPLETED:
            issues.append(f'Dependency step "{dep.name}" must be completed first')

    check = validate_step_artifacts(workspace_path, step)
    if not check.is_valid:
        issues.append(f"Missing required artifacts: {', '.join(check.missing_artifacts)}")

    return GateResult(can_proceed=not issues, issues=issues)


def validate_step_artifacts(workspace_path: Path | str, step: Step) -> ArtifactCheck:
    root = Path(workspace_path)
    missing = [a.path for a in step.artifacts if not artifact_present(root, a)]
    return ArtifactCheck(is_valid=not missing, missing_artifacts=missing)


def artifact_present(root: Path, artifact: Artifact) -> bool:
    if artifact.kind == ArtifactKind.GLOB:
        return True
    return (root / artifact.path).exists()


def evaluate_validation_rules(
    workspace_path: Path | str,
    plan: ExecutionPlan,
    step: Step | None = None,
) -> RuleCheck:
    """Evaluate the plan's validation rules, or only those a single step references.

    `command-success` rules name a command the operator runs (build, test); they are
    reported as passing with an "externally verified" note.
    """
    root = Path(workspace_path)
    rules = plan.metadata.validation_rules
    if step is not None:
        rules = tuple(r for r in rules if r.id in step.validations)

    outcomes = [_evaluate_rule(root, r) for r in rules]
    is_valid = all(o.passed for o in outcomes if o.rule.is_required)
    return RuleCheck(is_valid=is_valid, outcomes=outcomes)


def _evaluate_rule(root: Path, rule: ValidationRule) -> RuleOutcome:
    target = root / rule.target
    if rule.rule_type == RuleType.FILE_EXISTS:
        if target.exists():
            return RuleOutcome(rule, True, f"{rule.target} exists")
        return RuleOutcome(rule, False, f"{rule.target} not found")

    if rule.rule_type == RuleType.CONTENT_CONTAINS:
        if not target.is_file():
            return RuleOutcome(rule, False, f"{rule.target} not found")
        expected = rule.expected_value or ""
        text = target.read_text(encoding="utf-8", errors="replace")
        if expected in text:
            return RuleOutcome(rule, True, f"{rule.target} contains {expected!r}")
        return RuleOutcome(rule, False, f"{rule.target} does not contain {expected!r}")

    return RuleOutcome(rule, True, f"`{rule.target}` command is verified externally")
