"""taskspace.catalog

Workflow templates: the phase/step catalog that `taskspace.generator` instantiates.

A catalog is a plain mapping `workflow type -> WorkflowTemplate`. The generator takes
it as a parameter (defaulting to `DEFAULT_CATALOG`), so tests and users can supply
their own, for example from YAML via `load_catalog()`.

Template rules (`validate_template`)
- Phase ids are unique, step ids are unique across the whole workflow.
- Every phase has at least one required step, so a freshly generated phase is never
  completed before any work happens.
- A step may depend only on steps in an earlier phase or in its own phase, and the
  dependencies inside a phase must not form a cycle.
- Step `validations` reference rule ids defined by the workflow.

`requires_issues` marks steps that only make sense when the task has GitHub issues
attached (reproducing a reported bug). The generator drops them for issue-less tasks.

YAML catalogs
    workflows:
      issue-fix:
        rules:
          - {id: issue-reproduced, type: file-exists, target: BUGREPORT.md}
        phases:
          - id: ANALYZE
            name: Analysis Phase
            steps:
              - id: analyze-requirements
                name: Analyze Requirements
                artifacts: [analysis-notes.md]
              - id: reproduce-issue
                depends_on: [analyze-requirements]
                artifacts: [BUGREPORT.md, "tests/**/*.test.js"]

Artifact strings in YAML become `Artifact.parse()` values: anything with a wildcard is
a glob. Keys `required` (default true), `requires_issues`, `description`,
`estimated_duration`, and `validations` are optional.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .dag import topological_order
from .errors import CatalogError
from .plan import Artifact, RuleType, ValidationRule

ISSUE_FIX = "issue-fix"
FEATURE_DEVELOPMENT = "feature-development"
MAINTENANCE = "maintenance"
EXPLORATION = "exploration"

WORKFLOW_TYPES = (ISSUE_FIX, FEATURE_DEVELOPMENT, MAINTENANCE, EXPLORATION)


@dataclass(frozen=True)
class StepTemplate:
    id: str
    name: str
    description: str = ""
    dependencies: tuple[str, ...] = ()
    artifacts: tuple[Artifact, ...] = ()
    validations: tuple[str, ...] = ()
    estimated_duration: str = ""
    is_required: bool = True
    requires_issues: bool = False


@dataclass(frozen=True)
class PhaseTemplate:
    id: str
    name: str
    steps: tuple[StepTemplate, ...]
    description: str = ""
    is_required: bool = True


@dataclass(frozen=True)
class WorkflowTemplate:
    workflow_type: str
    phases: tuple[PhaseTemplate, ...]
    validation_rules: tuple[ValidationRule, ...] = ()

    def step_ids(self) -> list[str]:
        return [s.id for p in self.phases for s in p.steps]


Catalog = Mapping[str, WorkflowTemplate]


def validate_template(template: WorkflowTemplate) -> None:
    wf = template.workflow_type
    if not template.phases:
        raise CatalogError(f"{wf}: workflow has no phases")

    phase_ids = [p.id for p in template.phases]
    dup_phases = sorted({p for p in phase_ids if phase_ids.count(p) > 1})
    if dup_phases:
        raise CatalogError(f"{wf}: duplicate phase ids: {dup_phases}")

    step_ids = template.step_ids()
    dup_steps = sorted({s for s in step_ids if step_ids.count(s) > 1})
    if dup_steps:
        raise CatalogError(f"{wf}: duplicate step ids: {dup_steps}")

    rule_ids = {r.id for r in template.validation_rules}
    if len(rule_ids) != len(template.validation_rules):
        raise CatalogError(f"{wf}: duplicate validation rule ids")

    phase_index = {s.id: i for i, p in enumerate(template.phases) for s in p.steps}
    earlier: set[str] = set()
    for i, phase in enumerate(template.phases):
        if not any(s.is_required for s in phase.steps):
            raise CatalogError(f"{wf}: phase {phase.id} has no required steps")
        for step in phase.steps:
            for dep in step.dependencies:
                if dep not in phase_index:
                    raise CatalogError(f"{wf}: step {step.id} depends on unknown step {dep}")
                if phase_index[dep] > i:
                    raise CatalogError(f"{wf}: step {step.id} depends on {dep} from a later phase")
            unknown_rules = [v for v in step.validations if v not in rule_ids]
            if unknown_rules:
                raise CatalogError(f"{wf}: step {step.id} references unknown validation rules: {unknown_rules}")
        try:
            topological_order(phase.steps, satisfied=earlier)
        except RuntimeError as exc:
            raise CatalogError(f"{wf}: phase {phase.id}: {exc}") from exc
        earlier.update(s.id for s in phase.steps)


def load_catalog(path: Path) -> dict[str, WorkflowTemplate]:
    """Read a YAML catalog file and validate every workflow in it."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise CatalogError(f"Failed to read workflow catalog {path}: {exc}") from exc
    return catalog_from_dict(raw, source=str(path))


def catalog_from_dict(raw: Any, *, source: str = "catalog") -> dict[str, WorkflowTemplate]:
    if not isinstance(raw, Mapping):
        raise CatalogError(f"{source}: catalog must be a mapping")
    workflows = raw.get("workflows", raw)
    if not isinstance(workflows, Mapping) or not workflows:
        raise CatalogError(f"{source}: no workflows defined")

    catalog: dict[str, WorkflowTemplate] = {}
    for wf_type, wf_raw in workflows.items():
        try:
            template = _workflow_from_dict(str(wf_type), wf_raw)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CatalogError(f"{source}: invalid workflow {wf_type!r}: {exc}") from exc
        validate_template(template)
        catalog[template.workflow_type] = template
    return catalog


def _workflow_from_dict(wf_type: str, d: Mapping[str, Any]) -> WorkflowTemplate:
    rules = tuple(
        ValidationRule(
            id=str(r["id"]),
            name=str(r.get("name") or r["id"]),
            rule_type=RuleType(str(r["type"])),
            target=str(r.get("target") or ""),
            description=str(r.get("description") or ""),
            is_required=bool(r.get("required", True)),
            expected_value=(str(r["expected_value"]) if r.get("expected_value") is not None else None),
        )
        for r in (d.get("rules") or [])
    )
    phases = tuple(
        PhaseTemplate(
            id=str(p["id"]),
            name=str(p.get("name") or p["id"]),
            description=str(p.get("description") or ""),
            is_required=bool(p.get("required", True)),
            steps=tuple(_step_from_dict(s) for s in (p.get("steps") or [])),
        )
        for p in (d.get("phases") or [])
    )
    return WorkflowTemplate(workflow_type=wf_type, phases=phases, validation_rules=rules)


def _step_from_dict(s: Mapping[str, Any]) -> StepTemplate:
    return StepTemplate(
        id=str(s["id"]),
        name=str(s.get("name") or s["id"]),
        description=str(s.get("description") or ""),
        dependencies=tuple(str(x) for x in (s.get("depends_on") or [])),
        artifacts=tuple(Artifact.parse(x) for x in (s.get("artifacts") or [])),
        validations=tuple(str(x) for x in (s.get("validations") or [])),
        estimated_duration=str(s.get("estimated_duration") or ""),
        is_required=bool(s.get("required", True)),
        requires_issues=bool(s.get("requires_issues", False)),
    )


# Reference catalog.

_exact = Artifact.exact
_glob = Artifact.glob


def _analyze_phase(workflow_type: str) -> PhaseTemplate:
    steps = [
        StepTemplate(
            id="analyze-requirements",
            name="Analyze Requirements",
            description="Question the premise and validate the underlying problem",
            artifacts=(_exact("analysis-notes.md"),),
            estimated_duration="15-30 minutes",
        ),
    ]
    if workflow_type == ISSUE_FIX:
        steps += [
            StepTemplate(
                id="reproduce-issue",
                name="Reproduce Issue",
                description="Reproduce the reported issue in the sample app with failing tests",
                dependencies=("analyze-requirements",),
                artifacts=(_exact("BUGREPORT.md"), _exact("reproduction-tests.js")),
                validations=("issue-reproduced",),
                estimated_duration="30-60 minutes",
                requires_issues=True,
            ),
            StepTemplate(
                id="root-cause-analysis",
                name="Root Cause Analysis",
                description="Identify the root cause with test-based evidence",
                dependencies=("reproduce-issue",),
                artifacts=(_exact("root-cause-analysis.md"),),
                estimated_duration="20-40 minutes",
                requires_issues=True,
            ),
        ]
    elif workflow_type == MAINTENANCE:
        steps.append(
            StepTemplate(
                id="assess-impact",
                name="Assess Impact",
                description="List affected packages, consumers, and upgrade risks",
                dependencies=("analyze-requirements",),
                artifacts=(_exact("impact-assessment.md"),),
                estimated_duration="15-30 minutes",
            )
        )
    elif workflow_type == EXPLORATION:
        steps.append(
            StepTemplate(
                id="survey-codebase",
                name="Survey Codebase",
                description="Map the modules and extension points relevant to the idea",
                dependencies=("analyze-requirements",),
                artifacts=(_exact("codebase-survey.md"),),
                estimated_duration="20-40 minutes",
            )
        )
    return PhaseTemplate(
        id="ANALYZE",
        name="Analysis Phase",
        description="Problem domain isolation and root cause identification",
        steps=tuple(steps),
    )


def _design_phase(workflow_type: str) -> PhaseTemplate:
    design_deps = {
        ISSUE_FIX: ("root-cause-analysis",),
        MAINTENANCE: ("assess-impact",),
        EXPLORATION: ("survey-codebase",),
    }.get(workflow_type, ("analyze-requirements",))
    steps = [
        StepTemplate(
            id="design-approach",
            name="Design Approach",
            description="Plan the implementation approach following existing patterns",
            dependencies=design_deps,
            artifacts=(_exact("design-plan.md"),),
            estimated_duration="20-40 minutes",
        ),
    ]
    if workflow_type in (FEATURE_DEVELOPMENT, EXPLORATION):
        steps.append(
            StepTemplate(
                id="define-api-contract",
                name="Define API Contract",
                description="Design the API contract and integration points",
                dependencies=("design-approach",),
                artifacts=(_exact("api-contract.md"),),
                validations=(("api-contract-defined",) if workflow_type == FEATURE_DEVELOPMENT else ()),
                estimated_duration="15-30 minutes",
                is_required=(workflow_type == FEATURE_DEVELOPMENT),
            )
        )
    steps.append(
        StepTemplate(
            id="plan-testing-strategy",
            name="Plan Testing Strategy",
            description="Define a testing strategy focused on behaviors",
            dependencies=("design-approach",),
            artifacts=(_exact("testing-strategy.md"),),
            estimated_duration="15-25 minutes",
            is_required=(workflow_type != EXPLORATION),
        )
    )
    return PhaseTemplate(
        id="DESIGN",
        name="Design Phase",
        description="Implementation planning and architecture design",
        steps=tuple(steps),
    )


def _implement_phase(workflow_type: str) -> PhaseTemplate:
    if workflow_type == EXPLORATION:
        steps = [
            StepTemplate(
                id="build-prototype",
                name="Build Prototype",
                description="Build the smallest prototype that answers the open question",
                dependencies=("design-approach",),
                artifacts=(_glob("prototype/**/*"),),
                estimated_duration="60-180 minutes",
            ),
            StepTemplate(
                id="evaluate-prototype",
                name="Evaluate Prototype",
                description="Record what worked, what did not, and the cost of productizing it",
                dependencies=("build-prototype",),
                artifacts=(_exact("prototype-evaluation.md"),),
                estimated_duration="20-40 minutes",
            ),
        ]
    else:
        steps = [
            StepTemplate(
                id="implement-core-changes",
                name="Implement Core Changes",
                description="Implement changes in small, testable increments",
                dependencies=("plan-testing-strategy",),
                artifacts=(_glob("src/**/*"), _glob("lib/**/*")),
                estimated_duration="60-120 minutes",
            ),
            StepTemplate(
                id="build-and-publish",
                name="Build and Publish",
                description="Build the SDK and publish it locally for sample app testing",
                dependencies=("implement-core-changes",),
                artifacts=(_glob("dist/**/*"),),
                validations=("build-success",),
                estimated_duration="5-10 minutes",
            ),
            StepTemplate(
                id="test-in-sample-app",
                name="Test in Sample App",
                description="Validate the changes in the sample app environment",
                dependencies=("build-and-publish",),
                artifacts=(_exact("sample-app-test-results.md"),),
                estimated_duration="15-30 minutes",
                is_required=(workflow_type == ISSUE_FIX),
            ),
        ]
    return PhaseTemplate(
        id="IMPLEMENT",
        name="Implementation Phase",
        description="Code implementation and integration",
        steps=tuple(steps),
    )


def _validate_phase(workflow_type: str) -> PhaseTemplate:
    if workflow_type == EXPLORATION:
        steps = [
            StepTemplate(
                id="run-prototype-checks",
                name="Run Prototype Checks",
                description="Exercise the prototype against the questions from the analysis",
                dependencies=("evaluate-prototype",),
                artifacts=(_exact("prototype-checks.md"),),
                estimated_duration="15-30 minutes",
            ),
            StepTemplate(
                id="security-review",
                name="Security Review",
                description="Note security concerns a production version would have to address",
                dependencies=("run-prototype-checks",),
                artifacts=(_exact("security-review.md"),),
                estimated_duration="10-20 minutes",
                is_required=False,
            ),
        ]
        return PhaseTemplate(
            id="VALIDATE",
            name="Validation Phase",
            description="Prototype validation",
            steps=tuple(steps),
        )

    steps = [
        StepTemplate(
            id="run-unit-tests",
            name="Run Unit Tests",
            description="Execute unit tests with the configured test runner",
            dependencies=("implement-core-changes",),
            artifacts=(_exact("test-results.json"),),
            validations=("all-tests-pass",),
            estimated_duration="10-20 minutes",
        ),
        StepTemplate(
            id="run-integration-tests",
            name="Run Integration Tests",
            description="Execute integration tests for critical workflows",
            dependencies=("run-unit-tests",),
            artifacts=(_exact("integration-test-results.json"),),
            estimated_duration="15-30 minutes",
        ),
    ]
    if workflow_type == ISSUE_FIX:
        steps.append(
            StepTemplate(
                id="validate-fix-reproduction",
                name="Validate Fix with Reproduction",
                description="Confirm the fix resolves the original issue using the reproduction tests",
                dependencies=("run-integration-tests", "test-in-sample-app"),
                artifacts=(_exact("fix-validation-results.md"),),
                validations=("reproduction-tests-pass",),
                estimated_duration="20-40 minutes",
            )
        )
    steps.append(
        StepTemplate(
            id="security-review",
            name="Security Review",
            description="Review security implications and OWASP compliance",
            dependencies=("run-integration-tests",),
            artifacts=(_exact("security-review.md"),),
            estimated_duration="15-30 minutes",
            is_required=(workflow_type != MAINTENANCE),
        )
    )
    return PhaseTemplate(
        id="VALIDATE",
        name="Validation Phase",
        description="Comprehensive testing and validation",
        steps=tuple(steps),
    )


def _document_phase(workflow_type: str) -> PhaseTemplate:
    if workflow_type == EXPLORATION:
        first = StepTemplate(
            id="document-findings",
            name="Document Findings",
            description="Summarize findings and a recommendation on next steps",
            dependencies=("run-prototype-checks",),
            artifacts=(_exact("FINDINGS.md"),),
            validations=("findings-documented",),
            estimated_duration="20-30 minutes",
        )
    else:
        first = StepTemplate(
            id="generate-change-review",
            name="Generate Change Review",
            description="Create a review of all changes made",
            dependencies=(("run-integration-tests",) if workflow_type == MAINTENANCE else ("security-review",)),
            artifacts=(_exact("CHANGES_REVIEW.md"),),
            estimated_duration="20-30 minutes",
        )
    steps = (
        first,
        StepTemplate(
            id="identify-tech-debt",
            name="Identify Technical Debt",
            description="Document technical debt created or resolved",
            dependencies=(first.id,),
            artifacts=(_exact("tech-debt-analysis.md"),),
            estimated_duration="10-20 minutes",
            is_required=False,
        ),
        StepTemplate(
            id="document-lessons-learned",
            name="Document Lessons Learned",
            description="Capture insights and improvement opportunities",
            dependencies=(first.id,),
            artifacts=(_exact("lessons-learned.md"),),
            estimated_duration="15-25 minutes",
            is_required=False,
        ),
    )
    return PhaseTemplate(
        id="DOCUMENT",
        name="Documentation Phase",
        description="Change review and continuous improvement",
        steps=steps,
    )


def _finalize_phase(workflow_type: str) -> PhaseTemplate:
    if workflow_type == EXPLORATION:
        steps = (
            StepTemplate(
                id="prepare-final-report",
                name="Prepare Final Report",
                description="Generate the final report with the task completion summary",
                dependencies=("document-findings",),
                artifacts=(_exact("FINAL_REPORT.md"),),
                estimated_duration="15-25 minutes",
            ),
        )
    else:
        steps = (
            StepTemplate(
                id="generate-pr-description",
                name="Generate PR Description",
                description="Create the PR description from the changes",
                dependencies=("generate-change-review",),
                artifacts=(_exact("CHANGES_PR_DESCRIPTION.md"),),
                validations=("pr-description-complete",),
                estimated_duration="10-20 minutes",
            ),
            StepTemplate(
                id="prepare-final-report",
                name="Prepare Final Report",
                description="Generate the final report with the task completion summary",
                dependencies=("generate-pr-description",),
                artifacts=(_exact("FINAL_REPORT.md"),),
                estimated_duration="15-25 minutes",
            ),
            StepTemplate(
                id="validate-deliverables",
                name="Validate Deliverables",
                description="Ensure all required artifacts and documentation exist",
                dependencies=("prepare-final-report",),
                artifacts=(_exact("deliverables-checklist.md"),),
                estimated_duration="5-10 minutes",
            ),
        )
    return PhaseTemplate(
        id="FINALIZE",
        name="Finalization Phase",
        description="Final deliverables and handoff",
        steps=steps,
    )


def _validation_rules(workflow_type: str) -> tuple[ValidationRule, ...]:
    if workflow_type == EXPLORATION:
        return (
            ValidationRule(
                id="findings-documented",
                name="Findings Documented",
                description="FINDINGS.md exists",
                rule_type=RuleType.FILE_EXISTS,
                target="FINDINGS.md",
            ),
        )

    rules = [
        ValidationRule(
            id="build-success",
            name="Build Success",
            description="Project builds without errors",
            rule_type=RuleType.COMMAND_SUCCESS,
            target="build",
        ),
        ValidationRule(
            id="all-tests-pass",
            name="All Tests Pass",
            description="All unit and integration tests pass",
            rule_type=RuleType.COMMAND_SUCCESS,
            target="test",
        ),
        ValidationRule(
            id="pr-description-complete",
            name="PR Description Complete",
            description="CHANGES_PR_DESCRIPTION.md exists and is populated",
            rule_type=RuleType.FILE_EXISTS,
            target="CHANGES_PR_DESCRIPTION.md",
        ),
    ]
    if workflow_type == ISSUE_FIX:
        rules += [
            ValidationRule(
                id="issue-reproduced",
                name="Issue Reproduced",
                description="BUGREPORT.md documents the reproduction",
                rule_type=RuleType.FILE_EXISTS,
                target="BUGREPORT.md",
            ),
            ValidationRule(
                id="reproduction-tests-pass",
                name="Reproduction Tests Pass",
                description="Reproduction tests validate the fix",
                rule_type=RuleType.CONTENT_CONTAINS,
                target="fix-validation-results.md",
                expected_value="REPRODUCTION_TESTS_PASS",
            ),
        ]
    elif workflow_type == FEATURE_DEVELOPMENT:
        rules.append(
            ValidationRule(
                id="api-contract-defined",
                name="API Contract Defined",
                description="api-contract.md describes the new surface",
                rule_type=RuleType.FILE_EXISTS,
                target="api-contract.md",
            )
        )
    return tuple(rules)


def build_workflow(workflow_type: str) -> WorkflowTemplate:
    phases = tuple(
        make(workflow_type)
        for make in (_analyze_phase, _design_phase, _implement_phase, _validate_phase, _document_phase, _finalize_phase)
    )
    return WorkflowTemplate(
        workflow_type=workflow_type,
        phases=phases,
        validation_rules=_validation_rules(workflow_type),
    )


DEFAULT_CATALOG: dict[str, WorkflowTemplate] = {wf: build_workflow(wf) for wf in WORKFLOW_TYPES}
