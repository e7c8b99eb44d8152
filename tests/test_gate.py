from __future__ import annotations

from pathlib import Path

import pytest

from taskspace.errors import StepNotFound
from taskspace.gate import enforce_step_completion, evaluate_validation_rules, validate_step_artifacts
from taskspace.generator import generate_plan
from taskspace.plan import Artifact, ExecutionPlan, Step, StepStatus
from taskspace.tracker import update_step_status


def _plan(workspace: Path) -> ExecutionPlan:
    return generate_plan("issue-fix", str(workspace), "fix/login", [2312], "next")


def _touch(root: Path, *names: str, text: str = "x") -> None:
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def test_dependency_must_be_completed_first(tmp_path: Path) -> None:
    plan = _plan(tmp_path)

    result = enforce_step_completion(tmp_path, plan, "reproduce-issue")

    assert result.can_proceed is False
    assert any("Analyze Requirements" in issue for issue in result.issues)
    assert 'Dependency step "Analyze Requirements" must be completed first' in result.issues


def test_gate_passes_once_dependencies_and_artifacts_are_in_place(tmp_path: Path) -> None:
    _touch(tmp_path, "BUGREPORT.md", "reproduction-tests.js")
    plan = update_step_status(_plan(tmp_path), "analyze-requirements", StepStatus.COMPLETED)

    result = enforce_step_completion(tmp_path, plan, "reproduce-issue")

    assert result.can_proceed is True
    assert result.issues == []


def test_missing_artifacts_are_reported_in_one_issue(tmp_path: Path) -> None:
    plan = update_step_status(_plan(tmp_path), "analyze-requirements", StepStatus.COMPLETED)

    result = enforce_step_completion(tmp_path, plan, "reproduce-issue")

    assert result.can_proceed is False
    assert result.issues == ["Missing required artifacts: BUGREPORT.md, reproduction-tests.js"]


def test_dependency_and_artifact_issues_are_both_listed(tmp_path: Path) -> None:
    result = enforce_step_completion(tmp_path, _plan(tmp_path), "reproduce-issue")

    assert len(result.issues) == 2
    assert result.issues[0].startswith("Dependency step")
    assert result.issues[1].startswith("Missing required artifacts:")


def test_optional_steps_are_never_gated(tmp_path: Path) -> None:
    plan = _plan(tmp_path)
    step = plan.find_step("identify-tech-debt")
    assert step.is_required is False

    result = enforce_step_completion(tmp_path, plan, "identify-tech-debt")

    assert result.can_proceed is True
    assert result.issues == []


def test_glob_artifacts_pass_without_matches(tmp_path: Path) -> None:
    plan = _plan(tmp_path)
    for dep in ("analyze-requirements", "reproduce-issue", "root-cause-analysis", "design-approach"):
        plan = update_step_status(plan, dep, StepStatus.COMPLETED)
    plan = update_step_status(plan, "plan-testing-strategy", StepStatus.COMPLETED)

    result = enforce_step_completion(tmp_path, plan, "implement-core-changes")

    assert result.can_proceed is True


def test_unknown_step_raises(tmp_path: Path) -> None:
    with pytest.raises(StepNotFound):
        enforce_step_completion(tmp_path, _plan(tmp_path), "does-not-exist")


def test_validate_step_artifacts_lists_missing_exact_paths(tmp_path: Path) -> None:
    _touch(tmp_path, "docs/a.md")
    step = Step(
        id="s",
        name="S",
        phase="P",
        artifacts=(Artifact.exact("docs/a.md"), Artifact.exact("docs/b.md"), Artifact.glob("out/*")),
    )

    check = validate_step_artifacts(tmp_path, step)

    assert check.is_valid is False
    assert check.missing_artifacts == ["docs/b.md"]


def test_validation_rules_report_file_and_content_checks(tmp_path: Path) -> None:
    plan = _plan(tmp_path)
    _touch(tmp_path, "BUGREPORT.md")
    _touch(tmp_path, "fix-validation-results.md", text="status: pending\n")

    check = evaluate_validation_rules(tmp_path, plan)
    outcomes = {o.rule.id: o for o in check.outcomes}

    assert outcomes["issue-reproduced"].passed is True
    assert outcomes["pr-description-complete"].passed is False
    assert outcomes["reproduction-tests-pass"].passed is False
    assert "does not contain" in outcomes["reproduction-tests-pass"].detail
    assert outcomes["build-success"].passed is True
    assert "verified externally" in outcomes["build-success"].detail
    assert check.is_valid is False
    assert {o.rule.id for o in check.failed} == {"pr-description-complete", "reproduction-tests-pass"}


def test_validation_rules_pass_when_deliverables_exist(tmp_path: Path) -> None:
    plan = _plan(tmp_path)
    _touch(tmp_path, "BUGREPORT.md", "CHANGES_PR_DESCRIPTION.md")
    _touch(tmp_path, "fix-validation-results.md", text="REPRODUCTION_TESTS_PASS\n")

    assert evaluate_validation_rules(tmp_path, plan).is_valid is True


def test_validation_rules_can_be_scoped_to_one_step(tmp_path: Path) -> None:
    plan = _plan(tmp_path)

    check = evaluate_validation_rules(tmp_path, plan, plan.find_step("reproduce-issue"))

    assert [o.rule.id for o in check.outcomes] == ["issue-reproduced"]
