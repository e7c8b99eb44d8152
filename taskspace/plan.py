"""taskspace.plan

Value types for the execution plan and their persisted JSON shape.

Every type here is a frozen dataclass and every sequence is a tuple, so a plan can be
shared freely: transitions (`taskspace.tracker`) build a new plan with
`dataclasses.replace` instead of mutating this one.

Shape
- `ExecutionPlan` -> ordered `Phase`s -> ordered `Step`s.
- A `Step` carries its dependencies (step ids), its `Artifact`s, the ids of the
  validation rules that apply to it, and its status/timestamps.
- `PlanMetadata` holds the plan-level aggregates the generator computes once:
  required artifacts, validation rules, opaque issue/PR records, selected prompts.
- `ExecutionState` is the persisted envelope `{executionPlan, checkpoints, lastSaved}`.

Artifacts
An `Artifact` is tagged: `EXACT` paths are checked on disk, `GLOB` patterns are not
(the gate treats them as satisfied). The kind is decided when the artifact is created;
`Artifact.parse()` infers it from wildcard characters and is only meant for
configuration input (YAML catalogs) and legacy state files that stored plain strings.

JSON
- `to_dict()` emits camelCase keys (`isRequired`, `startedAt`, `executionPlan`, ...).
- `from_dict()` coerces scalars with `str` and turns missing sequences into empty
  tuples. Missing identity fields (`id`, `phases`, ...) raise `KeyError`, and an
  unknown status or artifact kind raises `ValueError`; the persistence layer turns
  those into `PersistenceError`.
- `startedAt`, `completedAt` and `expectedValue` are emitted only when set.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .errors import StepNotFound

PLAN_VERSION = "1.0.0"

WILDCARD_CHARS = frozenset("*?[")


def now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a `Z` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @staticmethod
    def parse(raw: Any) -> "StepStatus":
        try:
            return StepStatus(str(raw))
        except ValueError:
            raise ValueError(f"unknown step status: {raw!r}") from None


_STATUS_RANK = {StepStatus.PENDING: 0, StepStatus.IN_PROGRESS: 1, StepStatus.COMPLETED: 2}


class ArtifactKind(str, Enum):
    EXACT = "exact"
    GLOB = "glob"


class RuleType(str, Enum):
    FILE_EXISTS = "file-exists"
    CONTENT_CONTAINS = "content-contains"
    COMMAND_SUCCESS = "command-success"


@dataclass(frozen=True)
class Artifact:
    kind: ArtifactKind
    path: str

    @staticmethod
    def exact(path: str) -> "Artifact":
        return Artifact(kind=ArtifactKind.EXACT, path=path)

    @staticmethod
    def glob(pattern: str) -> "Artifact":
        return Artifact(kind=ArtifactKind.GLOB, path=pattern)

    @staticmethod
    def parse(text: str) -> "Artifact":
        text = str(text)
        if any(ch in WILDCARD_CHARS for ch in text):
            return Artifact.glob(text)
        return Artifact.exact(text)

    @staticmethod
    def from_dict(raw: Any) -> "Artifact":
        if isinstance(raw, str):
            return Artifact.parse(raw)
        if not isinstance(raw, Mapping):
            raise ValueError(f"artifact must be a string or object, got {type(raw)}")
        return Artifact(kind=ArtifactKind(str(raw.get("kind", ArtifactKind.EXACT.value))), path=str(raw["path"]))

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "path": self.path}

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class ValidationRule:
    id: str
    name: str
    rule_type: RuleType
    target: str
    description: str = ""
    is_required: bool = True
    expected_value: str | None = None

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "ValidationRule":
        expected = d.get("expectedValue", d.get("expected_value"))
        return ValidationRule(
            id=str(d["id"]),
            name=str(d.get("name") or d["id"]),
            rule_type=RuleType(str(d["type"])),
            target=str(d.get("target") or ""),
            description=str(d.get("description") or ""),
            is_required=bool(d.get("isRequired", d.get("is_required", True))),
            expected_value=(str(expected) if expected is not None else None),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.rule_type.value,
            "target": self.target,
            "isRequired": self.is_required,
        }
        if self.expected_value is not None:
            d["expectedValue"] = self.expected_value
        return d


@dataclass(frozen=True)
class Step:
    id: str
    name: str
    phase: str
    description: str = ""
    dependencies: tuple[str, ...] = ()
    artifacts: tuple[Artifact, ...] = ()
    validations: tuple[str, ...] = ()
    estimated_duration: str = ""
    is_required: bool = True
    status: StepStatus = StepStatus.PENDING
    started_at: str | None = None
    completed_at: str | None = None

    @property
    def exact_artifacts(self) -> tuple[Artifact, ...]:
        return tuple(a for a in self.artifacts if a.kind == ArtifactKind.EXACT)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Step":
        return Step(
            id=str(d["id"]),
            name=str(d.get("name") or d["id"]),
            phase=str(d.get("phase") or ""),
            description=str(d.get("description") or ""),
            dependencies=tuple(str(x) for x in (d.get("dependencies") or [])),
            artifacts=tuple(Artifact.from_dict(x) for x in (d.get("artifacts") or [])),
            validations=tuple(str(x) for x in (d.get("validations") or [])),
            estimated_duration=str(d.get("estimatedDuration") or ""),
            is_required=bool(d.get("isRequired", True)),
            status=StepStatus.parse(d.get("status", StepStatus.PENDING.value)),
            started_at=(str(d["startedAt"]) if d.get("startedAt") is not None else None),
            completed_at=(str(d["completedAt"]) if d.get("completedAt") is not None else None),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "phase": self.phase,
            "dependencies": list(self.dependencies),
            "artifacts": [a.to_dict() for a in self.artifacts],
            "validations": list(self.validations),
            "estimatedDuration": self.estimated_duration,
            "isRequired": self.is_required,
            "status": self.status.value,
        }
        if self.started_at:
            d["startedAt"] = self.started_at
        if self.completed_at:
            d["completedAt"] = self.completed_at
        return d


@dataclass(frozen=True)
class Phase:
    id: str
    name: str
    steps: tuple[Step, ...]
    description: str = ""
    is_required: bool = True
    status: StepStatus = StepStatus.PENDING

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Phase":
        return Phase(
            id=str(d["id"]),
            name=str(d.get("name") or d["id"]),
            description=str(d.get("description") or ""),
            is_required=bool(d.get("isRequired", True)),
            status=StepStatus.parse(d.get("status", StepStatus.PENDING.value)),
            steps=tuple(Step.from_dict(s) for s in (d.get("steps") or [])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "steps": [s.to_dict() for s in self.steps],
            "status": self.status.value,
            "isRequired": self.is_required,
        }


@dataclass(frozen=True)
class PlanMetadata:
    project_key: str = ""
    issue_data: tuple[dict[str, Any], ...] = ()
    selected_prompts: tuple[str, ...] = ()
    required_artifacts: tuple[Artifact, ...] = ()
    validation_rules: tuple[ValidationRule, ...] = ()

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "PlanMetadata":
        issues = d.get("issueData", d.get("githubData")) or []
        return PlanMetadata(
            project_key=str(d.get("projectKey") or ""),
            issue_data=tuple(dict(x) for x in issues),
            selected_prompts=tuple(str(x) for x in (d.get("selectedPrompts") or [])),
            required_artifacts=tuple(Artifact.from_dict(x) for x in (d.get("requiredArtifacts") or [])),
            validation_rules=tuple(ValidationRule.from_dict(x) for x in (d.get("validationRules") or [])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectKey": self.project_key,
            "issueData": [dict(x) for x in self.issue_data],
            "selectedPrompts": list(self.selected_prompts),
            "requiredArtifacts": [a.to_dict() for a in self.required_artifacts],
            "validationRules": [r.to_dict() for r in self.validation_rules],
        }


@dataclass(frozen=True)
class ExecutionPlan:
    id: str
    workflow_type: str
    workspace_path: str
    branch_name: str
    phases: tuple[Phase, ...]
    issue_ids: tuple[int, ...] = ()
    status: StepStatus = StepStatus.PENDING
    current_phase: str | None = None
    current_step: str | None = None
    metadata: PlanMetadata = field(default_factory=PlanMetadata)
    created_at: str = ""
    updated_at: str = ""
    version: str = PLAN_VERSION

    def iter_steps(self) -> Iterator[Step]:
        """Steps in canonical order: phase order, then step order within each phase."""
        for phase in self.phases:
            yield from phase.steps

    def find_step(self, step_id: str) -> Step:
        for step in self.iter_steps():
            if step.id == step_id:
                return step
        raise StepNotFound(step_id)

    def phase_of(self, step_id: str) -> Phase:
        for phase in self.phases:
            if any(s.id == step_id for s in phase.steps):
                return phase
        raise StepNotFound(step_id)

    def find_phase(self, phase_id: str) -> Phase | None:
        return next((p for p in self.phases if p.id == phase_id), None)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "ExecutionPlan":
        if not isinstance(d, Mapping):
            raise ValueError(f"execution plan must be a JSON object, got {type(d)}")
        current_step = d.get("currentStep")
        current_phase = d.get("currentPhase")
        return ExecutionPlan(
            id=str(d["id"]),
            workflow_type=str(d["workflowType"]),
            workspace_path=str(d.get("workspacePath") or ""),
            branch_name=str(d.get("branchName") or ""),
            issue_ids=tuple(int(x) for x in (d.get("issueIds") or [])),
            status=StepStatus.parse(d.get("status", StepStatus.PENDING.value)),
            current_phase=(str(current_phase) if current_phase is not None else None),
            current_step=(str(current_step) if current_step is not None else None),
            phases=tuple(Phase.from_dict(p) for p in d["phases"]),
            metadata=PlanMetadata.from_dict(d.get("metadata") or {}),
            created_at=str(d.get("createdAt") or ""),
            updated_at=str(d.get("updatedAt") or ""),
            version=str(d.get("version") or PLAN_VERSION),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workflowType": self.workflow_type,
            "workspacePath": self.workspace_path,
            "branchName": self.branch_name,
            "issueIds": list(self.issue_ids),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
            "phases": [p.to_dict() for p in self.phases],
            "status": self.status.value,
            "currentPhase": self.current_phase,
            "currentStep": self.current_step,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class Checkpoint:
    id: str
    phase: str
    step: str
    message: str
    timestamp: str
    artifacts: tuple[str, ...] = ()

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Checkpoint":
        return Checkpoint(
            id=str(d["id"]),
            phase=str(d.get("phase") or ""),
            step=str(d.get("step") or ""),
            message=str(d.get("message") or ""),
            timestamp=str(d.get("timestamp") or ""),
            artifacts=tuple(str(x) for x in (d.get("artifacts") or [])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "phase": self.phase,
            "step": self.step,
            "message": self.message,
            "artifacts": list(self.artifacts),
        }


@dataclass(frozen=True)
class ExecutionState:
    plan: ExecutionPlan
    checkpoints: tuple[Checkpoint, ...] = ()
    last_saved: str = ""

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "ExecutionState":
        if not isinstance(d, Mapping):
            raise ValueError(f"workspace state must be a JSON object, got {type(d)}")
        if "executionPlan" not in d:
            raise ValueError("workspace state is missing required field: executionPlan")
        return ExecutionState(
            plan=ExecutionPlan.from_dict(d["executionPlan"]),
            checkpoints=tuple(Checkpoint.from_dict(c) for c in (d.get("checkpoints") or [])),
            last_saved=str(d.get("lastSaved") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "executionPlan": self.plan.to_dict(),
            "checkpoints": [c.to_dict() for c in self.checkpoints],
            "lastSaved": self.last_saved,
        }
