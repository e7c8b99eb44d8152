"""Exception types raised by taskspace.

Gate rejections (unmet dependencies, missing artifacts) are not exceptions: they are
returned as human-readable strings in `gate.GateResult.issues`.
"""

from __future__ import annotations


class TaskspaceError(Exception):
    """Base class for errors the CLI reports without a traceback."""


class UnknownWorkflowType(TaskspaceError):
    def __init__(self, workflow_type: str, available: list[str] | None = None) -> None:
        self.workflow_type = workflow_type
        self.available = sorted(available or [])
        msg = f"Unknown workflow type: {workflow_type!r}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


class CatalogError(TaskspaceError):
    """A workflow template is malformed (duplicate ids, bad dependencies, cycles)."""


class StepNotFound(TaskspaceError, KeyError):
    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(f"Step not found in execution plan: {step_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidTransition(TaskspaceError, ValueError):
    """A step status change would move backwards."""


class PersistenceError(TaskspaceError):
    """The workspace state file could not be read, parsed, or written."""


class ConfigError(TaskspaceError):
    """The configuration file is missing or invalid."""


class GitHubError(TaskspaceError):
    """Issue/PR context could not be fetched from GitHub."""


class WorkspaceExists(TaskspaceError):
    """`init` was pointed at a workspace that already has an execution plan."""


class StateNotFound(TaskspaceError):
    """A step command ran in a directory with no execution plan."""
