"""taskspace: git-worktree workspaces with a dependency-gated execution plan.

This package implements a developer CLI (`taskspace.cli:main`, runnable via
`python -m taskspace`) that provisions one workspace per task: git worktrees for an
SDK repository and its sample application, GitHub issue/PR context, rendered prompt
files for coding agents, and an execution plan that tracks the task through six
phases (ANALYZE, DESIGN, IMPLEMENT, VALIDATE, DOCUMENT, FINALIZE).

What taskspace provides
- Workspace setup (`taskspace.workspace.WorkspaceManager`) that wires configuration,
  git worktrees, GitHub context, prompt rendering, and plan generation for `init`.
- The execution plan engine:
  - `taskspace.plan`: immutable plan/phase/step value types and their JSON shape,
  - `taskspace.catalog` + `taskspace.generator`: workflow templates and plan generation,
  - `taskspace.tracker`: pure status transitions with phase/plan rollup,
  - `taskspace.gate`: dependency and artifact admission checks,
  - `taskspace.state`: `.workspace-state.json` persistence with append-only checkpoints,
  - `taskspace.report`: next step, completion checks, and the text summary.
- Step commands (`taskspace.progress`) used by `start`, `complete`, `check`,
  `checkpoint`, and `validate`.

What taskspace intentionally does not do
- Run builds, tests, or agents itself; it only tracks whether prerequisites are met.
- Lock the state file across processes; one operator drives one workspace at a time.

Key exports from this module
- `__version__`: the package version string. (`__all__` is intentionally limited to this.)

Important invariants and conventions
- `.workspace-state.json` in the workspace directory is the single source of truth for
  step status; statuses only advance (`pending` -> `in-progress` -> `completed`).
- Every plan transition returns a new plan value; nothing in the engine mutates a plan.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
