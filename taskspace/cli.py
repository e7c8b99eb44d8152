"""taskspace.cli

Command-line entrypoint for taskspace.

Entry points
- `taskspace.cli:main`
- `python3 -m taskspace ...` (delegates to this module)

Commands
- `init <project> <branch> [--issue N ...] [--workflow TYPE] [--dry-run]`
  Create the workspace for a task (worktrees, GitHub context, prompts, execution plan)
  and print the plan summary.
- `status`: print the plan summary.
- `next`: print the next pending step and the steps whose dependencies are met.
- `check <step>`: print the gate verdict for completing a step; exit 1 when blocked.
- `start <step>`: mark a step in-progress.
- `complete <step> [-m MSG]`: gate, then mark completed with a checkpoint; exit 1 when
  blocked (the issues are printed and nothing is saved).
- `checkpoint -m MSG [--artifact PATH ...]`: append a checkpoint.
- `validate`: required steps and validation rules; exit 1 when anything is missing.
- `projects`: list configured projects (requires a config file).

Every step command takes `--workspace DIR`; without it, `$TASKSPACE_WORKSPACE` and then
the current directory are used. Only `init` and `projects` read the configuration
(`--config`, then `$TASKSPACE_CONFIG`, `~/.taskspace.yaml`, `./config.yaml`).

Output
- Results (summaries, step lists, verdicts) go to stdout.
- Progress lines go to stderr with a `[taskspace]` prefix.
- `TaskspaceError` is reported as `[taskspace] error: <message>` and exit status 1.
  Other exceptions (for example `subprocess.CalledProcessError` from git) propagate.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .catalog import WORKFLOW_TYPES
from .config import find_config, load_config
from .errors import TaskspaceError
from .plan import Step
from .progress import (
    check_step,
    complete_step,
    record_checkpoint,
    require_state,
    resolve_workspace,
    start_step,
    validate_workspace,
)
from .report import next_step, plan_summary, ready_steps
from .workspace import InitOptions, WorkspaceManager


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="taskspace",
        description="Per-task git worktree workspaces with a dependency-gated execution plan.",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to the YAML config (default: $TASKSPACE_CONFIG, ~/.taskspace.yaml, ./config.yaml).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create a workspace and its execution plan.")
    init.add_argument("project", help="Project key from the config file.")
    init.add_argument("branch", help="Task branch name (e.g. fix/login-redirect).")
    init.add_argument(
        "--issue",
        dest="issues",
        type=int,
        action="append",
        default=[],
        help="GitHub issue or PR number; repeat for several.",
    )
    init.add_argument(
        "--workflow",
        default=None,
        help=f"Workflow type instead of auto-detection ({', '.join(WORKFLOW_TYPES)}).",
    )
    init.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be created without touching git, GitHub, or the filesystem.",
    )

    def with_workspace(sp: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sp.add_argument(
            "--workspace",
            default=None,
            help="Workspace directory (default: $TASKSPACE_WORKSPACE or the current directory).",
        )
        return sp

    with_workspace(sub.add_parser("status", help="Print the execution plan summary."))
    with_workspace(sub.add_parser("next", help="Print the next step to work on."))

    check = with_workspace(sub.add_parser("check", help="Check whether a step may be completed."))
    check.add_argument("step", help="Step id (e.g. reproduce-issue).")

    start = with_workspace(sub.add_parser("start", help="Mark a step in-progress."))
    start.add_argument("step", help="Step id.")

    complete = with_workspace(sub.add_parser("complete", help="Mark a step completed if its gate passes."))
    complete.add_argument("step", help="Step id.")
    complete.add_argument("-m", "--message", default=None, help="Checkpoint message.")

    checkpoint = with_workspace(sub.add_parser("checkpoint", help="Append a checkpoint to the audit trail."))
    checkpoint.add_argument("-m", "--message", required=True, help="Checkpoint message.")
    checkpoint.add_argument(
        "--artifact",
        dest="artifacts",
        action="append",
        default=[],
        help="Artifact path to record; repeat for several.",
    )

    with_workspace(sub.add_parser("validate", help="Check required steps and validation rules."))
    sub.add_parser("projects", help="List configured projects.")
    return p


def _format_step(step: Step) -> str:
    flag = "required" if step.is_required else "optional"
    line = f"{step.id}: {step.name} [{step.phase}, {flag}]"
    if step.estimated_duration:
        line += f" ~{step.estimated_duration}"
    return line


def _cmd_init(args: argparse.Namespace) -> int:
    cfg = load_config(find_config(args.config))
    manager = WorkspaceManager(cfg)
    result = manager.init_workspace(
        InitOptions(
            project_key=args.project,
            branch=args.branch,
            issue_ids=list(args.issues),
            workflow_type=args.workflow,
            dry_run=bool(args.dry_run),
        )
    )
    print(plan_summary(result.plan))
    print(f"\nWorkspace: {result.paths.workspace_dir}")
    return 0


def _cmd_status(workspace: Path) -> int:
    print(plan_summary(require_state(workspace).plan))
    return 0


def _cmd_next(workspace: Path) -> int:
    plan = require_state(workspace).plan
    step = next_step(plan)
    if step is None:
        print("All steps have been started or completed.")
        return 0
    print(f"Next: {_format_step(step)}")
    if step.description:
        print(f"  {step.description}")
    ready = [s for s in ready_steps(plan) if s.id != step.id]
    if ready:
        print("Also ready:")
        for s in ready:
            print(f"- {_format_step(s)}")
    return 0


def _cmd_check(workspace: Path, step_id: str) -> int:
    gate = check_step(workspace, step_id)
    if gate.can_proceed:
        print(f"{step_id}: ready to complete")
        return 0
    print(f"{step_id}: blocked")
    for issue in gate.issues:
        print(f"- {issue}")
    return 1


def _cmd_complete(workspace: Path, step_id: str, message: str | None) -> int:
    result = complete_step(workspace, step_id, message)
    if not result.gate.can_proceed:
        print(f"Cannot complete {step_id}:")
        for issue in result.gate.issues:
            print(f"- {issue}")
        return 1
    if result.checkpoint is None:
        print(f"{step_id} is already completed.")
    else:
        print(f"Completed {step_id}.")
    step = next_step(result.plan)
    if step is not None:
        print(f"Next: {_format_step(step)}")
    return 0


def _cmd_validate(workspace: Path) -> int:
    report = validate_workspace(workspace)
    if report.required.missing_steps:
        print("Incomplete required steps:")
        for entry in report.required.missing_steps:
            print(f"- {entry}")
    for outcome in report.rules.outcomes:
        mark = "PASS" if outcome.passed else "FAIL"
        print(f"[{mark}] {outcome.rule.name}: {outcome.detail}")
    print("Workspace is complete." if report.is_valid else "Workspace is not complete.")
    return 0 if report.is_valid else 1


def _cmd_projects(args: argparse.Namespace) -> int:
    cfg = load_config(find_config(args.config))
    if not cfg.projects:
        print(f"No projects configured in {cfg.path}")
        return 0
    for key in sorted(cfg.projects):
        project = cfg.projects[key]
        print(f"{key}: {project.name} ({project.repo})")
    return 0


def main(argv: list[str] | None = None) -> int:
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(raw_argv)

    try:
        if args.command == "init":
            return _cmd_init(args)
        if args.command == "projects":
            return _cmd_projects(args)

        workspace = resolve_workspace(args.workspace)
        if args.command == "status":
            return _cmd_status(workspace)
        if args.command == "next":
            return _cmd_next(workspace)
        if args.command == "check":
            return _cmd_check(workspace, args.step)
        if args.command == "start":
            start_step(workspace, args.step)
            print(f"Started {args.step}.")
            return 0
        if args.command == "complete":
            return _cmd_complete(workspace, args.step, args.message)
        if args.command == "checkpoint":
            cp = record_checkpoint(workspace, args.message, args.artifacts)
            print(f"Recorded {cp.id}.")
            return 0
        if args.command == "validate":
            return _cmd_validate(workspace)
    except TaskspaceError as exc:
        print(f"[taskspace] error: {exc}", file=sys.stderr)
        return 1

    raise AssertionError(f"unhandled command: {args.command}")
