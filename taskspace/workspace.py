"""Workspace setup for `taskspace init`.

`WorkspaceManager.init_workspace()` runs these steps in order, printing a `[taskspace]`
line to stderr for each:

1. Resolve the project and the workspace paths from the configuration.
2. Refuse to continue if the workspace already has `.workspace-state.json`.
3. Fetch the linked GitHub issues/PRs (skipped in dry-run mode or when the project
   has no `github_org`).
4. Pick the workflow type and prompt list (`taskspace.prompts.select_prompts`), and
   check the workflow exists in the catalog before touching git.
5. Create (or reuse) the SDK worktree and, when configured, the sample app worktree,
   both on the task branch.
6. Generate the execution plan.
7. Render the prompt files and `CONTEXT.md`, then save the plan with an initial
   checkpoint.

In dry-run mode steps 5 and 7 are previews: git is replaced by `DryRunGitClient` and
nothing is written to disk.

Collaborators are injected as factories so tests can replace git and GitHub:
- `git_factory(repo_root, dry_run) -> GitClient`
- `github_factory(repo_slug) -> GitHubClient`
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import ProjectConfig, TaskspaceConfig, WorkspacePaths
from .errors import UnknownWorkflowType, WorkspaceExists
from .generator import generate_plan
from .git_ops import DryRunGitClient, GitClient, GitWorktree
from .github import GitHubClient
from .plan import ExecutionPlan
from .prompts import PromptContext, PromptSelection, render_prompts, select_prompts, write_context_file
from .state import create_checkpoint, load_state, save_state

GitFactory = Callable[[Path, bool], GitClient]
GitHubFactory = Callable[[str], GitHubClient]


@dataclass(frozen=True)
class InitOptions:
    project_key: str
    branch: str
    issue_ids: list[int] = field(default_factory=list)
    workflow_type: str | None = None
    dry_run: bool = False


@dataclass(frozen=True)
class InitResult:
    paths: WorkspacePaths
    plan: ExecutionPlan
    selection: PromptSelection
    worktrees: list[GitWorktree]
    prompt_files: list[Path] = field(default_factory=list)


def _default_git_factory(repo_root: Path, dry_run: bool) -> GitClient:
    if dry_run:
        return DryRunGitClient(repo_root=repo_root)
    return GitClient(repo_root=repo_root)


class WorkspaceManager:
    def __init__(
        self,
        cfg: TaskspaceConfig,
        *,
        git_factory: GitFactory | None = None,
        github_factory: GitHubFactory | None = None,
    ) -> None:
        self.cfg = cfg
        self._git_factory = git_factory or _default_git_factory
        self._github_factory = github_factory or (lambda slug: GitHubClient(repo_slug=slug, cli=cfg.github_cli))

    def init_workspace(self, opts: InitOptions) -> InitResult:
        project = self.cfg.project(opts.project_key)
        paths = self.cfg.workspace_paths(opts.project_key, opts.branch)
        mode = " (dry run)" if opts.dry_run else ""
        print(f"[taskspace] workspace{mode}: {paths.workspace_dir}", file=sys.stderr)

        if load_state(paths.workspace_dir) is not None:
            raise WorkspaceExists(
                f"{paths.workspace_dir} already has an execution plan; use `taskspace status` to resume it"
            )

        issues = self._fetch_issues(project, opts)
        selection = select_prompts(
            issues,
            opts.branch,
            workflow_prompts=self.cfg.workflow_prompts,
            workflow_type=opts.workflow_type,
        )
        print(f"[taskspace] workflow: {selection.workflow_type} ({selection.reason})", file=sys.stderr)
        catalog = self.cfg.catalog()
        if selection.workflow_type not in catalog:
            raise UnknownWorkflowType(selection.workflow_type, list(catalog.keys()))

        worktrees = self._ensure_worktrees(paths, opts)

        plan = generate_plan(
            selection.workflow_type,
            str(paths.workspace_dir),
            opts.branch,
            opts.issue_ids,
            opts.project_key,
            issues,
            selection.selected_prompts,
            catalog=catalog,
        )

        if opts.dry_run:
            print(f"[taskspace] dry run: would render {len(selection.selected_prompts)} prompt(s)", file=sys.stderr)
            return InitResult(paths=paths, plan=plan, selection=selection, worktrees=worktrees)

        ctx = PromptContext(
            project_name=project.name,
            project_key=project.key,
            branch_name=opts.branch,
            workflow_type=selection.workflow_type,
            workspace_dir=paths.workspace_dir,
            sdk_path=paths.sdk_worktree,
            sample_path=paths.sample_worktree,
            issue_ids=list(opts.issue_ids),
            issues=issues,
        )
        prompt_files = render_prompts(self.cfg.templates_dir, selection.selected_prompts, paths.prompts_dir, ctx)
        write_context_file(paths.context_file, ctx)
        print(f"[taskspace] prompts: {len(prompt_files)} rendered into {paths.prompts_dir}", file=sys.stderr)

        checkpoint = create_checkpoint(
            plan.current_phase or "",
            plan.current_step or "",
            f"Workspace initialized for {selection.workflow_type}",
            [str(p.relative_to(paths.workspace_dir)) for p in prompt_files],
        )
        save_state(paths.workspace_dir, plan, checkpoint)
        print(f"[taskspace] plan saved: {plan.id}", file=sys.stderr)
        return InitResult(
            paths=paths,
            plan=plan,
            selection=selection,
            worktrees=worktrees,
            prompt_files=prompt_files,
        )

    def _fetch_issues(self, project: ProjectConfig, opts: InitOptions) -> list[dict[str, Any]]:
        if not opts.issue_ids:
            return []
        if opts.dry_run:
            print(f"[taskspace] dry run: skipping GitHub fetch for {opts.issue_ids}", file=sys.stderr)
            return []
        slug = project.github_slug
        if slug is None:
            print(
                f"[taskspace] warning: project {project.key} has no github_org; skipping issue fetch",
                file=sys.stderr,
            )
            return []
        client = self._github_factory(slug)
        issues = [issue.to_dict() for issue in client.fetch_many(opts.issue_ids)]
        print(f"[taskspace] fetched {len(issues)} issue(s) from {slug}", file=sys.stderr)
        return issues

    def _ensure_worktrees(self, paths: WorkspacePaths, opts: InitOptions) -> list[GitWorktree]:
        targets = [(paths.sdk_repo, paths.sdk_worktree)]
        if paths.sample_repo is not None and paths.sample_worktree is not None:
            targets.append((paths.sample_repo, paths.sample_worktree))

        if not opts.dry_run:
            paths.workspace_dir.mkdir(parents=True, exist_ok=True)

        result: list[GitWorktree] = []
        for repo_root, wt_path in targets:
            git = self._git_factory(repo_root, opts.dry_run)
            if not git.fetch():
                print(f"[taskspace] warning: git fetch failed in {repo_root}; using local refs", file=sys.stderr)
            wt = git.ensure_worktree(branch=opts.branch, path=wt_path)
            print(f"[taskspace] worktree: {wt.branch} -> {wt.path}", file=sys.stderr)
            result.append(wt)
        return result
