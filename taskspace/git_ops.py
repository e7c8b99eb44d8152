"""Git operations and worktree management for taskspace.

This module provides two implementations with the same public surface:

- `GitClient`: the real implementation that shells out to `git` via `subprocess`.
- `DryRunGitClient`: a no-op implementation used by `--dry-run` to exercise workspace
  setup without touching any repository.

`GitWorktree` is an immutable `(branch, path)` pair describing where a branch is
checked out on disk.

GitClient API
Each method maps closely to one git command, run inside `repo_root` (the main checkout
of the SDK or sample repository).

- `default_branch() -> str`
  The branch `origin/HEAD` points at; falls back to `main`, then `master`, when the
  remote HEAD is not set. Raises `RuntimeError` if none of them exist.
- `fetch() -> bool`
  `git fetch origin --prune`; best effort (offline work is allowed), returns success.
- `ensure_worktree(branch, path, base_ref=None) -> GitWorktree`
  Ensures `branch` is checked out in a worktree:
  1) if a worktree for `branch` already exists, it is reused (wherever it is);
  2) a local `branch` is checked out: `git worktree add <path> <branch>`;
  3) a remote `origin/<branch>` is tracked: `git worktree add -b <branch> <path> origin/<branch>`;
  4) otherwise a new branch is created from `base_ref` (default: `default_branch()`).
- `worktrees() -> dict[str, Path]`
  Parses `git worktree list --porcelain` into branch name -> path, for `refs/heads/*`.
- `branch_exists(branch)` / `remote_branch_exists(branch)`
  `git show-ref --verify --quiet` against `refs/heads/` / `refs/remotes/origin/`.

Side effects
- Most invocations go through `_git(...)` with `check=True`, so failures raise
  `subprocess.CalledProcessError`; callers decide how to report them.
- `DryRunGitClient` never runs git. Its `ensure_worktree()` returns the requested path
  without creating it.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class GitWorktree:
    branch: str
    path: Path


class GitClient:
    def __init__(self, *, repo_root: Path) -> None:
        self.repo_root = repo_root

    def default_branch(self) -> str:
        p = subprocess.run(
            ["git", "symbolic-ref", "--quiet", "--short", "refs/remotes/origin/HEAD"],
            cwd=self.repo_root,
            text=True,
            capture_output=True,
            check=False,
        )
        ref = p.stdout.strip() if p.returncode == 0 else ""
        if ref:
            return ref.removeprefix("origin/")
        for candidate in ("main", "master"):
            if self.branch_exists(candidate) or self.remote_branch_exists(candidate):
                return candidate
        raise RuntimeError(f"Could not determine the default branch of {self.repo_root}")

    def fetch(self) -> bool:
        p = subprocess.run(
            ["git", "fetch", "origin", "--prune"],
            cwd=self.repo_root,
            capture_output=True,
            check=False,
        )
        return p.returncode == 0

    def ensure_worktree(self, *, branch: str, path: Path, base_ref: str | None = None) -> GitWorktree:
        existing = self.worktrees()
        if branch in existing:
            return GitWorktree(branch=branch, path=existing[branch])

        path.parent.mkdir(parents=True, exist_ok=True)
        wt_path = path.resolve()
        if self.branch_exists(branch):
            self._git(["worktree", "add", str(wt_path), branch], cwd=self.repo_root)
        elif self.remote_branch_exists(branch):
            self._git(["worktree", "add", "-b", branch, str(wt_path), f"origin/{branch}"], cwd=self.repo_root)
        else:
            base = base_ref or self.default_branch()
            self._git(["worktree", "add", "-b", branch, str(wt_path), base], cwd=self.repo_root)
        return GitWorktree(branch=branch, path=wt_path)

    def worktrees(self) -> dict[str, Path]:
        """Map checked-out branches to worktree paths; detached worktrees are skipped."""
        out = self._git(["worktree", "list", "--porcelain"], cwd=self.repo_root)
        result: dict[str, Path] = {}
        # Porcelain output is one blank-line separated block per worktree.
        for block in out.strip().split("\n\n"):
            fields = dict(line.split(" ", 1) for line in block.splitlines() if " " in line)
            ref = fields.get("branch", "").strip()
            if "worktree" in fields and ref.startswith("refs/heads/"):
                result[ref.removeprefix("refs/heads/")] = Path(fields["worktree"]).resolve()
        return result

    def branch_exists(self, branch: str) -> bool:
        return self._ref_exists(f"refs/heads/{branch}")

    def remote_branch_exists(self, branch: str) -> bool:
        return self._ref_exists(f"refs/remotes/origin/{branch}")

    def _ref_exists(self, ref: str) -> bool:
        p = subprocess.run(
            ["git", "show-ref", "--verify", "--quiet", ref],
            cwd=self.repo_root,
            check=False,
        )
        return p.returncode == 0

    def _git(self, args: list[str], *, cwd: Path) -> str:
        p = subprocess.run(
            ["git", *args],
            cwd=cwd,
            text=True,
            check=True,
            capture_output=True,
        )
        return p.stdout


class DryRunGitClient(GitClient):
    """A no-op Git client for previewing workspace setup."""

    def default_branch(self) -> str:  # type: ignore[override]
        return "main"

    def fetch(self) -> bool:  # type: ignore[override]
        return True

    def ensure_worktree(  # type: ignore[override]
        self,
        *,
        branch: str,
        path: Path,
        base_ref: str | None = None,
    ) -> GitWorktree:
        return GitWorktree(branch=branch, path=path)

    def worktrees(self) -> dict[str, Path]:  # type: ignore[override]
        return {}

    def branch_exists(self, branch: str) -> bool:  # type: ignore[override]
        return False

    def remote_branch_exists(self, branch: str) -> bool:  # type: ignore[override]
        return False
