"""taskspace.config

YAML configuration: where source repos live, where workspaces go, which prompt
templates each workflow uses, and the known projects.

Search order (first existing file wins)
1. the path passed with `--config`,
2. `$TASKSPACE_CONFIG`,
3. `~/.taskspace.yaml`,
4. `./config.yaml`.

File shape
    global:
      src_dir: ~/src              # default ~/src
      workspace_base: workspaces  # default "workspaces", relative to src_dir
      github_cli: gh              # default "gh"
    templates:
      dir: ./prompts              # prompt templates; relative to the config file
    catalog: ./catalog.yaml       # optional custom workflow catalog
    workflows:
      issue-fix:
        prompts: [analysis.prompt.md, fix-and-test.prompt.md]
    projects:
      next:
        name: Next.js SDK
        repo: nextjs-auth0              # relative to src_dir, absolute, or a git URL
        sample_repo: auth0-nextjs-samples
        github_org: auth0
        github_repo: nextjs-auth0       # default: repo directory name

Path rules
- `~` is expanded everywhere.
- `src_dir`, `templates.dir` and `catalog` resolve against the config file's directory
  when relative.
- Project repos resolve against `src_dir`; a URL repo maps to `src_dir/<repo name>`.

Workspace layout (`WorkspacePaths`)
    <src_dir>/<workspace_base>/<project key>/<branch with "/" replaced by "_">/
        <sdk repo name>/       # SDK worktree
        <sample repo name>/    # sample app worktree (when configured)
        prompts/               # rendered prompt files
        CONTEXT.md             # GitHub issue/PR context
        .workspace-state.json  # execution plan state

Errors are `ConfigError`, including an unknown project key (the message lists the
configured projects).
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .catalog import DEFAULT_CATALOG, WorkflowTemplate, load_catalog
from .errors import ConfigError

CONFIG_ENV = "TASKSPACE_CONFIG"
DEFAULT_CONFIG_PATHS = ("~/.taskspace.yaml", "config.yaml")

_URL_RE = re.compile(r"^(?:https?://|git@|ssh://|git://)")


@dataclass(frozen=True)
class ProjectConfig:
    key: str
    name: str
    repo: str
    sample_repo: str | None = None
    github_org: str | None = None
    github_repo: str | None = None

    @property
    def github_slug(self) -> str | None:
        if not self.github_org:
            return None
        return f"{self.github_org}/{self.github_repo or repo_name(self.repo)}"


@dataclass(frozen=True)
class WorkspacePaths:
    workspace_dir: Path
    sdk_repo: Path
    sdk_worktree: Path
    sample_repo: Path | None = None
    sample_worktree: Path | None = None

    @property
    def prompts_dir(self) -> Path:
        return self.workspace_dir / "prompts"

    @property
    def context_file(self) -> Path:
        return self.workspace_dir / "CONTEXT.md"


@dataclass(frozen=True)
class TaskspaceConfig:
    path: Path
    src_dir: Path
    workspace_base: str = "workspaces"
    github_cli: str = "gh"
    templates_dir: Path | None = None
    catalog_path: Path | None = None
    workflow_prompts: dict[str, list[str]] = field(default_factory=dict)
    projects: dict[str, ProjectConfig] = field(default_factory=dict)

    def project(self, key: str) -> ProjectConfig:
        try:
            return self.projects[key]
        except KeyError:
            available = ", ".join(sorted(self.projects)) or "(none)"
            raise ConfigError(f"Unknown project: {key!r}. Available projects: {available}") from None

    def repo_path(self, repo: str) -> Path:
        if _URL_RE.match(repo):
            return self.src_dir / repo_name(repo)
        path = Path(repo).expanduser()
        return path if path.is_absolute() else self.src_dir / path

    def workspaces_root(self) -> Path:
        base = Path(self.workspace_base).expanduser()
        return base if base.is_absolute() else self.src_dir / base

    def workspace_paths(self, project_key: str, branch: str) -> WorkspacePaths:
        project = self.project(project_key)
        workspace_dir = self.workspaces_root() / project_key / workspace_name(branch)
        sdk_repo = self.repo_path(project.repo)
        sample_repo = self.repo_path(project.sample_repo) if project.sample_repo else None
        return WorkspacePaths(
            workspace_dir=workspace_dir,
            sdk_repo=sdk_repo,
            sdk_worktree=workspace_dir / sdk_repo.name,
            sample_repo=sample_repo,
            sample_worktree=(workspace_dir / sample_repo.name if sample_repo is not None else None),
        )

    def catalog(self) -> Mapping[str, WorkflowTemplate]:
        if self.catalog_path is None:
            return DEFAULT_CATALOG
        return load_catalog(self.catalog_path)


def workspace_name(branch: str) -> str:
    return branch.replace("/", "_")


def repo_name(repo: str) -> str:
    name = repo.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return name[: -len(".git")] if name.endswith(".git") else name


def find_config(explicit: str | Path | None = None, *, cwd: Path | None = None) -> Path:
    candidates: list[Path] = []
    if explicit:
        candidates.append(Path(explicit).expanduser())
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path).expanduser())
    base = cwd or Path.cwd()
    for default in DEFAULT_CONFIG_PATHS:
        p = Path(default).expanduser()
        candidates.append(p if p.is_absolute() else base / p)

    if explicit and not candidates[0].exists():
        raise ConfigError(f"Config file not found: {candidates[0]}")
    for path in candidates:
        if path.is_file():
            return path.resolve()
    searched = ", ".join(str(p) for p in candidates)
    raise ConfigError(f"No configuration file found (searched: {searched})")


def load_config(path: Path) -> TaskspaceConfig:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read config {path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{path}: config must be a YAML mapping, got {type(raw).__name__}")

    root = path.resolve().parent
    glob_cfg = _section(raw, "global", path)
    templates_cfg = _section(raw, "templates", path)

    src_dir = _resolve(str(glob_cfg.get("src_dir") or "~/src"), root)
    templates_dir = _resolve(str(templates_cfg["dir"]), root) if templates_cfg.get("dir") else None
    catalog_path = _resolve(str(raw["catalog"]), root) if raw.get("catalog") else None

    workflow_prompts: dict[str, list[str]] = {}
    for wf_type, wf_cfg in _section(raw, "workflows", path).items():
        if not isinstance(wf_cfg, Mapping):
            raise ConfigError(f"{path}: workflows.{wf_type} must be a mapping")
        workflow_prompts[str(wf_type)] = [str(p) for p in (wf_cfg.get("prompts") or [])]

    projects: dict[str, ProjectConfig] = {}
    for key, proj in _section(raw, "projects", path).items():
        projects[str(key)] = _project_from_dict(str(key), proj, path)

    return TaskspaceConfig(
        path=path.resolve(),
        src_dir=src_dir,
        workspace_base=str(glob_cfg.get("workspace_base") or "workspaces"),
        github_cli=str(glob_cfg.get("github_cli") or "gh"),
        templates_dir=templates_dir,
        catalog_path=catalog_path,
        workflow_prompts=workflow_prompts,
        projects=projects,
    )


def _project_from_dict(key: str, d: Any, path: Path) -> ProjectConfig:
    if not isinstance(d, Mapping):
        raise ConfigError(f"{path}: projects.{key} must be a mapping")
    repo = d.get("repo") or d.get("sdk_repo")
    if not repo:
        raise ConfigError(f"{path}: projects.{key} is missing required field: repo")
    return ProjectConfig(
        key=key,
        name=str(d.get("name") or key),
        repo=str(repo),
        sample_repo=(str(d["sample_repo"]) if d.get("sample_repo") else None),
        github_org=(str(d["github_org"]) if d.get("github_org") else None),
        github_repo=(str(d["github_repo"]) if d.get("github_repo") else None),
    )


def _section(raw: Mapping[str, Any], name: str, path: Path) -> Mapping[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{path}: `{name}` must be a mapping")
    return value


def _resolve(value: str, root: Path) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else (root / p)
