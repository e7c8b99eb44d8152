"""Workflow detection, prompt selection, and prompt rendering.

Workflow detection (`detect_workflow`), first match wins:
1. branch name patterns: `fix/`, `bugfix/`, `hotfix/`, `patch/` -> issue-fix;
   `feature/`, `feat/`, `add/`, `implement/` -> feature-development;
   `chore/`, `deps/`, `refactor/`, `update/`, `maintenance/` -> maintenance;
   `explore/`, `spike/`, `investigation/`, `research/` -> exploration.
2. with issues attached: their labels (bug-ish, maintenance-ish, feature-ish,
   research-ish, in that order), then their title/body text; otherwise
   feature-development.
3. without issues: exploration when the branch mentions exploring/spiking/research,
   otherwise feature-development.

Prompt lists come from `workflows.<type>.prompts` in the config, falling back to
`DEFAULT_PROMPTS`.

Rendering (`render_prompts`)
Each selected template is read from the templates directory, `{{PLACEHOLDER}}` tokens
are substituted from `PromptContext.placeholders()`, and the result is written to
`<workspace>/prompts/<name>` (UTF-8, trailing newline). Unknown placeholders are left
as they are. Missing templates are skipped with a warning on stderr; the list of
written files is returned.
"""

from __future__ import annotations

import re
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .catalog import EXPLORATION, FEATURE_DEVELOPMENT, ISSUE_FIX, MAINTENANCE

DEFAULT_PROMPTS: dict[str, list[str]] = {
    ISSUE_FIX: ["analysis.prompt.md", "fix-and-test.prompt.md", "review-changes.prompt.md"],
    FEATURE_DEVELOPMENT: [
        "analysis.prompt.md",
        "feature-analysis.prompt.md",
        "tests.prompt.md",
        "review-changes.prompt.md",
    ],
    MAINTENANCE: [
        "analysis.prompt.md",
        "maintenance-analysis.prompt.md",
        "tests.prompt.md",
        "review-changes.prompt.md",
    ],
    EXPLORATION: ["exploration-analysis.prompt.md", "universal-analysis.prompt.md"],
}

_BRANCH_PATTERNS: list[tuple[str, tuple[str, ...]]] = [
    (ISSUE_FIX, ("fix/", "bugfix/", "hotfix/", "patch/")),
    (FEATURE_DEVELOPMENT, ("feature/", "feat/", "add/", "implement/")),
    (MAINTENANCE, ("chore/", "deps/", "refactor/", "update/", "maintenance/")),
    (EXPLORATION, ("explore/", "spike/", "investigation/", "research/")),
]

_LABEL_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    (ISSUE_FIX, ("bug", "fix", "hotfix", "critical", "urgent")),
    (MAINTENANCE, ("maintenance", "deps", "chore", "dependency", "cleanup", "refactor")),
    (FEATURE_DEVELOPMENT, ("enhancement", "feature", "improvement", "new")),
    (EXPLORATION, ("investigation", "research", "exploration", "question")),
]

_TEXT_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    (ISSUE_FIX, ("broken", "not working", "error", "fails")),
    (FEATURE_DEVELOPMENT, ("add", "implement", "new feature")),
]

_EXPLORATORY_BRANCH_WORDS = ("explore", "spike", "investigation", "research")

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Z0-9_]+)\s*\}\}")


@dataclass(frozen=True)
class PromptSelection:
    workflow_type: str
    selected_prompts: list[str]
    reason: str


@dataclass(frozen=True)
class PromptContext:
    project_name: str
    project_key: str
    branch_name: str
    workflow_type: str
    workspace_dir: Path
    sdk_path: Path
    sample_path: Path | None = None
    issue_ids: list[int] = field(default_factory=list)
    issues: list[Mapping[str, Any]] = field(default_factory=list)

    def placeholders(self) -> dict[str, str]:
        return {
            "PROJECT_NAME": self.project_name,
            "PROJECT_KEY": self.project_key,
            "BRANCH_NAME": self.branch_name,
            "WORKFLOW_TYPE": self.workflow_type,
            "WORKSPACE_DIR": str(self.workspace_dir),
            "SDK_PATH": str(self.sdk_path),
            "SAMPLE_PATH": str(self.sample_path) if self.sample_path else "",
            "GITHUB_IDS": ", ".join(f"#{i}" for i in self.issue_ids),
            "GITHUB_DATA": format_issue_data(self.issues),
        }


def _match(text: str, table: list[tuple[str, tuple[str, ...]]]) -> str | None:
    for workflow, needles in table:
        if any(n in text for n in needles):
            return workflow
    return None


def detect_workflow(issues: Sequence[Mapping[str, Any]], branch_name: str) -> tuple[str, str]:
    """Return `(workflow_type, reason)`."""
    branch = branch_name.lower()
    wf = _match(branch, _BRANCH_PATTERNS)
    if wf:
        return wf, f"branch name pattern: {branch_name!r}"

    if issues:
        labels = " ".join(str(lbl) for i in issues for lbl in (i.get("labels") or [])).lower()
        wf = _match(labels, _LABEL_KEYWORDS)
        if wf:
            return wf, f"issue labels: {labels}"
        text = " ".join(f"{i.get('title') or ''} {i.get('body') or ''}" for i in issues).lower()
        wf = _match(text, _TEXT_KEYWORDS)
        if wf:
            return wf, "issue title/description keywords"
        return FEATURE_DEVELOPMENT, "default for linked issues without workflow hints"

    if any(w in branch for w in _EXPLORATORY_BRANCH_WORDS):
        return EXPLORATION, f"exploratory branch name: {branch_name!r}"
    return FEATURE_DEVELOPMENT, "default workflow"


def select_prompts(
    issues: Sequence[Mapping[str, Any]],
    branch_name: str,
    *,
    workflow_prompts: Mapping[str, Sequence[str]] | None = None,
    workflow_type: str | None = None,
) -> PromptSelection:
    if workflow_type:
        reason = "requested with --workflow"
    else:
        workflow_type, reason = detect_workflow(issues, branch_name)
    configured = (workflow_prompts or {}).get(workflow_type)
    prompts = list(configured) if configured else list(DEFAULT_PROMPTS.get(workflow_type, DEFAULT_PROMPTS[FEATURE_DEVELOPMENT]))
    return PromptSelection(workflow_type=workflow_type, selected_prompts=prompts, reason=reason)


def substitute(template: str, values: Mapping[str, str]) -> str:
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def render_prompts(templates_dir: Path | None, names: Sequence[str], out_dir: Path, ctx: PromptContext) -> list[Path]:
    values = ctx.placeholders()
    out_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for name in names:
        src = templates_dir / name if templates_dir is not None else None
        if src is None or not src.is_file():
            print(f"[taskspace] warning: prompt template not found, skipping: {name}", file=sys.stderr)
            continue
        body = substitute(src.read_text(encoding="utf-8"), values)
        out = out_dir / name
        out.write_text(body.rstrip("\n") + "\n", encoding="utf-8")
        written.append(out)
    return written


def format_issue_data(issues: Sequence[Mapping[str, Any]]) -> str:
    if not issues:
        return "No GitHub issues or PRs linked."
    blocks: list[str] = []
    for item in issues:
        kind = "PR" if item.get("type") == "pull_request" else "Issue"
        lines = [
            f"### {kind} #{item.get('id')}: {item.get('title', '')}",
            f"- **URL**: {item.get('url', '')}",
            f"- **State**: {item.get('state', '')}",
        ]
        if item.get("created_at"):
            lines.append(f"- **Created**: {item['created_at']}")
        if item.get("updated_at"):
            lines.append(f"- **Updated**: {item['updated_at']}")
        if item.get("labels"):
            lines.append(f"- **Labels**: {', '.join(item['labels'])}")
        if item.get("assignees"):
            lines.append(f"- **Assignees**: {', '.join(item['assignees'])}")
        lines += ["", "**Description**:", str(item.get("body") or "No description provided.")]
        if item.get("links"):
            lines += ["", "**Referenced Links**:"] + [f"- {link}" for link in item["links"]]
        blocks.append("\n".join(lines))
    return "\n\n---\n\n".join(blocks)


def write_context_file(path: Path, ctx: PromptContext) -> Path:
    body = "\n".join(
        [
            f"# Context Data for {ctx.branch_name}",
            "",
            f"- **Project**: {ctx.project_name} ({ctx.project_key})",
            f"- **Workflow**: {ctx.workflow_type}",
            f"- **SDK worktree**: {ctx.sdk_path}",
            f"- **Sample worktree**: {ctx.sample_path or 'not configured'}",
            "",
            "## GitHub Issues/PRs",
            "",
            format_issue_data(ctx.issues),
        ]
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body + "\n", encoding="utf-8")
    return path
