"""GitHub issue/PR context via the `gh` CLI.

`GitHubClient.fetch(number)` calls `gh api repos/<org>/<repo>/issues/<number>`, which
serves both issues and pull requests (PRs carry a `pull_request` key), and converts the
response into `IssueData`. The execution plan stores these records as opaque dicts
(`IssueData.to_dict()`); only `taskspace.prompts` reads them back, to render
`CONTEXT.md` and to guess the workflow type from labels.

Retries
- A non-zero `gh` exit is retried up to `max_retries` times with exponential backoff
  (`retry_delay * 2**attempt` seconds).
- "Not Found" (HTTP 404) and authentication failures are not retried.
- When retries are exhausted, or the output is not a JSON object, `GitHubError` is
  raised.
"""

from __future__ import annotations

import json
import re
import subprocess
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import GitHubError

_LINK_RE = re.compile(r"https?://[^\s)\]>\"']+")
_NO_RETRY_MARKERS = ("Not Found", "HTTP 404", "HTTP 401", "HTTP 403", "gh auth login")


@dataclass(frozen=True)
class IssueData:
    id: int
    title: str
    body: str
    state: str
    type: str
    url: str
    created_at: str = ""
    updated_at: str = ""
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)

    @staticmethod
    def from_api(d: Mapping[str, Any]) -> "IssueData":
        body = str(d.get("body") or "")
        return IssueData(
            id=int(d["number"]),
            title=str(d.get("title") or ""),
            body=body,
            state=str(d.get("state") or ""),
            type=("pull_request" if d.get("pull_request") else "issue"),
            url=str(d.get("html_url") or d.get("url") or ""),
            created_at=str(d.get("created_at") or ""),
            updated_at=str(d.get("updated_at") or ""),
            labels=[str(lbl["name"]) if isinstance(lbl, Mapping) else str(lbl) for lbl in (d.get("labels") or [])],
            assignees=[str(a["login"]) if isinstance(a, Mapping) else str(a) for a in (d.get("assignees") or [])],
            links=extract_links(body),
        )

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "IssueData":
        return IssueData(
            id=int(d["id"]),
            title=str(d.get("title") or ""),
            body=str(d.get("body") or ""),
            state=str(d.get("state") or ""),
            type=str(d.get("type") or "issue"),
            url=str(d.get("url") or ""),
            created_at=str(d.get("created_at") or ""),
            updated_at=str(d.get("updated_at") or ""),
            labels=[str(x) for x in (d.get("labels") or [])],
            assignees=[str(x) for x in (d.get("assignees") or [])],
            links=[str(x) for x in (d.get("links") or [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "state": self.state,
            "type": self.type,
            "url": self.url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "labels": list(self.labels),
            "assignees": list(self.assignees),
            "links": list(self.links),
        }


def extract_links(text: str) -> list[str]:
    seen: dict[str, None] = {}
    for m in _LINK_RE.finditer(text or ""):
        seen.setdefault(m.group(0).rstrip(".,;:"), None)
    return list(seen)


class GitHubClient:
    def __init__(
        self,
        *,
        repo_slug: str,
        cli: str = "gh",
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repo_slug = repo_slug
        self.cli = cli
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def fetch(self, number: int) -> IssueData:
        raw = self._api(f"repos/{self.repo_slug}/issues/{int(number)}")
        if not isinstance(raw, dict):
            raise GitHubError(f"Unexpected response for {self.repo_slug}#{number}: expected a JSON object")
        return IssueData.from_api(raw)

    def fetch_many(self, numbers: Iterable[int]) -> list[IssueData]:
        return [self.fetch(n) for n in numbers]

    def _api(self, endpoint: str) -> Any:
        last_error = ""
        for attempt in range(self.max_retries + 1):
            try:
                p = subprocess.run(
                    [self.cli, "api", endpoint],
                    text=True,
                    capture_output=True,
                    check=False,
                )
            except FileNotFoundError as exc:
                raise GitHubError(f"GitHub CLI not found ({self.cli}); install it and run `gh auth login`") from exc

            if p.returncode == 0:
                try:
                    return json.loads(p.stdout)
                except json.JSONDecodeError as exc:
                    raise GitHubError(f"gh api {endpoint} returned invalid JSON: {exc}") from exc

            last_error = (p.stderr or p.stdout or "").strip()
            if any(marker in last_error for marker in _NO_RETRY_MARKERS):
                raise GitHubError(f"gh api {endpoint} failed: {last_error}")
            if attempt < self.max_retries:
                self._sleep(self.retry_delay * (2**attempt))

        raise GitHubError(f"gh api {endpoint} failed after {self.max_retries + 1} attempts: {last_error}")
