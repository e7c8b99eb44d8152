from __future__ import annotations

from pathlib import Path

import pytest

from taskspace.catalog import DEFAULT_CATALOG
from taskspace.config import CONFIG_ENV, find_config, load_config, repo_name, workspace_name
from taskspace.errors import ConfigError


def _isolate(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    return home


def _write_config(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    return path


SAMPLE = """
global:
  src_dir: ./src
  workspace_base: workspaces
templates:
  dir: ./prompts
workflows:
  issue-fix:
    prompts: [analysis.prompt.md, fix-and-test.prompt.md]
projects:
  next:
    name: Next.js SDK
    repo: nextjs-auth0
    sample_repo: git@github.com:auth0-samples/auth0-nextjs-samples.git
    github_org: auth0
  spa:
    sdk_repo: /opt/repos/auth0-spa-js
"""


def test_find_config_prefers_explicit_then_env_then_home_then_cwd(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    home = _isolate(monkeypatch, tmp_path)
    cwd = tmp_path / "cwd"
    local = _write_config(cwd / "config.yaml", "{}")
    assert find_config(cwd=cwd) == local.resolve()

    home_cfg = _write_config(home / ".taskspace.yaml", "{}")
    assert find_config(cwd=cwd) == home_cfg.resolve()

    env_cfg = _write_config(tmp_path / "env.yaml", "{}")
    monkeypatch.setenv(CONFIG_ENV, str(env_cfg))
    assert find_config(cwd=cwd) == env_cfg.resolve()

    explicit = _write_config(tmp_path / "explicit.yaml", "{}")
    assert find_config(explicit, cwd=cwd) == explicit.resolve()


def test_find_config_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _isolate(monkeypatch, tmp_path)

    with pytest.raises(ConfigError, match="not found"):
        find_config(tmp_path / "missing.yaml", cwd=tmp_path)
    with pytest.raises(ConfigError, match="No configuration file found"):
        find_config(cwd=tmp_path)


def test_load_config_resolves_paths_against_config_dir(tmp_path: Path) -> None:
    cfg = load_config(_write_config(tmp_path / "cfg" / "config.yaml", SAMPLE))
    root = (tmp_path / "cfg").resolve()

    assert cfg.src_dir == root / "src"
    assert cfg.templates_dir == root / "prompts"
    assert cfg.github_cli == "gh"
    assert cfg.workflow_prompts == {"issue-fix": ["analysis.prompt.md", "fix-and-test.prompt.md"]}
    assert set(cfg.projects) == {"next", "spa"}
    assert cfg.projects["next"].github_slug == "auth0/nextjs-auth0"
    assert cfg.projects["spa"].name == "spa"
    assert cfg.projects["spa"].github_slug is None
    assert cfg.catalog() is DEFAULT_CATALOG


def test_workspace_paths_layout(tmp_path: Path) -> None:
    cfg = load_config(_write_config(tmp_path / "config.yaml", SAMPLE))
    src = tmp_path.resolve() / "src"

    paths = cfg.workspace_paths("next", "fix/login-redirect")

    assert paths.workspace_dir == src / "workspaces" / "next" / "fix_login-redirect"
    assert paths.sdk_repo == src / "nextjs-auth0"
    assert paths.sdk_worktree == paths.workspace_dir / "nextjs-auth0"
    assert paths.sample_repo == src / "auth0-nextjs-samples"
    assert paths.sample_worktree == paths.workspace_dir / "auth0-nextjs-samples"
    assert paths.prompts_dir == paths.workspace_dir / "prompts"
    assert paths.context_file == paths.workspace_dir / "CONTEXT.md"

    spa = cfg.workspace_paths("spa", "main")
    assert spa.sdk_repo == Path("/opt/repos/auth0-spa-js")
    assert spa.sample_worktree is None


def test_unknown_project_lists_available(tmp_path: Path) -> None:
    cfg = load_config(_write_config(tmp_path / "config.yaml", SAMPLE))

    with pytest.raises(ConfigError, match="Available projects: next, spa"):
        cfg.project("nope")


def test_load_config_rejects_bad_shapes(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="must be a YAML mapping"):
        load_config(_write_config(tmp_path / "a.yaml", "- just\n- a list\n"))
    with pytest.raises(ConfigError, match="missing required field: repo"):
        load_config(_write_config(tmp_path / "b.yaml", "projects:\n  x:\n    name: X\n"))
    with pytest.raises(ConfigError, match="Failed to read"):
        load_config(tmp_path / "missing.yaml")


def test_custom_catalog_is_loaded_from_config(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "catalog.yaml",
        "workflows:\n  docs:\n    phases:\n      - id: W\n        steps:\n          - id: draft\n",
    )
    cfg = load_config(_write_config(tmp_path / "config.yaml", "catalog: ./catalog.yaml\n"))

    assert list(cfg.catalog()) == ["docs"]


@pytest.mark.parametrize(
    ("repo", "name"),
    [
        ("nextjs-auth0", "nextjs-auth0"),
        ("/abs/path/auth0-spa-js/", "auth0-spa-js"),
        ("https://github.com/auth0/nextjs-auth0.git", "nextjs-auth0"),
        ("git@github.com:auth0/nextjs-auth0.git", "nextjs-auth0"),
        ("git@host:repo.git", "repo"),
    ],
)
def test_repo_name(repo: str, name: str) -> None:
    assert repo_name(repo) == name


def test_workspace_name_flattens_branch() -> None:
    assert workspace_name("feature/a/b") == "feature_a_b"
