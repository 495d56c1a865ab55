from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from pr_heatmap.adapters.git.repository import DEFAULT_REMOTE_URL_TEMPLATE
from pr_heatmap.pipeline.diff_analyzer import DEFAULT_IGNORE_PATHS


def _expand(path: str) -> Path:
    return Path(os.path.expanduser(path)).resolve()


def _read_toml(path: Path) -> dict[str, Any]:
    """Read TOML into a dict, supporting Python 3.10+.

    Uses tomllib when available, falls back to tomli.
    """
    data = path.read_bytes()
    try:
        import tomllib  # type: ignore[attr-defined]

        return tomllib.loads(data.decode("utf-8"))
    except ModuleNotFoundError:
        import tomli  # type: ignore[import-not-found]

        return tomli.loads(data.decode("utf-8"))


class GitConfig(BaseModel):
    """How pull request heads are fetched into the target repository."""

    remote_url_template: str = Field(
        default=DEFAULT_REMOTE_URL_TEMPLATE,
        description="URL of a PR's head repository; {owner} and {repo} are substituted.",
    )
    base_remote: str = Field(
        default="origin",
        description="Remote whose tracking branches back up missing local base branches.",
    )
    local_ref_template: str = Field(
        default="refs/heads/pull-request-{number}",
        description="Where fetched PR heads are stored; empty to keep no ref.",
    )
    fetch_timeout_seconds: float = Field(default=120.0, gt=0)
    skip_fetch: bool = Field(
        default=False,
        description="Never touch the network; PRs whose head commit is missing are skipped.",
    )

    def local_ref(self, pr_number: int) -> str | None:
        tmpl = self.local_ref_template.strip()
        return tmpl.format(number=pr_number) if tmpl else None


class AnalysisConfig(BaseModel):
    workers: int = Field(default=4, ge=1, description="Concurrent PR fetch/diff workers.")
    max_prs: int | None = Field(default=None, ge=1, description="Analyse only the first N PRs.")
    ignore_paths: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_PATHS),
        description="fnmatch patterns (full path or basename) excluded from counting.",
    )


class OutputConfig(BaseModel):
    path: str = Field(default="prmap.html")
    format: Literal["html", "json"] = Field(default="html")
    title: str = Field(default="Pull request heatmap")
    tree_source: Literal["ref", "worktree"] = Field(
        default="ref",
        description="ref: files tracked at tree_ref | worktree: files on disk.",
    )
    tree_ref: str = Field(default="HEAD")
    include_hidden: bool = Field(default=False)

    def resolved_path(self) -> Path:
        return _expand(self.path)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    log_dir: str | None = Field(default=None)


class HeatmapConfig(BaseModel):
    git: GitConfig = Field(default_factory=GitConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path) -> "HeatmapConfig":
        raw = _read_toml(path)
        return cls.model_validate(raw)


EXAMPLE_CONFIG = """\
# pr-heatmap configuration. Command line flags override these values.

[git]
# Where PR head branches are fetched from. Use an https URL for anonymous access:
# remote_url_template = "https://github.com/{owner}/{repo}.git"
remote_url_template = "git@github.com:{owner}/{repo}"
base_remote = "origin"
local_ref_template = "refs/heads/pull-request-{number}"
fetch_timeout_seconds = 120
skip_fetch = false

[analysis]
workers = 4
# max_prs = 100
ignore_paths = ["Cargo.lock", "package-lock.json", "yarn.lock", "poetry.lock", "uv.lock"]

[output]
path = "prmap.html"
format = "html"          # html | json
title = "Pull request heatmap"
tree_source = "ref"      # ref | worktree
tree_ref = "HEAD"
include_hidden = false

[logging]
level = "INFO"
# log_dir = "logs"
"""
