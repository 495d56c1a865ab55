from __future__ import annotations

import json
import logging
from itertools import islice
from pathlib import Path
from typing import Any

from pr_heatmap.adapters.github.github_client import GitHubClient

logger = logging.getLogger(__name__)


def to_gh_record(pr: dict[str, Any]) -> dict[str, Any]:
    """Convert a REST pull request into the `gh pr list --json` shape.

    A PR from a deleted fork has no head repository; it is kept with null
    fields so the loader reports it instead of silently losing it.
    """
    head = pr.get("head") or {}
    head_repo = head.get("repo")
    owner = (head_repo or {}).get("owner")
    return {
        "id": pr.get("node_id"),
        "number": pr.get("number"),
        "baseRefName": (pr.get("base") or {}).get("ref"),
        "headRefName": head.get("ref"),
        "headRefOid": head.get("sha"),
        "headRepository": {"name": head_repo["name"]} if head_repo else None,
        "headRepositoryOwner": {"login": owner["login"]} if owner else None,
    }


def list_open_pull_requests(client: GitHubClient, repo_full: str, *, limit: int = 500) -> list[dict[str, Any]]:
    if "/" not in repo_full:
        raise ValueError(f"Expected owner/repo, got: {repo_full}")
    owner, name = repo_full.split("/", 1)
    logger.info("Listing open PRs for %s", repo_full)
    pulls = client.paginate(
        f"/repos/{owner}/{name}/pulls",
        params={"state": "open", "sort": "created", "direction": "desc"},
        per_page=100,
    )
    return [to_gh_record(pr) for pr in islice(pulls, limit)]


def write_pr_file(records: list[dict[str, Any]], path: Path) -> Path:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
    return path
