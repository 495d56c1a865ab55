from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest


def git(repo: Path, *args: str) -> str:
    res = subprocess.run(
        [
            "git",
            "-C",
            str(repo),
            "-c",
            "user.name=Test User",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    return res.stdout.strip()


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    return path


def commit_files(repo: Path, files: dict[str, str | None], message: str = "change") -> str:
    """Write (or delete, for None) files and commit. Returns the new commit id."""
    for name, content in files.items():
        target = repo / name
        if content is None:
            git(repo, "rm", "-q", name)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "--allow-empty", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def clone(src: Path, dest: Path) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "clone", "-q", str(src), str(dest)], check=True, capture_output=True)
    return dest


@dataclass
class Workspace:
    """An upstream repository plus a forks/<owner>/<repo> directory layout."""

    root: Path
    upstream: Path

    @property
    def remote_url_template(self) -> str:
        return str(self.root / "forks" / "{owner}" / "{repo}")

    def fork(self, owner: str, repo: str = "project") -> Path:
        return clone(self.upstream, self.root / "forks" / owner / repo)

    def write_prs(self, records: list[dict], name: str = "prs.json") -> Path:
        path = self.root / name
        path.write_text(json.dumps(records))
        return path


def gh_record(number: int, owner: str, branch: str, sha: str, base: str = "main", repo: str = "project") -> dict:
    return {
        "id": f"PR_node{number}",
        "number": number,
        "baseRefName": base,
        "headRefName": branch,
        "headRefOid": sha,
        "headRepository": {"name": repo},
        "headRepositoryOwner": {"login": owner},
    }


@pytest.fixture()
def workspace(tmp_path: Path) -> Workspace:
    upstream = init_repo(tmp_path / "upstream")
    commit_files(
        upstream,
        {
            "a.txt": "alpha\n",
            "b.txt": "bravo\n",
            "src/c.py": "print('c')\n",
            "Cargo.lock": "# lock\n",
            ".github/ci.yml": "on: push\n",
        },
        "initial",
    )
    return Workspace(root=tmp_path, upstream=upstream)
