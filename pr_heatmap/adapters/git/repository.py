from __future__ import annotations

import logging
import os
import re
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path

from pr_heatmap.domain.errors import (
    BranchNotFound,
    FetchFailed,
    NoCommonAncestor,
    RepositoryNotFound,
)

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_URL_TEMPLATE = "git@github.com:{owner}/{repo}"


class GitError(RuntimeError):
    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class GitTimeout(GitError):
    pass


def _run_git(repo: Path, args: list[str], *, timeout: float | None = None) -> str:
    cmd = ["git", "-C", str(repo), *args]
    try:
        res = subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
    except subprocess.CalledProcessError as exc:
        msg = exc.stderr.decode("utf-8", errors="replace").strip()
        raise GitError(
            f"git failed ({exc.returncode}): {' '.join(cmd)}\n{msg}",
            returncode=exc.returncode,
            stderr=msg,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise GitTimeout(f"git timed out after {timeout}s: {' '.join(cmd)}") from exc
    except OSError as exc:
        raise GitError(f"could not run git: {exc}") from exc
    return res.stdout.decode("utf-8", errors="replace")


def _split_z(output: str) -> list[str]:
    return [part for part in output.split("\0") if part]


def _remote_name(owner: str, repo: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", f"pr-{owner}-{repo}")


def open_repository(
    path: Path | str,
    *,
    base_remote: str = "origin",
    remote_url_template: str = DEFAULT_REMOTE_URL_TEMPLATE,
    fetch_timeout: float | None = 120.0,
) -> "GitRepository":
    """Open a local git repository (work tree or bare)."""
    p = Path(path).expanduser()
    if not p.is_dir():
        raise RepositoryNotFound(f"Repository path does not exist or is not a directory: {p}")
    try:
        bare = _run_git(p, ["rev-parse", "--is-bare-repository"]).strip() == "true"
        root = p.resolve() if bare else Path(_run_git(p, ["rev-parse", "--show-toplevel"]).strip())
    except GitError as exc:
        raise RepositoryNotFound(f"Not a git repository: {p}") from exc

    return GitRepository(
        path=root,
        bare=bare,
        base_remote=base_remote,
        remote_url_template=remote_url_template,
        fetch_timeout=fetch_timeout,
    )


@dataclass
class GitRepository:
    """Handle to a local repository, driven through the git CLI.

    Safe to share between worker threads: read operations are independent
    git processes and remote registration is serialised.
    """

    path: Path
    bare: bool = False
    base_remote: str = "origin"
    remote_url_template: str = DEFAULT_REMOTE_URL_TEMPLATE
    fetch_timeout: float | None = 120.0
    _remote_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def git(self, *args: str, timeout: float | None = None) -> str:
        return _run_git(self.path, list(args), timeout=timeout)

    # --- refs and objects ------------------------------------------------

    def has_commit(self, commit: str) -> bool:
        try:
            self.git("cat-file", "-e", f"{commit}^{{commit}}")
        except GitError:
            return False
        return True

    def rev_parse(self, rev: str) -> str:
        return self.git("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}").strip()

    def resolve_branch(self, branch: str) -> str:
        """Resolve a branch name to its tip commit.

        Local branches win; the base remote's tracking branch is the fallback
        so a fresh clone with only `origin/main` still works.
        """
        for ref in (f"refs/heads/{branch}", f"refs/remotes/{self.base_remote}/{branch}"):
            try:
                return self.rev_parse(ref)
            except GitError:
                continue
        raise BranchNotFound(f"Branch not found: {branch}")

    def merge_base(self, commit_a: str, commit_b: str) -> str:
        try:
            out = self.git("merge-base", commit_a, commit_b)
        except GitError as exc:
            # git exits 1 without output when the histories are unrelated.
            if exc.returncode == 1 and not exc.stderr:
                raise NoCommonAncestor(f"No common ancestor between {commit_a} and {commit_b}") from exc
            raise
        return out.strip()

    # --- remotes ---------------------------------------------------------

    def remotes(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for line in self.git("remote", "-v").splitlines():
            parts = line.split()
            if len(parts) >= 3 and parts[2] == "(fetch)":
                out[parts[0]] = parts[1]
        return out

    def remote_url(self, owner: str, repo: str) -> str:
        return self.remote_url_template.format(owner=owner, repo=repo)

    def ensure_remote(self, owner: str, repo: str) -> str:
        """Return the name of a remote for owner/repo, registering it if needed."""
        url = self.remote_url(owner, repo)
        with self._remote_lock:
            existing = self.remotes()
            for name, existing_url in sorted(existing.items()):
                if existing_url == url:
                    return name

            base = _remote_name(owner, repo)
            name = base
            suffix = 1
            while name in existing:
                suffix += 1
                name = f"{base}-{suffix}"
            logger.info("Adding remote %s -> %s", name, url)
            self.git("remote", "add", name, url)
            return name

    def _fetch(self, remote: str, refspec: str) -> None:
        self.git(
            "fetch",
            "--no-tags",
            "--no-write-fetch-head",
            remote,
            refspec,
            timeout=self.fetch_timeout,
        )

    def ensure_remote_branch(
        self,
        owner: str,
        repo: str,
        branch: str,
        commit: str,
        *,
        local_ref: str | None = None,
    ) -> str:
        """Make `commit` available locally, fetching it from owner/repo if needed.

        The branch tip is fetched into `local_ref` when given. If the branch
        is gone or has moved past `commit`, the commit itself is requested.
        Returns the full commit id.
        """
        if self.has_commit(commit):
            logger.debug("Commit %s already present; skipping fetch", commit)
            return self.rev_parse(commit)

        try:
            remote = self.ensure_remote(owner, repo)
        except GitError as exc:
            raise FetchFailed(f"Could not register remote for {owner}/{repo}: {exc}") from exc

        refspec = f"+refs/heads/{branch}:{local_ref}" if local_ref else f"refs/heads/{branch}"
        errors: list[str] = []
        logger.info("Fetching %s %s", remote, refspec)
        try:
            self._fetch(remote, refspec)
        except GitTimeout as exc:
            raise FetchFailed(f"Timed out fetching {branch} from {owner}/{repo}: {exc}") from exc
        except GitError as exc:
            errors.append(exc.stderr or str(exc))

        if not self.has_commit(commit):
            try:
                self._fetch(remote, commit)
            except GitTimeout as exc:
                raise FetchFailed(f"Timed out fetching {commit} from {owner}/{repo}: {exc}") from exc
            except GitError as exc:
                errors.append(exc.stderr or str(exc))

        if not self.has_commit(commit):
            detail = "; ".join(e.splitlines()[-1] for e in errors if e) or "commit not found on remote"
            raise FetchFailed(f"Could not fetch {commit} from {owner}/{repo} ({branch}): {detail}")
        return self.rev_parse(commit)

    # --- trees -----------------------------------------------------------

    def diff_name_status(self, old: str, new: str) -> list[tuple[str, str]]:
        """Name/status pairs between two trees, with rename detection off.

        A rename therefore shows up as a deletion of the old path plus an
        addition of the new one.
        """
        out = self.git("diff-tree", "-r", "-z", "--no-renames", "--name-status", old, new)
        parts = _split_z(out)
        if len(parts) % 2:
            raise GitError(f"Unexpected diff-tree output for {old}..{new}")
        return [(parts[i][:1], parts[i + 1]) for i in range(0, len(parts), 2)]

    def list_tree(self, ref: str = "HEAD") -> frozenset[str]:
        return frozenset(_split_z(self.git("ls-tree", "-r", "-z", "--name-only", ref)))

    def list_worktree(self, *, include_hidden: bool = False) -> frozenset[str]:
        """Files in the working directory, relative to the repository root."""
        if self.bare:
            raise RepositoryNotFound(f"Bare repository has no working tree: {self.path}")

        out: set[str] = set()
        for dirpath, dirnames, filenames in os.walk(self.path):
            dirnames[:] = sorted(
                d for d in dirnames if d != ".git" and (include_hidden or not d.startswith("."))
            )
            rel_dir = Path(dirpath).relative_to(self.path)
            for name in filenames:
                if not include_hidden and name.startswith("."):
                    continue
                out.add((rel_dir / name).as_posix())
        return frozenset(out)
