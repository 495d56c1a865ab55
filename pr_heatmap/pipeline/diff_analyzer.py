from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import PurePosixPath

from pr_heatmap.adapters.git.repository import GitError, GitRepository
from pr_heatmap.domain.entities import FileChangeSet
from pr_heatmap.domain.errors import DiffUnavailable

logger = logging.getLogger(__name__)

# Conflicts in generated lock files are resolved by regenerating them.
DEFAULT_IGNORE_PATHS: tuple[str, ...] = (
    "Cargo.lock",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "uv.lock",
    "Pipfile.lock",
    "go.sum",
)

# Statuses whose old side exists at the merge base. Additions (A) are not
# counted: only edits to existing files can clash.
BEFORE_PATH_STATUSES = frozenset({"M", "T", "D"})


def is_ignored(path: str, patterns: tuple[str, ...] | list[str]) -> bool:
    name = PurePosixPath(path).name
    return any(fnmatch(path, pat) or fnmatch(name, pat) for pat in patterns)


@dataclass(frozen=True)
class DiffAnalyzer:
    """Compute the before-paths a pull request touches."""

    ignore_paths: tuple[str, ...] = field(default=DEFAULT_IGNORE_PATHS)

    def changed_paths(self, repo: GitRepository, merge_base: str, head_commit: str) -> FileChangeSet:
        if merge_base == head_commit:
            return frozenset()
        try:
            delta = repo.diff_name_status(merge_base, head_commit)
        except GitError as exc:
            raise DiffUnavailable(f"Cannot diff {merge_base}..{head_commit}: {exc}") from exc

        paths: set[str] = set()
        for status, path in delta:
            if status not in BEFORE_PATH_STATUSES:
                continue
            if is_ignored(path, self.ignore_paths):
                logger.debug("Ignoring %s", path)
                continue
            paths.add(path)
        return frozenset(paths)

    def analyze(self, repo: GitRepository, base_commit: str, head_commit: str) -> FileChangeSet:
        """Diff the PR head against its merge base with the target branch tip.

        Raises NoCommonAncestor for unrelated histories and DiffUnavailable
        when git cannot produce the diff (missing or corrupt objects).
        """
        try:
            merge_base = repo.merge_base(base_commit, head_commit)
            head = repo.rev_parse(head_commit)
        except GitError as exc:
            raise DiffUnavailable(f"Cannot compute merge base of {base_commit} and {head_commit}: {exc}") from exc

        changes = self.changed_paths(repo, merge_base, head)
        logger.debug("merge-base %s..%s touches %d files", merge_base[:12], head[:12], len(changes))
        return changes
