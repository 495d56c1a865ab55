from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path


@dataclass(frozen=True)
class PullRequestDescriptor:
    """A pull request to analyse, as listed by the PR lister."""

    id: int
    base_branch: str
    head_branch: str
    head_commit: str
    head_owner: str
    head_repo: str
    node_id: str | None = None


FileChangeSet = frozenset[str]


class Intensity(IntEnum):
    LOWEST = 0
    LOW = 1
    HIGH = 2


N_BUCKETS = len(Intensity)


@dataclass(frozen=True)
class HeatmapEntry:
    path: str
    count: int
    intensity: Intensity


@dataclass(frozen=True)
class PrOutcome:
    pr_id: int
    analyzed: bool
    reason: str | None = None
    changed_files: int = 0


@dataclass(frozen=True)
class LoadWarning:
    index: int
    reason: str


@dataclass(frozen=True)
class BatchSummary:
    outcomes: tuple[PrOutcome, ...]
    load_warnings: tuple[LoadWarning, ...]
    output_path: Path | None
    files_rendered: int

    @property
    def analyzed(self) -> int:
        return sum(1 for o in self.outcomes if o.analyzed)

    @property
    def skipped(self) -> tuple[PrOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.analyzed)
