from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from pr_heatmap.domain.entities import LoadWarning, PullRequestDescriptor
from pr_heatmap.domain.errors import InputUnreadable, MalformedDescriptor

logger = logging.getLogger(__name__)

_SHA_RE = re.compile(r"^[0-9a-fA-F]{7,40}$")


def _required_str(obj: dict[str, Any], *keys: str) -> str:
    """Follow `keys` into nested dicts and return a non-empty string."""
    value: Any = obj
    for key in keys:
        if not isinstance(value, dict) or value.get(key) is None:
            raise MalformedDescriptor(f"missing field {'.'.join(keys)}")
        value = value[key]
    if isinstance(value, (dict, list)) or not str(value).strip():
        raise MalformedDescriptor(f"empty or invalid field {'.'.join(keys)}")
    return str(value).strip()


def _required_int(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key)
    if value is None or isinstance(value, bool):
        raise MalformedDescriptor(f"missing field {key}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedDescriptor(f"field {key} is not an integer: {value!r}") from exc


def parse_descriptor(obj: Any) -> PullRequestDescriptor:
    """Build a descriptor from one input record.

    Two shapes are accepted: the output of

        gh pr list --json baseRefName,headRefName,headRefOid,headRepository,headRepositoryOwner,number,id

    where `number` is the PR id and `id` the opaque node id, and a flat
    snake_case record with `id, base_branch, head_branch, head_commit,
    head_owner, head_repo`.
    """
    if not isinstance(obj, dict):
        raise MalformedDescriptor(f"record is not an object: {type(obj).__name__}")

    if "baseRefName" in obj or "headRefOid" in obj:
        node_id = obj.get("id")
        desc = PullRequestDescriptor(
            id=_required_int(obj, "number"),
            base_branch=_required_str(obj, "baseRefName"),
            head_branch=_required_str(obj, "headRefName"),
            head_commit=_required_str(obj, "headRefOid"),
            head_owner=_required_str(obj, "headRepositoryOwner", "login"),
            head_repo=_required_str(obj, "headRepository", "name"),
            node_id=str(node_id) if node_id is not None else None,
        )
    else:
        desc = PullRequestDescriptor(
            id=_required_int(obj, "id"),
            base_branch=_required_str(obj, "base_branch"),
            head_branch=_required_str(obj, "head_branch"),
            head_commit=_required_str(obj, "head_commit"),
            head_owner=_required_str(obj, "head_owner"),
            head_repo=_required_str(obj, "head_repo"),
        )

    if not _SHA_RE.match(desc.head_commit):
        raise MalformedDescriptor(f"head commit is not a commit id: {desc.head_commit!r}")
    return desc


@dataclass
class PullRequestBatch:
    """Lazy, restartable sequence of descriptors.

    Every iteration walks the records in input order and re-validates them;
    malformed records are skipped and collected in `warnings`.
    """

    source: str
    records: list[Any]
    warnings: list[LoadWarning] = field(default_factory=list)

    def __iter__(self) -> Iterator[PullRequestDescriptor]:
        self.warnings = []
        for index, obj in enumerate(self.records):
            try:
                yield parse_descriptor(obj)
            except MalformedDescriptor as exc:
                pr = obj.get("number", obj.get("id")) if isinstance(obj, dict) else None
                logger.warning("Skipping PR record #%d (pr=%s) in %s: %s", index, pr, self.source, exc)
                self.warnings.append(LoadWarning(index=index, reason=str(exc)))

    def __len__(self) -> int:
        return len(self.records)


def load_pull_requests(path: Path) -> PullRequestBatch:
    """Load PR descriptors from a JSON file.

    The file as a whole must be a readable JSON list; otherwise the run
    cannot start and InputUnreadable is raised. Individual records are only
    validated when the batch is iterated.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise InputUnreadable(f"Cannot read PR file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InputUnreadable(f"PR file {path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise InputUnreadable(f"PR file {path} must be a JSON list")
    return PullRequestBatch(source=str(path), records=raw)
