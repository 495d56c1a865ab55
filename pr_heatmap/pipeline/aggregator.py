from __future__ import annotations

import threading
from collections import Counter
from types import MappingProxyType
from typing import Iterable, Mapping


class FrequencyAggregator:
    """Per-file count of pull requests touching each path.

    This is the only state shared between PR workers. `record` is the single
    mutation point and holds the lock only for the increments; `snapshot`
    seals the aggregator so rendering never races with recording.
    """

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()
        self._sealed = False
        self._recorded = 0

    def record(self, changes: Iterable[str]) -> None:
        # A PR contributes at most 1 per path.
        paths = frozenset(changes)
        with self._lock:
            if self._sealed:
                raise RuntimeError("FrequencyAggregator is sealed; record() after snapshot()")
            for path in paths:
                self._counts[path] += 1
            self._recorded += 1

    @property
    def recorded(self) -> int:
        """Number of change sets recorded so far."""
        with self._lock:
            return self._recorded

    def snapshot(self) -> Mapping[str, int]:
        with self._lock:
            self._sealed = True
            return MappingProxyType(dict(self._counts))
