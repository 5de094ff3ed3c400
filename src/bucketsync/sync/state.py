"""In-memory state of both sides of a sync.

This module provides:
- StateStore: Thread-safe mapping of relative path -> FileRecord
- SyncState: The local and remote StateStores owned by one orchestrator

A key present in a store means the side has (or is believed to have) the
file. Absence means the file does not exist there. Only regular files are
recorded.

Every set() and delete() advances the store's generation and stamps the
path with it. A full scan reads the generation before it starts and hands
it to refresh(), which keeps whatever was written to a path after that
point instead of the scan's older view of it.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from bucketsync.sync.types import FileRecord


class StateStore:
    """Thread-safe mapping of relative path to FileRecord.

    Iteration works on a snapshot taken when iteration starts, so callers
    never observe concurrent mutations mid-iteration.
    """

    def __init__(self, records: Iterable[FileRecord] = ()) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, FileRecord] = {r.path: r for r in records}
        self._generation = 0
        self._written: dict[str, int] = {}

    @property
    def generation(self) -> int:
        """Get the number of writes applied so far."""
        with self._lock:
            return self._generation

    def _touch(self, path: str) -> None:
        self._generation += 1
        self._written[path] = self._generation

    def get(self, path: str) -> FileRecord | None:
        """Get the record for a path, or None if absent."""
        with self._lock:
            return self._records.get(path)

    def set(self, record: FileRecord) -> None:
        """Insert or replace the record for ``record.path``."""
        with self._lock:
            self._records[record.path] = record
            self._touch(record.path)

    def delete(self, path: str) -> None:
        """Remove a path. Removing an absent path is a no-op."""
        with self._lock:
            self._records.pop(path, None)
            self._touch(path)

    def replace_all(self, records: Iterable[FileRecord]) -> None:
        """Replace the whole content with a fresh listing."""
        fresh = {r.path: r for r in records}
        with self._lock:
            self._records = fresh
            self._written.clear()

    def refresh(self, records: Iterable[FileRecord], since: int) -> set[str]:
        """Load a full scan that started at generation ``since``.

        Paths written after ``since`` keep their current entry (or their
        absence); every other path takes the scanned record or is dropped.

        Returns:
            Paths whose current entry was kept over the scan.
        """
        fresh = {r.path: r for r in records}
        with self._lock:
            kept = {path for path, gen in self._written.items() if gen > since}
            for path in kept:
                current = self._records.get(path)
                if current is None:
                    fresh.pop(path, None)
                else:
                    fresh[path] = current
            self._records = fresh
            self._written = {path: self._written[path] for path in kept}
            return kept

    def snapshot(self) -> dict[str, FileRecord]:
        """Return a shallow copy of the mapping."""
        with self._lock:
            return dict(self._records)

    def entries(self) -> Iterator[tuple[str, FileRecord]]:
        """Iterate over (path, record) pairs of a snapshot."""
        return iter(self.snapshot().items())

    def keys(self) -> set[str]:
        """Return the set of known paths."""
        with self._lock:
            return set(self._records)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:
        return f"StateStore({len(self)} files)"


@dataclass
class SyncState:
    """Both sides of a sync, passed explicitly to engine and watcher."""

    local: StateStore = field(default_factory=StateStore)
    remote: StateStore = field(default_factory=StateStore)
