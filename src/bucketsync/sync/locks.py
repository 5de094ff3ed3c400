"""Per-path mutual exclusion.

Every port invocation and the state update recording its result run while
holding the lock of their path, so at most one operation per path is in
flight. Different paths never block each other.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class PathLocks:
    """Registry of locks keyed by relative path.

    Locks are reference-counted and dropped once no thread holds or waits
    for them, so the registry does not grow with every path ever seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    @contextmanager
    def hold(self, path: str) -> Iterator[None]:
        """Hold the lock of ``path`` for the duration of the block."""
        with self._guard:
            lock = self._locks.setdefault(path, threading.Lock())
            self._users[path] = self._users.get(path, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[path] -= 1
                if self._users[path] == 0:
                    del self._users[path]
                    del self._locks[path]

    def is_locked(self, path: str) -> bool:
        """Check if an operation on ``path`` is in flight."""
        with self._guard:
            lock = self._locks.get(path)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
