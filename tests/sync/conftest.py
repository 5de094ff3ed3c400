"""Shared fixtures for sync tests."""

from __future__ import annotations

import threading
import time
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from bucketsync.core.fingerprint import fingerprint_bytes
from bucketsync.sync.state import SyncState
from bucketsync.sync.types import DeleteFailure, FileRecord, TransferFailure

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class InMemoryPorts:
    """Transfer ports over two dicts of path -> content.

    Records every call, can be told to fail for given paths, and tracks
    how many operations per path run at the same time.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.local_files: dict[str, bytes] = {}
        self.remote_files: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_paths: set[str] = set()
        self.delay = delay
        self.max_concurrent: Counter[str] = Counter()
        self._in_flight: Counter[str] = Counter()
        self._lock = threading.Lock()

    def _enter(self, op: str, path: str) -> None:
        with self._lock:
            self.calls.append((op, path))
            self._in_flight[path] += 1
            self.max_concurrent[path] = max(self.max_concurrent[path], self._in_flight[path])
        if self.delay:
            time.sleep(self.delay)

    def _leave(self, path: str) -> None:
        with self._lock:
            self._in_flight[path] -= 1

    def calls_of(self, op: str) -> list[str]:
        return [path for name, path in self.calls if name == op]

    def upload(self, path: str) -> FileRecord:
        self._enter("upload", path)
        try:
            if path in self.fail_paths or path not in self.local_files:
                raise TransferFailure(f"upload of {path} failed")
            data = self.local_files[path]
            self.remote_files[path] = data
            return FileRecord(path, fingerprint_bytes(data), datetime.now(UTC))
        finally:
            self._leave(path)

    def download(self, path: str) -> FileRecord:
        self._enter("download", path)
        try:
            if path in self.fail_paths or path not in self.remote_files:
                raise TransferFailure(f"download of {path} failed")
            data = self.remote_files[path]
            self.local_files[path] = data
            return FileRecord(path, fingerprint_bytes(data), datetime.now(UTC))
        finally:
            self._leave(path)

    def delete_remote(self, path: str) -> None:
        self._enter("delete_remote", path)
        try:
            if path in self.fail_paths:
                raise DeleteFailure(f"remote delete of {path} failed")
            self.remote_files.pop(path, None)
        finally:
            self._leave(path)

    def delete_local(self, path: str) -> None:
        self._enter("delete_local", path)
        try:
            if path in self.fail_paths:
                raise DeleteFailure(f"local delete of {path} failed")
            self.local_files.pop(path, None)
        finally:
            self._leave(path)


def record(path: str, content: bytes, age_minutes: int = 0) -> FileRecord:
    """Build a record for content, modified ``age_minutes`` after T0."""
    return FileRecord(path, fingerprint_bytes(content), T0 + timedelta(minutes=age_minutes))


@pytest.fixture
def ports() -> InMemoryPorts:
    """Create in-memory transfer ports."""
    return InMemoryPorts()


@pytest.fixture
def make_state(
    ports: InMemoryPorts,
) -> Callable[[dict[str, bytes], dict[str, bytes]], SyncState]:
    """Build a SyncState (and matching port content) from two file maps."""

    def _make(local: dict[str, bytes], remote: dict[str, bytes]) -> SyncState:
        state = SyncState()
        for path, content in local.items():
            ports.local_files[path] = content
            state.local.set(record(path, content))
        for path, content in remote.items():
            ports.remote_files[path] = content
            state.remote.set(record(path, content))
        return state

    return _make


@pytest.fixture
def make_record() -> Callable[..., FileRecord]:
    """Expose the record builder to tests."""
    return record


@pytest.fixture
def slow_ports() -> InMemoryPorts:
    """Create in-memory ports whose calls take a few milliseconds."""
    return InMemoryPorts(delay=0.01)
