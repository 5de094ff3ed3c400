"""File system watcher feeding incremental reconciliation.

This module provides:
- ChangeEventAdapter: Watches the sync root using watchdog
- Debouncing: Coalesces rapid events per path (250ms window)
- Settle delay: Waits after the last change before emitting
- Translation of raw events into LocalChange objects with fingerprints
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from bucketsync.core.fingerprint import compute_fingerprint
from bucketsync.sync.ignore import IGNORE_FILE_NAME, IgnorePatterns
from bucketsync.sync.local import mtime_of, to_key
from bucketsync.sync.types import ChangeKind, FileRecord, FingerprintFailure, LocalChange

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    """Type of raw file system change."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass
class FileChange:
    """A raw file system change awaiting debounce."""

    path: Path
    change_type: ChangeType
    timestamp: float = field(default_factory=time.time)


def _decode(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class DebouncedEventHandler(FileSystemEventHandler):
    """Event handler that debounces rapid file system events."""

    def __init__(
        self,
        base_path: Path,
        on_change: Callable[[LocalChange], object],
        debounce_ms: int = 250,
        sync_delay_s: float = 1.0,
        ignore_patterns: IgnorePatterns | None = None,
    ) -> None:
        """Initialize the debounced handler.

        Args:
            base_path: Base directory being watched.
            on_change: Receives each translated change.
            debounce_ms: Debounce window in milliseconds.
            sync_delay_s: Delay after last change before emitting.
            ignore_patterns: Patterns for files to ignore.
        """
        super().__init__()
        self._base_path = base_path
        self._on_change = on_change
        self._debounce_ms = debounce_ms
        self._sync_delay_s = sync_delay_s
        self._ignore = ignore_patterns or IgnorePatterns()

        # Pending changes keyed by path
        self._pending: dict[str, FileChange] = {}
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def _schedule_flush(self) -> None:
        """Schedule a flush of pending changes after the settle delay."""
        if self._timer:
            self._timer.cancel()

        self._timer = threading.Timer(self._sync_delay_s, self.flush)
        self._timer.daemon = True
        self._timer.start()

    def flush(self) -> None:
        """Emit every pending change."""
        with self._lock:
            if not self._pending:
                return
            changes = list(self._pending.values())
            self._pending.clear()
            if self._timer:
                self._timer.cancel()
                self._timer = None

        # Emit outside lock
        for change in changes:
            local_change = self.translate(change)
            if local_change is None:
                continue
            logger.debug("Watcher emitting %s %s", local_change.kind.value, local_change.path)
            try:
                self._on_change(local_change)
            except Exception:
                logger.exception("Change callback failed for %s", local_change.path)

    def translate(self, change: FileChange) -> LocalChange | None:
        """Convert a raw change into a LocalChange.

        Created/modified files are fingerprinted here; a file that has
        disappeared in the meantime is reported as removed. Returns None for
        changes that cannot be translated (outside the root, unreadable).
        """
        try:
            key = to_key(self._base_path, change.path)
        except ValueError:
            logger.warning("Path %s is not relative to %s", change.path, self._base_path)
            return None

        if change.change_type is ChangeType.DELETED or not change.path.exists():
            return LocalChange(kind=ChangeKind.REMOVED, path=key)

        if not change.path.is_file():
            return None

        try:
            fingerprint = compute_fingerprint(change.path)
            mtime = mtime_of(change.path)
        except FingerprintFailure as e:
            if not change.path.exists():
                return LocalChange(kind=ChangeKind.REMOVED, path=key)
            logger.warning("Ignoring change to unreadable file %s: %s", key, e)
            return None
        except FileNotFoundError:
            return LocalChange(kind=ChangeKind.REMOVED, path=key)

        kind = ChangeKind.ADDED if change.change_type is ChangeType.CREATED else ChangeKind.MODIFIED
        record = FileRecord(path=key, fingerprint=fingerprint, last_modified=mtime)
        return LocalChange(kind=kind, path=key, record=record)

    def _add_pending(self, path: Path, change_type: ChangeType) -> None:
        """Record a change, keeping only the latest one per path."""
        if self._ignore.should_ignore(path, self._base_path):
            return

        now = time.time()
        with self._lock:
            key = str(path)
            previous = self._pending.get(key)
            # A create followed by modifications within the window is still a create
            if (
                previous is not None
                and previous.change_type is ChangeType.CREATED
                and change_type is ChangeType.MODIFIED
                and (now - previous.timestamp) * 1000 < self._debounce_ms
            ):
                change_type = ChangeType.CREATED
            self._pending[key] = FileChange(path=path, change_type=change_type, timestamp=now)
            self._schedule_flush()

    def _handle_event(self, event: FileSystemEvent) -> None:
        """Handle a file system event with debouncing."""
        # Only regular files are synced
        if isinstance(
            event,
            DirCreatedEvent | DirModifiedEvent | DirDeletedEvent | DirMovedEvent,
        ):
            return

        path = Path(_decode(event.src_path))

        if isinstance(event, FileMovedEvent):
            self._add_pending(path, ChangeType.DELETED)
            self._add_pending(Path(_decode(event.dest_path)), ChangeType.CREATED)
        elif isinstance(event, FileCreatedEvent):
            self._add_pending(path, ChangeType.CREATED)
        elif isinstance(event, FileModifiedEvent):
            self._add_pending(path, ChangeType.MODIFIED)
        elif isinstance(event, FileDeletedEvent):
            self._add_pending(path, ChangeType.DELETED)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event."""
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event."""
        self._handle_event(event)

    def stop(self) -> None:
        """Stop any pending timer."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None


class ChangeEventAdapter:
    """Watches the sync root and reports debounced LocalChanges.

    Keys are computed with the same helper as the initial scan, so they
    match remote object keys (forward slashes, relative to the root).
    """

    def __init__(
        self,
        watch_path: Path,
        on_change: Callable[[LocalChange], object],
        debounce_ms: int = 250,
        sync_delay_s: float = 1.0,
        ignore_patterns: IgnorePatterns | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            watch_path: Directory to watch.
            on_change: Receives each change (e.g. WorkerPool.submit).
            debounce_ms: Debounce window in milliseconds.
            sync_delay_s: Delay after last change before emitting.
            ignore_patterns: Patterns to ignore. Defaults to the built-in
                patterns plus the root's .syncignore.
        """
        self._watch_path = Path(watch_path).resolve()
        if not self._watch_path.is_dir():
            raise ValueError(f"Watch path must be a directory: {watch_path}")

        if ignore_patterns is None:
            ignore_patterns = IgnorePatterns()
            ignore_patterns.load_from_file(self._watch_path / IGNORE_FILE_NAME)

        self._handler = DebouncedEventHandler(
            base_path=self._watch_path,
            on_change=on_change,
            debounce_ms=debounce_ms,
            sync_delay_s=sync_delay_s,
            ignore_patterns=ignore_patterns,
        )

        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for changes."""
        if self._running:
            return

        self._observer.schedule(self._handler, str(self._watch_path), recursive=True)
        self._observer.start()
        self._running = True
        logger.info("Watching %s for changes", self._watch_path)

    def stop(self) -> None:
        """Stop watching; pending changes are emitted before returning."""
        if not self._running:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._handler.stop()
        self._handler.flush()
        self._running = False
        logger.info("Stopped watching %s", self._watch_path)

    def __enter__(self) -> ChangeEventAdapter:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
