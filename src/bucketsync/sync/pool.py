"""Worker pool for event-driven reconciliation.

This module provides:
- WorkerPool: Runs local changes through a handler on worker threads
- WorkerTask: Represents a queued change for the pool

Each path is routed to one worker (by hash), and each worker owns its own
FIFO queue. Changes to the same path are therefore handled one at a time
and in arrival order, while different paths proceed in parallel.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
import zlib
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from bucketsync.sync.types import LocalChange, OperationOutcome

logger = logging.getLogger(__name__)


class PoolState(Enum):
    """State of the worker pool."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


@dataclass
class WorkerTask:
    """A change to be handled by the worker pool.

    Attributes:
        change: The local change to reconcile.
        on_complete: Callback with the handler's outcome (None if no-op).
    """

    change: LocalChange
    on_complete: Callable[[OperationOutcome | None], None] | None = None


class WorkerPool:
    """Pool of worker threads, one FIFO queue per worker.

    Usage:
        pool = WorkerPool(engine.apply_local_change)
        pool.start()

        # Submit changes (typically from the watcher)
        pool.submit(change)

        # Stop when done; queued changes are still handled
        pool.stop()
    """

    def __init__(
        self,
        handler: Callable[[LocalChange], OperationOutcome | None],
        max_workers: int | None = None,
    ) -> None:
        """Initialize the worker pool.

        Args:
            handler: Function reconciling one change.
            max_workers: Number of workers. Defaults to CPU count.
        """
        self._handler = handler
        self._max_workers = max_workers or max(os.cpu_count() or 4, 2)

        self._pool_state = PoolState.STOPPED
        self._lock = threading.Lock()

        self._queues: list[queue.Queue[WorkerTask | None]] = []
        self._workers: list[threading.Thread] = []

        self._active_count = 0
        self._completed_count = 0
        self._error_count = 0

    @property
    def state(self) -> PoolState:
        """Get current pool state."""
        return self._pool_state

    @property
    def max_workers(self) -> int:
        """Get the number of workers."""
        return self._max_workers

    @property
    def active_count(self) -> int:
        """Get number of changes being handled right now."""
        with self._lock:
            return self._active_count

    @property
    def queue_size(self) -> int:
        """Get number of queued changes."""
        return sum(q.qsize() for q in self._queues)

    @property
    def completed_count(self) -> int:
        """Get number of handled changes."""
        with self._lock:
            return self._completed_count

    @property
    def error_count(self) -> int:
        """Get number of changes whose handler failed."""
        with self._lock:
            return self._error_count

    def start(self) -> None:
        """Start the worker pool."""
        with self._lock:
            if self._pool_state != PoolState.STOPPED:
                logger.warning("Worker pool already running")
                return

            self._pool_state = PoolState.RUNNING
            self._queues = [queue.Queue() for _ in range(self._max_workers)]

            for i, task_queue in enumerate(self._queues):
                thread = threading.Thread(
                    target=self._worker_loop,
                    args=(task_queue,),
                    name=f"WorkerPool-{i}",
                    daemon=True,
                )
                thread.start()
                self._workers.append(thread)

            logger.info("Worker pool started with %d workers", self._max_workers)

    def stop(self, timeout: float = 30.0) -> None:
        """Stop the worker pool.

        Changes already queued are handled before the workers exit; nothing
        in flight is interrupted.

        Args:
            timeout: Maximum time to wait for workers to finish.
        """
        with self._lock:
            if self._pool_state == PoolState.STOPPED:
                return

            self._pool_state = PoolState.STOPPING
            logger.info("Worker pool stopping...")

            # Poison pills go behind the queued changes
            for task_queue in self._queues:
                task_queue.put(None)

        per_worker = timeout / len(self._workers)
        for worker in self._workers:
            worker.join(timeout=per_worker)
            if worker.is_alive():
                logger.warning("Worker %s did not finish within %.1fs", worker.name, per_worker)

        with self._lock:
            self._pool_state = PoolState.STOPPED
            self._workers.clear()
            self._queues.clear()
            logger.info("Worker pool stopped")

    def submit(
        self,
        change: LocalChange,
        on_complete: Callable[[OperationOutcome | None], None] | None = None,
    ) -> bool:
        """Submit a change to the worker owning its path.

        Args:
            change: The change to reconcile.
            on_complete: Callback with the outcome.

        Returns:
            True if the change was queued, False if the pool is not running.
        """
        with self._lock:
            if self._pool_state != PoolState.RUNNING:
                logger.warning("Cannot submit %s: pool not running", change.path)
                return False
            index = zlib.crc32(change.path.encode("utf-8")) % len(self._queues)
            self._queues[index].put(WorkerTask(change=change, on_complete=on_complete))

        logger.debug("Change submitted: %s %s", change.kind.value, change.path)
        return True

    def wait_idle(self) -> None:
        """Block until every queued change has been handled."""
        for task_queue in list(self._queues):
            task_queue.join()

    def _worker_loop(self, task_queue: queue.Queue[WorkerTask | None]) -> None:
        """Main loop of one worker thread."""
        while True:
            task = task_queue.get()
            try:
                if task is None:
                    break
                self._process_task(task)
            finally:
                task_queue.task_done()

    def _process_task(self, task: WorkerTask) -> None:
        """Handle a single change."""
        with self._lock:
            self._active_count += 1
        try:
            outcome = self._handler(task.change)
            with self._lock:
                self._completed_count += 1
                if outcome is not None and not outcome.success:
                    self._error_count += 1
            if task.on_complete:
                task.on_complete(outcome)
        except Exception:
            with self._lock:
                self._error_count += 1
            logger.exception("Error handling change to %s", task.change.path)
        finally:
            with self._lock:
                self._active_count -= 1
