"""Top-level driver of a running sync.

This module provides:
- SyncOrchestrator: Initial sync, then watcher + periodic reconciliation

Lifecycle:
    start()  scan both sides, run a bidirectional pass, start the worker
             pool, the watcher and the periodic job
    run_forever()  block until stop() or Ctrl+C
    stop()   stop the periodic job (letting a running cycle finish), stop
             the watcher, then drain the worker pool

The periodic job runs sync_cycle(): list the bucket and download remote
changes, rescan the local root, then push local state to the bucket.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from bucketsync.sync.engine import DRY_RUN_PREFIX, ReconciliationEngine
from bucketsync.sync.locks import PathLocks
from bucketsync.sync.pool import WorkerPool
from bucketsync.sync.scanner import StateScanner
from bucketsync.sync.state import SyncState
from bucketsync.sync.transfers import BucketTransfers
from bucketsync.sync.types import (
    Direction,
    ListingFailure,
    OperationType,
    PassResult,
    ScanFailure,
)
from bucketsync.sync.watcher import ChangeEventAdapter

if TYPE_CHECKING:
    from bucketsync.storage import ObjectStore
    from bucketsync.sync.local import LocalFilesystem
    from bucketsync.sync.scanner import LocalScan
    from bucketsync.sync.transfers import TransferPorts

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "sync_cycle"


class SyncOrchestrator:
    """Owns the sync state and drives every trigger source."""

    def __init__(
        self,
        store: ObjectStore,
        filesystem: LocalFilesystem,
        poll_interval: float = 60.0,
        dry_run: bool = False,
        ports: TransferPorts | None = None,
        max_workers: int | None = None,
        watcher_delay_s: float = 1.0,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Remote bucket.
            filesystem: Local synchronized root.
            poll_interval: Seconds between periodic sync cycles.
            dry_run: Report decisions without executing them.
            ports: Transfer implementation (defaults to BucketTransfers).
            max_workers: Worker threads for watcher-driven changes.
            watcher_delay_s: Settle delay of the watcher.
        """
        self._store = store
        self._fs = filesystem
        self._poll_interval = poll_interval
        self._dry_run = dry_run
        self._watcher_delay_s = watcher_delay_s

        self._state = SyncState()
        self._locks = PathLocks()
        self._scanner = StateScanner(store, filesystem)
        self._engine = ReconciliationEngine(
            self._state,
            ports or BucketTransfers(store, filesystem),
            locks=self._locks,
            dry_run=dry_run,
        )
        self._pool = WorkerPool(self._engine.apply_local_change, max_workers=max_workers)
        self._watcher: ChangeEventAdapter | None = None
        self._scheduler: BackgroundScheduler | None = None
        self._stopped = threading.Event()

    @property
    def state(self) -> SyncState:
        """Get the sync state."""
        return self._state

    @property
    def engine(self) -> ReconciliationEngine:
        """Get the reconciliation engine."""
        return self._engine

    @property
    def pool(self) -> WorkerPool:
        """Get the worker pool for watcher-driven changes."""
        return self._pool

    @property
    def is_running(self) -> bool:
        """Check if the orchestrator has been started and not stopped."""
        return self._scheduler is not None

    def load_state(self) -> set[str]:
        """Populate both stores from a full scan of each side.

        Returns:
            Keys of local files that could not be read.

        Raises:
            ListingFailure: If the bucket cannot be listed.
            ScanFailure: If the local root cannot be walked.
        """
        self._refresh_remote()
        local_scan = self._refresh_local()
        logger.info(
            "Loaded state: %d local files, %d remote objects",
            len(self._state.local),
            len(self._state.remote),
        )
        return local_scan.unreadable

    def _refresh_remote(self) -> None:
        """List the bucket and load it into the remote store.

        Paths the engine wrote while the listing ran keep their current
        entry, since the listing may predate those writes.
        """
        since = self._state.remote.generation
        kept = self._state.remote.refresh(self._scanner.list_remote(), since)
        if kept:
            logger.debug("Kept %d remote entries written during listing", len(kept))

    def _refresh_local(self) -> LocalScan:
        """Rescan the local root and load it into the local store.

        Known records of unreadable files are kept, and so are paths the
        watcher or engine wrote while the walk ran.
        """
        since = self._state.local.generation
        scan = self._scanner.scan_local(previous=self._state.local)
        records = list(scan.records)
        for key in scan.unreadable:
            known = self._state.local.get(key)
            if known is not None:
                records.append(known)
        kept = self._state.local.refresh(records, since)
        if kept:
            logger.debug("Kept %d local entries written during scan", len(kept))
        return scan

    def initial_sync(self) -> PassResult:
        """Scan both sides and run one bidirectional pass.

        Raises:
            ListingFailure: If the bucket cannot be listed.
            ScanFailure: If the local root cannot be walked.
        """
        prefix = f"{DRY_RUN_PREFIX} " if self._dry_run else ""
        logger.info("%sPerforming initial sync...", prefix)
        unreadable = self.load_state()
        result = self._engine.reconcile(Direction.BOTH, protected=unreadable)
        logger.info("%sInitial sync completed: %s", prefix, result.summary())
        return result

    def sync_cycle(self) -> PassResult | None:
        """Run one periodic cycle.

        Downloads remote changes, rescans the local root, then pushes local
        state (uploads and remote deletions). Paths whose download failed, or
        was only reported in a dry run, are never deleted remotely in the
        same cycle.

        Returns:
            The combined result, or None if a listing or scan failure
            aborted the cycle (the next cycle retries).
        """
        result = PassResult()
        try:
            self._refresh_remote()
            result.extend(self._engine.pull_remote_changes())

            local_scan = self._refresh_local()

            # A reported-only download never reaches the local store
            reported = {
                op.path
                for op in result.dry_run_operations
                if op.op_type is OperationType.DOWNLOAD
            }
            protected = result.failed_downloads | reported | local_scan.unreadable
            result.extend(self._engine.reconcile(Direction.PUSH, protected=protected))
        except (ListingFailure, ScanFailure) as e:
            logger.error("Sync cycle aborted: %s", e)
            return None

        if result.outcomes:
            logger.info("Sync cycle completed: %s", result.summary())
        return result

    def _sync_job(self) -> None:
        """Job function for the periodic sync cycle."""
        try:
            self.sync_cycle()
        except Exception:
            logger.exception("Error during periodic sync cycle")

    def start(self) -> PassResult:
        """Run the initial sync, then start the watcher and periodic job.

        Returns:
            Result of the initial sync.

        Raises:
            ListingFailure: If the initial listing fails.
            ScanFailure: If the initial scan fails.
        """
        if self._scheduler is not None:
            raise RuntimeError("Orchestrator already started")

        result = self.initial_sync()

        self._pool.start()
        self._watcher = ChangeEventAdapter(
            self._fs.root,
            on_change=self._pool.submit,
            sync_delay_s=self._watcher_delay_s,
            ignore_patterns=self._fs.ignore,
        )
        self._watcher.start()

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._sync_job,
            trigger=IntervalTrigger(seconds=self._poll_interval),
            id=SYNC_JOB_ID,
            name="Periodic sync cycle",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._stopped.clear()
        logger.info(
            "%sSyncing %s with %s every %ss",
            f"{DRY_RUN_PREFIX} " if self._dry_run else "",
            self._fs.root,
            self._store.location,
            self._poll_interval,
        )
        return result

    def run_forever(self) -> None:
        """Block until stop() is called or the process is interrupted."""
        try:
            while not self._stopped.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop every trigger source, letting in-flight work finish."""
        self._stopped.set()
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
            logger.info("Periodic sync stopped")
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        self._pool.stop()

    def __enter__(self) -> SyncOrchestrator:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
