"""Reconciliation engine keeping a local root and a bucket consistent.

This module provides:
- ReconciliationEngine: Plans and executes full, incremental and
  remote-change passes over a SyncState through TransferPorts

Full reconciliation:
    plan() compares snapshots of both stores. In a bidirectional pass the
    remote side wins when both sides hold different content, so only a
    download is scheduled for such a path. Operations run in the order
    downloads, uploads, remote deletes, local deletes.

Incremental reconciliation:
    apply_local_change() reacts to one watcher event without diffing the
    whole state; periodic full passes correct missed or reordered events.

Every port call and the state update recording its result run under the
lock of their path (PathLocks). A failed operation leaves the state
unchanged and is retried by the next pass only.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import TYPE_CHECKING

from bucketsync.sync.locks import PathLocks
from bucketsync.sync.types import (
    ChangeKind,
    Direction,
    LocalChange,
    Operation,
    OperationOutcome,
    OperationType,
    PassResult,
    ReconciliationPlan,
    SyncError,
)

if TYPE_CHECKING:
    from bucketsync.sync.state import SyncState
    from bucketsync.sync.transfers import TransferPorts

logger = logging.getLogger(__name__)

DRY_RUN_PREFIX = "[DRY RUN]"

_VERBS = {
    OperationType.DOWNLOAD: "download",
    OperationType.UPLOAD: "upload",
    OperationType.DELETE_REMOTE: "delete from bucket",
    OperationType.DELETE_LOCAL: "delete locally",
}

_DONE = {
    OperationType.DOWNLOAD: "Downloaded %s",
    OperationType.UPLOAD: "Uploaded %s",
    OperationType.DELETE_REMOTE: "Deleted %s from bucket",
    OperationType.DELETE_LOCAL: "Deleted %s locally",
}


class ReconciliationEngine:
    """Decides and executes the operations converging both sides."""

    def __init__(
        self,
        state: SyncState,
        ports: TransferPorts,
        locks: PathLocks | None = None,
        dry_run: bool = False,
    ) -> None:
        """Initialize the engine.

        Args:
            state: Local and remote stores (shared with the watcher).
            ports: Upload/download/delete implementation.
            locks: Per-path locks shared with other producers of operations.
            dry_run: Report decisions instead of executing them.
        """
        self._state = state
        self._ports = ports
        self._locks = locks or PathLocks()
        self._dry_run = dry_run

    @property
    def state(self) -> SyncState:
        """Get the state the engine reconciles."""
        return self._state

    @property
    def dry_run(self) -> bool:
        """Check if the engine only reports decisions."""
        return self._dry_run

    @property
    def locks(self) -> PathLocks:
        """Get the per-path locks."""
        return self._locks

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(
        self,
        direction: Direction = Direction.BOTH,
        protected: Collection[str] = (),
    ) -> ReconciliationPlan:
        """Compute the operations of a full reconciliation pass.

        Args:
            direction: Which sides may be modified.
            protected: Paths that must never be deleted in this pass (e.g.
                downloads that just failed, files that could not be read).

        Returns:
            The plan; computing it has no side effects.
        """
        local = self._state.local.snapshot()
        remote = self._state.remote.snapshot()
        plan = ReconciliationPlan()

        if direction in (Direction.BOTH, Direction.PULL):
            for path in sorted(remote):
                known = local.get(path)
                if known is None or known.fingerprint != remote[path].fingerprint:
                    plan.downloads.append(path)

        if direction in (Direction.BOTH, Direction.PUSH):
            for path in sorted(local):
                other = remote.get(path)
                if other is not None and other.fingerprint == local[path].fingerprint:
                    continue
                if other is not None and direction is Direction.BOTH:
                    # Remote wins: the download scheduled above resolves it
                    continue
                plan.uploads.append(path)

        downloading = set(plan.downloads)
        uploading = set(plan.uploads)

        if direction in (Direction.BOTH, Direction.PUSH):
            plan.remote_deletes = [
                path
                for path in sorted(remote)
                if path not in local and path not in downloading and path not in protected
            ]

        if direction in (Direction.BOTH, Direction.PULL):
            plan.local_deletes = [
                path
                for path in sorted(local)
                if path not in remote and path not in uploading and path not in protected
            ]

        return plan

    def plan_remote_changes(self) -> ReconciliationPlan:
        """Plan downloads for remote files that are new or newer.

        A remote entry is downloaded when it is absent locally, or when its
        listing timestamp is newer than the local record's and the content
        differs. Timestamps come with the listing for free; fingerprints
        keep identical content from being transferred again.
        """
        local = self._state.local.snapshot()
        plan = ReconciliationPlan()
        for path, remote_record in sorted(self._state.remote.entries()):
            known = local.get(path)
            if known is None:
                plan.downloads.append(path)
            elif (
                remote_record.last_modified > known.last_modified
                and remote_record.fingerprint != known.fingerprint
            ):
                plan.downloads.append(path)
        return plan

    # ------------------------------------------------------------------
    # Full passes
    # ------------------------------------------------------------------

    def reconcile(
        self,
        direction: Direction = Direction.BOTH,
        protected: Collection[str] = (),
    ) -> PassResult:
        """Plan and execute a full reconciliation pass."""
        plan = self.plan(direction, protected)
        if plan.is_empty:
            logger.debug("Reconciliation (%s): nothing to do", direction.value)
        else:
            logger.info("Reconciliation (%s): %s", direction.value, plan.summary())
        return self.execute(plan)

    def pull_remote_changes(self) -> PassResult:
        """Download remote files that are new or newer than the local copy."""
        plan = self.plan_remote_changes()
        if plan.downloads:
            logger.info("Remote changes: %d files to download", len(plan.downloads))
        return self.execute(plan)

    def execute(self, plan: ReconciliationPlan) -> PassResult:
        """Execute a plan in order, isolating failures per path."""
        result = PassResult()
        for operation in plan.operations():
            outcome = self._run(operation)
            if outcome is not None:
                result.add(outcome)
        return result

    def _run(self, operation: Operation) -> OperationOutcome | None:
        """Run one operation under its path lock.

        Returns None if, by the time the lock is held, the operation is no
        longer needed (another producer already converged the path).
        """
        if self._dry_run:
            logger.info(
                "%s Would %s %s", DRY_RUN_PREFIX, _VERBS[operation.op_type], operation.path
            )
            return OperationOutcome(operation, success=True, dry_run=True)

        with self._locks.hold(operation.path):
            if not self._still_needed(operation):
                logger.debug("Skipping %s: already converged", operation)
                return None
            return self._perform(operation)

    def _still_needed(self, operation: Operation) -> bool:
        """Re-check a planned operation against the current state."""
        path = operation.path
        local = self._state.local.get(path)
        remote = self._state.remote.get(path)

        if operation.op_type is OperationType.DOWNLOAD:
            return remote is not None and (
                local is None or local.fingerprint != remote.fingerprint
            )
        if operation.op_type is OperationType.UPLOAD:
            return local is not None and (
                remote is None or remote.fingerprint != local.fingerprint
            )
        if operation.op_type is OperationType.DELETE_REMOTE:
            return remote is not None and local is None
        return local is not None and remote is None

    def _perform(self, operation: Operation) -> OperationOutcome:
        """Call the port for an operation and record its effect.

        Must be called with the path lock held.
        """
        path = operation.path
        op_type = operation.op_type
        try:
            if op_type is OperationType.DOWNLOAD:
                self._state.local.set(self._ports.download(path))
            elif op_type is OperationType.UPLOAD:
                self._state.remote.set(self._ports.upload(path))
            elif op_type is OperationType.DELETE_REMOTE:
                self._ports.delete_remote(path)
                self._state.remote.delete(path)
            else:
                self._ports.delete_local(path)
                self._state.local.delete(path)
        except SyncError as e:
            logger.error("Failed to %s %s: %s", _VERBS[op_type], path, e)
            return OperationOutcome(operation, success=False, error=str(e))

        logger.info(_DONE[op_type], path)
        return OperationOutcome(operation, success=True)

    # ------------------------------------------------------------------
    # Incremental passes
    # ------------------------------------------------------------------

    def apply_local_change(self, change: LocalChange) -> OperationOutcome | None:
        """React to a single local change reported by the watcher.

        ADDED/MODIFIED records the fingerprint computed by the watcher and
        uploads the file; REMOVED forgets the file and deletes the object.
        Changes that leave both sides identical (for instance the watcher
        seeing a file this engine just downloaded) cause no transfer.

        Returns:
            The outcome, or None if nothing had to be done.
        """
        path = change.path
        if change.kind is ChangeKind.REMOVED:
            operation = Operation(OperationType.DELETE_REMOTE, path)
        else:
            if change.record is None:
                raise ValueError(f"{change.kind.value} change without a record: {path}")
            operation = Operation(OperationType.UPLOAD, path)

        if self._dry_run:
            return self._run(operation)

        with self._locks.hold(path):
            if change.kind is ChangeKind.REMOVED:
                self._state.local.delete(path)
            elif change.record is not None:
                self._state.local.set(change.record)

            if not self._still_needed(operation):
                logger.debug("Local change to %s needs no transfer", path)
                return None
            return self._perform(operation)
