"""Shared types and dataclasses for sync operations.

This module provides:
- FileRecord: Known state of one file on one side
- SyncError and subclasses: Exception taxonomy (re-exported from core.errors)
- ChangeKind, LocalChange: Watcher events after translation
- Direction, OperationType, Operation: Reconciliation plan entries
- ReconciliationPlan: Ordered operations of one pass
- OperationOutcome, PassResult: What a pass actually did
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum

from bucketsync.core.errors import (
    DeleteFailure,
    FingerprintFailure,
    ListingFailure,
    ScanFailure,
    SyncError,
    TransferFailure,
)

__all__ = [
    "ChangeKind",
    "DeleteFailure",
    "Direction",
    "FileRecord",
    "FingerprintFailure",
    "ListingFailure",
    "LocalChange",
    "Operation",
    "OperationOutcome",
    "OperationType",
    "PassResult",
    "ReconciliationPlan",
    "ScanFailure",
    "SyncError",
    "TransferFailure",
]


@dataclass(frozen=True)
class FileRecord:
    """Known state of one regular file on one side.

    Attributes:
        path: Root-relative key, always forward-slash separated.
        fingerprint: Content digest (MD5 hex).
        last_modified: Timezone-aware modification time.
    """

    path: str
    fingerprint: str
    last_modified: datetime


class ChangeKind(Enum):
    """Kind of local change reported by the watcher."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class LocalChange:
    """A debounced local change, ready for incremental reconciliation.

    For ADDED/MODIFIED changes the watcher has already read the file, so
    ``record`` carries its fingerprint and mtime. REMOVED changes have no
    record.
    """

    kind: ChangeKind
    path: str
    record: FileRecord | None = None


class Direction(Enum):
    """Which sides a full reconciliation pass may modify."""

    BOTH = "both"  # initial sync, remote wins on conflict
    PUSH = "push"  # local is the source of truth
    PULL = "pull"  # remote is the source of truth


class OperationType(IntEnum):
    """Operation kinds, in execution order within a pass."""

    DOWNLOAD = 1
    UPLOAD = 2
    DELETE_REMOTE = 3
    DELETE_LOCAL = 4


@dataclass(frozen=True, order=True)
class Operation:
    """A single planned operation on one path."""

    op_type: OperationType
    path: str

    def __str__(self) -> str:
        return f"{self.op_type.name.lower()} {self.path}"


@dataclass
class ReconciliationPlan:
    """Operations scheduled by one planning step, grouped by kind."""

    downloads: list[str] = field(default_factory=list)
    uploads: list[str] = field(default_factory=list)
    remote_deletes: list[str] = field(default_factory=list)
    local_deletes: list[str] = field(default_factory=list)

    def operations(self) -> list[Operation]:
        """Return every operation in execution order (deletes last)."""
        ops = [Operation(OperationType.DOWNLOAD, p) for p in self.downloads]
        ops += [Operation(OperationType.UPLOAD, p) for p in self.uploads]
        ops += [Operation(OperationType.DELETE_REMOTE, p) for p in self.remote_deletes]
        ops += [Operation(OperationType.DELETE_LOCAL, p) for p in self.local_deletes]
        return ops

    def __len__(self) -> int:
        return (
            len(self.downloads)
            + len(self.uploads)
            + len(self.remote_deletes)
            + len(self.local_deletes)
        )

    @property
    def is_empty(self) -> bool:
        """Check if nothing needs to be done."""
        return len(self) == 0

    def summary(self) -> str:
        """Return a one-line summary of the plan."""
        return (
            f"{len(self.downloads)} downloads, {len(self.uploads)} uploads, "
            f"{len(self.remote_deletes)} remote deletes, "
            f"{len(self.local_deletes)} local deletes"
        )


@dataclass(frozen=True)
class OperationOutcome:
    """Result of executing (or dry-running) one operation."""

    operation: Operation
    success: bool
    dry_run: bool = False
    error: str | None = None


@dataclass
class PassResult:
    """Outcome of a reconciliation pass."""

    outcomes: list[OperationOutcome] = field(default_factory=list)

    def add(self, outcome: OperationOutcome) -> None:
        """Record one outcome."""
        self.outcomes.append(outcome)

    def extend(self, other: PassResult) -> None:
        """Append the outcomes of another pass."""
        self.outcomes.extend(other.outcomes)

    def _paths(self, op_type: OperationType, *, success: bool) -> list[str]:
        return [
            o.operation.path
            for o in self.outcomes
            if o.operation.op_type == op_type and o.success == success and not o.dry_run
        ]

    @property
    def uploaded(self) -> list[str]:
        return self._paths(OperationType.UPLOAD, success=True)

    @property
    def downloaded(self) -> list[str]:
        return self._paths(OperationType.DOWNLOAD, success=True)

    @property
    def deleted_remote(self) -> list[str]:
        return self._paths(OperationType.DELETE_REMOTE, success=True)

    @property
    def deleted_local(self) -> list[str]:
        return self._paths(OperationType.DELETE_LOCAL, success=True)

    @property
    def failed_downloads(self) -> set[str]:
        return set(self._paths(OperationType.DOWNLOAD, success=False))

    @property
    def errors(self) -> list[str]:
        """Error messages of failed operations."""
        return [f"{o.operation}: {o.error}" for o in self.outcomes if not o.success]

    @property
    def dry_run_operations(self) -> list[Operation]:
        """Operations that were only reported."""
        return [o.operation for o in self.outcomes if o.dry_run]

    @property
    def executed_count(self) -> int:
        """Number of operations actually attempted."""
        return sum(1 for o in self.outcomes if not o.dry_run)

    def summary(self) -> str:
        """Return a one-line summary of the pass."""
        return (
            f"{len(self.uploaded)} uploaded, {len(self.downloaded)} downloaded, "
            f"{len(self.deleted_remote)} deleted remotely, "
            f"{len(self.deleted_local)} deleted locally, {len(self.errors)} errors"
        )
