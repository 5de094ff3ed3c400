"""Synchronization between a local directory and a bucket.

Architecture:
    StateScanner / ChangeEventAdapter → SyncState → ReconciliationEngine → TransferPorts

Components:
- **StateScanner**: Full local walk and bucket listing, as FileRecords
- **SyncState**: Local and remote StateStores owned by the orchestrator
- **ReconciliationEngine**: Plans full passes, reacts to single changes,
  executes operations under per-path locks
- **ChangeEventAdapter**: watchdog-based watcher emitting LocalChanges
- **WorkerPool**: Handles LocalChanges, one FIFO queue per worker
- **SyncOrchestrator**: Initial sync, then watcher + periodic cycle

Low-level transfer:
- BucketTransfers: Whole-file upload/download/delete over an ObjectStore
  and a LocalFilesystem
"""

from bucketsync.sync.engine import DRY_RUN_PREFIX, ReconciliationEngine
from bucketsync.sync.ignore import IgnorePatterns
from bucketsync.sync.local import LocalFilesystem, to_key
from bucketsync.sync.locks import PathLocks
from bucketsync.sync.orchestrator import SyncOrchestrator
from bucketsync.sync.pool import PoolState, WorkerPool, WorkerTask
from bucketsync.sync.scanner import LocalScan, StateScanner
from bucketsync.sync.state import StateStore, SyncState
from bucketsync.sync.transfers import BucketTransfers, TransferPorts
from bucketsync.sync.types import (
    ChangeKind,
    DeleteFailure,
    Direction,
    FileRecord,
    FingerprintFailure,
    ListingFailure,
    LocalChange,
    Operation,
    OperationOutcome,
    OperationType,
    PassResult,
    ReconciliationPlan,
    ScanFailure,
    SyncError,
    TransferFailure,
)
from bucketsync.sync.watcher import ChangeEventAdapter

__all__ = [
    # Engine
    "DRY_RUN_PREFIX",
    "ReconciliationEngine",
    # State
    "StateStore",
    "SyncState",
    # Local side
    "IgnorePatterns",
    "LocalFilesystem",
    "to_key",
    # Concurrency
    "PathLocks",
    "PoolState",
    "WorkerPool",
    "WorkerTask",
    # Scanning and watching
    "ChangeEventAdapter",
    "LocalScan",
    "StateScanner",
    # Transfers
    "BucketTransfers",
    "TransferPorts",
    # Orchestration
    "SyncOrchestrator",
    # Types
    "ChangeKind",
    "Direction",
    "FileRecord",
    "LocalChange",
    "Operation",
    "OperationOutcome",
    "OperationType",
    "PassResult",
    "ReconciliationPlan",
    # Errors
    "DeleteFailure",
    "FingerprintFailure",
    "ListingFailure",
    "ScanFailure",
    "SyncError",
    "TransferFailure",
]
