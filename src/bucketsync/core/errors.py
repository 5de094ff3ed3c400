"""Exception taxonomy for sync operations.

Per-path failures (TransferFailure, DeleteFailure, FingerprintFailure) are
caught at the operation boundary and never abort a reconciliation pass.
Global failures (ListingFailure, ScanFailure) abort the current pass only.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for sync errors."""


class TransferFailure(SyncError):
    """Upload or download failed (I/O or remote service error)."""


class DeleteFailure(SyncError):
    """Deleting a file locally or remotely failed."""


class ListingFailure(SyncError):
    """Enumerating the remote bucket failed."""


class ScanFailure(SyncError):
    """Walking the local directory failed."""


class FingerprintFailure(SyncError):
    """A file could not be read while computing its fingerprint."""
