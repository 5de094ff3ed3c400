"""Transfer ports used by the reconciliation engine.

This module provides:
- TransferPorts: The four operations the engine drives
- BucketTransfers: Implementation over an ObjectStore and a LocalFilesystem

Implementations raise the sync error taxonomy (TransferFailure,
DeleteFailure) and never leave other exception types escaping, so the
engine can catch failures per path.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from bucketsync.core.fingerprint import fingerprint_bytes
from bucketsync.storage import ObjectNotFoundError
from bucketsync.sync.local import mtime_of
from bucketsync.sync.types import DeleteFailure, FileRecord, TransferFailure

if TYPE_CHECKING:
    from bucketsync.storage import ObjectStore
    from bucketsync.sync.local import LocalFilesystem

logger = logging.getLogger(__name__)

# Errors a port call may raise, wrapped into the sync taxonomy
PORT_EXCEPTIONS: tuple[type[Exception], ...] = (
    OSError,
    ValueError,
    ObjectNotFoundError,
    BotoCoreError,
    ClientError,
)


class TransferPorts(Protocol):
    """Side-effecting operations driven by the engine."""

    def upload(self, path: str) -> FileRecord:
        """Upload a local file; return the resulting remote record."""
        ...

    def download(self, path: str) -> FileRecord:
        """Download an object; return the resulting local record."""
        ...

    def delete_remote(self, path: str) -> None:
        """Delete an object from the bucket."""
        ...

    def delete_local(self, path: str) -> None:
        """Delete a local file."""
        ...


class BucketTransfers:
    """Whole-file transfers between a local root and a bucket."""

    def __init__(self, store: ObjectStore, filesystem: LocalFilesystem) -> None:
        """Initialize the transfers.

        Args:
            store: Remote bucket.
            filesystem: Local synchronized root.
        """
        self._store = store
        self._fs = filesystem

    def upload(self, path: str) -> FileRecord:
        """Upload a local file.

        The fingerprint is computed over the exact bytes sent, so the
        recorded remote state matches what the bucket holds even if the
        file changes during the upload.
        """
        try:
            data = self._fs.read(path)
            self._store.put(path, data)
        except PORT_EXCEPTIONS as e:
            raise TransferFailure(f"Upload of {path} failed: {e}") from e
        return FileRecord(
            path=path,
            fingerprint=fingerprint_bytes(data),
            last_modified=datetime.now(UTC),
        )

    def download(self, path: str) -> FileRecord:
        """Download an object into the local root."""
        try:
            data = self._store.get(path)
            written = self._fs.write(path, data)
            last_modified = mtime_of(written)
        except PORT_EXCEPTIONS as e:
            raise TransferFailure(f"Download of {path} failed: {e}") from e
        return FileRecord(
            path=path,
            fingerprint=fingerprint_bytes(data),
            last_modified=last_modified,
        )

    def delete_remote(self, path: str) -> None:
        """Delete an object from the bucket."""
        try:
            self._store.delete(path)
        except PORT_EXCEPTIONS as e:
            raise DeleteFailure(f"Remote delete of {path} failed: {e}") from e

    def delete_local(self, path: str) -> None:
        """Delete a local file. An already missing file counts as deleted."""
        try:
            if not self._fs.delete(path):
                logger.debug("Local file already gone: %s", path)
        except PORT_EXCEPTIONS as e:
            raise DeleteFailure(f"Local delete of {path} failed: {e}") from e
