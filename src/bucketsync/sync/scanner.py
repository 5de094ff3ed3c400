"""Full scans of both sides of a sync.

This module provides:
- LocalScan: Result of walking the local root
- StateScanner: Builds FileRecords from a local walk and a bucket listing

Architecture:
    StateScanner is the "state producer" for full passes:
    1. list_remote() enumerates the bucket and derives fingerprints from ETags
    2. scan_local() walks the root and fingerprints every regular file
    The orchestrator loads the results into the StateStores before the
    engine compares them.

ETags are only trusted when they look like a plain MD5. Multipart or
encrypted objects are fetched and hashed instead; the result is cached by
(key, ETag) so each such object is downloaded for hashing once. Entries for
objects that are gone or were overwritten are dropped after each listing.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from bucketsync.core.fingerprint import (
    compute_fingerprint,
    etag_to_fingerprint,
    fingerprint_bytes,
)
from bucketsync.storage import ObjectNotFoundError
from bucketsync.sync.local import mtime_of
from bucketsync.sync.transfers import PORT_EXCEPTIONS
from bucketsync.sync.types import (
    FileRecord,
    FingerprintFailure,
    ListingFailure,
    ScanFailure,
)

if TYPE_CHECKING:
    from bucketsync.storage import ObjectStore, RemoteObject
    from bucketsync.sync.local import LocalFilesystem
    from bucketsync.sync.state import StateStore

logger = logging.getLogger(__name__)


@dataclass
class LocalScan:
    """Result of a local scan.

    Attributes:
        records: Records of every readable regular file.
        unreadable: Keys of files that exist but could not be hashed. They
            are reported separately so that a pass never mistakes them for
            deleted files.
    """

    records: list[FileRecord] = field(default_factory=list)
    unreadable: set[str] = field(default_factory=set)


class StateScanner:
    """Builds the state of both sides from scratch."""

    def __init__(self, store: ObjectStore, filesystem: LocalFilesystem) -> None:
        """Initialize the scanner.

        Args:
            store: Remote bucket.
            filesystem: Local synchronized root.
        """
        self._store = store
        self._fs = filesystem
        self._etag_cache: dict[tuple[str, str], str] = {}
        self._cache_lock = threading.Lock()

    @property
    def cached_etags(self) -> int:
        """Get the number of hashed ETags currently cached."""
        with self._cache_lock:
            return len(self._etag_cache)

    def list_remote(self) -> list[FileRecord]:
        """List the bucket as FileRecords.

        Keys matching the ignore patterns are skipped, as they are locally.

        Raises:
            ListingFailure: If the listing (or a fallback fetch) fails.
        """
        try:
            objects = self._store.list()
        except PORT_EXCEPTIONS as e:
            raise ListingFailure(f"Cannot list {self._store.location}: {e}") from e

        records = []
        listed: set[tuple[str, str]] = set()
        for obj in objects:
            if self._fs.ignore.matches(obj.key):
                continue
            listed.add((obj.key, obj.etag))
            fingerprint = self._remote_fingerprint(obj)
            if fingerprint is None:
                continue
            records.append(
                FileRecord(
                    path=obj.key,
                    fingerprint=fingerprint,
                    last_modified=obj.last_modified,
                )
            )
        with self._cache_lock:
            self._etag_cache = {
                k: v for k, v in self._etag_cache.items() if k in listed
            }
        logger.debug("Listed %d remote objects", len(records))
        return records

    def _remote_fingerprint(self, obj: RemoteObject) -> str | None:
        """Get the fingerprint of a listed object.

        Returns None if the object vanished before it could be hashed.
        """
        fingerprint = etag_to_fingerprint(obj.etag)
        if fingerprint is not None:
            return fingerprint

        cache_key = (obj.key, obj.etag)
        with self._cache_lock:
            cached = self._etag_cache.get(cache_key)
        if cached is not None:
            return cached

        logger.debug("ETag %s of %s is not an MD5, hashing content", obj.etag, obj.key)
        try:
            data = self._store.get(obj.key)
        except ObjectNotFoundError:
            logger.info("Object disappeared during listing: %s", obj.key)
            return None
        except PORT_EXCEPTIONS as e:
            raise ListingFailure(f"Cannot fetch {obj.key} for hashing: {e}") from e

        fingerprint = fingerprint_bytes(data)
        with self._cache_lock:
            self._etag_cache[cache_key] = fingerprint
        return fingerprint

    def scan_local(self, previous: StateStore | None = None) -> LocalScan:
        """Walk the local root and fingerprint every file.

        Args:
            previous: Current local store. Files whose mtime equals the
                recorded one keep their recorded fingerprint without being
                read again.

        Raises:
            ScanFailure: If the root or a directory cannot be listed.
        """
        result = LocalScan()
        try:
            for key, path in self._fs.walk():
                known = previous.get(key) if previous is not None else None
                try:
                    mtime = mtime_of(path)
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.warning("Cannot stat %s: %s", key, e)
                    result.unreadable.add(key)
                    continue

                if known is not None and known.last_modified == mtime:
                    result.records.append(known)
                    continue

                try:
                    fingerprint = compute_fingerprint(path)
                except FingerprintFailure as e:
                    if not path.exists():
                        continue
                    logger.warning("Skipping unreadable file %s: %s", key, e)
                    result.unreadable.add(key)
                    continue

                result.records.append(
                    FileRecord(path=key, fingerprint=fingerprint, last_modified=mtime)
                )
        except OSError as e:
            raise ScanFailure(f"Cannot scan {self._fs.root}: {e}") from e

        logger.debug(
            "Scanned %d local files (%d unreadable)",
            len(result.records),
            len(result.unreadable),
        )
        return result
