"""Tests for full scans of both sides."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from bucketsync.core.fingerprint import fingerprint_bytes
from bucketsync.storage import LocalDirectoryObjectStore, RemoteObject
from bucketsync.sync.local import LocalFilesystem
from bucketsync.sync.scanner import StateScanner
from bucketsync.sync.state import StateStore
from bucketsync.sync.types import FileRecord, ListingFailure


class OpaqueEtagStore(LocalDirectoryObjectStore):
    """Directory store reporting ETags that are not MD5 digests."""

    def __init__(self, base_path: Path) -> None:
        super().__init__(base_path)
        self.fetched: list[str] = []
        self.etag = '"opaque-2"'

    def list(self) -> list[RemoteObject]:
        return [
            RemoteObject(obj.key, self.etag, obj.last_modified, obj.size)
            for obj in super().list()
        ]

    def get(self, key: str) -> bytes:
        self.fetched.append(key)
        return super().get(key)


class BrokenStore(LocalDirectoryObjectStore):
    """Directory store whose listing always fails."""

    def list(self) -> list[RemoteObject]:
        raise OSError("connection reset")


@pytest.fixture
def filesystem(tmp_path: Path) -> LocalFilesystem:
    """Create the local root."""
    root = tmp_path / "root"
    root.mkdir()
    return LocalFilesystem(root)


class TestListRemote:
    """Tests for remote listings."""

    def test_fingerprints_from_etags(self, tmp_path: Path, filesystem: LocalFilesystem) -> None:
        """MD5 ETags should become fingerprints without fetching content."""
        store = LocalDirectoryObjectStore(tmp_path / "bucket")
        store.put("a.txt", b"alpha")
        store.put("dir/b.txt", b"beta")

        records = StateScanner(store, filesystem).list_remote()

        assert {r.path: r.fingerprint for r in records} == {
            "a.txt": fingerprint_bytes(b"alpha"),
            "dir/b.txt": fingerprint_bytes(b"beta"),
        }

    def test_ignored_keys_are_skipped(self, tmp_path: Path, filesystem: LocalFilesystem) -> None:
        """Objects matching ignore patterns should not be listed."""
        store = LocalDirectoryObjectStore(tmp_path / "bucket")
        store.put(".DS_Store", b"x")
        store.put("kept.txt", b"k")

        records = StateScanner(store, filesystem).list_remote()

        assert [r.path for r in records] == ["kept.txt"]

    def test_opaque_etag_is_hashed_once(self, tmp_path: Path, filesystem: LocalFilesystem) -> None:
        """Non-MD5 ETags should be resolved by hashing, cached per ETag."""
        store = OpaqueEtagStore(tmp_path / "bucket")
        store.put("big.bin", b"multipart")
        scanner = StateScanner(store, filesystem)

        first = scanner.list_remote()
        second = scanner.list_remote()

        assert first[0].fingerprint == fingerprint_bytes(b"multipart")
        assert second == first
        assert store.fetched == ["big.bin"]

    def test_cache_forgets_unlisted_etags(
        self, tmp_path: Path, filesystem: LocalFilesystem
    ) -> None:
        """Hashes of overwritten or deleted objects should not stay cached."""
        store = OpaqueEtagStore(tmp_path / "bucket")
        store.put("big.bin", b"v1")
        scanner = StateScanner(store, filesystem)
        scanner.list_remote()

        store.etag = '"opaque-3"'
        store.put("big.bin", b"v2")
        scanner.list_remote()

        store.etag = '"opaque-2"'
        store.put("big.bin", b"v1")
        (record,) = scanner.list_remote()

        assert record.fingerprint == fingerprint_bytes(b"v1")
        assert store.fetched == ["big.bin", "big.bin", "big.bin"]

        store.delete("big.bin")
        assert scanner.list_remote() == []
        assert scanner.cached_etags == 0

    def test_listing_failure(self, tmp_path: Path, filesystem: LocalFilesystem) -> None:
        """A failing listing should raise ListingFailure."""
        store = BrokenStore(tmp_path / "bucket")

        with pytest.raises(ListingFailure, match="connection reset"):
            StateScanner(store, filesystem).list_remote()


class TestScanLocal:
    """Tests for local scans."""

    def test_scan_records_files(self, tmp_path: Path, filesystem: LocalFilesystem) -> None:
        """Every regular file should get a record with its fingerprint."""
        filesystem.write("a.txt", b"one")
        filesystem.write("sub/b.txt", b"two")
        scanner = StateScanner(LocalDirectoryObjectStore(tmp_path / "bucket"), filesystem)

        scan = scanner.scan_local()

        assert {r.path: r.fingerprint for r in scan.records} == {
            "a.txt": fingerprint_bytes(b"one"),
            "sub/b.txt": fingerprint_bytes(b"two"),
        }
        assert scan.unreadable == set()

    def test_unchanged_mtime_reuses_fingerprint(
        self, tmp_path: Path, filesystem: LocalFilesystem
    ) -> None:
        """Files whose mtime matches the known record should not be re-read."""
        filesystem.write("a.txt", b"content")
        mtime = filesystem.stat_mtime("a.txt")
        previous = StateStore([FileRecord("a.txt", "cached", mtime)])
        scanner = StateScanner(LocalDirectoryObjectStore(tmp_path / "bucket"), filesystem)

        scan = scanner.scan_local(previous)

        assert scan.records == [FileRecord("a.txt", "cached", mtime)]

    def test_changed_mtime_rehashes(self, tmp_path: Path, filesystem: LocalFilesystem) -> None:
        """Files whose mtime changed should be fingerprinted again."""
        path = filesystem.write("a.txt", b"new")
        known = filesystem.stat_mtime("a.txt")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        previous = StateStore([FileRecord("a.txt", "stale", known)])
        scanner = StateScanner(LocalDirectoryObjectStore(tmp_path / "bucket"), filesystem)

        scan = scanner.scan_local(previous)

        assert scan.records[0].fingerprint == fingerprint_bytes(b"new")

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0,
        reason="permissions are not enforced for root",
    )
    def test_unreadable_file_is_reported(
        self, tmp_path: Path, filesystem: LocalFilesystem
    ) -> None:
        """Unreadable files should be reported, not recorded."""
        path = filesystem.write("secret.txt", b"s")
        path.chmod(0o000)
        scanner = StateScanner(LocalDirectoryObjectStore(tmp_path / "bucket"), filesystem)
        try:
            scan = scanner.scan_local()
        finally:
            path.chmod(0o600)

        assert scan.records == []
        assert scan.unreadable == {"secret.txt"}
