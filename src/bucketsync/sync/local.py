"""Local filesystem access for the synchronized root.

This module provides:
- to_key: Absolute path -> root-relative, forward-slash key
- LocalFilesystem: Walk, read, write, delete and stat files by key

The watcher, the initial scan and the transfers all derive keys through
to_key so that local keys always match remote object keys.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

from bucketsync.sync.ignore import TEMP_PREFIX, IgnorePatterns
from bucketsync.sync.types import ScanFailure

logger = logging.getLogger(__name__)


def to_key(root: Path, path: Path) -> str:
    """Convert an absolute path below ``root`` into a relative key.

    Raises:
        ValueError: If ``path`` is not below ``root``.
    """
    return path.relative_to(root).as_posix()


def mtime_of(path: Path) -> datetime:
    """Get the modification time of a file as an aware UTC datetime."""
    return datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)


class LocalFilesystem:
    """File operations addressed by root-relative keys."""

    def __init__(self, root: Path, ignore: IgnorePatterns | None = None) -> None:
        """Initialize for a root directory.

        Args:
            root: Synchronized directory (must exist).
            ignore: Patterns excluded from walks.
        """
        self._root = Path(root).resolve()
        self._ignore = ignore or IgnorePatterns()

    @property
    def root(self) -> Path:
        """Get the synchronized root."""
        return self._root

    @property
    def ignore(self) -> IgnorePatterns:
        """Get the ignore patterns."""
        return self._ignore

    def absolute(self, key: str) -> Path:
        """Resolve a key to an absolute path inside the root.

        Raises:
            ValueError: If the key would escape the root (e.g. ``../x``).
        """
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root) or path == self._root:
            raise ValueError(f"Key escapes sync root: {key}")
        return path

    def to_key(self, path: Path) -> str:
        """Convert an absolute path into a key."""
        return to_key(self._root, path)

    def walk(self) -> Iterator[tuple[str, Path]]:
        """Yield (key, absolute path) for every regular file below the root.

        Symlinks and ignored paths are skipped; ignored directories are not
        descended into.

        Raises:
            ScanFailure: If a directory cannot be listed.
        """

        def _on_error(error: OSError) -> None:
            raise ScanFailure(f"Cannot scan {error.filename}: {error}") from error

        for dirpath, dirnames, filenames in os.walk(self._root, onerror=_on_error):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not self._ignore.should_ignore(current / d, self._root)
            )
            for name in sorted(filenames):
                path = current / name
                if self._ignore.should_ignore(path, self._root):
                    continue
                if not path.is_file():
                    continue
                yield self.to_key(path), path

    def read(self, key: str) -> bytes:
        """Read a file's content."""
        return self.absolute(key).read_bytes()

    def write(self, key: str, data: bytes) -> Path:
        """Write a file, creating parent directories as needed.

        The content is written to a temporary file next to the target and
        moved into place, so readers never see a partial file.

        Returns:
            Absolute path of the written file.
        """
        path = self.absolute(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path

    def delete(self, key: str) -> bool:
        """Delete a file.

        Returns:
            True if a file was removed, False if it was already gone.
        """
        path = self.absolute(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def stat_mtime(self, key: str) -> datetime:
        """Get the modification time of a file."""
        return mtime_of(self.absolute(key))
