"""Ignore patterns for file synchronization.

This module provides:
- IgnorePatterns: gitignore-style matching on root-relative keys
- DEFAULT_IGNORE_PATTERNS: Editor, OS and in-flight download files
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

# Prefix of the temporary files written during downloads
TEMP_PREFIX = ".bucketsync-"

DEFAULT_IGNORE_PATTERNS = [
    ".git",
    ".git/**",
    ".DS_Store",
    "Thumbs.db",
    "*.swp",
    "*.swo",
    "~*",
    f"{TEMP_PREFIX}*",
]

IGNORE_FILE_NAME = ".syncignore"


class IgnorePatterns:
    """Handles ignore pattern matching for relative keys."""

    def __init__(self, patterns: list[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Additional gitignore-style patterns.
        """
        self._patterns = list(DEFAULT_IGNORE_PATTERNS)
        if patterns:
            self._patterns.extend(patterns)

    @property
    def patterns(self) -> list[str]:
        """Get the active patterns."""
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern."""
        self._patterns.append(pattern)

    def load_from_file(self, path: Path) -> None:
        """Load patterns from a .syncignore file, if present."""
        if not path.is_file():
            return
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    self._patterns.append(line)

    def matches(self, key: str) -> bool:
        """Check a forward-slash relative key against the patterns.

        A key is ignored when the key itself, its file name, or any of its
        parent directories matches a pattern.
        """
        parts = key.split("/")
        prefixes = ["/".join(parts[: i + 1]) for i in range(len(parts))]

        for pattern in self._patterns:
            dir_only = pattern.endswith("/")
            pattern = pattern.rstrip("/")
            if "**" in pattern:
                if fnmatch.fnmatch(key, pattern):
                    return True
                continue
            # Directory patterns only match parents, never the file itself
            candidates = prefixes[:-1] if dir_only else prefixes
            for prefix in candidates:
                name = prefix.rsplit("/", 1)[-1]
                if fnmatch.fnmatch(prefix, pattern) or fnmatch.fnmatch(name, pattern):
                    return True
        return False

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if an absolute path below ``base_path`` should be ignored.

        Symlinks are always ignored. Paths outside the base are not.
        """
        if path.is_symlink():
            return True
        try:
            rel_path = path.relative_to(base_path)
        except ValueError:
            return False
        return self.matches(rel_path.as_posix())
