"""Tests for ignore patterns."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from bucketsync.sync.ignore import IGNORE_FILE_NAME, TEMP_PREFIX, IgnorePatterns


class TestIgnorePatterns:
    """Tests for IgnorePatterns."""

    @pytest.mark.parametrize(
        "key",
        [
            ".DS_Store",
            "sub/.DS_Store",
            ".git/config",
            "notes.txt.swp",
            "~lock.docx",
            f"{TEMP_PREFIX}abc123",
            f"dir/{TEMP_PREFIX}abc123",
        ],
    )
    def test_default_patterns(self, key: str) -> None:
        """Editor, OS and download temp files should be ignored by default."""
        assert IgnorePatterns().matches(key)

    @pytest.mark.parametrize("key", ["a.txt", "docs/readme.md", ".github/workflow.yml"])
    def test_regular_files_not_ignored(self, key: str) -> None:
        """Ordinary files should not be ignored."""
        assert not IgnorePatterns().matches(key)

    def test_directory_pattern_matches_children(self) -> None:
        """A pattern naming a directory should ignore everything below it."""
        ignore = IgnorePatterns(["build"])

        assert ignore.matches("build/out.bin")
        assert ignore.matches("src/build/out.bin")

    def test_dir_only_pattern(self) -> None:
        """Patterns ending with / should not match a file of that name."""
        ignore = IgnorePatterns(["cache/"])

        assert ignore.matches("cache/x")
        assert not ignore.matches("cache")

    def test_double_star_pattern(self) -> None:
        """Patterns containing ** should match the whole key."""
        ignore = IgnorePatterns(["logs/**"])

        assert ignore.matches("logs/a/b.log")
        assert not ignore.matches("other/logs.txt")

    def test_add_pattern(self) -> None:
        """Added patterns should take effect."""
        ignore = IgnorePatterns()
        ignore.add_pattern("*.tmp")

        assert ignore.matches("x.tmp")
        assert "*.tmp" in ignore.patterns

    def test_load_from_file(self, tmp_path: Path) -> None:
        """Patterns should be read from a .syncignore file, skipping comments."""
        ignore_file = tmp_path / IGNORE_FILE_NAME
        ignore_file.write_text("# comment\n\n*.log\nsecret/\n")

        ignore = IgnorePatterns()
        ignore.load_from_file(ignore_file)

        assert ignore.matches("app.log")
        assert ignore.matches("secret/key.pem")
        assert "# comment" not in ignore.patterns

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """A missing ignore file should leave the defaults."""
        ignore = IgnorePatterns()
        ignore.load_from_file(tmp_path / IGNORE_FILE_NAME)

        assert ignore.patterns == IgnorePatterns().patterns

    def test_should_ignore_absolute(self, tmp_path: Path) -> None:
        """should_ignore should match paths relative to the base."""
        ignore = IgnorePatterns(["*.log"])

        assert ignore.should_ignore(tmp_path / "sub" / "a.log", tmp_path)
        assert not ignore.should_ignore(tmp_path / "sub" / "a.txt", tmp_path)

    def test_path_outside_base(self, tmp_path: Path) -> None:
        """Paths outside the base should not be ignored."""
        ignore = IgnorePatterns(["*.log"])

        assert not ignore.should_ignore(Path("/elsewhere/a.log"), tmp_path / "root")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlinks_ignored(self, tmp_path: Path) -> None:
        """Symbolic links should always be ignored."""
        target = tmp_path / "target.txt"
        target.write_text("x")
        link = tmp_path / "link.txt"
        link.symlink_to(target)

        assert IgnorePatterns().should_ignore(link, tmp_path)
