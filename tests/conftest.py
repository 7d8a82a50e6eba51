"""Shared test fixtures."""

import tempfile
from pathlib import Path

import pytest

from chroni.models import EntryKind, FileMeta, OverwriteMode, SyncConfig


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_trees(temp_dir):
    """Create a source tree and a partially mirrored destination tree."""
    source = temp_dir / "source"
    dest = temp_dir / "dest"

    source.mkdir()
    dest.mkdir()

    # Only in source
    (source / "only_in_source.txt").write_text("only in source")
    (source / "subdir").mkdir()
    (source / "subdir" / "nested.txt").write_text("nested in source")

    # Only in destination
    (dest / "only_in_dest.txt").write_text("only in dest")
    (dest / "dest_dir").mkdir()
    (dest / "dest_dir" / "stale.txt").write_text("stale")

    # Identical in both
    (source / "identical.txt").write_text("same content")
    (dest / "identical.txt").write_text("same content")

    # Same size, different content
    (source / "same_size.txt").write_text("content AAA")
    (dest / "same_size.txt").write_text("content BBB")

    # Different size
    (source / "changed.txt").write_text("new and longer content")
    (dest / "changed.txt").write_text("old content")

    return source, dest


@pytest.fixture
def make_config(temp_dir):
    """Factory for a SyncConfig rooted at the sample trees."""
    def _make(**overrides):
        values = dict(
            source_root=temp_dir / "source",
            dest_root=temp_dir / "dest",
            overwrite_mode=OverwriteMode.FAST_COMP,
        )
        values.update(overrides)
        return SyncConfig(**values)
    return _make


@pytest.fixture
def file_meta():
    """Factory for FileMeta values of regular files."""
    def _make(size=100, mtime=1700000000.0):
        return FileMeta(kind=EntryKind.FILE, size=size, mtime=mtime)
    return _make
