"""Paired walking of the source and destination trees."""

import logging
import os
import stat
from pathlib import Path
from typing import Iterator, Optional

from .exceptions import TraversalFatal
from .matcher import PathMatcher
from .models import EntryKind, FileMeta, TreeEntry

logger = logging.getLogger(__name__)

# Suffix of the partial copies written by the engine before they are renamed
TMP_SUFFIX = ".chroni-tmp"


def _long_path(path: Path) -> str:
    """Convert path to long path format on Windows to handle paths > 260 chars."""
    path_str = str(Path(path).absolute())
    if os.name == 'nt' and not path_str.startswith('\\\\?\\'):
        return '\\\\?\\' + path_str
    return path_str


def _kind_from_mode(mode: int) -> EntryKind:
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    return EntryKind.FILE


def read_meta(path: Path) -> Optional[FileMeta]:
    """Read metadata of a path without following symlinks.

    Returns None if nothing exists at the path.
    """
    try:
        st = os.lstat(_long_path(path))
    except FileNotFoundError:
        return None
    return FileMeta(kind=_kind_from_mode(st.st_mode), size=st.st_size, mtime=st.st_mtime)


def list_directory(directory: Path) -> dict[str, FileMeta]:
    """
    List one directory level, mapping entry names to metadata.

    A missing directory lists as empty. Any other error is fatal for the run.
    """
    entries = {}
    try:
        with os.scandir(_long_path(directory)) as it:
            for dirent in it:
                try:
                    st = dirent.stat(follow_symlinks=False)
                except FileNotFoundError:
                    logger.debug("%s vanished while listing %s", dirent.name, directory)
                    continue
                entries[dirent.name] = FileMeta(
                    kind=_kind_from_mode(st.st_mode),
                    size=st.st_size,
                    mtime=st.st_mtime
                )
    except (FileNotFoundError, NotADirectoryError):
        return {}
    except OSError as e:
        raise TraversalFatal(directory, e) from e
    return entries


def walk_trees(
    source_root: Path,
    dest_root: Path,
    exclude: Optional[PathMatcher] = None
) -> Iterator[TreeEntry]:
    """
    Lazily merge the source and destination trees.

    For every directory, its entries from both sides are paired by name and
    yielded contiguously in name order. Subdirectories are then walked
    depth-first, also in name order. Symlinks are leaves and never followed.

    Args:
        source_root: Root of the tree being mirrored
        dest_root: Root of the mirror
        exclude: Relative paths matching this are neither yielded nor walked

    Raises:
        TraversalFatal: if an existing directory cannot be listed
    """
    stack = [""]
    while stack:
        relative_dir = stack.pop()
        source_listing = list_directory(source_root / relative_dir)
        dest_listing = list_directory(dest_root / relative_dir)

        subdirs = []
        for name in sorted(source_listing.keys() | dest_listing.keys()):
            if name.endswith(TMP_SUFFIX):
                logger.debug("Ignoring leftover partial copy %s", name)
                continue
            relative_path = f"{relative_dir}/{name}" if relative_dir else name
            if exclude and exclude.matches(relative_path):
                logger.debug("Excluded %s", relative_path)
                continue

            entry = TreeEntry(
                relative_path=relative_path,
                source=source_listing.get(name),
                dest=dest_listing.get(name)
            )
            yield entry

            if entry.kind == EntryKind.DIRECTORY and not entry.kind_mismatch:
                subdirs.append(relative_path)

        # Reversed so the stack pops them in name order
        stack.extend(reversed(subdirs))
