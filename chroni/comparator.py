"""Overwrite policies for files present on both sides."""

import hashlib
from enum import Enum
from pathlib import Path
from typing import Optional

from .exceptions import EntryIOFailure
from .models import FileMeta, OverwriteMode
from .scanner import _long_path


class Verdict(Enum):
    COPY = "copy"
    SKIP = "skip"


def compute_file_hash(file_path: Path, chunk_size: int = 65536) -> str:
    """Compute the SHA-1 of a file, streaming it in chunks."""
    hasher = hashlib.sha1()
    with open(_long_path(file_path), 'rb') as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()


def _hash_or_fail(file_path: Path, relative_path: str, chunk_size: int) -> str:
    try:
        return compute_file_hash(file_path, chunk_size)
    except OSError as e:
        raise EntryIOFailure(relative_path, "hash", e) from e


def decide(
    source_meta: FileMeta,
    dest_meta: FileMeta,
    mode: OverwriteMode,
    source_path: Optional[Path] = None,
    dest_path: Optional[Path] = None,
    relative_path: str = "",
    chunk_size: int = 65536
) -> tuple[Verdict, str]:
    """
    Decide whether an existing destination file gets replaced.

    Only called when both files exist. The paths are needed for
    ``DEEP_COMP``, which hashes the full content of both files unless the
    sizes already differ.

    Returns:
        Tuple of (verdict, human readable reason)

    Raises:
        EntryIOFailure: if a file cannot be read for hashing
    """
    if mode == OverwriteMode.ALWAYS:
        return Verdict.COPY, "always overwrite"

    if mode == OverwriteMode.NEVER:
        return Verdict.SKIP, "never overwrite"

    if mode == OverwriteMode.FAST_COMP:
        if source_meta.size != dest_meta.size:
            return Verdict.COPY, "size differs"
        return Verdict.SKIP, "same size"

    if mode == OverwriteMode.DEEP_COMP:
        if source_meta.size != dest_meta.size:
            return Verdict.COPY, "size differs"
        if source_path is None or dest_path is None:
            raise ValueError("deep-comp needs both file paths")
        source_hash = _hash_or_fail(source_path, relative_path, chunk_size)
        dest_hash = _hash_or_fail(dest_path, relative_path, chunk_size)
        if source_hash != dest_hash:
            return Verdict.COPY, "content differs"
        return Verdict.SKIP, "same content"

    raise ValueError(f"Unknown overwrite mode: {mode}")
