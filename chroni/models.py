"""Data models for chroni."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class OverwriteMode(Enum):
    """Policy governing when an existing destination file is replaced."""
    ALWAYS = "always"
    FAST_COMP = "fast-comp"
    DEEP_COMP = "deep-comp"
    NEVER = "never"


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


class SyncAction(Enum):
    CREATE_DIR = "create"
    COPY_FILE = "copy"
    SKIP_FILE = "skip"
    DELETE_FILE = "delete"


@dataclass(frozen=True)
class FileMeta:
    """Metadata of one side of a tree entry."""
    kind: EntryKind
    size: int
    mtime: float


@dataclass(frozen=True)
class TreeEntry:
    """One name found in the source tree, the destination tree, or both."""
    relative_path: str
    source: Optional[FileMeta] = None
    dest: Optional[FileMeta] = None

    @property
    def parent(self) -> str:
        if "/" not in self.relative_path:
            return ""
        return self.relative_path.rsplit("/", 1)[0]

    @property
    def kind(self) -> EntryKind:
        return (self.source or self.dest).kind

    @property
    def kind_mismatch(self) -> bool:
        return (
            self.source is not None
            and self.dest is not None
            and self.source.kind != self.dest.kind
        )


@dataclass(frozen=True)
class SyncDecision:
    """What the engine decided for one path."""
    relative_path: str
    action: SyncAction
    reason: str = ""

    def __str__(self) -> str:
        path = self.relative_path or "."
        if self.reason:
            return f"[{self.action.value.upper()}] {path} ({self.reason})"
        return f"[{self.action.value.upper()}] {path}"


class SyncFailure:
    """Record of an entry whose operation failed."""

    def __init__(self, relative_path: str, operation: str, error: str):
        self.relative_path = relative_path
        self.operation = operation
        self.error = error


@dataclass(frozen=True)
class SyncConfig:
    """Validated configuration of one mirroring run."""
    source_root: Path
    dest_root: Path
    overwrite_mode: OverwriteMode = OverwriteMode.FAST_COMP
    only_newest_patterns: tuple = ()
    exclude_patterns: tuple = ()
    dry_run: bool = False
    strict: bool = False
    chunk_size: int = 65536


@dataclass
class SyncReport:
    """Decisions and failures accumulated over one run."""
    decisions: list = field(default_factory=list)
    failures: list = field(default_factory=list)

    def count(self, action: SyncAction) -> int:
        return sum(1 for d in self.decisions if d.action == action)

    @property
    def failed(self) -> int:
        return len(self.failures)
