"""Core mirroring logic."""

import logging
import os
import shutil
from dataclasses import dataclass
from itertools import groupby
from operator import attrgetter
from pathlib import Path
from typing import Iterable, Optional

from tqdm import tqdm

from .comparator import Verdict, decide
from .exceptions import ConfigError, EntryIOFailure, TraversalFatal
from .matcher import PathMatcher
from .models import (
    EntryKind,
    SyncAction,
    SyncConfig,
    SyncDecision,
    SyncFailure,
    SyncReport,
    TreeEntry,
)
from .scanner import TMP_SUFFIX, _long_path, read_meta, walk_trees

logger = logging.getLogger(__name__)


def copy_file(src: Path, dst: Path) -> None:
    """Copy a file over dst atomically, preserving its metadata.

    The data is first written to a hidden sibling of dst and then renamed
    over it, so dst is never left half written.
    """
    dst_long = _long_path(dst)
    dst_parent = os.path.dirname(dst_long)
    os.makedirs(dst_parent, exist_ok=True)
    tmp = os.path.join(dst_parent, f".{os.path.basename(dst_long)}{TMP_SUFFIX}")
    try:
        shutil.copy2(_long_path(src), tmp, follow_symlinks=False)
        os.replace(tmp, dst_long)
    finally:
        if os.path.lexists(tmp):
            os.remove(tmp)


def delete_file(path: Path) -> None:
    os.remove(_long_path(path))


def create_dir(path: Path) -> None:
    os.makedirs(_long_path(path), exist_ok=True)


def safe_apply(operation: str, relative_path: str, func, *args) -> Optional[SyncFailure]:
    """
    Run one filesystem operation, returning a SyncFailure if it fails.
    Returns None on success.
    """
    try:
        func(*args)
        return None
    except (OSError, shutil.Error) as e:
        return SyncFailure(relative_path, operation, str(e))


@dataclass
class _Staged:
    entry: TreeEntry
    verdict: Optional[Verdict]
    reason: str
    mtime: float


class RetentionGroup:
    """
    Staged decisions for the files of one only-newest directory.

    Nothing is applied while files are being staged. Once the whole directory
    is known, ``resolve`` picks the newest file and turns every staged entry
    into its final decision.
    """

    def __init__(self, relative_dir: str):
        self.relative_dir = relative_dir
        self._staged = []

    def __len__(self) -> int:
        return len(self._staged)

    def stage(self, entry: TreeEntry, verdict: Verdict, reason: str) -> None:
        """Stage a file that exists in the source tree."""
        if verdict == Verdict.COPY or entry.dest is None:
            mtime = entry.source.mtime  # copy2 keeps the source mtime
        else:
            mtime = entry.dest.mtime
        self._staged.append(_Staged(entry, verdict, reason, mtime))

    def stage_dest_only(self, entry: TreeEntry) -> None:
        """Stage a file that only exists in the destination tree."""
        self._staged.append(_Staged(entry, None, "", entry.dest.mtime))

    def winner(self) -> Optional[TreeEntry]:
        """The newest file, ties broken by the smallest relative path."""
        if not self._staged:
            return None
        best = min(self._staged, key=lambda s: (-s.mtime, s.entry.relative_path))
        return best.entry

    def resolve(self) -> list[SyncDecision]:
        """Return the final decisions of the group, in path order."""
        winner = self.winner()
        decisions = []
        for staged in sorted(self._staged, key=lambda s: s.entry.relative_path):
            path = staged.entry.relative_path
            if staged.entry is winner:
                if staged.verdict == Verdict.COPY:
                    decisions.append(SyncDecision(path, SyncAction.COPY_FILE, staged.reason))
                else:
                    decisions.append(SyncDecision(path, SyncAction.SKIP_FILE, "newest in group"))
            elif staged.entry.dest is not None:
                decisions.append(SyncDecision(path, SyncAction.DELETE_FILE, "older than newest"))
            else:
                decisions.append(SyncDecision(path, SyncAction.SKIP_FILE, "superseded by newer file"))
        return decisions


def check_roots(config: SyncConfig, report: SyncReport) -> None:
    """
    Validate both roots before anything is walked.

    A missing destination root is recorded as a directory creation and
    created unless this is a dry run.

    Raises:
        ConfigError: if the roots overlap
        TraversalFatal: if a root cannot be used
    """
    src = config.source_root
    dest = config.dest_root

    src_resolved = src.resolve()
    dest_resolved = dest.resolve()

    src_meta = read_meta(src_resolved)
    if src_meta is None or src_meta.kind != EntryKind.DIRECTORY:
        raise TraversalFatal(src, "source root is not a directory")
    if not os.access(src_resolved, os.R_OK | os.X_OK):
        raise TraversalFatal(src, "source root is not readable")

    if dest_resolved == src_resolved or src_resolved in dest_resolved.parents:
        raise ConfigError(f"destination {dest} must not be inside source {src}")
    if dest_resolved in src_resolved.parents:
        raise ConfigError(f"source {src} must not be inside destination {dest}")

    dest_meta = read_meta(dest_resolved)
    if dest_meta is not None:
        if dest_meta.kind != EntryKind.DIRECTORY:
            raise TraversalFatal(dest, "destination root is not a directory")
        if not os.access(dest_resolved, os.W_OK | os.X_OK):
            raise TraversalFatal(dest, "destination root is not writable")
        return

    _record(report, SyncDecision("", SyncAction.CREATE_DIR, "missing destination root"))
    if not config.dry_run:
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TraversalFatal(dest, e) from e


def _record(report: SyncReport, decision: SyncDecision) -> None:
    logger.debug("%s", decision)
    report.decisions.append(decision)


def _record_failure(report: SyncReport, failure: SyncFailure) -> None:
    logger.warning("Failed to %s %s: %s", failure.operation, failure.relative_path, failure.error)
    report.failures.append(failure)


def _apply(config: SyncConfig, decision: SyncDecision, report: SyncReport) -> bool:
    """Perform the effect of a decision. Returns False if it failed."""
    if config.dry_run or decision.action == SyncAction.SKIP_FILE:
        return True

    path = decision.relative_path
    if decision.action == SyncAction.CREATE_DIR:
        failure = safe_apply("create", path, create_dir, config.dest_root / path)
    elif decision.action == SyncAction.COPY_FILE:
        failure = safe_apply(
            "copy", path, copy_file, config.source_root / path, config.dest_root / path
        )
    elif decision.action == SyncAction.DELETE_FILE:
        failure = safe_apply("delete", path, delete_file, config.dest_root / path)
    else:
        raise ValueError(f"Unknown action: {decision.action}")

    if failure:
        _record_failure(report, failure)
        return False
    logger.info("%s", decision)
    return True


def _compare(config: SyncConfig, entry: TreeEntry, report: SyncReport) -> tuple[Verdict, str]:
    # A missing destination file is not an overwrite, so every mode copies it
    if entry.dest is None:
        return Verdict.COPY, "missing at destination"
    try:
        return decide(
            entry.source,
            entry.dest,
            config.overwrite_mode,
            source_path=config.source_root / entry.relative_path,
            dest_path=config.dest_root / entry.relative_path,
            relative_path=entry.relative_path,
            chunk_size=config.chunk_size
        )
    except EntryIOFailure as e:
        _record_failure(report, SyncFailure(e.relative_path, e.operation, str(e.cause)))
        return Verdict.SKIP, "compare failed"


def _apply_retention(config: SyncConfig, group: RetentionGroup, report: SyncReport) -> None:
    decisions = group.resolve()
    for decision in decisions:
        _record(report, decision)

    winner = group.winner()
    winner_decision = next(d for d in decisions if d.relative_path == winner.relative_path)
    if not _apply(config, winner_decision, report):
        logger.warning(
            "Keeping older files in %s because the newest could not be copied",
            group.relative_dir or "."
        )
        return
    for decision in decisions:
        if decision is not winner_decision:
            _apply(config, decision, report)


def _sync_directory(
    config: SyncConfig,
    relative_dir: str,
    entries: Iterable[TreeEntry],
    only_newest: bool,
    report: SyncReport
) -> None:
    """Decide and apply everything for the direct children of one directory."""
    group = RetentionGroup(relative_dir) if only_newest else None

    for entry in entries:
        path = entry.relative_path

        if entry.kind_mismatch:
            logger.warning(
                "%s is a %s in the source but a %s in the destination",
                path, entry.source.kind.value, entry.dest.kind.value
            )
            _record(report, SyncDecision(path, SyncAction.SKIP_FILE, "kind mismatch"))
            continue

        if entry.kind == EntryKind.DIRECTORY:
            if entry.dest is None:
                decision = SyncDecision(path, SyncAction.CREATE_DIR)
                _record(report, decision)
                _apply(config, decision, report)
            elif entry.source is None:
                logger.debug("Leaving destination-only directory %s", path)
            continue

        if entry.kind == EntryKind.SYMLINK:
            if entry.source is not None:
                _record(report, SyncDecision(path, SyncAction.SKIP_FILE, "symlink"))
            continue

        if entry.source is None:
            if group is not None:
                group.stage_dest_only(entry)
            else:
                logger.debug("Leaving destination-only file %s", path)
            continue

        verdict, reason = _compare(config, entry, report)
        if group is not None:
            group.stage(entry, verdict, reason)
            continue

        action = SyncAction.COPY_FILE if verdict == Verdict.COPY else SyncAction.SKIP_FILE
        decision = SyncDecision(path, action, reason)
        _record(report, decision)
        _apply(config, decision, report)

    if group:
        _apply_retention(config, group, report)


def sync_trees(config: SyncConfig, show_progress: bool = False) -> SyncReport:
    """
    Mirror config.source_root into config.dest_root.

    Every decision is recorded in the returned report before its effect is
    attempted, so a dry run reports exactly what a real run would do.
    Per-entry failures are logged and collected in the report; only
    configuration and traversal errors propagate.

    Raises:
        ConfigError: if a glob pattern is malformed or the roots overlap
        TraversalFatal: if a root is unusable or a directory cannot be listed
    """
    only_newest = PathMatcher(config.only_newest_patterns)
    exclude = PathMatcher(config.exclude_patterns)
    report = SyncReport()

    check_roots(config, report)
    logger.info(
        "Mirroring %s -> %s (overwrite mode: %s%s)",
        config.source_root, config.dest_root, config.overwrite_mode.value,
        ", dry run" if config.dry_run else ""
    )

    entries = walk_trees(config.source_root, config.dest_root, exclude)
    with tqdm(entries, desc="Mirroring", unit="entry", disable=not show_progress) as pbar:
        for relative_dir, children in groupby(pbar, key=attrgetter("parent")):
            _sync_directory(
                config,
                relative_dir,
                children,
                only_newest.matches_directory(relative_dir),
                report
            )

    logger.info(
        "Finished: %d decisions, %d failures", len(report.decisions), report.failed
    )
    return report
