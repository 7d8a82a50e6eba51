"""Command-line interface for chroni."""

import argparse
import logging
import sys
from pathlib import Path

from tqdm.contrib.logging import logging_redirect_tqdm

from . import __version__
from .engine import sync_trees
from .exceptions import ConfigError, TraversalFatal
from .matcher import PathMatcher
from .models import OverwriteMode, SyncAction, SyncConfig, SyncReport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="chroni",
        description="Mirror a source folder tree into a destination folder tree.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s /path/to/src /path/to/backup
  %(prog)s -o deep-comp --only-newest "logs/*" --dry-run src backup
        """
    )

    parser.add_argument("src_dir", type=Path, help="Source folder to mirror")
    parser.add_argument("dest_dir", type=Path, help="Destination folder of the mirror")

    parser.add_argument(
        "--overwrite-mode", "-o",
        choices=[mode.value for mode in OverwriteMode],
        default=OverwriteMode.FAST_COMP.value,
        help="When to replace an existing destination file (default: fast-comp)"
    )

    parser.add_argument(
        "--only-newest",
        action="append",
        default=[],
        metavar="GLOB",
        help="Keep only the newest file in directories matching GLOB (repeatable)"
    )

    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="GLOB",
        help="Ignore paths matching GLOB on both sides (repeatable)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report every decision without touching the filesystem"
    )

    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 if any file operation failed"
    )

    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not show a progress bar"
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Log every decision")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")

    parser.add_argument("--version", "-V", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args()


def build_config(args: argparse.Namespace) -> SyncConfig:
    """
    Validate command-line arguments and build the run configuration.

    Raises:
        ConfigError: if the source folder is unusable or a glob is malformed
    """
    if not args.src_dir.exists():
        raise ConfigError(f"Source folder does not exist: {args.src_dir}")
    if not args.src_dir.is_dir():
        raise ConfigError(f"Source folder is not a directory: {args.src_dir}")
    if args.dest_dir.exists() and not args.dest_dir.is_dir():
        raise ConfigError(f"Destination is not a directory: {args.dest_dir}")

    # Compiled here so a bad pattern is reported before any traversal
    PathMatcher(args.only_newest)
    PathMatcher(args.exclude)

    return SyncConfig(
        source_root=args.src_dir.absolute(),
        dest_root=args.dest_dir.absolute(),
        overwrite_mode=OverwriteMode(args.overwrite_mode),
        only_newest_patterns=tuple(args.only_newest),
        exclude_patterns=tuple(args.exclude),
        dry_run=args.dry_run,
        strict=args.strict
    )


def configure_logging(args: argparse.Namespace) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )


def print_summary(config: SyncConfig, report: SyncReport) -> None:
    """Print the dry-run decision list, failures and totals."""
    if config.dry_run:
        print("\n--- Planned operations (dry run) ---")
        for decision in report.decisions:
            print(f"  {decision}")
        print("-" * 20)

    if report.failures:
        print(f"\n--- Errors ({report.failed} entries failed) ---")
        for failure in report.failures[:10]:  # Show first 10
            print(f"  [{failure.operation}] {failure.relative_path}")
            print(f"    {failure.error}")
        if report.failed > 10:
            print(f"  ... and {report.failed - 10} more errors")
        print("-" * 20)

    print("\n" + "=" * 60)
    print("DRY RUN COMPLETE" if config.dry_run else "MIRROR COMPLETE")
    print("=" * 60)
    print(f"Directories created: {report.count(SyncAction.CREATE_DIR)}")
    print(f"Files copied:        {report.count(SyncAction.COPY_FILE)}")
    print(f"Files skipped:       {report.count(SyncAction.SKIP_FILE)}")
    print(f"Files deleted:       {report.count(SyncAction.DELETE_FILE)}")
    if report.failed:
        print(f"Errors:              {report.failed}")


def main() -> None:
    """Main entry point."""
    args = parse_args()
    configure_logging(args)

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    print("=" * 60)
    print("CHRONI")
    print("=" * 60)
    print(f"Source:      {config.source_root}")
    print(f"Destination: {config.dest_root}")
    print(f"Mode:        {config.overwrite_mode.value}")
    if config.only_newest_patterns:
        print(f"Only newest: {', '.join(config.only_newest_patterns)}")
    if config.dry_run:
        print("Dry run:     nothing will be changed")

    try:
        with logging_redirect_tqdm():
            report = sync_trees(config, show_progress=not args.no_progress)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    except TraversalFatal as e:
        logger.error("Aborting: cannot traverse %s: %s", e.path, e.cause)
        sys.exit(EXIT_ERROR)
    except KeyboardInterrupt:
        print("\n\nInterrupted! Files copied so far are complete; rerun to finish.")
        sys.exit(EXIT_INTERRUPTED)

    print_summary(config, report)

    if config.strict and report.failed:
        sys.exit(EXIT_ERROR)
