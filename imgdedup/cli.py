# cli.py

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from imgdedup import __version__
from imgdedup.config import DEFAULT_TARGET_DIR, DEFAULT_THREADS, DedupConfig
from imgdedup.core.exceptions import ConfigError
from imgdedup.core.models import ActionTaken, ScanSummary
from imgdedup.core.pipeline import DeduplicationPipeline
from imgdedup.utils.file_utils import format_file_size
from imgdedup.utils.logging_config import setup_logging
from imgdedup.utils.report_generator import ReportGenerator

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CANCELLED = 130

logger = logging.getLogger("imgdedup.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgdedup",
        description="Find images with identical perceptual hashes and delete "
                    "the duplicates, or copy one of each into a target directory."
    )
    parser.add_argument('directory', nargs='?', default='.',
                        help='Root directory to scan (default: current directory)')
    parser.add_argument('-k', '--keep', nargs='?', const=DEFAULT_TARGET_DIR, default=None,
                        metavar='DEST',
                        help='Copy one image per duplicate group into DEST instead of '
                             f'deleting duplicates (default DEST: {DEFAULT_TARGET_DIR})')
    parser.add_argument('-t', '--threads', type=int, default=None,
                        help=f'Number of hashing threads (default: {DEFAULT_THREADS})')
    parser.add_argument('-c', '--config', help='YAML configuration file')
    parser.add_argument('-r', '--report', help='Write a report (.html or .json)')
    parser.add_argument('-n', '--dry-run', action='store_true', default=None,
                        help='Show what would be done without touching any file')
    parser.add_argument('--log-level', help='Console log level (default: INFO)')
    parser.add_argument('--log-dir', help='Also write rotating log files here')
    parser.add_argument('--no-progress', dest='show_progress', action='store_false',
                        default=None, help='Hide the progress bar')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def load_config(args: argparse.Namespace) -> DedupConfig:
    """Config file first, then command-line flags on top"""
    if args.config and not Path(args.config).exists():
        raise ConfigError(f"config file {args.config} not found")
    config = DedupConfig.load(args.config) if args.config else DedupConfig()
    return config.with_overrides(
        threads=args.threads,
        keep=args.keep,
        dry_run=args.dry_run,
        log_level=args.log_level,
        log_dir=args.log_dir,
        show_progress=args.show_progress,
    ).validate()


def print_summary(summary: ScanSummary):
    """Print the end-of-run summary to stdout"""
    prefix = "[dry run] " if any(o.dry_run for o in summary.outcomes) else ""

    for i, outcome in enumerate(summary.outcomes, 1):
        print(f"\n{prefix}Group {i}:")
        print(f"  Survivor: {outcome.survivor}")
        if outcome.action_taken is ActionTaken.DELETED:
            for path in outcome.removed_or_copied:
                print(f"    - deleted {path}")
        elif outcome.destination:
            print(f"    - copied to {outcome.destination}")
        for err in outcome.errors:
            print(f"    ! {err.path}: {err.reason}")

    print(f"\nScanned {summary.files_scanned} of {summary.files_found} files "
          f"({format_file_size(summary.bytes_scanned)}) in {summary.elapsed_seconds:.1f}s")
    print(f"Found {summary.duplicate_groups} duplicate groups "
          f"with {summary.duplicate_files} redundant files")
    verb = "deleted" if summary.mode.value == "delete" else "copied"
    print(f"{prefix}{summary.actions_taken} files {verb}")

    if summary.scan_errors:
        print(f"\nSkipped {len(summary.scan_errors)} files:")
        for notice in summary.scan_errors:
            print(f"  - {notice.path} ({notice.kind}): {notice.reason}")
    if summary.resolution_errors:
        print(f"\n{len(summary.resolution_errors)} resolution errors:")
        for err in summary.resolution_errors:
            print(f"  - {err.path}: {err.reason}")
    if summary.cancelled:
        print("\nScan cancelled; no duplicates were resolved.")


def main_cli(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point; returns the process exit code"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL

    setup_logging(config.log_level, config.log_dir)

    try:
        pipeline = DeduplicationPipeline(config)
        summary = pipeline.run(args.directory)
    except ConfigError as e:
        logger.error("Cannot start scan: %s", e)
        return EXIT_FATAL
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_CANCELLED

    print_summary(summary)

    if args.report:
        ReportGenerator().generate_report(summary, args.report)
        print(f"Report saved to: {args.report}")

    return EXIT_CANCELLED if summary.cancelled else EXIT_OK


def main():
    sys.exit(main_cli())


if __name__ == "__main__":
    main()
