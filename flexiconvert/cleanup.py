#!/usr/bin/env python3
"""
Delete conversion jobs and files older than the retention window.

Usage:
    flexiconvert-cleanup --dry-run            # Show what would be deleted
    flexiconvert-cleanup --hours 48           # Ask, then delete jobs older than 48h
    flexiconvert-cleanup --force              # Delete without asking
"""

import argparse
import sys

from flexiconvert.config import Config
from flexiconvert.database.models import format_bytes, init_db
from flexiconvert.utils.retention import RetentionSweeper
from flexiconvert.utils.storage import get_storage


def build_parser():
    parser = argparse.ArgumentParser(
        prog="flexiconvert-cleanup",
        description="Delete conversion jobs, their files and orphaned files older than the retention window",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without deleting anything",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    parser.add_argument(
        "--hours",
        type=float,
        default=Config.CLEANUP_RETENTION_HOURS,
        help=f"Retention window in hours (default: {Config.CLEANUP_RETENTION_HOURS})",
    )
    parser.add_argument("--database-url", default=Config.DATABASE_URL, help="Database to clean")
    parser.add_argument("--storage-path", default=Config.STORAGE_PATH, help="Storage root holding uploads/ and outputs/")
    return parser


def print_report(report):
    for item in report.items:
        label = "Record" if item.kind == "record" else "Orphan"
        print(f"   {label}: {item.identifier} ({format_bytes(item.size)}, {item.timestamp:%Y-%m-%d %H:%M:%S})")
    for error in report.errors:
        print(f"   ❌ {error}")

    print()
    print(f"  Records: {report.records}")
    print(f"  Orphaned files: {report.orphans}")
    print(f"  Space: {format_bytes(report.bytes_reclaimed)}")
    if report.skipped_active:
        print(f"  Skipped (possibly still running): {report.skipped_active}")


def confirm(prompt):
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.hours < 0:
        parser.error("--hours must not be negative")

    init_db(args.database_url)
    sweeper = RetentionSweeper(storage=get_storage(args.storage_path))

    print("=" * 70)
    print(f"  FlexiConvert cleanup (older than {args.hours:g}h)")
    print("=" * 70)

    if args.dry_run or not args.force:
        preview = sweeper.sweep(retention_hours=args.hours, dry_run=True)
        print("\n[DRY RUN] Would delete:\n" if args.dry_run else "\nCandidates:\n")
        print_report(preview)

        if args.dry_run:
            return 0
        if not preview.items:
            print("\n✅ Nothing to clean up.")
            return 0
        if not confirm(f"\nDelete {preview.records} record(s) and {preview.orphans} file(s)?"):
            print("Cleanup cancelled.")
            return 0

    report = sweeper.sweep(retention_hours=args.hours, dry_run=False)
    print("\n🧹 Deleted:\n")
    print_report(report)
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
