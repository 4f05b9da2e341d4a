#!/usr/bin/env python3
"""
Recompute postedAt for every stored posting.

One-shot correction for postings ingested before postedAt was derived from
the source publish date. Safe to re-run: only differing values are written.

Usage:
    python scripts/backfill_posted_at.py --db data/jobs.db --dry-run
    python scripts/backfill_posted_at.py --db data/jobs.db
"""

import argparse
from pathlib import Path

from kerjait.backfill import backfill_posted_at
from kerjait.env import load_env
from kerjait.config import Settings
from kerjait.logger import get_logger
from kerjait.store import SqlPostingStore


def main():
    load_env()
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="Recompute postedAt for stored postings")
    parser.add_argument("--db", type=Path, default=settings.db_path, help="Path to SQLite database")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    args = parser.parse_args()

    if not args.db.exists():
        raise SystemExit(f"Database not found: {args.db}")

    get_logger(level=settings.log_level, log_dir=settings.log_dir, enable_file=settings.log_to_file)
    store = SqlPostingStore(args.db)
    try:
        result = backfill_posted_at(store, dry_run=args.dry_run)
    finally:
        store.close()

    print(f"Scanned {result.scanned} postings, {len(result.changes)} with a stale postedAt")
    for document_id, old, new in result.changes[:5]:
        print(f"  {document_id}: {old} -> {new}")
    if len(result.changes) > 5:
        print(f"  ... and {len(result.changes) - 5} more")

    if args.dry_run:
        print("\n[DRY RUN] Nothing written.")
    else:
        print(f"\nUpdated {result.updated} postings.")


if __name__ == "__main__":
    main()
