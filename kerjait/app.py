import argparse
import json
from pathlib import Path
from typing import Any, List, Optional

from . import __version__
from .backfill import backfill_posted_at
from .config import Settings
from .criteria import QueryCriteria, classify_employment_type
from .env import load_env
from .errors import FeedError, IngestionError
from .feed import fetch_batch, load_batch_file
from .ingestion import ingest
from .logger import get_logger
from .normalize import employment_types
from .store import SqlPostingStore
from .views import (
    featured_postings,
    get_all_slugs,
    get_by_slug,
    latest_postings,
    query_postings,
    remote_postings,
    weekly_postings,
)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _open_store(args: argparse.Namespace, settings: Settings) -> SqlPostingStore:
    return SqlPostingStore(Path(args.db) if args.db else settings.db_path)


def _with_job_type(postings: List[dict]) -> List[dict]:
    for posting in postings:
        posting["jobType"] = classify_employment_type(employment_types(posting)).value
    return postings


def cmd_ingest(args: argparse.Namespace, settings: Settings) -> None:
    logger = get_logger()
    try:
        batch = fetch_batch(args.url) if args.url else load_batch_file(Path(args.input))
    except FeedError as e:
        raise SystemExit(str(e))

    store = _open_store(args, settings)
    try:
        result = ingest(store, batch, max_workers=settings.lookup_workers)
    except IngestionError as e:
        logger.error("Ingestion failed", error=str(e))
        raise SystemExit(str(e))
    finally:
        store.close()

    for index, errors in result.rejected:
        logger.warning("Rejected posting", index=index, errors=errors)
    logger.record_ingestion(result.received, result.inserted, result.duplicates, len(result.rejected))
    logger.log_metrics_summary()
    _print_json({
        "received": result.received,
        "inserted": result.inserted,
        "duplicates": result.duplicates,
        "rejected": len(result.rejected),
        "createdAt": result.created_at,
    })


def cmd_latest(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(args, settings)
    try:
        _print_json(latest_postings(store, limit=args.limit or settings.home_limit, locations=settings.locations))
    finally:
        store.close()


def cmd_remote(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(args, settings)
    try:
        _print_json(remote_postings(store, limit=args.limit or settings.home_limit))
    finally:
        store.close()


def cmd_weekly(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(args, settings)
    try:
        _print_json(weekly_postings(store, locations=settings.locations))
    finally:
        store.close()


def cmd_featured(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(args, settings)
    try:
        _print_json(featured_postings(store))
    finally:
        store.close()


def cmd_search(args: argparse.Namespace, settings: Settings) -> None:
    criteria = QueryCriteria.from_params(
        technology=args.tech,
        location=args.location,
        job_type=args.job_type,
        sort_by=args.sort,
        page=args.page,
        limit=args.limit,
        default_limit=settings.page_limit,
    )
    store = _open_store(args, settings)
    try:
        _print_json(_with_job_type(query_postings(store, criteria, locations=settings.locations)))
    finally:
        store.close()


def cmd_show(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(args, settings)
    try:
        posting = get_by_slug(store, args.slug)
    finally:
        store.close()
    if posting is None:
        raise SystemExit(f"No posting with slug: {args.slug}")
    _print_json(_with_job_type([posting])[0])


def cmd_slugs(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(args, settings)
    try:
        slugs = get_all_slugs(store)
    finally:
        store.close()
    for slug in slugs:
        print(slug)


def cmd_backfill(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(args, settings)
    try:
        result = backfill_posted_at(store, dry_run=args.dry_run)
    finally:
        store.close()
    _print_json({
        "scanned": result.scanned,
        "toUpdate": len(result.changes),
        "updated": result.updated,
        "dryRun": args.dry_run,
    })


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kerjait", description="Kerja IT job board backend")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", help="Path to SQLite database (default: $KERJAIT_DB or data/jobs.db)")

    subparsers = parser.add_subparsers(dest="command")

    ing = subparsers.add_parser("ingest", help="Ingest a batch of scraped postings, skipping known ones")
    source = ing.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", help="Path to a JSON batch (list of postings or {\"jobs\": [...]})")
    source.add_argument("--url", help="Scraper endpoint returning a JSON batch")
    ing.set_defaults(func=cmd_ingest)

    lat = subparsers.add_parser("latest", help="Latest postings in supported locations")
    lat.add_argument("--limit", type=int, help="Number of postings (default: $KERJAIT_HOME_LIMIT or 4)")
    lat.set_defaults(func=cmd_latest)

    rem = subparsers.add_parser("remote", help="Latest remote postings")
    rem.add_argument("--limit", type=int, help="Number of postings (default: $KERJAIT_HOME_LIMIT or 4)")
    rem.set_defaults(func=cmd_remote)

    wk = subparsers.add_parser("weekly", help="Postings published in the last 7 days")
    wk.set_defaults(func=cmd_weekly)

    feat = subparsers.add_parser("featured", help="Currently featured postings")
    feat.set_defaults(func=cmd_featured)

    srch = subparsers.add_parser("search", help="Filter, sort and paginate postings")
    srch.add_argument("--tech", help="Comma-separated technology keywords, e.g. react,machine-learning")
    srch.add_argument("--location", help="Comma-separated locations, e.g. kuala-lumpur,remote")
    srch.add_argument("--job-type", help="Comma-separated: full-time, part-time, contract, internship")
    srch.add_argument("--sort", default="posted", help="posted (default) or created")
    srch.add_argument("--page", type=int, default=1, help="Page number (default 1)")
    srch.add_argument("--limit", type=int, help="Page size (default: $KERJAIT_PAGE_LIMIT or 10)")
    srch.set_defaults(func=cmd_search)

    show = subparsers.add_parser("show", help="Show one posting by slug")
    show.add_argument("--slug", required=True, help="Posting slug")
    show.set_defaults(func=cmd_show)

    slugs = subparsers.add_parser("slugs", help="List every posting slug")
    slugs.set_defaults(func=cmd_slugs)

    bf = subparsers.add_parser("backfill", help="Recompute postedAt for stored postings (one-shot)")
    bf.add_argument("--dry-run", action="store_true", help="Report changes without writing")
    bf.set_defaults(func=cmd_backfill)

    return parser


def main(argv: Optional[List[str]] = None):
    load_env()
    settings = Settings.from_env()
    get_logger(level=settings.log_level, log_dir=settings.log_dir, enable_file=settings.log_to_file)

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args, settings)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
