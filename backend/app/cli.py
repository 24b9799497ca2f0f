"""
Command line entry point for maintenance jobs (cron friendly).

    offer-search import-feed [--source URL_OR_PATH]
    offer-search clear-cache
    offer-search cleanup-cache
"""
import argparse
import sys
from typing import List, Optional

from app.core.logger import setup_logging
from app.core.services import get_cache, get_feed_index


def _import_feed(args: argparse.Namespace) -> int:
    index = get_feed_index()
    if not args.source and not index.feed_url:
        print("[ERROR] AWIN_FEED_URL is not configured")
        return 1

    print("Downloading and importing the product feed...")
    print("This may take a few minutes depending on the feed size.\n")

    report = index.import_report(args.source or None)
    if report.ok and report.inserted > 0:
        print("[SUCCESS] Import complete!")
        print(f"Imported: {report.inserted} products ({report.skipped} skipped)")
        print(f"Time taken: {report.duration_seconds} seconds")
        return 0

    print("[FAILED] Import failed or 0 products found.")
    if report.error:
        print(f"Error: {report.error}")
    return 1


def _clear_cache(args: argparse.Namespace) -> int:
    print(f"Deleted {get_cache().clear()} cache entries")
    return 0


def _cleanup_cache(args: argparse.Namespace) -> int:
    print(f"Deleted {get_cache().cleanup()} expired cache entries")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="offer-search", description="Offer search maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import-feed", help="replace the local feed index with the current feed")
    p.add_argument("--source", help="feed URL or local .csv.gz path (defaults to AWIN_FEED_URL)")
    p.set_defaults(func=_import_feed)

    p = sub.add_parser("clear-cache", help="delete all cache entries")
    p.set_defaults(func=_clear_cache)

    p = sub.add_parser("cleanup-cache", help="delete expired cache entries")
    p.set_defaults(func=_cleanup_cache)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
