#!/usr/bin/env python3
"""Search torrents from the command line.

Examples:
    python -m scripts.search_torrents --imdb tt1190634 --type serial --season 2
    python -m scripts.search_torrents "Дюна 2021" --group quality --min-quality 1080p

Configuration comes from the environment / .env (REDAPI_BASE_URL,
REDAPI_API_KEY, TMDB_API_KEY, LOG_LEVEL, ENVIRONMENT).
"""

import argparse
import asyncio
import sys

from pydantic import ValidationError

from src.logger import get_logger
from src.search import (
    InvalidSearchRequestError,
    QualityFilter,
    TorrentRecord,
    filter_by_quality,
    group_by_quality,
    group_by_season,
    search_torrents_by_external_id,
    search_torrents_by_query,
    sort_records,
)

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search torrents via RedAPI")
    parser.add_argument("query", nargs="?", help="Free-text search query")
    parser.add_argument("--imdb", help="IMDb ID (tt1234567) instead of a free-text query")
    parser.add_argument("--type", default="movie", help="movie, serial or anime")
    parser.add_argument("--year", type=int, help="Release year (free-text search)")
    parser.add_argument("--season", type=int, help="Season number (series only)")
    parser.add_argument("--sort", default="seeders", choices=["seeders", "size", "date"])
    parser.add_argument("--order", default="desc", choices=["asc", "desc"])
    parser.add_argument("--group", choices=["quality", "season"], help="Group output")
    parser.add_argument("--min-quality", help="Minimum quality, e.g. 720p")
    parser.add_argument("--max-quality", help="Maximum quality, e.g. 4K")
    parser.add_argument("--hdr", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--hevc", action=argparse.BooleanOptionalAction, default=None)
    args = parser.parse_args(argv)
    if not args.query and not args.imdb:
        parser.error("either a query or --imdb is required")
    return args


async def run(args: argparse.Namespace) -> list[TorrentRecord]:
    if args.imdb:
        records = await search_torrents_by_external_id(args.imdb, args.type, args.season)
    else:
        records = await search_torrents_by_query(args.query, args.type, args.year)

    quality_filter = QualityFilter(
        min_quality=args.min_quality,
        max_quality=args.max_quality,
        hdr=args.hdr,
        hevc=args.hevc,
    )
    records = filter_by_quality(records, quality_filter)
    return sort_records(records, args.sort, args.order)


def print_records(records: list[TorrentRecord], group: str | None) -> None:
    if not records:
        print("Nothing found")
        return

    if group is None:
        for record in records:
            print(record.to_display_string())
        return

    groups = group_by_quality(records) if group == "quality" else group_by_season(records)
    for label, items in groups.items():
        print(f"== {label} ({len(items)})")
        for record in items:
            print(f"  {record.to_display_string()}")


def main() -> None:
    args = parse_args()
    try:
        records = asyncio.run(run(args))
    except (InvalidSearchRequestError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    logger.info("cli_search_done", count=len(records))
    print_records(records, args.group)


if __name__ == "__main__":
    main()
