"""Sorting, grouping, filtering and merging of search results.

All functions take a list of TorrentRecord and return new lists or dicts;
records themselves are never modified.
"""

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from src.search.heuristics import extract_seasons, matches_season
from src.search.models import (
    InvalidSearchRequestError,
    QualityFilter,
    QualityTier,
    TorrentRecord,
)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

SORT_KEYS = {
    "seeders": lambda r: r.seeders or 0,
    "size": lambda r: r.size_bytes or 0,
    "date": lambda r: r.publish_date or EPOCH,
}

# Bucket order of group_by_quality, highest first
QUALITY_GROUP_ORDER = ["4K", "1440p", "1080p", "720p", "480p", "360p", "unknown"]

UNKNOWN_SEASON_LABEL = "Unknown"


def merge_by_magnet(*result_lists: Iterable[TorrentRecord]) -> list[TorrentRecord]:
    """Union several result lists, keeping the first record per magnet URI."""
    seen: set[str] = set()
    merged: list[TorrentRecord] = []
    for results in result_lists:
        for record in results:
            if record.magnet_uri in seen:
                continue
            seen.add(record.magnet_uri)
            merged.append(record)
    return merged


def sort_records(
    records: Iterable[TorrentRecord],
    field: str = "seeders",
    order: str = "desc",
) -> list[TorrentRecord]:
    """Sort records by seeders, size or publish date.

    The sort is stable; missing values sort as zero / epoch.

    Raises:
        InvalidSearchRequestError: On an unknown field or order.
    """
    key = SORT_KEYS.get(field)
    if key is None:
        raise InvalidSearchRequestError(f"Unknown sort field: {field!r}")
    if order not in ("asc", "desc"):
        raise InvalidSearchRequestError(f"Unknown sort order: {order!r}")
    return sorted(records, key=key, reverse=order == "desc")


def _by_seeders(records: list[TorrentRecord]) -> list[TorrentRecord]:
    return sorted(records, key=lambda r: r.seeders or 0, reverse=True)


def group_by_quality(records: Iterable[TorrentRecord]) -> dict[str, list[TorrentRecord]]:
    """Partition records into quality buckets.

    2160p releases go to "4K", undetected ones to "unknown". Buckets come in
    fixed order from highest to lowest, empty ones are omitted, and each is
    sorted by seeders descending.
    """
    buckets: dict[str, list[TorrentRecord]] = {label: [] for label in QUALITY_GROUP_ORDER}
    for record in records:
        label = record.quality_label or "unknown"
        buckets[label].append(record)
    return {label: _by_seeders(items) for label, items in buckets.items() if items}


def group_by_season(records: Iterable[TorrentRecord]) -> dict[str, list[TorrentRecord]]:
    """Group records by season.

    A season pack appears in the bucket of every season it covers (once per
    bucket), so bucket sizes may add up to more than the input length.
    Records without any season signal go to "Unknown".
    """
    by_season: dict[int, list[TorrentRecord]] = {}
    unknown: list[TorrentRecord] = []

    for record in records:
        seasons = extract_seasons(record.title, record.seasons)
        if not seasons:
            unknown.append(record)
            continue
        for season in seasons:
            bucket = by_season.setdefault(season, [])
            if all(r.magnet_uri != record.magnet_uri for r in bucket):
                bucket.append(record)

    groups = {f"Season {season}": _by_seeders(by_season[season]) for season in sorted(by_season)}
    if unknown:
        groups[UNKNOWN_SEASON_LABEL] = _by_seeders(unknown)
    return groups


def filter_by_season(records: Iterable[TorrentRecord], season: int | None) -> list[TorrentRecord]:
    """Keep records that cover the given season (no-op when season is None)."""
    if not season:
        return list(records)
    return [r for r in records if matches_season(r.title, r.seasons, season)]


def available_seasons(records: Iterable[TorrentRecord]) -> list[int]:
    """Sorted season numbers covered by any of the records."""
    seasons: set[int] = set()
    for record in records:
        seasons |= extract_seasons(record.title, record.seasons)
    return sorted(seasons)


def _title_mentions(title_lower: str, label: str) -> bool:
    label_lower = label.lower()
    if label_lower in title_lower:
        return True
    return label_lower == "4k" and "2160p" in title_lower


def _passes(record: TorrentRecord, quality_filter: QualityFilter) -> bool:
    title_lower = record.title.lower()
    tier = record.detected_quality

    # Tier constraints cannot be satisfied by a record of unknown quality
    if quality_filter.constrains_tier and tier is None:
        return False

    if quality_filter.qualities and not any(
        _title_mentions(title_lower, q) for q in quality_filter.qualities
    ):
        return False

    if quality_filter.min_quality and tier and tier.rank < quality_filter.min_quality.rank:
        return False

    if quality_filter.max_quality and tier and tier.rank > quality_filter.max_quality.rank:
        return False

    if any(q.lower() in title_lower for q in quality_filter.exclude_qualities):
        return False

    if quality_filter.hdr is not None and record.hdr != quality_filter.hdr:
        return False

    if quality_filter.hevc is not None and record.hevc != quality_filter.hevc:
        return False

    return True


def filter_by_quality(
    records: Iterable[TorrentRecord],
    quality_filter: QualityFilter | dict[str, Any] | None = None,
) -> list[TorrentRecord]:
    """Filter records by quality constraints.

    Args:
        records: Records to filter.
        quality_filter: QualityFilter or a dict of its fields.

    Returns:
        Records satisfying every active constraint, in input order.
    """
    if quality_filter is None:
        return list(records)
    if isinstance(quality_filter, dict):
        quality_filter = QualityFilter.model_validate(quality_filter)
    if quality_filter.is_empty:
        return list(records)
    return [r for r in records if _passes(r, quality_filter)]


def quality_stats(records: Iterable[TorrentRecord]) -> dict[str, int]:
    """Count records per detected tier (records of unknown quality are skipped)."""
    counts = Counter(r.detected_quality for r in records if r.detected_quality)
    return {tier.value: counts[tier] for tier in reversed(QualityTier) if counts[tier]}
