"""Torrent search across the RedAPI multi-indexer aggregator.

This module provides the async RedAPI gateway, title heuristics (quality,
seasons, content type), the cascading search service and result views
(sorting, grouping, quality filtering).
"""

from src.search.heuristics import (
    QualityInfo,
    accepts,
    classify,
    detect_quality,
    detect_tier,
    extract_seasons,
)
from src.search.models import (
    ContentType,
    InvalidSearchRequestError,
    QualityFilter,
    QualityTier,
    ResolvedTitle,
    SearchError,
    SearchQuery,
    TorrentRecord,
)
from src.search.redapi import RedAPIClient, normalize_entry, parse_results, search_redapi
from src.search.service import (
    SearchAttempt,
    TorrentSearchService,
    search_torrents_by_external_id,
    search_torrents_by_query,
)
from src.search.views import (
    available_seasons,
    filter_by_quality,
    filter_by_season,
    group_by_quality,
    group_by_season,
    merge_by_magnet,
    quality_stats,
    sort_records,
)

__all__ = [
    # Models
    "ContentType",
    "QualityTier",
    "QualityFilter",
    "ResolvedTitle",
    "SearchQuery",
    "TorrentRecord",
    "SearchError",
    "InvalidSearchRequestError",
    # Heuristics
    "QualityInfo",
    "detect_quality",
    "detect_tier",
    "extract_seasons",
    "accepts",
    "classify",
    # RedAPI
    "RedAPIClient",
    "normalize_entry",
    "parse_results",
    "search_redapi",
    # Service
    "SearchAttempt",
    "TorrentSearchService",
    "search_torrents_by_external_id",
    "search_torrents_by_query",
    # Views
    "sort_records",
    "group_by_quality",
    "group_by_season",
    "filter_by_quality",
    "filter_by_season",
    "merge_by_magnet",
    "available_seasons",
    "quality_stats",
]
