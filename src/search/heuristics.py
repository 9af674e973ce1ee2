"""Title heuristics for torrent releases.

Indexers rarely supply reliable structured metadata, so resolution tier,
HDR/HEVC flags, season numbers and content type are inferred from the
release name. Each heuristic is a pure function driven by a pattern table.
"""

import re
from collections.abc import Iterable
from typing import NamedTuple

from src.search.models import ContentType, QualityTier, TorrentRecord

# =============================================================================
# Quality Definitions
# =============================================================================

# Ordered highest first: a title with several resolution markers resolves
# to the highest one
QUALITY_PATTERNS: list[tuple[re.Pattern[str], QualityTier]] = [
    (re.compile(r"2160p|4k", re.IGNORECASE), QualityTier.P2160),
    (re.compile(r"1440p", re.IGNORECASE), QualityTier.P1440),
    (re.compile(r"1080p", re.IGNORECASE), QualityTier.P1080),
    (re.compile(r"720p", re.IGNORECASE), QualityTier.P720),
    (re.compile(r"480p", re.IGNORECASE), QualityTier.P480),
    (re.compile(r"360p", re.IGNORECASE), QualityTier.P360),
]

HDR_PATTERN = re.compile(r"hdr|dolby.vision|dv", re.IGNORECASE)
HEVC_PATTERN = re.compile(r"hevc|h\.265|x265", re.IGNORECASE)

# =============================================================================
# Season Definitions
# =============================================================================

# "S01", "Season 2", "Сезон: 3" or "2 сезон", "2Season"
SEASON_PATTERN = re.compile(
    r"(?:\bs|season|сезон)[\s:]*(\d{1,3})(?!\d)|(?<!\d)(\d{1,3})\s*(?:season|сезон)",
    re.IGNORECASE,
)

# =============================================================================
# Content Type Definitions
# =============================================================================

CONTENT_TYPE_TAGS: dict[ContentType, frozenset[str]] = {
    ContentType.MOVIE: frozenset({"movie", "multfilm", "documovie"}),
    ContentType.SERIAL: frozenset({"serial", "multserial", "docuserial", "tvshow"}),
    ContentType.ANIME: frozenset({"anime"}),
}

EPISODIC_PATTERN = re.compile(r"сезон|серии|эпизод|series|season|episode", re.IGNORECASE)
ANIME_PATTERN = re.compile(r"anime", re.IGNORECASE)
ANIME_CATEGORIES = frozenset({"TV/Anime", "5070"})


class QualityInfo(NamedTuple):
    """Quality attributes inferred from a title."""

    tier: QualityTier | None
    hdr: bool
    hevc: bool


def detect_tier(title: str) -> QualityTier | None:
    """Detect the resolution tier of a release.

    Args:
        title: Release name.

    Returns:
        Highest declared tier, or None if the title has no resolution marker.
    """
    for pattern, tier in QUALITY_PATTERNS:
        if pattern.search(title):
            return tier
    return None


def detect_quality(title: str) -> QualityInfo:
    """Detect resolution tier and HDR/HEVC flags from a title."""
    return QualityInfo(
        tier=detect_tier(title),
        hdr=bool(HDR_PATTERN.search(title)),
        hevc=bool(HEVC_PATTERN.search(title)),
    )


def extract_seasons(title: str, structured_seasons: Iterable[int] = ()) -> set[int]:
    """Collect season numbers of a release.

    Structured seasons from the indexer are kept verbatim and every season
    number found in the title is added. Season packs keep all their seasons.

    Args:
        title: Release name.
        structured_seasons: Season numbers supplied by the indexer.

    Returns:
        Set of season numbers; empty when the season is unknown.
    """
    seasons = set(structured_seasons)
    for match in SEASON_PATTERN.finditer(title):
        number = match.group(1) or match.group(2)
        seasons.add(int(number))
    return seasons


def matches_season(title: str, structured_seasons: Iterable[int], season: int) -> bool:
    return season in extract_seasons(title, structured_seasons)


def is_episodic_title(title: str) -> bool:
    return bool(EPISODIC_PATTERN.search(title))


def accepts(record: TorrentRecord, target: ContentType) -> bool:
    """Decide whether a record belongs to the target content type.

    Structured type tags win when present; otherwise the title and category
    are used.
    """
    if record.content_types:
        return bool(record.content_types & CONTENT_TYPE_TAGS[target])

    if target is ContentType.SERIAL:
        return is_episodic_title(record.title)
    if target is ContentType.MOVIE:
        return not is_episodic_title(record.title)
    return record.category in ANIME_CATEGORIES or bool(ANIME_PATTERN.search(record.title))


def classify(records: Iterable[TorrentRecord], target: ContentType) -> list[TorrentRecord]:
    """Keep only records accepted for the target content type."""
    return [record for record in records if accepts(record, target)]
