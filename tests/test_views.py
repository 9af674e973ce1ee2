"""Tests for result views: sorting, grouping, quality filtering and merging."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.search.heuristics import detect_quality
from src.search.models import InvalidSearchRequestError, QualityFilter, TorrentRecord
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


def make_record(title: str, magnet: str, seeders: int = 0, **kwargs) -> TorrentRecord:
    quality = detect_quality(title)
    return TorrentRecord(
        title=title,
        magnet_uri=magnet,
        seeders=seeders,
        detected_quality=quality.tier,
        hdr=quality.hdr,
        hevc=quality.hevc,
        **kwargs,
    )


def magnets(records: list[TorrentRecord]) -> list[str]:
    return [r.magnet_uri for r in records]


@pytest.fixture
def show_records():
    return [
        make_record("Show.S01.1080p.HEVC", "m1", seeders=30),
        make_record("Show.S02.720p", "m2", seeders=20),
        make_record("Show.2Season.480p", "m3", seeders=10),
    ]


@pytest.fixture
def tiered_records():
    return [
        make_record("Movie.2021.480p.WEBRip", "m480", seeders=5),
        make_record("Movie.2021.720p.WEB-DL", "m720", seeders=50),
        make_record("Movie.2021.1080p.BluRay", "m1080", seeders=100),
        make_record("Movie.2021.CAMRip", "unknown", seeders=1),
    ]


# =============================================================================
# Tests for Sorting
# =============================================================================


class TestSortRecords:
    """Tests for sort_records function."""

    def test_seeders_desc(self, tiered_records):
        result = sort_records(tiered_records, "seeders", "desc")
        for current, following in zip(result, result[1:], strict=False):
            assert current.seeders >= following.seeders
        assert magnets(result) == ["m1080", "m720", "m480", "unknown"]

    def test_size_asc(self):
        records = [
            make_record("A", "a", size_bytes=300),
            make_record("B", "b", size_bytes=100),
            make_record("C", "c"),
        ]
        assert magnets(sort_records(records, "size", "asc")) == ["c", "b", "a"]

    def test_date_missing_sorts_as_epoch(self):
        records = [
            make_record("New", "new", publish_date=datetime(2024, 1, 1, tzinfo=UTC)),
            make_record("Undated", "undated"),
            make_record("Old", "old", publish_date=datetime(2001, 1, 1)),
        ]
        assert magnets(sort_records(records, "date", "desc")) == ["new", "old", "undated"]

    def test_stable_for_equal_values(self):
        records = [make_record(f"T{i}", f"m{i}", seeders=7) for i in range(5)]
        assert magnets(sort_records(records, "seeders", "desc")) == magnets(records)
        assert magnets(sort_records(records, "seeders", "asc")) == magnets(records)

    def test_does_not_mutate_input(self, tiered_records):
        before = magnets(tiered_records)
        sort_records(tiered_records, "seeders", "asc")
        assert magnets(tiered_records) == before

    def test_invalid_field_or_order(self, tiered_records):
        with pytest.raises(InvalidSearchRequestError):
            sort_records(tiered_records, "title")
        with pytest.raises(InvalidSearchRequestError):
            sort_records(tiered_records, "seeders", "sideways")


# =============================================================================
# Tests for Grouping
# =============================================================================


class TestGroupByQuality:
    """Tests for group_by_quality function."""

    def test_show_scenario(self, show_records):
        groups = group_by_quality(show_records)
        assert {label: magnets(items) for label, items in groups.items()} == {
            "1080p": ["m1"],
            "720p": ["m2"],
            "480p": ["m3"],
        }

    def test_4k_bucket_merges_2160p(self):
        records = [
            make_record("Movie.2160p.HDR", "a", seeders=1),
            make_record("Movie.4K.UHD", "b", seeders=9),
        ]
        groups = group_by_quality(records)
        assert list(groups) == ["4K"]
        assert magnets(groups["4K"]) == ["b", "a"]

    def test_fixed_bucket_order(self, tiered_records):
        records = tiered_records + [make_record("Movie.2160p", "m4k"), make_record("M.1440p", "q")]
        assert list(group_by_quality(records)) == ["4K", "1440p", "1080p", "720p", "480p", "unknown"]

    def test_partition(self, tiered_records):
        groups = group_by_quality(tiered_records)
        grouped = [r.magnet_uri for items in groups.values() for r in items]
        assert sorted(grouped) == sorted(magnets(tiered_records))

    def test_empty(self):
        assert group_by_quality([]) == {}


class TestGroupBySeason:
    """Tests for group_by_season function."""

    def test_show_scenario(self, show_records):
        groups = group_by_season(show_records)
        assert {label: magnets(items) for label, items in groups.items()} == {
            "Season 1": ["m1"],
            "Season 2": ["m2", "m3"],
        }

    def test_season_pack_in_every_bucket(self):
        pack = make_record("Show.S01-S02.Pack", "pack")
        groups = group_by_season([pack, make_record("Show.S03", "s3")])
        assert magnets(groups["Season 1"]) == ["pack"]
        assert magnets(groups["Season 2"]) == ["pack"]
        assert magnets(groups["Season 3"]) == ["s3"]

    def test_structured_seasons(self):
        record = make_record("Show Complete", "c", seasons=frozenset({4}))
        assert magnets(group_by_season([record])["Season 4"]) == ["c"]

    def test_unknown_last(self):
        groups = group_by_season(
            [make_record("Show Complete", "u"), make_record("Show.S10", "s10"), make_record("Show.S2", "s2")]
        )
        assert list(groups) == ["Season 2", "Season 10", "Unknown"]

    def test_once_per_bucket(self):
        record = make_record("Show.S01", "same")
        groups = group_by_season([record, record])
        assert magnets(groups["Season 1"]) == ["same"]

    def test_sorted_by_seeders(self):
        groups = group_by_season(
            [make_record("Show.S01.a", "low", seeders=1), make_record("Show.S01.b", "high", seeders=9)]
        )
        assert magnets(groups["Season 1"]) == ["high", "low"]


class TestSeasonHelpers:
    """Tests for filter_by_season and available_seasons."""

    def test_filter_by_season(self, show_records):
        assert magnets(filter_by_season(show_records, 2)) == ["m2", "m3"]
        assert magnets(filter_by_season(show_records, None)) == ["m1", "m2", "m3"]

    def test_available_seasons(self, show_records):
        assert available_seasons(show_records) == [1, 2]
        assert available_seasons([]) == []


# =============================================================================
# Tests for Quality Filtering
# =============================================================================


class TestFilterByQuality:
    """Tests for filter_by_quality function."""

    def test_min_quality_drops_lower_and_unknown(self, tiered_records):
        result = filter_by_quality(tiered_records, {"min_quality": "720p"})
        assert magnets(result) == ["m720", "m1080"]

    def test_camel_case_keys(self, tiered_records):
        result = filter_by_quality(tiered_records, {"minQuality": "720p"})
        assert magnets(result) == ["m720", "m1080"]
        assert magnets(filter_by_quality(tiered_records, {"maxQuality": "480p"})) == ["m480"]
        result = filter_by_quality(tiered_records, {"excludeQualities": ["720p", "480p"]})
        assert magnets(result) == ["m1080", "unknown"]

    def test_unknown_key_rejected(self, tiered_records):
        with pytest.raises(ValidationError):
            filter_by_quality(tiered_records, {"min_qualty": "720p"})

    def test_max_quality(self, tiered_records):
        result = filter_by_quality(tiered_records, QualityFilter(max_quality="720p"))
        assert magnets(result) == ["m480", "m720"]

    def test_qualities_textual(self, tiered_records):
        records = tiered_records + [make_record("Movie.2160p.HDR", "m2160")]
        result = filter_by_quality(records, QualityFilter(qualities=["4K", "720p"]))
        assert magnets(result) == ["m720", "m2160"]

    def test_min_quality_accepts_4k_alias(self, tiered_records):
        records = tiered_records + [make_record("Movie.2160p", "m2160")]
        assert magnets(filter_by_quality(records, {"min_quality": "4K"})) == ["m2160"]

    def test_exclude_keeps_unknown(self, tiered_records):
        result = filter_by_quality(tiered_records, QualityFilter(exclude_qualities=["720p", "480p"]))
        assert magnets(result) == ["m1080", "unknown"]

    def test_hdr_and_hevc(self):
        records = [
            make_record("Movie.2160p.HDR.x265", "hdr_hevc"),
            make_record("Movie.2160p.x265", "hevc"),
            make_record("Movie.1080p.x264", "plain"),
        ]
        assert magnets(filter_by_quality(records, {"hdr": True})) == ["hdr_hevc"]
        assert magnets(filter_by_quality(records, {"hevc": False})) == ["plain"]
        assert magnets(filter_by_quality(records, {"hdr": False, "hevc": True})) == ["hevc"]

    def test_no_filter(self, tiered_records):
        assert filter_by_quality(tiered_records, None) == tiered_records
        assert filter_by_quality(tiered_records, {}) == tiered_records

    def test_invalid_tier(self):
        with pytest.raises(ValidationError):
            QualityFilter(min_quality="999p")


# =============================================================================
# Tests for Merging and Stats
# =============================================================================


class TestMergeByMagnet:
    """Tests for merge_by_magnet function."""

    def test_first_seen_wins(self):
        first = make_record("First title", "same", seeders=1)
        second = make_record("Second title", "same", seeders=99)
        merged = merge_by_magnet([first], [second, make_record("Other", "other")])
        assert magnets(merged) == ["same", "other"]
        assert merged[0].title == "First title"

    def test_idempotent(self, show_records):
        assert merge_by_magnet(show_records, show_records) == show_records
        assert merge_by_magnet(merge_by_magnet(show_records)) == show_records

    def test_no_duplicates(self, show_records):
        merged = merge_by_magnet(show_records, list(reversed(show_records)), show_records[:1])
        assert len(merged) == len({r.magnet_uri for r in merged}) == 3


class TestQualityStats:
    """Tests for quality_stats function."""

    def test_counts(self, tiered_records):
        records = tiered_records + [make_record("Another.1080p", "x")]
        assert quality_stats(records) == {"1080p": 2, "720p": 1, "480p": 1}
        assert list(quality_stats(records)) == ["1080p", "720p", "480p"]
