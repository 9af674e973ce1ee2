"""Data models shared by the RedAPI gateway, the search service and result views.

TorrentRecord is the canonical, immutable shape of one release returned by
the multi-indexer API. Records are identified by their magnet URI.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Exceptions
# =============================================================================


class SearchError(Exception):
    """Base exception for torrent search errors."""

    pass


class InvalidSearchRequestError(SearchError, ValueError):
    """Raised when caller input is malformed (bad ID, empty query, unknown type).

    Distinct from an empty result: "nothing found" is an empty list.
    """

    pass


# =============================================================================
# Enums
# =============================================================================


class ContentType(str, Enum):
    """Content type targeted by a search."""

    MOVIE = "movie"
    SERIAL = "serial"
    ANIME = "anime"

    @property
    def is_serial_code(self) -> int:
        """Value of the indexer `is_serial` parameter."""
        return {"movie": 1, "serial": 2, "anime": 5}[self.value]

    @property
    def category_code(self) -> int:
        """Torznab category code for this content type."""
        return {"movie": 2000, "serial": 5000, "anime": 5070}[self.value]

    @classmethod
    def parse(cls, value: "str | ContentType") -> "ContentType":
        """Parse a content type, accepting common aliases for series.

        Raises:
            InvalidSearchRequestError: If the value is not a known type.
        """
        if isinstance(value, ContentType):
            return value
        normalized = str(value).strip().lower()
        aliases = {"tv": "serial", "series": "serial", "show": "serial", "film": "movie"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as e:
            raise InvalidSearchRequestError(f"Unknown content type: {value!r}") from e


class QualityTier(str, Enum):
    """Video resolution tier, declared lowest to highest."""

    P360 = "360p"
    P480 = "480p"
    P720 = "720p"
    P1080 = "1080p"
    P1440 = "1440p"
    P2160 = "2160p"

    @property
    def rank(self) -> int:
        return list(QualityTier).index(self)

    @property
    def label(self) -> str:
        """Display label; 2160p is shown as 4K."""
        return "4K" if self is QualityTier.P2160 else self.value

    @classmethod
    def parse(cls, value: "str | QualityTier") -> "QualityTier":
        """Parse a tier label such as "1080p", "1080P" or "4K"."""
        if isinstance(value, QualityTier):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("4k", "uhd"):
            return cls.P2160
        return cls(normalized)


# =============================================================================
# Data Models
# =============================================================================


class TorrentRecord(BaseModel):
    """A single release reported by the indexer aggregator.

    Attributes:
        title: Release name as reported by the indexer.
        tracker: Tracker the release comes from.
        source: Gateway that produced the record.
        size_bytes: Size in bytes.
        seeders: Number of seeders.
        peers: Number of peers.
        magnet_uri: Magnet link; identity of the release.
        publish_date: Publication time (timezone-aware) if known.
        category: Indexer category description.
        detected_quality: Resolution tier inferred from the title.
        hdr: Title mentions HDR / Dolby Vision.
        hevc: Title mentions HEVC / H.265.
        content_types: Structured type tags supplied by the indexer.
        seasons: Structured season numbers supplied by the indexer.
        details_url: Tracker page of the release.
        indexer_quality: Raw quality value from the indexer metadata.
        voices: Voice-over / dubbing studios.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    tracker: str = ""
    source: str = "RedAPI"
    size_bytes: int = 0
    seeders: int = 0
    peers: int = 0
    magnet_uri: str
    publish_date: datetime | None = None
    category: str = ""
    detected_quality: QualityTier | None = None
    hdr: bool = False
    hevc: bool = False
    content_types: frozenset[str] = Field(default_factory=frozenset)
    seasons: frozenset[int] = Field(default_factory=frozenset)
    details_url: str | None = None
    indexer_quality: str | None = None
    voices: tuple[str, ...] = ()

    @field_validator("publish_date")
    @classmethod
    def _ensure_aware(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def quality_label(self) -> str | None:
        return self.detected_quality.label if self.detected_quality else None

    @property
    def all_seasons(self) -> set[int]:
        """Structured seasons augmented with seasons found in the title."""
        from src.search.heuristics import extract_seasons

        return extract_seasons(self.title, self.seasons)

    def to_display_string(self) -> str:
        """Format record for display."""
        quality_str = f"[{self.quality_label}] " if self.detected_quality else ""
        seeds_str = f"S:{self.seeders}" if self.seeders > 0 else "S:?"
        size_gb = self.size_bytes / 1024**3
        size_str = f"{size_gb:.2f} GB" if self.size_bytes else "N/A"
        return f"{quality_str}{self.title} | {size_str} | {seeds_str} | {self.tracker}"


class SearchQuery(BaseModel):
    """One set of parameters sent to the indexer aggregator.

    Either a free-text `query` or structured titles/year; content type adds
    the `is_serial` and `category[]` codes. Never mutated after construction.
    """

    model_config = ConfigDict(frozen=True)

    query: str | None = None
    title: str | None = None
    original_title: str | None = None
    year: int | None = None
    content_type: ContentType | None = None
    external_id: str | None = None
    season: int | None = None

    def to_params(self, api_key: str | None = None) -> list[tuple[str, str]]:
        """Serialize into query-string pairs, omitting empty values."""
        params: list[tuple[str, str]] = []
        if self.query:
            params.append(("query", self.query))
        if self.title:
            params.append(("title", self.title))
        if self.original_title:
            params.append(("title_original", self.original_title))
        if self.year:
            params.append(("year", str(self.year)))
        if self.content_type:
            params.append(("is_serial", str(self.content_type.is_serial_code)))
            params.append(("category[]", str(self.content_type.category_code)))
        if self.external_id:
            params.append(("imdb", self.external_id))
        if self.season:
            params.append(("season", str(self.season)))
        if api_key:
            params.append(("apikey", api_key))
        return params

    def without_season(self) -> "SearchQuery":
        return self.model_copy(update={"season": None})


class ResolvedTitle(BaseModel):
    """Canonical titles of a movie or series from the title resolution service."""

    original_title: str | None = None
    russian_title: str | None = None
    year: int | None = None

    @property
    def search_title(self) -> str | None:
        """Title used for free-text queries (original first)."""
        return self.original_title or self.russian_title


class QualityFilter(BaseModel):
    """Quality constraints applied to a result list.

    `qualities` and `exclude_qualities` are matched against the title text;
    `min_quality` and `max_quality` compare detected tiers. Web clients send
    camelCase keys (`minQuality`...), which are accepted as well; unknown
    keys are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    qualities: list[str] = Field(default_factory=list)
    min_quality: QualityTier | None = Field(
        default=None, validation_alias=AliasChoices("min_quality", "minQuality")
    )
    max_quality: QualityTier | None = Field(
        default=None, validation_alias=AliasChoices("max_quality", "maxQuality")
    )
    exclude_qualities: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_qualities", "excludeQualities"),
    )
    hdr: bool | None = None
    hevc: bool | None = None

    @field_validator("min_quality", "max_quality", mode="before")
    @classmethod
    def _parse_tier(cls, v: object) -> object:
        if v is None or v == "":
            return None
        return QualityTier.parse(v)  # type: ignore[arg-type]

    @property
    def constrains_tier(self) -> bool:
        return bool(self.qualities) or self.min_quality is not None or self.max_quality is not None

    @property
    def is_empty(self) -> bool:
        return (
            not self.constrains_tier
            and not self.exclude_qualities
            and self.hdr is None
            and self.hevc is None
        )
