"""Torrent search service.

Builds indexer queries for a movie, series or anime and runs them as a
cascade of attempts with decreasing specificity:

1. structured search by titles/year (and season for series);
2. for a series season with too few hits, an unseasoned search filtered
   locally by season;
3. when nothing is left, a free-text search "<title> <year> [season N]".

Results of every attempt are classified by content type and merged by
magnet URI, first seen wins.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import structlog

from src.config import settings
from src.search.heuristics import classify
from src.search.models import (
    ContentType,
    InvalidSearchRequestError,
    ResolvedTitle,
    SearchQuery,
    TorrentRecord,
)
from src.search.views import available_seasons, filter_by_season, merge_by_magnet

logger = structlog.get_logger(__name__)

IMDB_ID_PATTERN = re.compile(r"^tt\d+$")


# =============================================================================
# Collaborators
# =============================================================================


class SearchGateway(Protocol):
    """Runs one indexer query; returns an empty list on failure."""

    async def search(self, query: SearchQuery) -> list[TorrentRecord]: ...


class TitleResolver(Protocol):
    """Resolves an external ID into canonical titles, None when unknown."""

    async def resolve(self, external_id: str, media_kind: str) -> ResolvedTitle | None: ...


# =============================================================================
# Cascade
# =============================================================================


def _always(_results: list[TorrentRecord]) -> bool:
    return True


def _nothing_found(results: list[TorrentRecord]) -> bool:
    return not results


@dataclass(frozen=True)
class SearchAttempt:
    """One step of the search cascade.

    Attributes:
        name: Attempt name used in logs.
        query: Parameters sent to the gateway.
        needed: Predicate over the results accumulated so far; the attempt
            runs only if it returns True.
        season: When set, results are filtered locally to this season.
    """

    name: str
    query: SearchQuery
    needed: Callable[[list[TorrentRecord]], bool] = _always
    season: int | None = None


def _validate_season(season: int | None) -> int | None:
    if season is None:
        return None
    if isinstance(season, bool) or not isinstance(season, int) or season < 1:
        raise InvalidSearchRequestError(f"Season must be a positive integer, got {season!r}")
    return season


def _validate_year(year: int | str | None) -> int | None:
    if year is None or year == "":
        return None
    try:
        return int(year)
    except (TypeError, ValueError) as e:
        raise InvalidSearchRequestError(f"Invalid year: {year!r}") from e


def build_free_text(title: str, year: int | None = None, season: int | None = None) -> str:
    """Build the free-text fallback query, e.g. "The Boys 2019 season 2"."""
    text = f"{title} {year}" if year else title
    if season:
        text += f" season {season}"
    return text


class TorrentSearchService:
    """Searches the indexer aggregator for movies, series and anime.

    Stateless between calls: one instance can serve many requests as long
    as its gateway and resolver are open.

    Example:
        async with RedAPIClient() as gateway, TMDBTitleResolver() as resolver:
            service = TorrentSearchService(gateway, resolver)
            records = await service.search_by_external_id("tt1190634", "serial", season=2)
    """

    def __init__(
        self,
        gateway: SearchGateway,
        resolver: TitleResolver | None = None,
        max_results: int | None = None,
        season_fallback_threshold: int | None = None,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver
        self.max_results = max_results if max_results is not None else settings.search_max_results
        self.season_fallback_threshold = (
            season_fallback_threshold
            if season_fallback_threshold is not None
            else settings.season_fallback_threshold
        )

    # =========================================================================
    # Public API
    # =========================================================================

    async def search_by_external_id(
        self,
        external_id: str,
        content_type: ContentType | str = ContentType.MOVIE,
        season: int | None = None,
    ) -> list[TorrentRecord]:
        """Search torrents for an IMDb ID.

        Args:
            external_id: IMDb ID in the form "tt1234567".
            content_type: movie, serial or anime.
            season: Season number (series only).

        Returns:
            Up to max_results records, deduplicated by magnet URI.

        Raises:
            InvalidSearchRequestError: On a malformed ID, type or season.
        """
        external_id = (external_id or "").strip()
        if not IMDB_ID_PATTERN.match(external_id):
            raise InvalidSearchRequestError(
                f"Invalid IMDb ID {external_id!r}, expected format tt1234567"
            )
        content_type = ContentType.parse(content_type)
        season = _validate_season(season)

        logger.info(
            "search_by_external_id",
            external_id=external_id,
            content_type=content_type.value,
            season=season,
        )

        resolved = await self._resolve(external_id, content_type)
        if resolved is None or not resolved.search_title:
            logger.info("title_resolution_degraded", external_id=external_id)
            attempts = [
                SearchAttempt(
                    "raw_id",
                    SearchQuery(query=external_id, content_type=content_type),
                )
            ]
        else:
            attempts = self._title_attempts(
                title=resolved.russian_title,
                original_title=resolved.original_title,
                year=resolved.year,
                content_type=content_type,
                season=season,
                external_id=external_id,
            )

        return await self._run(attempts, content_type)

    async def search_by_query(
        self,
        query: str,
        content_type: ContentType | str = ContentType.MOVIE,
        year: int | None = None,
    ) -> list[TorrentRecord]:
        """Free-text search.

        Raises:
            InvalidSearchRequestError: On an empty query or unknown type.
        """
        query = (query or "").strip()
        if not query:
            raise InvalidSearchRequestError("Search query must not be empty")
        content_type = ContentType.parse(content_type)
        year = _validate_year(year)

        logger.info("search_by_query", query=query, content_type=content_type.value, year=year)
        attempt = SearchAttempt(
            "free_text",
            SearchQuery(query=query, year=year, content_type=content_type),
        )
        return await self._run([attempt], content_type)

    async def search_movies(
        self, title: str, original_title: str | None = None, year: int | None = None
    ) -> list[TorrentRecord]:
        """Structured movie search by known titles."""
        return await self.search_by_title(title, original_title, year, ContentType.MOVIE)

    async def search_series(
        self,
        title: str,
        original_title: str | None = None,
        year: int | None = None,
        season: int | None = None,
    ) -> list[TorrentRecord]:
        """Structured series search by known titles, optionally for one season."""
        return await self.search_by_title(title, original_title, year, ContentType.SERIAL, season)

    async def search_anime(
        self, title: str, original_title: str | None = None, year: int | None = None
    ) -> list[TorrentRecord]:
        """Structured anime search by known titles."""
        return await self.search_by_title(title, original_title, year, ContentType.ANIME)

    async def search_by_title(
        self,
        title: str | None,
        original_title: str | None,
        year: int | str | None,
        content_type: ContentType | str,
        season: int | None = None,
        limit: bool = True,
    ) -> list[TorrentRecord]:
        """Run the full cascade for already-known titles."""
        if not (title or original_title):
            raise InvalidSearchRequestError("A title or an original title is required")
        content_type = ContentType.parse(content_type)
        attempts = self._title_attempts(
            title=title,
            original_title=original_title,
            year=_validate_year(year),
            content_type=content_type,
            season=_validate_season(season),
        )
        return await self._run(attempts, content_type, limit=limit)

    async def get_available_seasons(
        self, title: str, original_title: str | None = None, year: int | None = None
    ) -> list[int]:
        """Season numbers seen across all releases of a series."""
        records = await self.search_by_title(
            title, original_title, year, ContentType.SERIAL, limit=False
        )
        return available_seasons(records)

    # =========================================================================
    # Cascade
    # =========================================================================

    async def _resolve(self, external_id: str, content_type: ContentType) -> ResolvedTitle | None:
        if self._resolver is None:
            return None
        try:
            return await self._resolver.resolve(external_id, content_type.value)
        except Exception as e:
            logger.warning("title_resolution_failed", external_id=external_id, error=str(e))
            return None

    def _title_attempts(
        self,
        title: str | None,
        original_title: str | None,
        year: int | None,
        content_type: ContentType,
        season: int | None = None,
        external_id: str | None = None,
    ) -> list[SearchAttempt]:
        if season and content_type is not ContentType.SERIAL:
            logger.debug("season_ignored", content_type=content_type.value, season=season)
            season = None

        structured = SearchQuery(
            title=title,
            original_title=original_title,
            year=year,
            content_type=content_type,
            external_id=external_id,
            season=season,
        )
        attempts = [SearchAttempt("structured", structured)]

        if season:
            threshold = self.season_fallback_threshold
            attempts.append(
                SearchAttempt(
                    "season_fallback",
                    structured.without_season(),
                    needed=lambda results: len(results) < threshold,
                    season=season,
                )
            )

        search_title = original_title or title
        if search_title:
            attempts.append(
                SearchAttempt(
                    "free_text_fallback",
                    SearchQuery(
                        query=build_free_text(search_title, year, season),
                        year=year,
                        content_type=content_type,
                    ),
                    needed=_nothing_found,
                )
            )
        return attempts

    async def _run(
        self,
        attempts: list[SearchAttempt],
        content_type: ContentType,
        limit: bool = True,
    ) -> list[TorrentRecord]:
        results: list[TorrentRecord] = []

        for attempt in attempts:
            if not attempt.needed(results):
                logger.debug("search_attempt_skipped", attempt=attempt.name, count=len(results))
                continue

            found = classify(await self._gateway.search(attempt.query), content_type)
            if attempt.season:
                found = filter_by_season(found, attempt.season)
            results = merge_by_magnet(results, found)

            logger.info(
                "search_attempt_done",
                attempt=attempt.name,
                found=len(found),
                total=len(results),
            )

        if limit:
            results = results[: self.max_results]
        logger.info("search_complete", content_type=content_type.value, count=len(results))
        return results


# =============================================================================
# Convenience Functions
# =============================================================================


async def search_torrents_by_external_id(
    external_id: str,
    content_type: ContentType | str = ContentType.MOVIE,
    season: int | None = None,
) -> list[TorrentRecord]:
    """Search by IMDb ID with a RedAPI gateway and, if configured, TMDB resolution."""
    from src.media.tmdb import TMDBTitleResolver
    from src.search.redapi import RedAPIClient

    async with RedAPIClient() as gateway:
        if not settings.has_tmdb:
            return await TorrentSearchService(gateway).search_by_external_id(
                external_id, content_type, season
            )
        async with TMDBTitleResolver() as resolver:
            service = TorrentSearchService(gateway, resolver)
            return await service.search_by_external_id(external_id, content_type, season)


async def search_torrents_by_query(
    query: str,
    content_type: ContentType | str = ContentType.MOVIE,
    year: int | None = None,
) -> list[TorrentRecord]:
    """Free-text search with a RedAPI gateway."""
    from src.search.redapi import RedAPIClient

    async with RedAPIClient() as gateway:
        return await TorrentSearchService(gateway).search_by_query(query, content_type, year)
