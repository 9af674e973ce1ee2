"""TMDB (The Movie Database) title resolution.

Turns an IMDb ID into the localized (Russian) title, the original title and
the release year, which are what torrent indexers match on.

API Documentation: https://developers.themoviedb.org/3
"""

from enum import Enum
from typing import Any

import httpx
import structlog

from src.config import settings
from src.search.models import ResolvedTitle

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

TMDB_BASE_URL = "https://api.themoviedb.org/3"

# Request timeout in seconds
REQUEST_TIMEOUT = 10.0

# Localized titles come from ru-RU, original titles from en-US details
LOCALIZED_LANGUAGE = "ru-RU"
ORIGINAL_LANGUAGE = "en-US"


# =============================================================================
# Enums
# =============================================================================


class MediaType(str, Enum):
    """Type of media content."""

    MOVIE = "movie"
    TV = "tv"

    @classmethod
    def from_kind(cls, media_kind: str) -> "MediaType":
        """Map a search content type ("serial", "tv", "anime"...) to a TMDB type."""
        return cls.TV if str(media_kind).lower() in ("serial", "tv", "series") else cls.MOVIE


# =============================================================================
# Exceptions
# =============================================================================


class TMDBError(Exception):
    """Base exception for TMDB API errors."""

    pass


class TMDBNotFoundError(TMDBError):
    """Raised when a resource is not found on TMDB."""

    pass


class TMDBRateLimitError(TMDBError):
    """Raised when TMDB rate limit is exceeded."""

    def __init__(self, retry_after: int = 1):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after {retry_after} seconds.")


class TMDBAuthError(TMDBError):
    """Raised when TMDB API key is invalid."""

    pass


# =============================================================================
# Helper Functions
# =============================================================================


def _year_from_date(date_str: str | None) -> int | None:
    if not date_str or len(date_str) < 4:
        return None
    try:
        return int(date_str[:4])
    except ValueError:
        return None


# =============================================================================
# TMDB Title Resolver
# =============================================================================


class TMDBTitleResolver:
    """Resolves IMDb IDs into titles via TMDB's /find endpoint.

    All failures degrade to None so the search service can fall back to a
    free-text query.

    Example:
        async with TMDBTitleResolver() as resolver:
            title = await resolver.resolve("tt1160419", "movie")
    """

    def __init__(self, api_key: str | None = None, timeout: float = REQUEST_TIMEOUT):
        """Initialize resolver.

        Args:
            api_key: TMDB API key. Uses settings.tmdb_api_key if None.
            timeout: Request timeout in seconds.
        """
        if api_key is None and settings.tmdb_api_key is not None:
            api_key = settings.tmdb_api_key.get_secret_value()
        self._api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "TMDBTitleResolver":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"Accept": "application/json"},
        )
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, ensuring it's initialized.

        Raises:
            RuntimeError: If client not initialized (not in context manager)
        """
        if self._client is None:
            raise RuntimeError("TMDBTitleResolver must be used as async context manager")
        return self._client

    async def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make authenticated request to TMDB API.

        Raises:
            TMDBNotFoundError: Resource not found (404)
            TMDBRateLimitError: Rate limit exceeded (429)
            TMDBAuthError: Invalid API key (401)
            TMDBError: Other API errors
        """
        if not self._api_key:
            raise TMDBAuthError("TMDB API key is not configured")

        full_params: dict[str, Any] = {"api_key": self._api_key}
        if params:
            full_params.update(params)

        url = f"{TMDB_BASE_URL}{endpoint}"
        logger.debug("tmdb_request", endpoint=endpoint, params=params)

        try:
            response = await self.client.get(url, params=full_params)
        except httpx.TimeoutException as e:
            logger.warning("tmdb_timeout", endpoint=endpoint)
            raise TMDBError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("tmdb_http_error", endpoint=endpoint, error=str(e))
            raise TMDBError(f"HTTP error: {e}") from e

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as e:
                raise TMDBError(f"Invalid JSON from {endpoint}") from e

        if response.status_code == 401:
            raise TMDBAuthError("Invalid TMDB API key")
        if response.status_code == 404:
            raise TMDBNotFoundError(f"Resource not found: {endpoint}")
        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", 1))
            raise TMDBRateLimitError(retry_after)

        error_msg = response.text[:200] if response.text else "Unknown error"
        raise TMDBError(f"TMDB API error {response.status_code}: {error_msg}")

    async def find_by_imdb_id(
        self, imdb_id: str, media_type: MediaType
    ) -> tuple[MediaType, dict[str, Any]] | None:
        """Find a TMDB entry for an IMDb ID.

        The preferred media type is looked up first, then the other one,
        since indexers and TMDB disagree on what counts as a series.

        Returns:
            (media type, localized TMDB item) or None if TMDB has no match.
        """
        data = await self._request(
            f"/find/{imdb_id}",
            {"external_source": "imdb_id", "language": LOCALIZED_LANGUAGE},
        )
        order = [media_type] + [t for t in MediaType if t is not media_type]
        for candidate in order:
            results = data.get(f"{candidate.value}_results") or []
            if results:
                return candidate, results[0]
        return None

    async def get_original_title(self, tmdb_id: int, media_type: MediaType) -> str | None:
        details = await self._request(
            f"/{media_type.value}/{tmdb_id}", {"language": ORIGINAL_LANGUAGE}
        )
        if media_type is MediaType.MOVIE:
            return details.get("original_title") or details.get("title")
        return details.get("original_name") or details.get("name")

    async def resolve(self, external_id: str, media_kind: str) -> ResolvedTitle | None:
        """Resolve an IMDb ID into titles and year.

        Args:
            external_id: IMDb ID (e.g. "tt1160419").
            media_kind: Search content type ("movie", "serial", "anime").

        Returns:
            ResolvedTitle, or None when TMDB has no match or is unavailable.
        """
        media_type = MediaType.from_kind(media_kind)
        try:
            found = await self.find_by_imdb_id(external_id, media_type)
            if found is None:
                logger.info("tmdb_title_not_found", imdb_id=external_id)
                return None
            found_type, item = found

            if found_type is MediaType.MOVIE:
                russian_title = item.get("title") or item.get("original_title")
                year = _year_from_date(item.get("release_date"))
            else:
                russian_title = item.get("name") or item.get("original_name")
                year = _year_from_date(item.get("first_air_date"))

            original_title = await self.get_original_title(item["id"], found_type)
        except (TMDBError, KeyError) as e:
            logger.warning("tmdb_resolve_failed", imdb_id=external_id, error=str(e))
            return None

        resolved = ResolvedTitle(
            original_title=original_title,
            russian_title=russian_title,
            year=year,
        )
        logger.info("tmdb_title_resolved", imdb_id=external_id, **resolved.model_dump())
        return resolved
