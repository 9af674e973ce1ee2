"""RedAPI client for searching torrents across many indexers at once.

RedAPI (Lampac) exposes a Jackett-compatible endpoint that aggregates
Russian and international trackers and annotates releases with structured
metadata (content types, seasons, voice-overs) when it can.

The client is fail-soft: indexer availability is best effort, so transport
errors, timeouts, bad statuses and malformed payloads all produce an empty
result list and a log entry instead of an exception.
"""

import math
import re
from datetime import datetime
from typing import Any

import httpx
import structlog

from src.config import settings
from src.search.heuristics import detect_quality
from src.search.models import SearchQuery, TorrentRecord

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

SEARCH_PATH = "/api/v2.0/indexers/all/results"

# Hard per-request timeout in seconds
REQUEST_TIMEOUT = 8.0

SOURCE_NAME = "RedAPI"

SIZE_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "KIB": 1024,
    "MB": 1024**2,
    "MIB": 1024**2,
    "GB": 1024**3,
    "GIB": 1024**3,
    "TB": 1024**4,
    "TIB": 1024**4,
}


# =============================================================================
# Helper Functions
# =============================================================================


def parse_size_to_bytes(size: Any) -> int:
    """Convert an indexer size value to bytes.

    Jackett-style APIs report bytes as a number, some indexers send a
    numeric string or a human-readable "4.37 GB".
    """
    if size is None or isinstance(size, bool):
        return 0
    if isinstance(size, float) and not math.isfinite(size):
        return 0
    if isinstance(size, int | float):
        return max(int(size), 0)

    size_str = str(size).replace("\xa0", " ").strip()
    if size_str.isdigit():
        return int(size_str)

    match = re.match(r"([\d.,]+)\s*(TIB|GIB|MIB|KIB|TB|GB|MB|KB|B)\b", size_str, re.IGNORECASE)
    if not match:
        return 0

    try:
        value = float(match.group(1).replace(",", "."))
        return int(value * SIZE_MULTIPLIERS[match.group(2).upper()])
    except (ValueError, OverflowError):
        return 0


def parse_publish_date(value: Any) -> datetime | None:
    """Parse an ISO-8601 publish date, returning None when unparseable."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        logger.debug("redapi_bad_publish_date", value=value)
        return None


def _to_int(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_str_set(values: Any) -> frozenset[str]:
    if not isinstance(values, list):
        return frozenset()
    return frozenset(str(v).strip().lower() for v in values if v is not None and str(v).strip())


def _to_int_set(values: Any) -> frozenset[int]:
    if not isinstance(values, list):
        return frozenset()
    seasons = set()
    for value in values:
        try:
            seasons.add(int(value))
        except (TypeError, ValueError, OverflowError):
            continue
    return frozenset(seasons)


def _format_indexer_quality(value: Any) -> str | None:
    # Info.quality is a number (1080) on most indexers, a string on some
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, int | float):
        return f"{int(value)}p"
    return str(value)


def normalize_entry(item: Any) -> TorrentRecord | None:
    """Map one raw RedAPI result into a TorrentRecord.

    Args:
        item: Entry of the `Results` array.

    Returns:
        TorrentRecord, or None for entries without a title or magnet link.
    """
    if not isinstance(item, dict):
        return None

    title = item.get("Title")
    magnet = item.get("MagnetUri")
    if not title or not magnet:
        return None
    title = str(title)

    info = item.get("Info")
    if not isinstance(info, dict):
        info = {}

    voices = info.get("voices")
    quality = detect_quality(title)

    return TorrentRecord(
        title=title,
        tracker=str(item.get("Tracker") or ""),
        source=SOURCE_NAME,
        size_bytes=parse_size_to_bytes(item.get("Size")),
        seeders=_to_int(item.get("Seeders")),
        peers=_to_int(item.get("Peers")),
        magnet_uri=str(magnet),
        publish_date=parse_publish_date(item.get("PublishDate")),
        category=str(item.get("CategoryDesc") or ""),
        detected_quality=quality.tier,
        hdr=quality.hdr,
        hevc=quality.hevc,
        content_types=_to_str_set(info.get("types")),
        seasons=_to_int_set(info.get("seasons")),
        details_url=item.get("Details") or None,
        indexer_quality=_format_indexer_quality(info.get("quality")),
        voices=tuple(str(v) for v in voices) if isinstance(voices, list) else (),
    )


def parse_results(data: Any) -> list[TorrentRecord]:
    """Normalize a full RedAPI response payload.

    A payload without a `Results` array is treated as an empty result.
    """
    raw_results = data.get("Results") if isinstance(data, dict) else None
    if not isinstance(raw_results, list):
        logger.warning("redapi_malformed_response", payload_type=type(data).__name__)
        return []

    records: list[TorrentRecord] = []
    skipped = 0
    for item in raw_results:
        try:
            record = normalize_entry(item)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning("redapi_parse_item_failed", error=str(e))
            record = None
        if record is None:
            skipped += 1
            continue
        records.append(record)

    logger.info("redapi_results_parsed", count=len(records), skipped=skipped)
    return records


# =============================================================================
# RedAPI Client
# =============================================================================


class RedAPIClient:
    """Async client for the RedAPI multi-indexer search endpoint.

    Example:
        async with RedAPIClient() as client:
            records = await client.search(SearchQuery(query="Dune 2021"))
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        """Initialize RedAPI client.

        Args:
            base_url: RedAPI base URL. Uses settings.redapi_base_url if None.
            api_key: RedAPI apikey. Uses settings.redapi_api_key if None.
            timeout: Request timeout in seconds.
        """
        self.base_url = (base_url or settings.redapi_base_url).rstrip("/")
        if api_key is None and settings.redapi_api_key is not None:
            api_key = settings.redapi_api_key.get_secret_value()
        self._api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RedAPIClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized.

        Raises:
            RuntimeError: If client is not initialized (not in context manager).
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    @property
    def search_url(self) -> str:
        return f"{self.base_url}{SEARCH_PATH}"

    async def search(self, query: SearchQuery) -> list[TorrentRecord]:
        """Run one search against all indexers.

        Args:
            query: Search parameters.

        Returns:
            Normalized records in indexer order; empty on any failure.
        """
        params = query.to_params(self._api_key)
        logger.info("redapi_search", params=dict(params), url=self.search_url)

        try:
            response = await self.client.get(self.search_url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("redapi_timeout", error=str(e), timeout=self.timeout)
            return []
        except httpx.HTTPStatusError as e:
            logger.warning("redapi_http_error", status=e.response.status_code)
            return []
        except httpx.HTTPError as e:
            logger.warning("redapi_request_failed", error=str(e))
            return []
        except ValueError as e:
            logger.warning("redapi_invalid_json", error=str(e))
            return []

        return parse_results(data)


async def search_redapi(query: SearchQuery) -> list[TorrentRecord]:
    """Convenience function to run a single RedAPI search."""
    async with RedAPIClient() as client:
        return await client.search(query)
