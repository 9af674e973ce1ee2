"""Media metadata module.

Provides title resolution for external IDs:
- TMDB (The Movie Database) maps IMDb IDs to localized and original titles
"""

from src.media.tmdb import (
    MediaType,
    TMDBAuthError,
    TMDBError,
    TMDBNotFoundError,
    TMDBRateLimitError,
    TMDBTitleResolver,
)

__all__ = [
    "MediaType",
    "TMDBTitleResolver",
    "TMDBError",
    "TMDBAuthError",
    "TMDBNotFoundError",
    "TMDBRateLimitError",
]
