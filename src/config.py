"""Configuration management using pydantic-settings.

All environment variables are loaded and validated here.
API keys are stored as SecretStr to prevent logging.
"""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field has a default so the search engine can run against the
    public RedAPI instance without any configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Indexer aggregator (RedAPI / Jackett-compatible)
    redapi_base_url: str = Field(
        default="http://redapi.cfhttp.top",
        description="Base URL of the RedAPI multi-indexer instance",
    )

    redapi_api_key: SecretStr | None = Field(
        default=None,
        description="RedAPI apikey parameter (optional for public instances)",
    )

    # Optional: TMDB for resolving IMDb IDs into titles
    tmdb_api_key: SecretStr | None = Field(
        default=None,
        description="The Movie Database API key used for title resolution",
    )

    # Search behaviour
    search_max_results: int = Field(
        default=20,
        description="Maximum number of records returned by one search",
        ge=1,
    )

    season_fallback_threshold: int = Field(
        default=5,
        description="Season searches with fewer results trigger an unseasoned retry",
        ge=0,
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    environment: str = Field(
        default="production",
        description="Environment name (development, production)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is development or production."""
        allowed = {"development", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v_lower

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def has_tmdb(self) -> bool:
        """Check if TMDB title resolution is configured."""
        return self.tmdb_api_key is not None

    def get_safe_dict(self) -> dict[str, str | int | None]:
        """Get configuration as dict with sensitive values masked.

        Returns:
            Dictionary with SecretStr values shown as '***'
        """
        result = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)

            if isinstance(value, SecretStr):
                result[field_name] = "***"
            elif value is None:
                result[field_name] = None
            else:
                result[field_name] = value

        return result


# Global settings instance
settings = Settings()
