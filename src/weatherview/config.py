"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Server settings
    app_host: str = Field(default="0.0.0.0", description="Server bind host")
    app_port: int = Field(default=8080, description="Server bind port")

    # Upstream API settings
    openweather_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "openweather_api_key",
            "openweathermap_api_key",
        ),
        description="OpenWeatherMap API key",
    )
    upstream_base_url: str = Field(
        default="https://api.openweathermap.org",
        description="OpenWeatherMap API base URL",
    )
    upstream_timeout_seconds: float = Field(
        default=10.0,
        description="Upstream request timeout in seconds",
        ge=0.1,
        le=60.0,
    )

    # Weather cache settings
    cache_freshness_seconds: int = Field(
        default=600,
        description="Maximum age of a cache entry that is still served",
        ge=1,
    )
    cache_retention_seconds: int = Field(
        default=3600,
        description="Maximum age of a cache entry before it is purged",
        ge=1,
    )
    cache_coordinate_precision: int | None = Field(
        default=None,
        description="Round coordinates to this many decimals for cache keys (None = exact)",
        ge=0,
        le=10,
    )
    cache_purge_interval_seconds: int = Field(
        default=0,
        description="Interval of the background purge task (0 disables it)",
        ge=0,
    )

    # Geocoding cache settings
    geocoding_cache_ttl_seconds: int = Field(
        default=86400,
        description="Geocoding result TTL in seconds",
        ge=1,
    )
    geocoding_cache_max_size: int = Field(
        default=1000,
        description="Maximum geocoding cache entries",
        ge=1,
    )

    # Normalization settings
    forecast_days: int = Field(
        default=10,
        description="Number of forecast days in every snapshot",
        ge=1,
        le=16,
    )
    forecast_padding: Literal["repeat", "jitter"] = Field(
        default="repeat",
        description="How missing forecast days are filled",
    )
    forecast_jitter_seed: int | None = Field(
        default=None,
        description="Seed for jitter padding (None = unseeded)",
    )

    # Orchestration settings
    coalesce_requests: bool = Field(
        default=False,
        description="Share one upstream fetch among concurrent requests for a key",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
