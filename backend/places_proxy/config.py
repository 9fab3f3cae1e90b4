"""Configuration for the place details cache proxy.

Uses pydantic-settings for environment variable management. Every field can
be overridden with a ``PLACES_PROXY_``-prefixed environment variable or a
``.env`` file in the working directory.
"""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_REFERENCE_TIMEZONE = "America/New_York"


class Settings(BaseSettings):
    """Process-wide settings, read once at startup."""

    model_config = SettingsConfigDict(
        env_prefix="PLACES_PROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Cache
    cache_backend: Literal["file", "redis"] = Field(
        default="file",
        description="Where cache snapshots are persisted",
    )
    cache_file: str = Field(
        default="cache.json",
        description="Path of the JSON snapshot when cache_backend=file",
    )
    cache_ttl_ms: int = Field(
        default=DAY_MS,
        ge=0,
        description="Time-to-live of a cache entry in milliseconds",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL when cache_backend=redis",
    )
    redis_key: str = Field(
        default="places_proxy:cache",
        description="Redis key holding the cache snapshot",
    )

    # Request log
    db_file: str = Field(
        default="logs.sqlite",
        description="SQLite database for request accounting",
    )

    # Upstream
    details_url: str = Field(
        default="https://maps.googleapis.com/maps/api/place/details/json",
        description="Place details endpoint",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for upstream calls in seconds",
    )

    # Opening hours are judged on this clock for every place.
    reference_timezone: str = Field(
        default=DEFAULT_REFERENCE_TIMEZONE,
        description="IANA timezone used for open/closed computations",
    )

    # Server
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = Field(default="INFO")

    @field_validator("reference_timezone")
    @classmethod
    def validate_reference_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def reference_tz(self) -> ZoneInfo:
        return ZoneInfo(self.reference_timezone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
