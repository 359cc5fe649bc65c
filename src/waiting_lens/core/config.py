"""Configuration using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Graph $batch accepts at most 20 sub-requests
MAX_BATCH_SIZE = 20


class WaitingLensSettings(BaseSettings):
    """Settings loaded from WAITING_LENS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WAITING_LENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Collaboration API
    graph_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0", description="Graph API base URL"
    )
    access_token: str | None = Field(default=None, description="OAuth bearer token")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout")
    requests_per_second: int = Field(default=10, ge=1, description="Client-side throttle")

    # Caching and batching
    cache_ttl_seconds: int = Field(
        default=300, ge=0, description="TTL for organizational context lookups"
    )
    avatar_debounce_ms: int = Field(
        default=50, ge=0, description="Window for coalescing avatar requests"
    )
    batch_size: int = Field(
        default=MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE, description="Sub-requests per batch"
    )

    # Dismiss/snooze persistence
    dismiss_ttl_hours: int = Field(default=24, ge=1, description="How long a dismissal lasts")
    state_file: Path = Field(
        default=Path.home() / ".waiting_lens" / "state.json",
        description="File holding the persisted dismiss/snooze blob",
    )

    # Refresh
    auto_refresh_interval_ms: int = Field(
        default=5 * 60 * 1000, ge=0, description="Periodic refresh interval (0 disables)"
    )
    trend_days: int = Field(default=14, ge=1, description="Days covered by the trend chart")

    # Default filter
    min_stale_hours: int = Field(default=48, ge=0, description="Minimum hours without a reply")
    max_results: int = Field(default=50, ge=1, description="Maximum conversations shown")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_json: bool = Field(default=False, description="Use JSON log format")

    @field_validator("graph_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be joined with a single slash."""
        return v.rstrip("/")

    @property
    def has_token(self) -> bool:
        """Check if an access token is configured."""
        return bool(self.access_token)


@lru_cache
def get_settings() -> WaitingLensSettings:
    """Get cached settings instance."""
    return WaitingLensSettings()
