"""
Central configuration for the Matchday Predictor service.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


def default_season(now: datetime | None = None) -> int:
    """Seasons start in August; before August the previous year's season is current."""
    now = now or datetime.now(timezone.utc)
    return now.year if now.month >= 8 else now.year - 1


class Settings(BaseSettings):
    """Root settings for the API service and its background tasks."""

    model_config = SettingsConfigDict(
        env_prefix="MP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log line")

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]

    # ── Upstream provider ────────────────────────────────────
    football_data_base_url: str = "https://api.football-data.org/v4"
    football_data_token: str = ""
    competition: str = "PL"
    season: Optional[int] = None
    upstream_timeout_s: float = 10.0
    upstream_connect_timeout_s: float = 5.0

    @model_validator(mode="after")
    def use_token_fallback(self) -> "Settings":
        """Use FOOTBALL_DATA_TOKEN from env when MP_FOOTBALL_DATA_TOKEN is not set."""
        if self.football_data_token:
            return self
        raw = os.environ.get("FOOTBALL_DATA_TOKEN") or os.environ.get("VITE_FOOTBALL_DATA_TOKEN")
        if raw:
            self.football_data_token = raw.strip()
        return self

    # ── Cache / gameweek detection ───────────────────────────
    cache_ttl_s: float = 60.0
    detection_window_days: int = 14

    # ── Live refresh ─────────────────────────────────────────
    live_refresh_enabled: bool = True
    live_refresh_interval_s: float = 120.0
    live_window_past_days: int = 2
    live_window_future_days: int = 10

    # ── League ───────────────────────────────────────────────
    prize_stake: float = 5.0

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def current_season(self) -> int:
        return self.season if self.season is not None else default_season()

    @property
    def has_credential(self) -> bool:
        return bool(self.football_data_token)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
