"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from safespot.core.config import settings
    print(settings.SEISMIC_FEED_URL)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "SafeSpot Hazard Alerts"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8081",  # expo dev server
    ]

    # ── Hazard feeds ──
    SEISMIC_FEED_URL: str = (
        "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary/all_hour.geojson"
    )
    WEATHER_FEED_URL: str = (
        "https://api.weather.gov/alerts/active?status=actual&message_type=alert"
    )
    FEED_USER_AGENT: str = "SafeSpot/1.0 (hazard-alerts)"  # NWS rejects anonymous clients

    # ── Fetch policy ──
    FETCH_TIMEOUT_SECONDS: float = 10.0  # per attempt
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_BACKOFF_STEP_SECONDS: float = 1.0  # wait = step × attempt number

    # ── Refresh cadence ──
    REFRESH_INTERVAL_SECONDS: float = 300.0  # periodic silent refresh (5 min)
    ERROR_RETRY_DELAY_SECONDS: float = 30.0  # one retry after a user-initiated failure
    AUTO_REFRESH_DEFAULT: bool = True

    # ── Spatial ──
    PROXIMITY_RADIUS_KM: float = 50.0

    # ── Storage ──
    SNAPSHOT_DIR: str = "data"
    SNAPSHOT_KEY: str = "alertsData"
    SHELTERS_PATH: str = str(_PACKAGE_DIR / "data" / "shelters.json")

    # ── Severity model ──
    SEVERITY_USE_MODEL: bool = False  # False → closed-form reference formula
    SEVERITY_TRAINING_SAMPLES: int = 500
    SEVERITY_MODEL_SEED: int = 42

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
