"""Runtime settings loaded from environment variables and an optional YAML file."""

import os
from pathlib import Path
from typing import Any, Optional

try:
    import yaml
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "PyYAML is required for settings loading. Run: poetry install"
    ) from e
from pydantic import BaseModel, Field

from auction_finder.connectors.encheres_publiques.constants import DEFAULT_LISTING_URL, SITE_BASE_URL
from auction_finder.geocoding.geocoder import DEFAULT_GEOCODE_URL

# Environment variable -> settings field
_ENV_FIELDS = {
    "AUCTION_FINDER_DB": "db_path",
    "AUCTION_FINDER_LISTING_URL": "listing_url",
    "AUCTION_FINDER_GEOCODE_URL": "geocode_url",
    "AUCTION_FINDER_HEADLESS": "headless",
    "AUCTION_FINDER_MAX_SCROLLS": "max_scroll_attempts",
    "AUCTION_FINDER_POLL_INTERVAL": "poll_interval_s",
    "AUCTION_FINDER_LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    """All tunables for the scraper, worker and scheduler."""

    db_path: Path = Field(default=Path("auction_finder.db"))

    site_base_url: str = SITE_BASE_URL
    listing_url: str = DEFAULT_LISTING_URL
    partition_param: str = Field(
        default="departements",
        description="Query parameter used to restrict the listing page to one department",
    )

    headless: bool = True
    navigation_timeout_ms: int = 30_000
    ready_timeout_ms: int = 5_000
    max_scroll_attempts: int = 50
    detail_batch_size: int = 10

    geocode_url: str = DEFAULT_GEOCODE_URL
    geocode_min_interval_ms: int = 25
    geocode_min_score: float = 0.5
    geocode_max_attempts: int = 3
    geocode_retry_delay_ms: int = 1_000
    geocode_rate_limit_wait_ms: int = 5_000
    geocode_max_rate_limit_retries: int = 5

    upsert_batch_size: int = 500

    schedule_hour: int = Field(default=2, ge=0, le=23)
    schedule_timezone: str = "Europe/Paris"
    poll_interval_s: float = 5.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, base: Optional[dict[str, Any]] = None) -> "Settings":
        """Build settings from AUCTION_FINDER_* environment variables over optional base values."""
        data: dict[str, Any] = dict(base or {})
        for env_name, field_name in _ENV_FIELDS.items():
            value = os.environ.get(env_name)
            if value is not None and value.strip():
                data[field_name] = value.strip()
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from YAML. Environment variables still take precedence."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")
        return cls.from_env(base=data)
