"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import time
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_time(name: str, default: time) -> time:
    raw = os.getenv(name)
    if not raw:
        return default
    return time.fromisoformat(raw)


@dataclass(frozen=True)
class Settings:
    app_name: str = "Cafe Reservation Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = Path("data/cafe_reservations.db")
    database_timeout_seconds: float = 5.0
    reservation_buffer_minutes: int = 15
    business_hours_start: time = time(10, 0)
    business_hours_end: time = time(22, 0)
    min_party_size: int = 1
    max_party_size: int = 20
    seed_demo_data: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests call ``get_settings.cache_clear()``."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        database_path=Path(os.getenv("DATABASE_PATH", str(defaults.database_path))),
        database_timeout_seconds=float(
            os.getenv("DATABASE_TIMEOUT_SECONDS", defaults.database_timeout_seconds)
        ),
        reservation_buffer_minutes=int(
            os.getenv("RESERVATION_BUFFER_MINUTES", defaults.reservation_buffer_minutes)
        ),
        business_hours_start=_env_time("BUSINESS_HOURS_START", defaults.business_hours_start),
        business_hours_end=_env_time("BUSINESS_HOURS_END", defaults.business_hours_end),
        min_party_size=int(os.getenv("MIN_PARTY_SIZE", defaults.min_party_size)),
        max_party_size=int(os.getenv("MAX_PARTY_SIZE", defaults.max_party_size)),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", defaults.seed_demo_data),
    )
