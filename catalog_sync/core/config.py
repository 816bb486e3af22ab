"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_BACKENDS = {"postgres", "memory"}


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be used."""


@dataclass(frozen=True)
class Settings:
    database_url: str
    catalog_backend: str = "postgres"
    server_port: int = 8080
    duplicate_threshold: int = 50
    sync_max_items: int = 100
    sync_time_budget_seconds: int = 540
    discovery_partner_id: str = "smart-discovery-agent"
    default_currency: str = "CHF"
    log_level: str = "INFO"


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    catalog_backend = os.getenv("CATALOG_BACKEND", "postgres").strip().lower() or "postgres"
    if catalog_backend not in _BACKENDS:
        raise ConfigError(f"CATALOG_BACKEND must be one of {sorted(_BACKENDS)}, got {catalog_backend!r}")

    server_port = _get_int_env("SERVER_PORT", _get_int_env("PORT", 8080))
    duplicate_threshold = _get_int_env("DUPLICATE_THRESHOLD", 50)
    sync_max_items = _get_int_env("SYNC_MAX_ITEMS", 100)
    sync_time_budget_seconds = _get_int_env("SYNC_TIME_BUDGET_SECONDS", 540)
    discovery_partner_id = os.getenv("DISCOVERY_PARTNER_ID", "").strip() or "smart-discovery-agent"
    default_currency = (os.getenv("DEFAULT_CURRENCY", "").strip() or "CHF").upper()
    log_level = (os.getenv("LOG_LEVEL", "").strip() or "INFO").upper()

    if catalog_backend == "postgres" and not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if sync_max_items <= 0:
        raise ConfigError("SYNC_MAX_ITEMS must be positive")

    return Settings(
        database_url=database_url,
        catalog_backend=catalog_backend,
        server_port=server_port,
        duplicate_threshold=duplicate_threshold,
        sync_max_items=sync_max_items,
        sync_time_budget_seconds=sync_time_budget_seconds,
        discovery_partner_id=discovery_partner_id,
        default_currency=default_currency,
        log_level=log_level,
    )
