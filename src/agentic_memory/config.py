"""Configuration management for the agentic memory core."""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
import structlog

# Reconsolidation runs longer than this are flagged in the report notes
DEFAULT_RECONSOLIDATION_SLOW_MS = 500

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Settings:
    """Settings loaded from environment variables."""

    app_env: str
    database_url: Optional[str]
    # Retry policy for repository calls
    retry_max_retries: int
    retry_initial_delay_ms: int
    retry_max_delay_ms: int
    retry_backoff_multiplier: float
    # Reconsolidation
    reconsolidation_slow_threshold_ms: int


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a valid integer. Check your .env file.") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a valid number. Check your .env file.") from exc


def load_settings() -> Settings:
    """
    Load settings from environment variables.

    Returns:
        Settings instance with all configuration values

    Raises:
        ValueError: If a variable is malformed or out of range
    """
    load_dotenv()

    app_env = os.getenv("APP_ENV", "development").strip().lower()
    database_url = os.getenv("MEMORY_DATABASE_URL") or None

    retry_max_retries = _int_env("MEMORY_RETRY_MAX_RETRIES", 3)
    retry_initial_delay_ms = _int_env("MEMORY_RETRY_INITIAL_DELAY_MS", 100)
    retry_max_delay_ms = _int_env("MEMORY_RETRY_MAX_DELAY_MS", 5000)
    retry_backoff_multiplier = _float_env("MEMORY_RETRY_BACKOFF_MULTIPLIER", 2.0)
    slow_threshold_ms = _int_env(
        "MEMORY_RECONSOLIDATION_SLOW_MS", DEFAULT_RECONSOLIDATION_SLOW_MS
    )

    if retry_max_retries < 0:
        raise ValueError("MEMORY_RETRY_MAX_RETRIES must be >= 0.")
    if retry_initial_delay_ms < 0:
        raise ValueError("MEMORY_RETRY_INITIAL_DELAY_MS must be >= 0.")
    if retry_max_delay_ms < retry_initial_delay_ms:
        raise ValueError(
            "MEMORY_RETRY_MAX_DELAY_MS must be >= MEMORY_RETRY_INITIAL_DELAY_MS."
        )
    if retry_backoff_multiplier <= 0:
        raise ValueError("MEMORY_RETRY_BACKOFF_MULTIPLIER must be > 0.")
    if slow_threshold_ms < 1:
        raise ValueError("MEMORY_RECONSOLIDATION_SLOW_MS must be >= 1.")

    if database_url is None and app_env not in {"development", "dev", "test", "local"}:
        logger.warning("memory_database_url_unset", env=app_env)

    return Settings(
        app_env=app_env,
        database_url=database_url,
        retry_max_retries=retry_max_retries,
        retry_initial_delay_ms=retry_initial_delay_ms,
        retry_max_delay_ms=retry_max_delay_ms,
        retry_backoff_multiplier=retry_backoff_multiplier,
        reconsolidation_slow_threshold_ms=slow_threshold_ms,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once
    from environment variables.

    Returns:
        Cached Settings instance
    """
    return load_settings()
