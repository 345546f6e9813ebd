"""Configuration management for the channel scheduler service.

This module provides centralized configuration loading from environment variables.
Values that are fixed for the lifetime of the process are cached.

Environment Variables:
    DATABASE_URL: Database connection URL (default: local SQLite file)
    TICK_INTERVAL_SECONDS: Heartbeat period for countdown decrements (default: 1.0)
    BROADCAST_COALESCE_MS: Window for coalescing observer pushes (default: 100)
    SCHEDULER_TIMEZONE: Time zone used to evaluate recurrence rules (default: UTC)

Usage:
    from channel_scheduler.config import get_database_url, get_tick_interval_seconds

    db_url = get_database_url()
    interval = get_tick_interval_seconds()
"""

import os
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

log = structlog.get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./channels.db"
DEFAULT_TICK_INTERVAL_SECONDS = 1.0
DEFAULT_BROADCAST_COALESCE_MS = 100
DEFAULT_SCHEDULER_TIMEZONE = "UTC"

_TRUTHY = {"1", "true", "yes", "on"}


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.
    Falls back to a local SQLite file (aiosqlite driver) for development.

    Environment Variable:
        DATABASE_URL: Database connection URL

    Returns:
        Database URL with an async driver.
    """
    url = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

    return url


def get_database_echo() -> bool:
    """Whether SQLAlchemy should echo SQL statements (DATABASE_ECHO)."""
    return _get_bool("DATABASE_ECHO", False)


def get_tick_interval_seconds() -> float:
    """Get the heartbeat period in seconds from environment.

    Environment Variable:
        TICK_INTERVAL_SECONDS: Seconds between countdown ticks (default: 1.0)

    Returns:
        Tick interval in seconds (minimum 0.1, maximum 60).

    Note:
        Every tick removes exactly one second from running countdowns, so a
        value other than 1.0 only makes sense for demos and load testing.
    """
    raw = os.getenv("TICK_INTERVAL_SECONDS", str(DEFAULT_TICK_INTERVAL_SECONDS))
    try:
        interval = float(raw)
    except ValueError:
        log.warning(
            "invalid_tick_interval",
            value=raw,
            using_default=DEFAULT_TICK_INTERVAL_SECONDS,
        )
        return DEFAULT_TICK_INTERVAL_SECONDS
    return max(0.1, min(60.0, interval))


def get_broadcast_coalesce_seconds() -> float:
    """Get the broadcast coalescing window from environment.

    Environment Variable:
        BROADCAST_COALESCE_MS: Milliseconds to wait before pushing a snapshot
            so that bursts of mutations produce a single push (default: 100)

    Returns:
        Coalescing window in seconds (clamped between 0 and 5 seconds).
    """
    raw = os.getenv("BROADCAST_COALESCE_MS", str(DEFAULT_BROADCAST_COALESCE_MS))
    try:
        window_ms = int(raw)
    except ValueError:
        log.warning(
            "invalid_broadcast_coalesce_ms",
            value=raw,
            using_default=DEFAULT_BROADCAST_COALESCE_MS,
        )
        window_ms = DEFAULT_BROADCAST_COALESCE_MS
    return max(0, min(5000, window_ms)) / 1000


def get_scheduler_timezone() -> str:
    """Get the time zone name used for recurrence rules (SCHEDULER_TIMEZONE).

    Unknown zone names are logged and replaced by UTC.
    """
    name = os.getenv("SCHEDULER_TIMEZONE", DEFAULT_SCHEDULER_TIMEZONE).strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("invalid_scheduler_timezone", value=name, using_default="UTC")
        return DEFAULT_SCHEDULER_TIMEZONE
    return name


def get_heartbeat_enabled() -> bool:
    """Whether the lifespan starts the one-second heartbeat.

    Environment Variable:
        SCHEDULER_HEARTBEAT_ENABLED: "false" disables automatic ticking
            (jobs are still installed; tests drive ticks manually)
    """
    return _get_bool("SCHEDULER_HEARTBEAT_ENABLED", True)


def get_seed_demo_channels() -> bool:
    """Whether to insert the demo channel set into an empty table (SEED_DEMO_CHANNELS)."""
    return _get_bool("SEED_DEMO_CHANNELS", False)


def get_frontend_dir() -> str:
    """Get directory of the static dashboard files (FRONTEND_DIR, default: "frontend")."""
    return os.getenv("FRONTEND_DIR", "frontend")


def get_cors_origins() -> list[str]:
    """Get allowed CORS origins from environment.

    Environment Variable:
        CORS_ORIGINS: Comma-separated list of origins (default: "*")

    Returns:
        List of origin strings.
    """
    origins_str = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in origins_str.split(",") if origin.strip()]


def get_log_level() -> str:
    """Get log level name (LOG_LEVEL, default: INFO)."""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_json() -> bool:
    """Whether logs are rendered as JSON lines (LOG_JSON, default: false)."""
    return _get_bool("LOG_JSON", False)
