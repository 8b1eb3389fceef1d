"""Timezone helpers shared by ETA formatting and report headers."""
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Manila"


def get_timezone(name: str | None = None) -> ZoneInfo:
    """Return the configured display timezone.

    Falls back to ``PIPELINE_TIMEZONE`` from the loaded config, then to
    :data:`DEFAULT_TIMEZONE` when configuration is not available (tests, CLI
    help output).
    """

    if name:
        return ZoneInfo(name)
    from logistics_hub.config import ConfigError, get_config

    try:
        return ZoneInfo(get_config().pipeline_timezone)
    except ConfigError:
        return ZoneInfo(DEFAULT_TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def aware_now(tz: ZoneInfo | None = None) -> datetime:
    """Return ``datetime.now`` in the configured timezone."""

    return datetime.now(tz or get_timezone())


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
