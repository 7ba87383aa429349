# File: src/caixapilot/utils/datetime.py
"""Timezone-aware datetime utilities for Brazilian local time."""

import time
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

# Brasília time: UTC-3 year-round (no DST since 2019)
APP_TIMEZONE = ZoneInfo("America/Sao_Paulo")


def now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def to_local(value: datetime) -> datetime:
    """Convert to Brasília time; naive values are taken as UTC (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(APP_TIMEZONE)
