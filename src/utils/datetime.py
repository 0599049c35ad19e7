# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the school portal backend.

All timestamps are stored in UTC and all Python datetimes are
timezone-aware, so naive and aware values are never mixed.

Usage:
------
    from src.utils.datetime import utc_now

    now = utc_now()
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

import time
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    SQLite hands back naive datetimes, PostgreSQL aware ones.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def hours_ago(hours: int) -> datetime:
    """Get a datetime N hours ago from now.

    Args:
        hours: Number of hours to go back.

    Returns:
        Timezone-aware UTC datetime.
    """
    return utc_now() - timedelta(hours=hours)


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None

    dt_utc = ensure_utc(dt)
    return dt_utc.isoformat()


def monotonic_ms() -> float:
    """Monotonic clock reading in milliseconds, for measuring durations."""
    return time.monotonic() * 1000.0


def elapsed_ms(start_ms: float) -> int:
    """Whole milliseconds elapsed since a monotonic_ms() reading."""
    return max(0, int(round(monotonic_ms() - start_ms)))
