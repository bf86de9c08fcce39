"""Utility functions for time handling.

All timestamps are UTC and timezone-aware. Persist them as ISO-8601 strings
with an explicit offset ("+00:00") via iso_now() / to_iso(); string
comparison on these columns is then chronological.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def iso_now() -> str:
    """Return current UTC time as an ISO8601 string (timezone-aware)."""
    return utc_now().isoformat()


def to_iso(dt: datetime) -> str:
    """Normalise *dt* to UTC and render it the same way iso_now() does."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def iso_cutoff(now: datetime, *, days: int = 0, hours: int = 0) -> str:
    """ISO timestamp for the start of a trailing window ending at *now*."""
    return to_iso(now - timedelta(days=days, hours=hours))


def utc_date(dt: datetime | None = None) -> str:
    """Calendar date (YYYY-MM-DD) of *dt* in UTC, defaulting to now."""
    dt = dt or utc_now()
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date().isoformat()


def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce value to datetime, returning None on failure.

    Args:
        value: String or datetime to coerce

    Returns:
        Datetime in timezone.utc or None if invalid
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    else:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed
