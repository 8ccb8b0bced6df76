"""Time helpers."""
from __future__ import annotations

from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_timezone(tz_name: str) -> tzinfo:
    """Return the named zone, falling back to UTC for unknown names."""

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return UTC


def format_site_time(value: datetime, tz_name: str) -> str:
    """Render ``value`` as ``YYYY-MM-DD HH:MM:SS`` in the site timezone."""

    return value.astimezone(resolve_timezone(tz_name)).strftime("%Y-%m-%d %H:%M:%S")


def to_timezone(value: datetime | None, tz_name: str) -> str | None:
    """Convert a datetime to the requested timezone and display string."""

    if value is None:
        return None
    localized = value.astimezone(resolve_timezone(tz_name))
    hour_24 = localized.hour
    hour_12 = hour_24 % 12 or 12
    meridiem = "AM" if hour_24 < 12 else "PM"
    return f"{localized.month}/{localized.day}/{localized.year} {hour_12}:{localized.minute:02d} {meridiem}"


def from_epoch(timestamp: int | float) -> datetime:
    return datetime.fromtimestamp(timestamp, UTC)
