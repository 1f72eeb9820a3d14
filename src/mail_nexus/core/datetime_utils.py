"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo

__all__ = [
    "serialize_datetime",
    "parse_datetime",
    "resolve_timezone",
    "local_now",
    "start_of_day",
    "start_of_month",
]


def serialize_datetime(value: datetime | None) -> str | None:
    """Serialise ``value`` to ISO 8601 in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 string, treating offset-less values as UTC."""
    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Return the zone called ``name``; ``None`` means system local time."""
    if not name:
        return None
    return ZoneInfo(name)


def local_now(tz: tzinfo | None = None) -> datetime:
    """Return an aware "now" in ``tz`` or in the system local zone."""
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)


def start_of_day(now: datetime) -> datetime:
    """Midnight of the day containing ``now``, in the same zone."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    """Midnight of the first day of the month containing ``now``."""
    return start_of_day(now).replace(day=1)
