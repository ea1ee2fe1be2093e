from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Tuple, Union

from config import MINUTES_PER_DAY, UTC_TZ

TimeValue = Union[str, int]


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware datetime in UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC_TZ)
    return dt.astimezone(UTC_TZ)


def utc_now() -> datetime:
    return datetime.now(UTC_TZ)


def to_minutes(value: TimeValue) -> int:
    """Convert ``"HH:MM"`` (or an ISO datetime string) to minutes since midnight."""
    if isinstance(value, int):
        return value
    value = value.strip()
    if "T" in value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed.hour * 60 + parsed.minute
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def to_time_string(minutes: int) -> str:
    """Render a minute offset as ``"HH:MM"``, wrapping past midnight."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_end_time_string(minutes: int) -> str:
    """Like ``to_time_string`` but a range ending at midnight stays ``"24:00"``."""
    if minutes == MINUTES_PER_DAY:
        return "24:00"
    return to_time_string(minutes)


def time_ranges_overlap(
    a_start: TimeValue,
    a_end: TimeValue,
    b_start: TimeValue,
    b_end: TimeValue,
) -> bool:
    """Half-open interval overlap: touching ranges do not overlap."""
    return to_minutes(a_start) < to_minutes(b_end) and to_minutes(b_start) < to_minutes(a_end)


def week_bounds(reference: date) -> Tuple[date, date]:
    """Monday and Sunday of the calendar week containing ``reference``."""
    monday = reference - timedelta(days=reference.weekday())
    return monday, monday + timedelta(days=6)
