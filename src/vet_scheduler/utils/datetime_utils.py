"""
DateTime utilities for appointment scheduling.

This module provides timezone-aware clock helpers, the canonical time-of-day
parse/format functions used at every boundary of the engine, and the minute
arithmetic the availability resolver is built on.

Times of day are always handled as ``datetime.time`` inside the package and
rendered as ``"HH:MM:SS"`` strings when they leave it.
"""

import re
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Mapping, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

TimeLike = Union[str, time, Mapping[str, Any]]
DateLike = Union[str, date]

MINUTES_PER_DAY = 24 * 60


class DayOfWeek(Enum):
    """Enumeration for days of the week (values match ``date.weekday()``)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        """Get the day of the week of a calendar date."""
        return cls(value.weekday())

    @property
    def display_name(self) -> str:
        return self.name.title()


# 24-hour forms: "HH:mm:ss", "HH:mm", "H:mm", "H"
_TIME_24H_PATTERN = re.compile(r"^(\d{1,2})(?::(\d{2}))?(?::(\d{2})(?:\.\d+)?)?$")
# 12-hour forms: "9:30 PM", "9 pm", "9:30:15am"
_TIME_12H_PATTERN = re.compile(
    r"^(\d{1,2})(?::(\d{2}))?(?::(\d{2}))?\s*([AaPp][Mm])$"
)


def get_current_utc() -> datetime:
    """Get the current UTC datetime."""
    return datetime.now(ZoneInfo("UTC"))


def get_current_local(timezone: str = "UTC") -> datetime:
    """Get the current datetime in a specific timezone."""
    return datetime.now(ZoneInfo(timezone))


def is_valid_timezone(timezone: str) -> bool:
    """Check whether a timezone name is known to the tz database."""
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def _build_time(hour: int, minute: int, second: int, original: Any) -> time:
    try:
        return time(hour, minute, second)
    except ValueError:
        raise ValueError(f"Time value out of range: {original!r}")


def parse_time_of_day(value: TimeLike) -> time:
    """
    Parse any accepted time-of-day representation into ``datetime.time``.

    Accepted forms:
        - ``datetime.time`` (microseconds are dropped)
        - ``"HH:mm:ss"``, ``"HH:mm"``, ``"H:mm"`` and ``"H"`` strings
        - 12-hour strings such as ``"9:30 PM"`` or ``"9am"``
        - mappings with ``hour``, ``minute`` and optional ``second`` keys

    Args:
        value: The value to parse

    Returns:
        Canonical time of day with second precision

    Raises:
        ValueError: If the value cannot be interpreted as a time of day
    """
    if isinstance(value, datetime):
        raise ValueError("Expected a time of day, got a datetime")

    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)

    if isinstance(value, Mapping):
        if "hour" not in value:
            raise ValueError(f"Time mapping requires an 'hour' key: {value!r}")
        try:
            hour = int(value["hour"])
            minute = int(value.get("minute") or 0)
            second = int(value.get("second") or 0)
        except (TypeError, ValueError):
            raise ValueError(f"Time mapping contains non-numeric parts: {value!r}")
        return _build_time(hour, minute, second, value)

    if not isinstance(value, str):
        raise ValueError(f"Unsupported time value: {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("Time value is empty")

    match = _TIME_12H_PATTERN.match(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        second = int(match.group(3) or 0)
        if not 1 <= hour <= 12:
            raise ValueError(f"Hour out of range for 12-hour time: {value!r}")
        is_pm = match.group(4).lower() == "pm"
        hour = hour % 12 + (12 if is_pm else 0)
        return _build_time(hour, minute, second, value)

    match = _TIME_24H_PATTERN.match(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        second = int(match.group(3) or 0)
        return _build_time(hour, minute, second, value)

    raise ValueError(
        f"Cannot parse {value!r} as a time of day. Supported formats: "
        "HH:mm:ss, HH:mm, H:mm, H, h:mm AM/PM, h AM/PM"
    )


def format_time_of_day(value: TimeLike) -> str:
    """Render a time of day in the canonical ``"HH:MM:SS"`` form."""
    return parse_time_of_day(value).strftime("%H:%M:%S")


def parse_calendar_date(value: DateLike) -> date:
    """
    Parse a calendar date from a ``date`` or an ISO ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"Invalid calendar date: {value!r} (expected YYYY-MM-DD)")
    raise ValueError(f"Unsupported date value: {value!r}")


def time_to_minutes(value: time) -> int:
    """Convert a time of day to minutes since midnight (seconds are truncated)."""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """Convert minutes since midnight back to a time of day."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range for a time of day: {minutes}")
    return time(minutes // 60, minutes % 60)


def time_interval(start: time, duration_minutes: int) -> Tuple[int, int]:
    """Half-open ``[start, end)`` interval in minutes since midnight."""
    start_minutes = time_to_minutes(start)
    return start_minutes, start_minutes + duration_minutes


def intervals_overlap(first: Tuple[int, int], second: Tuple[int, int]) -> bool:
    """Check whether two half-open minute intervals overlap."""
    return first[0] < second[1] and second[0] < first[1]


def combine_local(day: date, at: time, timezone: str = "UTC") -> datetime:
    """Build a timezone-aware datetime from a date and a time of day."""
    return datetime.combine(day, at, ZoneInfo(timezone))


def to_timezone(dt: datetime, timezone: str) -> datetime:
    """Convert a datetime to a timezone, assuming UTC for naive values."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo(timezone))


def format_duration(minutes: int) -> str:
    """Get a human-readable duration display."""
    if minutes < 60:
        return f"{minutes} minutes"
    hours = minutes // 60
    remainder = minutes % 60
    if remainder == 0:
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{hours}h {remainder}m"


def add_minutes(value: time, minutes: int) -> time:
    """Add minutes to a time of day without wrapping past midnight."""
    shifted = datetime.combine(date.min, value) + timedelta(minutes=minutes)
    if shifted.date() != date.min:
        raise ValueError("Time arithmetic crossed midnight")
    return shifted.time()
