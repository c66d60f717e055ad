"""Date and time-of-day normalization.

Store rows, LLM output and HTTP query strings all carry clock times in
slightly different shapes ("14:00", "14:00:00", "2 PM"). Everything is
normalized to a canonical "HH:MM" string before comparison.
"""

import re
from datetime import date, datetime, time, timedelta

from medbook.config import WEEKDAYS

_CLOCK_PATTERN = re.compile(
    r"^\s*(\d{1,2})(?::(\d{2}))?(?::(\d{2})(?:\.\d+)?)?\s*([ap]\.?m\.?)?\s*$",
    re.IGNORECASE,
)


def parse_clock(value: time | timedelta | str) -> time:
    """Convert a time-like value to ``datetime.time``.

    Seconds are dropped. Accepts ``time``, ``timedelta`` since midnight,
    and strings like "14:00", "14:00:00", "9", "2 PM", "2:30pm".

    Raises:
        ValueError: If the value cannot be interpreted as a clock time
    """
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if isinstance(value, timedelta):
        total_minutes = int(value.total_seconds() // 60)
        if not 0 <= total_minutes < 24 * 60:
            raise ValueError(f"Time offset out of range: {value}")
        return time(total_minutes // 60, total_minutes % 60)
    if not isinstance(value, str):
        raise ValueError(f"Cannot convert {type(value).__name__} to time")

    match = _CLOCK_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid time: {value!r}")

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = (match.group(4) or "").lower().replace(".", "")

    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"Invalid 12-hour time: {value!r}")
        hour = hour % 12 + (12 if meridiem == "pm" else 0)

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time: {value!r}")
    return time(hour, minute)


def normalize_time(value: time | timedelta | str) -> str:
    """Return the canonical "HH:MM" form of a time-like value.

    Examples:
        >>> normalize_time("14:00:00")
        '14:00'
        >>> normalize_time("2 PM")
        '14:00'
    """
    return parse_clock(value).strftime("%H:%M")


def to_minutes(value: time | timedelta | str) -> int:
    """Minutes since midnight for a time-like value."""
    t = parse_clock(value)
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value: date | str) -> date:
    """Convert "YYYY-MM-DD", an ISO datetime, or a date to ``datetime.date``.

    Raises:
        ValueError: If the string is not an ISO calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Cannot convert {type(value).__name__} to date")
    text = value.strip()
    if len(text) > 10 and text[10] in ("T", " "):
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)


def weekday_label(value: date | str) -> str:
    """Day-of-week label used by recurring availability rows, e.g. "Monday"."""
    return WEEKDAYS[parse_date(value).weekday()]


def normalize_weekday(value: str) -> str:
    """Canonical weekday label for user input ("monday", "Mon" -> "Monday").

    Raises:
        ValueError: If the value is not a day of the week
    """
    cleaned = value.strip().lower()
    for day in WEEKDAYS:
        if cleaned == day.lower() or (len(cleaned) >= 3 and day.lower().startswith(cleaned)):
            return day
    raise ValueError(f"Invalid day of week: {value!r}")


__all__ = [
    "from_minutes",
    "normalize_time",
    "normalize_weekday",
    "parse_clock",
    "parse_date",
    "to_minutes",
    "weekday_label",
]
