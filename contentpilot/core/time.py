"""Time and timezone utilities for scheduling and log accounting."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

import pytz
from dateutil import parser as date_parser

from contentpilot.core.logging import get_logger

logger = get_logger(__name__)

DateLike = Union[str, date, datetime]


def get_current_utc_time() -> datetime:
    """Get current time in UTC."""
    return datetime.now(timezone.utc)


def normalize_timezone(dt: datetime, target_tz=timezone.utc) -> datetime:
    """
    Normalize datetime to target timezone.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(target_tz)


def get_timezone(name: Optional[str]):
    """Resolve a timezone name, falling back to UTC for unknown names."""
    if not name:
        return pytz.utc
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return pytz.utc


def local_day(dt: datetime, tz_name: Optional[str] = None) -> date:
    """Calendar day of ``dt`` in the given timezone."""
    return normalize_timezone(dt, get_timezone(tz_name)).date()


def localize(day: date, at: time, tz_name: Optional[str] = None) -> datetime:
    """Build an aware datetime for a wall-clock time on ``day`` in ``tz_name``."""
    tz = get_timezone(tz_name)
    return tz.localize(datetime.combine(day, at))


def parse_hhmm(value: str) -> time:
    """Parse an "HH:MM" string into a ``time``."""
    hours, minutes = value.strip().split(":", 1)
    return time(hour=int(hours), minute=int(minutes))


def is_date_only(value: str) -> bool:
    """True for a bare ``YYYY-MM-DD`` string."""
    return len(value.strip()) == 10 and value.strip()[4] == "-" and value.strip()[7] == "-"


def parse_timestamp(value: DateLike) -> datetime:
    """
    Parse an ISO-8601 timestamp, date or datetime into an aware UTC datetime.

    Raises:
        ValueError: if the string is not a parseable ISO-8601 value
    """
    if isinstance(value, datetime):
        return normalize_timezone(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return normalize_timezone(date_parser.isoparse(value.strip()))


def parse_range_bound(value: Optional[DateLike], end: bool = False) -> Optional[datetime]:
    """
    Parse one bound of an inclusive date range.

    A date-only end bound (``"2025-01-31"`` or a ``date``) covers the whole day,
    so it is widened to the last microsecond of that day.
    """
    if value is None:
        return None
    date_only = (isinstance(value, date) and not isinstance(value, datetime)) or (
        isinstance(value, str) and is_date_only(value)
    )
    parsed = parse_timestamp(value)
    if end and date_only:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def to_iso(dt: datetime) -> str:
    """Format an aware datetime as ISO-8601 in UTC."""
    return normalize_timezone(dt).isoformat()
