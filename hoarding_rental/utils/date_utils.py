"""
Date and time utility functions used across the project.

Notes:
- All "UTC" helpers use timezone-aware datetimes with `timezone.utc`.
- Timestamps are persisted as naive UTC; `to_naive_utc` is the single
  conversion point used before writes and comparisons.
- Calendar arithmetic goes through `dateutil.relativedelta`, which clamps the
  day of month (Jan 31 + 1 month is Feb 28/29, Feb 29 + 1 year is Feb 28).
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from hoarding_rental.core.logging import get_logger

logger = get_logger(__name__)

UTC = timezone.utc

DateLike = Union[date, datetime, str]


class DateUtilsError(ValueError):
    """Raised when a value cannot be interpreted as a calendar date."""
    pass


def now_utc() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def today_utc() -> date:
    """Return today's date in UTC."""
    return now_utc().date()


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    - If naive, assumes it's already in UTC and only attaches tzinfo.
    - If aware, converts to UTC.
    """
    if not isinstance(dt, datetime):
        raise DateUtilsError("Input must be a datetime object")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def strip_tz(dt: datetime) -> datetime:
    """Return a naive datetime (drop timezone info) without converting."""
    if not isinstance(dt, datetime):
        raise DateUtilsError("Input must be a datetime object")

    return dt.replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Normalize any datetime to naive UTC for storage and comparison."""
    return strip_tz(to_utc(dt))


def parse_date(value: Optional[DateLike]) -> date:
    """
    Interpret a value as a UTC calendar date.

    Accepts `date`, `datetime` (aware values are converted to UTC first) and
    ISO-8601 strings. Time of day is discarded.
    """
    if value is None:
        raise DateUtilsError("Date value is missing")

    if isinstance(value, datetime):
        return to_utc(value).date() if value.tzinfo else value.date()

    if isinstance(value, date):
        return value

    if not isinstance(value, str) or not value.strip():
        raise DateUtilsError("Date string cannot be empty")

    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        logger.debug(f"Failed to parse date '{value}': {e}")
        raise DateUtilsError(f"Invalid date: {value!r}") from e

    return to_utc(parsed).date() if parsed.tzinfo else parsed.date()


def add_years(anchor: date, years: int) -> date:
    """Add whole years, clamping Feb 29 to Feb 28 in non-leap years."""
    return anchor + relativedelta(years=years)


def add_months(anchor: date, months: int) -> date:
    """Add whole months, clamping the day to the end of the target month."""
    return anchor + relativedelta(months=months)

