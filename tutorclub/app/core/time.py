"""Time utilities for timezone-aware UTC datetimes and billing months.

A billing month is always written ``YYYY-MM``. Month boundaries are computed in
UTC so that every caller agrees on which payments fall inside a month.
"""

import re
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from tutorclub.app.core.errors import ValidationFailed

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def validate_month(month: str | None) -> str:
    if not month or not MONTH_PATTERN.match(month):
        raise ValidationFailed(f"Invalid month '{month}', expected YYYY-MM")
    return month


def month_start(month: str) -> date:
    validate_month(month)
    year, mon = month.split("-")
    return date(int(year), int(mon), 1)


def next_month_start(month: str) -> date:
    start = month_start(month)
    if start.month == 12:
        return date(start.year + 1, 1, 1)
    return date(start.year, start.month + 1, 1)


def month_end(month: str) -> date:
    return next_month_start(month) - timedelta(days=1)


def month_bounds_utc(month: str) -> tuple[datetime, datetime]:
    """Return the half-open [start, end) UTC interval covering the month."""
    start = datetime.combine(month_start(month), time.min, tzinfo=UTC)
    end = datetime.combine(next_month_start(month), time.min, tzinfo=UTC)
    return start, end


def month_of(value: datetime | date) -> str:
    if isinstance(value, datetime):
        value = as_utc(value)
    return f"{value.year:04d}-{value.month:02d}"


def current_month(tz_name: str | None = None) -> str:
    if tz_name is None:
        from tutorclub.app.core.settings import get_settings

        tz_name = get_settings().business_timezone
    return month_of(datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None))
