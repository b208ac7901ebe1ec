"""
Datetime utilities.

Provides timezone-aware datetime functions and the canonical UTC
calendar-day window used by daily snapshots.
"""

from datetime import UTC, date, datetime, time, timedelta

from chainpulse.utils.exceptions import ValidationError


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_day(value: date | datetime | str) -> date:
    """
    Parse a calendar day.

    Args:
        value: date, datetime (its UTC date is used) or ISO "YYYY-MM-DD" string

    Returns:
        Calendar date

    Raises:
        ValidationError: If the string is not a valid ISO date
    """
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}. Expected YYYY-MM-DD") from exc


def day_window(day: date) -> tuple[datetime, datetime]:
    """
    Half-open UTC window [00:00:00.000, next day 00:00:00.000) for a day.

    Returns:
        Tuple of (inclusive start, exclusive end)
    """
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


def trailing_window(delta: timedelta, now: datetime | None = None) -> datetime:
    """Start of a trailing window ending at ``now``."""
    return (now or utc_now()) - delta


def to_millis(delta: timedelta) -> int:
    """Convert a timedelta to whole milliseconds."""
    return delta // timedelta(milliseconds=1)
