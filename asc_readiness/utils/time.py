"""Time and datetime utilities."""

from datetime import date, datetime, time, timezone


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime; aware values are converted to UTC.

    Some drivers (SQLite) hand back naive datetimes for timezone-aware columns.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day_utc(day: date) -> datetime:
    """Return midnight UTC at the start of ``day``.

    Args:
        day: Calendar date

    Returns:
        Timezone-aware datetime at 00:00:00 UTC
    """
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def format_datetime(dt: datetime, fmt: str = "%Y-%m-%dT%H:%M:%SZ") -> str:
    """Format datetime to ISO string.

    Args:
        dt: Datetime to format
        fmt: Format string (default ISO 8601)

    Returns:
        Formatted datetime string
    """
    return ensure_utc(dt).strftime(fmt)
