"""Date helpers shared by the models and services. Dates are stored as ISO strings."""

from datetime import date, datetime, timezone
from typing import Optional, Union

DateLike = Union[date, datetime, str]


def parse_date(value: Optional[DateLike]) -> Optional[date]:
    """Parse an ISO date (or the date part of an ISO timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value: Optional[Union[datetime, str]]) -> Optional[datetime]:
    """Parse an ISO timestamp. SQLite's CURRENT_TIMESTAMP uses a space separator."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).replace("Z", "+00:00")
    if len(text) == 10:
        return datetime.fromisoformat(text + "T00:00:00")
    return datetime.fromisoformat(text.replace(" ", "T", 1))


def month_key(value: date) -> str:
    """Return the YYYY-MM key of a date."""
    return f"{value.year:04d}-{value.month:02d}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
