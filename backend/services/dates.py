"""Timestamp parsing shared by the Jira and GitHub adapters."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

# Jira: "2024-10-31T12:11:56.289-0400"; GitHub: "2024-10-31T16:11:56Z"
_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
]


def parse_local_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an API timestamp keeping the offset it was written with.

    Jira reports dates in the server's own zone, so the calendar day of the
    result matches the date printed in the source string. Naive values are
    assumed to be UTC. Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str) or not value.strip():
            return None
        parsed = None
        for fmt in _FORMATS:
            try:
                parsed = datetime.strptime(value.strip(), fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an API timestamp into an aware UTC datetime."""
    parsed = parse_local_datetime(value)
    if parsed is None:
        return None
    return parsed.astimezone(timezone.utc)


def local_date(value: Union[str, datetime, None]) -> Optional[date]:
    """Calendar day of a timestamp as written, ignoring conversion to UTC."""
    parsed = parse_local_datetime(value)
    return parsed.date() if parsed is not None else None


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string, raising ValueError on anything else."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def day_key(value: Union[date, datetime]) -> str:
    # datetimes keep the day of their own offset
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def each_day(start: date, end: date) -> list:
    """Every calendar day from start to end, both inclusive."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
