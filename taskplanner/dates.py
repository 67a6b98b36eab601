"""Date helpers for the planner's day partitions.

Datetimes are stored as naive UTC values and rendered the way browsers
serialise them (``2025-06-15T00:00:00.000Z``).
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Tuple

from . import errors

DATE_TOKEN_RE = re.compile(r"^\d{8}$")
ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def isoformat_utc(value: datetime) -> str:
    value = to_naive_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_date_token(token: str) -> datetime:
    """Decode a ``YYYYMMDD`` path token into UTC midnight of that day."""
    if not DATE_TOKEN_RE.match(token or ""):
        raise errors.ValidationError("Invalid date format", "Date must be in YYYYMMDD format")
    try:
        return datetime.strptime(token, "%Y%m%d")
    except ValueError:
        raise errors.ValidationError("Invalid date", "The provided date is not valid")


def day_window(day: datetime) -> Tuple[datetime, datetime]:
    start = to_naive_utc(day).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + ONE_DAY
