"""Conversions between local dates and the backend's nanosecond time unit."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
NANOS_PER_MILLI = 1_000_000

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _as_datetime(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    # Plain dates are midnight UTC
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def to_nanos(value: Union[date, datetime, None]) -> Optional[int]:
    """floor(milliseconds since epoch * 1_000_000); None passes through."""
    if value is None:
        return None
    millis = (_as_datetime(value) - EPOCH) // timedelta(milliseconds=1)
    return millis * NANOS_PER_MILLI


def from_nanos(nanos: int) -> datetime:
    """Backend time → aware UTC datetime (microsecond precision)."""
    return EPOCH + timedelta(microseconds=int(nanos) // 1000)


def format_date(nanos: int) -> str:
    return from_nanos(nanos).strftime(DATE_FORMAT)


def format_timestamp(nanos: int) -> str:
    return from_nanos(nanos).strftime(TIMESTAMP_FORMAT)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD form value. Empty → None, garbage → ValueError."""
    if value is None or not value.strip():
        return None
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def now_nanos() -> int:
    return to_nanos(datetime.now(timezone.utc))
