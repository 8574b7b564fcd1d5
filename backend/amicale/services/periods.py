"""
Booking period parsing and calendar arithmetic.

All periods are normalised to UTC. Calendar days are derived from the UTC
date of each bound, so a stay from 2024-07-01 to 2024-07-03 blocks exactly
three days whatever the client's timezone offset was.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from amicale.core.errors import BookingError

_datetime_adapter = TypeAdapter(datetime)


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime

    def overlaps(self, other: "Period") -> bool:
        return overlaps(self, other)

    def days(self) -> list[str]:
        return dates_in_range(self.start, self.end)

    def as_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


def as_utc(value: datetime) -> datetime:
    """Naive datetimes (as returned by SQLite) are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_bound(value: Any) -> datetime:
    try:
        return as_utc(_datetime_adapter.validate_python(value))
    except ValidationError:
        raise BookingError("invalid_dates")


def parse_period(raw: Any) -> Period:
    """
    Validate a user-supplied booking period.

    Accepts a mapping with `start`/`end`, a JSON string of one, or None.
    Raises invalid_period when the period is missing, malformed or not
    strictly increasing, and invalid_dates when a bound is not a date.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise BookingError("invalid_period")

    if not isinstance(raw, dict):
        raise BookingError("invalid_period")

    start, end = raw.get("start"), raw.get("end")
    if not start or not end:
        raise BookingError("invalid_period")

    period = Period(start=_parse_bound(start), end=_parse_bound(end))
    if period.start >= period.end:
        raise BookingError("invalid_period")
    return period


def overlaps(a: Period, b: Period) -> bool:
    """Inclusive on both ends: touching bounds count as an overlap."""
    return a.start <= b.end and a.end >= b.start


def dates_in_range(start: datetime, end: datetime) -> list[str]:
    """Every calendar day from start to end inclusive, as YYYY-MM-DD."""
    current = as_utc(start).date()
    last = as_utc(end).date()
    days = []
    while current <= last:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def period_of(booking) -> Optional[Period]:
    if booking.booking_start is None or booking.booking_end is None:
        return None
    return Period(start=as_utc(booking.booking_start), end=as_utc(booking.booking_end))
