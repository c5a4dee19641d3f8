"""Calendar-day helpers evaluated on UTC day boundaries."""

from __future__ import annotations

from datetime import UTC, date, datetime


def utc_date(value: datetime | date) -> date:
    """Return the UTC calendar date for a date or datetime.

    Naive datetimes are read as UTC. Plain dates are returned unchanged.
    """

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(UTC).date()
    return value


def days_between(earlier: datetime | date, later: datetime | date) -> int:
    """Return the number of whole days between two UTC calendar dates.

    The time of day is discarded. The result is negative when ``later`` falls
    before ``earlier``.
    """

    return (utc_date(later) - utc_date(earlier)).days
