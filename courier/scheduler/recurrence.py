"""Recurrence cadences and next-fire computation.

Every cadence is a fixed-duration addition. ``daily`` is always 24 hours, so
across a daylight-saving change the wall-clock send time shifts by an hour.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Literal, TypeAlias

from courier.errors import InvalidIntervalError

NamedInterval: TypeAlias = Literal["hourly", "daily", "weekly"]
Interval: TypeAlias = NamedInterval | int

NAMED_INTERVALS: dict[str, timedelta] = {
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(weeks=1),
}


def validate_interval(interval: object) -> Interval:
    """Return *interval* unchanged if valid, else raise InvalidIntervalError.

    Valid values are a named cadence or a positive ``int`` of milliseconds.
    """
    if isinstance(interval, str):
        if interval in NAMED_INTERVALS:
            return interval  # type: ignore[return-value]
        raise InvalidIntervalError(interval)
    # bool is an int subclass; True is not a period
    if isinstance(interval, bool) or not isinstance(interval, int):
        raise InvalidIntervalError(interval)
    if interval <= 0:
        raise InvalidIntervalError(interval)
    return interval


def interval_delta(interval: Interval) -> timedelta:
    """Convert a validated interval to a timedelta."""
    if isinstance(interval, str):
        return NAMED_INTERVALS[interval]
    return timedelta(milliseconds=interval)


def next_send_time(current: datetime, interval: Interval) -> datetime:
    """Return the fire time following *current* for *interval*.

    The addition happens in UTC; the result keeps *current*'s zone.
    """
    delta = interval_delta(validate_interval(interval))
    if current.tzinfo is None:
        return current + delta
    return (current.astimezone(UTC) + delta).astimezone(current.tzinfo)
