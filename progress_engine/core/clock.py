"""Clock and calendar helpers.

The engine never reads the wall clock directly: services take a Clock so
tests can pin "now".  Streaks are counted in calendar days of the
learner's recorded time zone; progress expectations are counted in whole
elapsed days since enrollment.
"""

from __future__ import annotations

import datetime
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from progress_engine.core.errors import ValidationError

_ONE_DAY = datetime.timedelta(days=1)


class Clock(Protocol):
    def now(self) -> datetime.datetime: ...


class SystemClock:
    def now(self) -> datetime.datetime:
        return datetime.datetime.now(datetime.UTC)


class FixedClock:
    """Clock pinned to a settable instant.  Used by tests."""

    def __init__(self, now: datetime.datetime) -> None:
        self._now = as_utc(now)

    def now(self) -> datetime.datetime:
        return self._now

    def set(self, now: datetime.datetime) -> None:
        self._now = as_utc(now)

    def advance(self, **delta: float) -> datetime.datetime:
        self._now = self._now + datetime.timedelta(**delta)
        return self._now


def as_utc(ts: datetime.datetime) -> datetime.datetime:
    """Normalize to an aware UTC datetime.  Naive values are taken as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=datetime.UTC)
    return ts.astimezone(datetime.UTC)


def resolve_zone(time_zone: str | None) -> ZoneInfo | datetime.timezone:
    if not time_zone:
        return datetime.UTC
    try:
        return ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"unknown time zone {time_zone!r}") from None


def to_local_date(ts: datetime.datetime, time_zone: str | None = None) -> datetime.date:
    """Calendar date of ts in the given IANA zone (UTC when None)."""
    return as_utc(ts).astimezone(resolve_zone(time_zone)).date()


def days_between(
    start: datetime.datetime | datetime.date, end: datetime.datetime | datetime.date
) -> int:
    """Whole days from start to end, floored.  Negative when end precedes start."""
    if isinstance(start, datetime.datetime) and isinstance(end, datetime.datetime):
        return (as_utc(end) - as_utc(start)) // _ONE_DAY
    if isinstance(start, datetime.datetime):
        start = as_utc(start).date()
    if isinstance(end, datetime.datetime):
        end = as_utc(end).date()
    return (end - start).days


def add_days(day: datetime.date, n: int) -> datetime.date:
    return day + datetime.timedelta(days=n)
