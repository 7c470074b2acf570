from __future__ import annotations

import datetime

import pytest

from progress_engine.core.clock import (
    FixedClock,
    SystemClock,
    add_days,
    as_utc,
    days_between,
    resolve_zone,
    to_local_date,
)
from progress_engine.core.errors import ValidationError

UTC = datetime.UTC


def test_system_clock_is_aware_utc() -> None:
    now = SystemClock().now()
    assert now.tzinfo is not None
    assert now.utcoffset() == datetime.timedelta(0)


def test_fixed_clock_set_and_advance() -> None:
    clock = FixedClock(datetime.datetime(2026, 1, 1, 9, 0))
    assert clock.now() == datetime.datetime(2026, 1, 1, 9, 0, tzinfo=UTC)
    clock.advance(days=1, hours=2)
    assert clock.now() == datetime.datetime(2026, 1, 2, 11, 0, tzinfo=UTC)
    clock.set(datetime.datetime(2025, 6, 1, tzinfo=UTC))
    assert clock.now().year == 2025


def test_as_utc_treats_naive_as_utc_and_converts_aware() -> None:
    assert as_utc(datetime.datetime(2026, 1, 1, 12)).tzinfo is UTC
    plus_two = datetime.timezone(datetime.timedelta(hours=2))
    converted = as_utc(datetime.datetime(2026, 1, 1, 12, tzinfo=plus_two))
    assert converted == datetime.datetime(2026, 1, 1, 10, tzinfo=UTC)


def test_to_local_date_uses_learner_zone() -> None:
    # 03:30 UTC is still the previous evening in New York
    ts = datetime.datetime(2026, 3, 10, 3, 30, tzinfo=UTC)
    assert to_local_date(ts) == datetime.date(2026, 3, 10)
    assert to_local_date(ts, "America/New_York") == datetime.date(2026, 3, 9)


def test_resolve_zone_rejects_unknown_zone() -> None:
    with pytest.raises(ValidationError, match="unknown time zone"):
        resolve_zone("Mars/Olympus_Mons")


def test_resolve_zone_defaults_to_utc() -> None:
    assert resolve_zone(None) is UTC
    assert resolve_zone("") is UTC


# ---- days_between ----


def test_days_between_floors_partial_days() -> None:
    start = datetime.datetime(2026, 1, 1, 12, tzinfo=UTC)
    assert days_between(start, start + datetime.timedelta(days=14, hours=23)) == 14
    assert days_between(start, start + datetime.timedelta(days=15)) == 15


def test_days_between_negative_when_end_precedes_start() -> None:
    start = datetime.datetime(2026, 1, 10, tzinfo=UTC)
    assert days_between(start, start - datetime.timedelta(hours=1)) == -1


def test_days_between_dates() -> None:
    assert days_between(datetime.date(2026, 1, 1), datetime.date(2026, 1, 31)) == 30


def test_add_days() -> None:
    assert add_days(datetime.date(2026, 2, 28), 1) == datetime.date(2026, 3, 1)
