"""Tests for timezone conversions, day boundaries and the injected clock."""

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from habit_schedule.core import time_context as tc
from habit_schedule.core.errors import InvalidTimezoneError
from tests.test_util import NY


def test_round_trip_keeps_the_instant():
    """Reading then writing a stored timestamp does not move the instant."""
    stored = "2025-03-10T04:30:00+00:00"
    zoned = tc.t2d(stored, NY)
    assert zoned.hour == 0 and zoned.minute == 30
    assert tc.d2t(zoned) == stored
    assert tc.t2d(tc.d2t(zoned), "Asia/Tokyo") == zoned


def test_parse_instant_accepts_z_and_naive():
    """A trailing Z and naive timestamps are both read as UTC."""
    assert tc.parse_instant("2025-03-10T04:30:00Z") == datetime(
        2025, 3, 10, 4, 30, tzinfo=timezone.utc
    )
    assert tc.parse_instant("2025-03-10T04:30:00") == datetime(
        2025, 3, 10, 4, 30, tzinfo=timezone.utc
    )


def test_today_depends_on_timezone():
    """The same instant is a different calendar day in different zones."""
    clock = tc.fixed_clock("2025-03-10T03:00:00Z")
    assert tc.get_today_in_timezone(NY, clock) == "2025-03-09"
    assert tc.get_today_in_timezone("UTC", clock) == "2025-03-10"
    assert tc.get_today_in_timezone("Asia/Tokyo", clock) == "2025-03-10"


def test_same_date_uses_zoned_day_boundary():
    """Instants 20 hours apart are the same day in New York but not in UTC."""
    a = "2025-03-10T04:30:00Z"
    b = "2025-03-11T00:30:00Z"
    assert tc.is_same_date(tc.t2d(a, NY), tc.t2d(b, NY))
    assert not tc.is_same_date(tc.t2d(a, "UTC"), tc.t2d(b, "UTC"))


def test_day_boundaries_on_spring_forward():
    """The DST start day in New York is 23 hours long."""
    start = tc.start_of_day(date(2025, 3, 9), NY)
    end = tc.end_of_day(date(2025, 3, 9), NY)
    assert start.astimezone(timezone.utc) == datetime(
        2025, 3, 9, 5, tzinfo=timezone.utc
    )
    assert end.astimezone(timezone.utc) == datetime(
        2025, 3, 10, 3, 59, 59, 999999, tzinfo=timezone.utc
    )
    length = end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    assert length == timedelta(hours=23, microseconds=-1)


def test_start_of_day_when_midnight_is_skipped():
    """Santiago skips 00:00 on 2025-09-07; the day starts at 01:00."""
    start = tc.start_of_day(date(2025, 9, 7), "America/Santiago")
    assert start.hour == 1
    assert start.date() == date(2025, 9, 7)
    assert start.astimezone(timezone.utc) == datetime(
        2025, 9, 7, 4, tzinfo=timezone.utc
    )


def test_to_local_date_variants():
    """Dates, ISO strings and aware datetimes all resolve to a local date."""
    assert tc.to_local_date(date(2025, 3, 10), NY) == date(2025, 3, 10)
    assert tc.to_local_date("2025-03-10", NY) == date(2025, 3, 10)
    assert tc.to_local_date("2025-03-10T03:00:00Z", NY) == date(2025, 3, 9)
    aware = datetime(2025, 3, 10, 3, tzinfo=timezone.utc)
    assert tc.to_local_date(aware, NY) == date(2025, 3, 9)


def test_normalize_completion_date():
    """Legacy date-only completions become the UTC instant of local midnight."""
    assert tc.normalize_completion_date("2025-03-10", NY) == "2025-03-10T04:00:00+00:00"
    stamp = "2025-03-10T15:00:00Z"
    assert tc.normalize_completion_date(stamp, NY) == stamp


def test_display_helpers():
    """Display strings render in the requested zone."""
    moment = tc.t2d("2025-03-10T15:05:00Z", "UTC")
    assert tc.d2s(moment, NY, tc.DATE_MED_WITH_WEEKDAY) == "Mon, Mar 10, 2025"
    assert tc.d2s(moment, NY) == "Mar 10, 2025, 11:05"
    assert tc.d2s_date(moment) == "Mar 10, 2025"
    assert tc.d2n(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)) == "1000"


def test_fixed_clock_and_now():
    """A fixed clock pins 'now' and rejects naive datetimes."""
    clock = tc.fixed_clock(datetime(2025, 3, 10, 15, tzinfo=timezone.utc))
    assert tc.get_now(clock, NY).hour == 11
    assert tc.get_now_in_milliseconds(clock) == tc.d2n(clock())
    with pytest.raises(ValueError):
        tc.fixed_clock(datetime(2025, 3, 10, 15))


def test_system_clock_is_aware():
    """The real clock returns an aware UTC datetime."""
    assert tc.system_clock().utcoffset() == timedelta(0)


def test_resolve_timezone():
    """Names resolve to ZoneInfo; bad names raise InvalidTimezoneError."""
    assert tc.resolve_timezone(NY) == ZoneInfo(NY)
    assert tc.resolve_timezone("utc") == ZoneInfo("UTC")
    assert tc.resolve_timezone(timezone.utc) is timezone.utc
    for bad in ("Invalid/Timezone", "", None, "../etc/passwd"):
        with pytest.raises(InvalidTimezoneError):
            tc.resolve_timezone(bad)


def test_get_timezone_from_env(monkeypatch):
    """TIME_ZONE selects the configured zone."""
    monkeypatch.setenv("TIME_ZONE", "Europe/Madrid")
    assert tc.get_timezone() == ZoneInfo("Europe/Madrid")


def test_get_timezone_invalid(monkeypatch, caplog):
    """An invalid TIME_ZONE logs a warning and falls back to system local."""
    monkeypatch.setenv("TIME_ZONE", "Invalid/Timezone")
    caplog.set_level(logging.WARNING)
    tz = tc.get_timezone()
    assert tz is not None
    assert any("Invalid TIME_ZONE" in r.getMessage() for r in caplog.records)
