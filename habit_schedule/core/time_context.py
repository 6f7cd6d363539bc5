"""Timezone-aware conversions between stored instants and local days.

Stored values are absolute instants serialized as ISO-8601 UTC strings.
Everything the engine reasons about (today, same-day, day boundaries) is
computed on the wall-clock calendar of an explicit IANA timezone. The only
non-deterministic input is the clock; callers inject one so that "today"
can be pinned in tests.
"""

import logging
import os
import zoneinfo
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Union

from habit_schedule.core.errors import InvalidTimezoneError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
TimezoneLike = Union[str, tzinfo]
DayLike = Union[date, datetime, str]

# str.format templates (luxon-style presets used for display)
DATE_MED = "{0:%b} {0.day}, {0.year}"
DATE_MED_WITH_WEEKDAY = "{0:%a}, {0:%b} {0.day}, {0.year}"
DATETIME_MED = "{0:%b} {0.day}, {0.year}, {0:%H}:{0:%M}"


def system_clock() -> datetime:
    """Return the current instant (aware, UTC)."""
    return datetime.now(timezone.utc)


def fixed_clock(instant) -> Clock:
    """Return a clock that always reports ``instant``.

    ``instant`` may be an aware datetime or an ISO timestamp string.
    """
    if isinstance(instant, str):
        instant = parse_instant(instant)
    if instant.tzinfo is None:
        raise ValueError("fixed_clock requires an aware datetime")
    frozen = instant.astimezone(timezone.utc)
    return lambda: frozen


def resolve_timezone(tz: TimezoneLike) -> tzinfo:
    """Return a tzinfo for an IANA name (or pass a tzinfo through).

    Raises InvalidTimezoneError for unknown or malformed names.
    """
    if isinstance(tz, tzinfo):
        return tz
    if not isinstance(tz, str) or not tz.strip():
        raise InvalidTimezoneError(f"Invalid timezone: {tz!r}")
    name = tz.strip()
    if name.upper() == "UTC":
        name = "UTC"
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(f"Invalid timezone: {tz!r}") from exc


# get_timezone is a best-effort lookup and falls back rather than failing.
# pylint: disable=broad-exception-caught
def get_timezone():
    """Return the configured timezone or the system local timezone.

    Reads `TIME_ZONE` from the environment and returns a `zoneinfo.ZoneInfo`
    when it resolves. Falls back to the system local timezone, or UTC in
    extreme failure cases.
    """
    tz_name = os.environ.get("TIME_ZONE")
    if tz_name:
        try:
            return resolve_timezone(tz_name)
        except InvalidTimezoneError:
            logger.warning(
                "Invalid TIME_ZONE '%s', falling back to system local", tz_name
            )
    try:
        return datetime.now().astimezone().tzinfo
    except Exception:  # pragma: no cover - extremely unlikely
        return timezone.utc


def parse_instant(timestamp: str) -> datetime:
    """Parse a stored ISO-8601 timestamp into an aware UTC datetime.

    Naive timestamps are read as UTC, which is how instants are written.
    """
    value = timestamp.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def get_now(clock: Clock = system_clock, tz: TimezoneLike = "UTC") -> datetime:
    """Return the clock's current instant viewed in ``tz``."""
    return clock().astimezone(resolve_timezone(tz))


def get_now_in_milliseconds(clock: Clock = system_clock) -> str:
    """Return the current instant as an epoch milliseconds string."""
    return d2n(get_now(clock))


def get_iso_date(moment: datetime, tz: TimezoneLike) -> str:
    """Return the ``yyyy-mm-dd`` calendar date of ``moment`` in ``tz``."""
    return moment.astimezone(resolve_timezone(tz)).date().isoformat()


def get_today_in_timezone(tz: TimezoneLike, clock: Clock = system_clock) -> str:
    """Return today's ISO date string as seen in ``tz``."""
    return get_iso_date(get_now(clock, tz), tz)


def t2d(timestamp: str, tz: TimezoneLike) -> datetime:
    """Stored timestamp -> zoned moment (storage read)."""
    return parse_instant(timestamp).astimezone(resolve_timezone(tz))


def d2t(moment: datetime, tz: TimezoneLike = "UTC") -> str:
    """Zoned moment -> ISO timestamp (storage write, UTC unless told otherwise)."""
    if moment.tzinfo is None:
        raise ValueError("d2t requires an aware datetime")
    return moment.astimezone(resolve_timezone(tz)).isoformat()


def d2s(moment: datetime, tz: TimezoneLike, fmt: str = DATETIME_MED) -> str:
    """Render ``moment`` in ``tz`` for display using a str.format template."""
    return fmt.format(moment.astimezone(resolve_timezone(tz)))


def d2s_date(moment: datetime) -> str:
    """Render the date portion of ``moment`` in its own zone."""
    return DATE_MED.format(moment)


def d2n(moment: datetime) -> str:
    """Zoned moment -> epoch milliseconds string."""
    return str(int(moment.timestamp() * 1000))


def is_same_date(a: datetime, b: datetime) -> bool:
    """Compare the wall-clock calendar dates of two moments.

    Each moment is read in its own zone, so callers must put both in the
    zone whose day boundary they mean.
    """
    return a.date() == b.date()


def to_local_date(day: DayLike, tz: TimezoneLike) -> date:
    """Coerce a date, aware datetime or ISO string to a calendar date in ``tz``.

    ISO strings carrying a time component are read as instants; bare
    ``yyyy-mm-dd`` strings are already local dates.
    """
    if isinstance(day, datetime):
        if day.tzinfo is None:
            return day.date()
        return day.astimezone(resolve_timezone(tz)).date()
    if isinstance(day, date):
        return day
    if "T" in day:
        return t2d(day, tz).date()
    return date.fromisoformat(day.strip())


def start_of_day(day: DayLike, tz: TimezoneLike) -> datetime:
    """Return the first instant of ``day`` in ``tz``.

    A local midnight skipped by a DST gap resolves to the first wall-clock
    time that exists on that day.
    """
    zone = resolve_timezone(tz)
    local = datetime.combine(to_local_date(day, tz), time.min, tzinfo=zone)
    return local.astimezone(timezone.utc).astimezone(zone)


def end_of_day(day: DayLike, tz: TimezoneLike) -> datetime:
    """Return the last representable instant of ``day`` in ``tz``."""
    next_day = to_local_date(day, tz) + timedelta(days=1)
    boundary = start_of_day(next_day, tz).astimezone(timezone.utc)
    return (boundary - timedelta(microseconds=1)).astimezone(resolve_timezone(tz))


def normalize_completion_date(value: str, tz: TimezoneLike) -> str:
    """Return a stored completion as an ISO instant.

    Full timestamps are returned as is; legacy ``yyyy-mm-dd`` values become
    the UTC instant of that local midnight.
    """
    if "T" in value:
        return value
    return d2t(start_of_day(value, tz))
