"""Canonical recurrence rule value, its RFC 5545 text form and description.

A `RecurrenceRule` carries the frequency and the by-constraints of a stored
rule; its anchor (dtstart) is not part of the value because evaluation
rebinds it to the start of the queried day. Sub-daily frequencies can be
represented but never expanded.

Rule text is read by dateutil's ``rrulestr``; this module only converts the
accepted parts into the rule value and writes them back in canonical order.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple, Union

from dateutil import parser as date_parser
from dateutil import rrule

from habit_schedule.core.errors import RuleEvaluationError, RuleParseError
from habit_schedule.core.time_context import end_of_day

INVALID_TEXT = "invalid"

FREQ_NAMES = {
    rrule.YEARLY: "YEARLY",
    rrule.MONTHLY: "MONTHLY",
    rrule.WEEKLY: "WEEKLY",
    rrule.DAILY: "DAILY",
    rrule.HOURLY: "HOURLY",
    rrule.MINUTELY: "MINUTELY",
    rrule.SECONDLY: "SECONDLY",
}
_FREQ_BY_NAME = {name: freq for freq, name in FREQ_NAMES.items()}

UNSUPPORTED_FREQUENCIES = frozenset({rrule.HOURLY, rrule.MINUTELY, rrule.SECONDLY})

WEEKDAYS = {
    "MO": rrule.MO,
    "TU": rrule.TU,
    "WE": rrule.WE,
    "TH": rrule.TH,
    "FR": rrule.FR,
    "SA": rrule.SA,
    "SU": rrule.SU,
}
_WEEKDAY_CODES = {wd.weekday: code for code, wd in WEEKDAYS.items()}
_WEEKDAY_LONG = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
_MONTH_LONG = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_UNIT_NAMES = {
    rrule.YEARLY: "year",
    rrule.MONTHLY: "month",
    rrule.WEEKLY: "week",
    rrule.DAILY: "day",
    rrule.HOURLY: "hour",
    rrule.MINUTELY: "minute",
    rrule.SECONDLY: "second",
}

# +1MO (RFC 5545) or MO(+1) (dateutil's own spelling)
_BYDAY_RE = re.compile(
    r"^(?:([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)"
    r"|(MO|TU|WE|TH|FR|SA|SU)\(([+-]?\d{1,2})\))$"
)
# (low, high) per integer list part; zero is never allowed where low < 0
_LIST_RANGES = {
    "BYMONTHDAY": (-31, 31),
    "BYMONTH": (1, 12),
    "BYYEARDAY": (-366, 366),
    "BYWEEKNO": (-53, 53),
    "BYSETPOS": (-366, 366),
    "BYHOUR": (0, 23),
    "BYMINUTE": (0, 59),
    "BYSECOND": (0, 59),
}
# rrulestr needs an anchor; evaluation rebinds it to the queried day
_PARSE_ANCHOR = datetime(2000, 1, 1)

Until = Union[datetime, date]


@dataclass(frozen=True)
class RecurrenceRule:
    """Canonical recurring-schedule descriptor.

    ``freq`` is a dateutil frequency constant (None only for INVALID).
    ``byweekday`` holds dateutil weekday objects, optionally with an ordinal
    (``FR(-1)`` is the last Friday of the period). ``until`` is either an
    aware UTC instant or a floating local date, which bounds the rule through
    the end of that day in whatever timezone it is evaluated in.
    """

    freq: Optional[int]
    interval: int = 1
    byweekday: Tuple[rrule.weekday, ...] = ()
    bymonthday: Tuple[int, ...] = ()
    bymonth: Tuple[int, ...] = ()
    bysetpos: Tuple[int, ...] = ()
    count: Optional[int] = None
    until: Optional[Until] = None
    wkst: Optional[rrule.weekday] = None
    invalid: bool = False
    byyearday: Tuple[int, ...] = ()
    byweekno: Tuple[int, ...] = ()
    byhour: Tuple[int, ...] = ()
    byminute: Tuple[int, ...] = ()
    bysecond: Tuple[int, ...] = ()

    @property
    def frequency_name(self) -> str:
        """RFC 5545 frequency name, or ``invalid``."""
        if self.invalid or self.freq is None:
            return INVALID_TEXT
        return FREQ_NAMES[self.freq]

    def _until_for(self, dtstart):
        until = self.until
        if until is None or isinstance(until, datetime):
            return until
        if dtstart.tzinfo is None:
            return datetime.combine(until, time.max)
        return end_of_day(until, dtstart.tzinfo)

    def to_rrule(self, dtstart: datetime, count: Optional[int] = None):
        """Build a dateutil rrule anchored at ``dtstart``.

        ``count`` overrides the stored COUNT. A floating UNTIL date is bound
        to the end of that day in the anchor's timezone. Raises
        RuleEvaluationError for INVALID or sub-daily rules and for anchors
        dateutil rejects.
        """
        if is_unsupported_rule(self):
            raise RuleEvaluationError(
                f"Cannot expand {self.frequency_name} recurrence rule"
            )
        kwargs = {
            "dtstart": dtstart,
            "interval": self.interval,
            "count": self.count if count is None else count,
            "until": self._until_for(dtstart),
        }
        if kwargs["until"] is not None and kwargs["count"] is not None:
            # dateutil deprecates COUNT together with UNTIL; UNTIL wins
            kwargs["count"] = None
        if self.wkst is not None:
            kwargs["wkst"] = self.wkst
        for name in (
            "byweekday",
            "bymonthday",
            "bymonth",
            "bysetpos",
            "byyearday",
            "byweekno",
            "byhour",
            "byminute",
            "bysecond",
        ):
            if getattr(self, name):
                kwargs[name] = getattr(self, name)
        try:
            return rrule.rrule(self.freq, **kwargs)
        except (ValueError, TypeError) as exc:
            raise RuleEvaluationError(f"Cannot expand rule: {exc}") from exc


INVALID = RecurrenceRule(freq=None, invalid=True)


def is_unsupported_rule(rule: RecurrenceRule) -> bool:
    """Return True for INVALID rules and sub-daily frequencies."""
    return rule.invalid or rule.freq is None or rule.freq in UNSUPPORTED_FREQUENCIES


def _parse_int(key, value, low=None, high=None, allow_zero=True):
    try:
        number = int(value)
    except ValueError as exc:
        raise RuleParseError(f"{key} must be an integer, got {value!r}") from exc
    if (low is not None and number < low) or (high is not None and number > high):
        raise RuleParseError(f"{key} out of range: {number}")
    if not allow_zero and number == 0:
        raise RuleParseError(f"{key} must not be zero")
    return number


def _parse_int_list(key, value):
    if value is None:
        return ()
    low, high = _LIST_RANGES[key]
    return tuple(
        _parse_int(key, item, low, high, allow_zero=low >= 0)
        for item in value.split(",")
    )


def _parse_weekday(value):
    m = _BYDAY_RE.match(value)
    if not m:
        raise RuleParseError(f"Invalid BYDAY value: {value!r}")
    ordinal, code = m.group(1) or m.group(4), m.group(2) or m.group(3)
    wd = WEEKDAYS[code]
    if ordinal:
        n = _parse_int("BYDAY", ordinal, -53, 53, allow_zero=False)
        return wd(n)
    return wd


def _parse_until(value):
    """Read UNTIL as a UTC instant, or as a floating date when it has no time."""
    try:
        until = date_parser.parse(value)
    except (ValueError, OverflowError) as exc:
        raise RuleParseError(f"Invalid UNTIL value: {value!r}") from exc
    if "T" not in value:
        return until.date()
    if until.tzinfo is None:
        until = until.replace(tzinfo=timezone.utc)
    return until.astimezone(timezone.utc)


def _rule_line(text):
    """Return the single RRULE body of ``text``, ignoring DTSTART lines."""
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    bodies = []
    for line in lines:
        upper = line.upper()
        if upper.startswith("DTSTART"):
            continue
        if upper.startswith("RRULE:"):
            line = line[len("RRULE:") :]
        bodies.append("".join(line.split()).upper())
    if len(bodies) != 1:
        raise RuleParseError(f"Expected exactly one recurrence rule in {text!r}")
    return bodies[0]


def _could_fall_on(rule, day):
    """Return True if the date parts of ``rule`` admit ``day``, any weekday."""
    year_length = 366 if calendar.isleap(day.year) else 365
    month_length = calendar.monthrange(day.year, day.month)[1]
    yearday = day.timetuple().tm_yday
    if rule.bymonth and day.month not in rule.bymonth:
        return False
    if rule.bymonthday and not {day.day, day.day - month_length - 1} & set(
        rule.bymonthday
    ):
        return False
    if rule.byyearday and not {yearday, yearday - year_length - 1} & set(
        rule.byyearday
    ):
        return False
    nth = {wd.n for wd in rule.byweekday if wd.n}
    if nth and all(wd.n for wd in rule.byweekday) and rule.freq in (
        rrule.MONTHLY,
        rrule.YEARLY,
    ):
        if rule.freq == rrule.MONTHLY or rule.bymonth:
            index, length = day.day, month_length
        else:
            index, length = yearday, year_length
        if not {(index - 1) // 7 + 1, -((length - index) // 7 + 1)} & nth:
            return False
    return True


def require_possible_dates(rule: RecurrenceRule) -> RecurrenceRule:
    """Reject rules whose month, month-day, year-day and nth-weekday parts
    can never name the same day (``BYMONTH=2;BYMONTHDAY=30``).

    dateutil would search such a rule up to year 9999 before giving up.
    One leap and one common year cover every combination of these parts.
    """
    if not (
        rule.bymonth
        or rule.bymonthday
        or rule.byyearday
        or any(wd.n for wd in rule.byweekday)
    ):
        return rule
    for year in (2024, 2025):
        first = date(year, 1, 1)
        for offset in range(366 if calendar.isleap(year) else 365):
            if _could_fall_on(rule, first + timedelta(days=offset)):
                return rule
    raise RuleParseError(f"Recurrence rule never occurs: {serialize_rule(rule)}")


def parse_rrule_string(text: str) -> RecurrenceRule:
    """Parse RFC 5545 recurrence text into a RecurrenceRule.

    The literal ``invalid`` parses to INVALID. Sub-daily frequencies are
    returned as parsed; rejecting them is the normalizer's job. Raises
    RuleParseError on text ``rrulestr`` refuses, on out-of-range values and
    on rules that can never occur.
    """
    if not isinstance(text, str) or not text.strip():
        raise RuleParseError("Empty recurrence rule")
    if text.strip().lower() == INVALID_TEXT:
        return INVALID
    body = _rule_line(text)
    try:
        rrule.rrulestr(body, dtstart=_PARSE_ANCHOR, ignoretz=True)
    except (ValueError, TypeError, OverflowError) as exc:
        raise RuleParseError(f"Invalid recurrence rule {text!r}: {exc}") from exc

    # rrulestr accepted the body, so every part is a single KEY=VALUE pair
    values = dict(part.split("=") for part in body.split(";") if part)
    if "BYEASTER" in values:
        raise RuleParseError("BYEASTER is not an RFC 5545 rule part")
    get = values.get
    rule = RecurrenceRule(
        freq=_FREQ_BY_NAME[values["FREQ"]],
        interval=_parse_int("INTERVAL", get("INTERVAL", "1"), 1),
        byweekday=tuple(_parse_weekday(v) for v in get("BYDAY", "").split(",") if v),
        bymonthday=_parse_int_list("BYMONTHDAY", get("BYMONTHDAY")),
        bymonth=_parse_int_list("BYMONTH", get("BYMONTH")),
        bysetpos=_parse_int_list("BYSETPOS", get("BYSETPOS")),
        count=_parse_int("COUNT", values["COUNT"], 1) if "COUNT" in values else None,
        until=_parse_until(values["UNTIL"]) if "UNTIL" in values else None,
        wkst=_parse_weekday(values["WKST"]) if "WKST" in values else None,
        byyearday=_parse_int_list("BYYEARDAY", get("BYYEARDAY")),
        byweekno=_parse_int_list("BYWEEKNO", get("BYWEEKNO")),
        byhour=_parse_int_list("BYHOUR", get("BYHOUR")),
        byminute=_parse_int_list("BYMINUTE", get("BYMINUTE")),
        bysecond=_parse_int_list("BYSECOND", get("BYSECOND")),
    )
    return require_possible_dates(rule)


def _weekday_token(wd):
    code = _WEEKDAY_CODES[wd.weekday]
    return f"{wd.n}{code}" if wd.n else code


def _ints(values):
    return ",".join(str(v) for v in values)


def _until_token(until):
    if isinstance(until, datetime):
        return f"{until.astimezone(timezone.utc):%Y%m%dT%H%M%SZ}"
    return f"{until:%Y%m%d}"


def serialize_rule(rule: RecurrenceRule) -> str:
    """Return the canonical RFC 5545 text of ``rule`` (``invalid`` for INVALID)."""
    if rule.invalid or rule.freq is None:
        return INVALID_TEXT
    parts = [f"FREQ={FREQ_NAMES[rule.freq]}"]
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.wkst is not None:
        parts.append(f"WKST={_weekday_token(rule.wkst)}")
    if rule.byweekday:
        parts.append("BYDAY=" + ",".join(_weekday_token(wd) for wd in rule.byweekday))
    for key, values in (
        ("BYMONTHDAY", rule.bymonthday),
        ("BYMONTH", rule.bymonth),
        ("BYYEARDAY", rule.byyearday),
        ("BYWEEKNO", rule.byweekno),
        ("BYHOUR", rule.byhour),
        ("BYMINUTE", rule.byminute),
        ("BYSECOND", rule.bysecond),
        ("BYSETPOS", rule.bysetpos),
    ):
        if values:
            parts.append(f"{key}={_ints(values)}")
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    if rule.until is not None:
        parts.append(f"UNTIL={_until_token(rule.until)}")
    return ";".join(parts)


def ordinal(n: int) -> str:
    """Return ``1st``, ``22nd``, ``last`` or ``2nd to last`` style text."""
    if n == -1:
        return "last"
    if n < 0:
        return f"{ordinal(-n)} to last"
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _join(items):
    return ", ".join(items)


_WORKWEEK = {0, 1, 2, 3, 4}


def describe_rule(rule: RecurrenceRule) -> str:
    """Return a human-readable description such as ``every 2 weeks on Monday``."""
    if rule.invalid or rule.freq is None:
        return INVALID_TEXT
    unit = _UNIT_NAMES[rule.freq]
    plain_days = all(not wd.n for wd in rule.byweekday)
    days = {wd.weekday for wd in rule.byweekday}

    if (
        rule.freq in (rrule.DAILY, rrule.WEEKLY)
        and rule.interval == 1
        and plain_days
        and days == _WORKWEEK
        and len(rule.byweekday) == 5
    ):
        text = "every weekday"
    elif rule.interval == 1:
        text = f"every {unit}"
    else:
        text = f"every {rule.interval} {unit}s"

    if rule.byweekday and text != "every weekday":
        names = []
        for wd in rule.byweekday:
            name = _WEEKDAY_LONG[wd.weekday]
            names.append(f"the {ordinal(wd.n)} {name}" if wd.n else name)
        text += " on " + _join(names)
    if rule.bymonth:
        text += " in " + _join(_MONTH_LONG[m - 1] for m in rule.bymonth)
    if rule.bymonthday:
        text += " on the " + _join(
            "last day" if d == -1 else ordinal(d) for d in rule.bymonthday
        )
    if rule.byyearday:
        text += " on the " + _join(ordinal(d) for d in rule.byyearday)
        text += " day of the year"
    if rule.byweekno:
        text += " in week " + _join(str(w) for w in rule.byweekno)
    if rule.bysetpos:
        text += " (" + _join(ordinal(p) for p in rule.bysetpos) + " match)"
    if rule.byhour:
        minutes = rule.byminute or (0,)
        text += " at " + _join(f"{h:02d}:{m:02d}" for h in rule.byhour for m in minutes)
    if rule.count is not None:
        text += f" for {rule.count} {'time' if rule.count == 1 else 'times'}"
    if rule.until is not None:
        until = rule.until
        text += f" until {_MONTH_LONG[until.month - 1]} {until.day}, {until.year}"
    return text
