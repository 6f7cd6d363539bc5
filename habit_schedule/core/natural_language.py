"""Free-text input: recurrence phrases and one-off due dates.

Recurrence phrases ("every 2 weeks on monday and friday", "every month on
the 31st", "every year on january 1") are parsed into a RecurrenceRule.
Due-date phrases ("tomorrow", "next friday") are resolved with dateparser
relative to the current time in the caller's timezone.
"""

import logging
import re
from datetime import datetime, time

import dateparser
from dateutil import parser as date_parser
from dateutil import rrule

from habit_schedule.core.errors import RuleParseError
from habit_schedule.core.rules import RecurrenceRule, require_possible_dates
from habit_schedule.core.time_context import get_now, resolve_timezone, system_clock
from habit_schedule.utils.aliases import DUE_MAP, lookup_alias

logger = logging.getLogger(__name__)

_UNITS = {
    "day": rrule.DAILY,
    "week": rrule.WEEKLY,
    "month": rrule.MONTHLY,
    "year": rrule.YEARLY,
    "hour": rrule.HOURLY,
    "minute": rrule.MINUTELY,
    "min": rrule.MINUTELY,
    "second": rrule.SECONDLY,
    "sec": rrule.SECONDLY,
}
_ADVERBS = {
    "daily": rrule.DAILY,
    "weekly": rrule.WEEKLY,
    "monthly": rrule.MONTHLY,
    "yearly": rrule.YEARLY,
    "annually": rrule.YEARLY,
    "hourly": rrule.HOURLY,
}
# Weekday mapping: full and short English names to dateutil weekdays
_WEEKDAY_NAMES = {
    "monday": rrule.MO,
    "mon": rrule.MO,
    "tuesday": rrule.TU,
    "tue": rrule.TU,
    "tues": rrule.TU,
    "wednesday": rrule.WE,
    "wed": rrule.WE,
    "thursday": rrule.TH,
    "thu": rrule.TH,
    "thur": rrule.TH,
    "thurs": rrule.TH,
    "friday": rrule.FR,
    "fri": rrule.FR,
    "saturday": rrule.SA,
    "sat": rrule.SA,
    "sunday": rrule.SU,
    "sun": rrule.SU,
}
_MONTH_NAMES = {
    "january": 1,
    "jan": 1,
    "february": 2,
    "feb": 2,
    "march": 3,
    "mar": 3,
    "april": 4,
    "apr": 4,
    "may": 5,
    "june": 6,
    "jun": 6,
    "july": 7,
    "jul": 7,
    "august": 8,
    "aug": 8,
    "september": 9,
    "sep": 9,
    "sept": 9,
    "october": 10,
    "oct": 10,
    "november": 11,
    "nov": 11,
    "december": 12,
    "dec": 12,
}
_ORDINAL_WORDS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "last": -1,
}
_ORDINAL_RE = re.compile(r"^(\d{1,2})(st|nd|rd|th)?$")
_NUMBER_WORDS = {"one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "other": 2}
_WORKWEEK = (rrule.MO, rrule.TU, rrule.WE, rrule.TH, rrule.FR)
_WEEKEND = (rrule.SA, rrule.SU)
_FILLERS = {"and", "the", "of"}
_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?(am|pm)?$")
_NAMED_TIMES = {"noon": 12, "midnight": 0}
# dateparser reads a bare weekday as the next one; "next friday" it does not
_RELATIVE_WEEKDAY_RE = re.compile(
    r"^(?:next|this|coming)\s+(" + "|".join(_WEEKDAY_NAMES) + r")$", re.IGNORECASE
)


def _singular(token):
    if len(token) > 3 and token.endswith("s") and token[:-1] in _UNITS:
        return token[:-1]
    if token.endswith("s") and token[:-1] in _WEEKDAY_NAMES:
        return token[:-1]
    return token


def _tokenize(text):
    return [t for t in re.split(r"[\s,]+", text.strip().lower()) if t]


class _RecurrenceTextParser:
    """Recursive-descent reader over the lower-cased tokens of a phrase."""

    def __init__(self, text, clock):
        self._text = text
        self._clock = clock
        self._tokens = _tokenize(text)
        self._pos = 0
        self.freq = None
        self.interval = 1
        self.byweekday = []
        self.bymonthday = []
        self.bymonth = []
        self.byhour = []
        self.byminute = []
        self.count = None
        self.until = None

    def _peek(self):
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _next(self):
        token = self._peek()
        if token is None:
            self._fail("unexpected end of text")
        self._pos += 1
        return token

    def _fail(self, reason):
        raise RuleParseError(f"Could not parse recurrence {self._text!r}: {reason}")

    def parse(self):
        """Return the RecurrenceRule described by the phrase."""
        head = self._next()
        if head in _ADVERBS:
            self.freq = _ADVERBS[head]
        elif head == "every":
            self._parse_every()
        else:
            self._fail(f"unexpected {head!r}")
        while self._peek() is not None:
            self._parse_clause()
        rule = RecurrenceRule(
            freq=self.freq,
            interval=self.interval,
            byweekday=tuple(self.byweekday),
            bymonthday=tuple(self.bymonthday),
            bymonth=tuple(self.bymonth),
            count=self.count,
            until=self.until,
            byhour=tuple(self.byhour),
            byminute=tuple(self.byminute),
        )
        return require_possible_dates(rule)

    def _parse_every(self):
        token = self._next()
        if token.isdigit() or token in _NUMBER_WORDS:
            self.interval = int(token) if token.isdigit() else _NUMBER_WORDS[token]
            if self.interval < 1:
                self._fail("interval must be positive")
            token = self._next()
        token = _singular(token)
        if token in _UNITS:
            self.freq = _UNITS[token]
        elif token in ("weekday", "weekdays") and self.interval == 1:
            self.freq = rrule.WEEKLY
            self.byweekday.extend(_WORKWEEK)
        elif token in ("weekend", "weekends") and self.interval == 1:
            self.freq = rrule.WEEKLY
            self.byweekday.extend(_WEEKEND)
        elif token in _WEEKDAY_NAMES:
            self.freq = rrule.WEEKLY
            self.byweekday.append(_WEEKDAY_NAMES[token])
            self._weekday_list()
        elif token in _MONTH_NAMES:
            self.freq = rrule.YEARLY
            self.bymonth.append(_MONTH_NAMES[token])
            self._month_list()
        else:
            self._fail(f"unknown unit {token!r}")

    def _weekday_list(self):
        while True:
            token = self._peek()
            if token in _FILLERS - {"the"}:
                self._pos += 1
                continue
            if token is not None and _singular(token) in _WEEKDAY_NAMES:
                self._pos += 1
                self.byweekday.append(_WEEKDAY_NAMES[_singular(token)])
                continue
            return

    def _month_list(self):
        while True:
            token = self._peek()
            if token == "and":
                self._pos += 1
                continue
            if token in _MONTH_NAMES:
                self._pos += 1
                self.bymonth.append(_MONTH_NAMES[token])
                continue
            return

    def _ordinal(self, token):
        if token in _ORDINAL_WORDS:
            return _ORDINAL_WORDS[token]
        m = _ORDINAL_RE.match(token or "")
        if not m:
            return None
        value = int(m.group(1))
        if not 1 <= value <= 31:
            self._fail(f"day {value} out of range")
        return value

    def _parse_clause(self):
        token = self._next()
        if token in _FILLERS:
            return
        if token == "on":
            self._parse_on()
        elif token == "in":
            month = self._next()
            if month not in _MONTH_NAMES:
                self._fail(f"unknown month {month!r}")
            self.bymonth.append(_MONTH_NAMES[month])
            self._month_list()
        elif token == "for":
            times = self._next()
            if not times.isdigit() or int(times) < 1:
                self._fail(f"invalid count {times!r}")
            self.count = int(times)
            if self._peek() in ("time", "times"):
                self._pos += 1
        elif token == "until":
            self._parse_until()
        elif token == "at":
            self._parse_time()
        else:
            self._fail(f"unexpected {token!r}")

    def _parse_time(self):
        """Read ``9``, ``9am``, ``9:30 pm``, ``21:00``, ``noon`` or ``midnight``."""
        token = self._next()
        if token in _NAMED_TIMES:
            self.byhour.append(_NAMED_TIMES[token])
            return
        m = _TIME_RE.match(token)
        if not m:
            self._fail(f"invalid time {token!r}")
        hour, minute, meridiem = m.groups()
        if meridiem is None and self._peek() in ("am", "pm"):
            meridiem = self._next()
        hour = int(hour)
        if meridiem is not None:
            if not 1 <= hour <= 12:
                self._fail(f"invalid time {token!r}")
            hour = hour % 12 + (12 if meridiem == "pm" else 0)
        elif hour > 23:
            self._fail(f"invalid time {token!r}")
        self.byhour.append(hour)
        if minute is not None:
            if int(minute) > 59:
                self._fail(f"invalid time {token!r}")
            self.byminute.append(int(minute))

    def _parse_on(self):
        token = self._next()
        if token == "the":
            token = self._next()
        if _singular(token) in _WEEKDAY_NAMES:
            self.byweekday.append(_WEEKDAY_NAMES[_singular(token)])
            self._weekday_list()
            return
        if token in _MONTH_NAMES:
            self.bymonth.append(_MONTH_NAMES[token])
            day = self._ordinal(self._next())
            if day is None or day < 0:
                self._fail(f"expected a day after {token!r}")
            self.bymonthday.append(day)
            return
        self._ordinal_list(token)

    def _ordinal_list(self, token):
        """Read ``1st and 15th`` (month days) or ``last friday`` (nth weekday)."""
        while token is not None:
            n = self._ordinal(token)
            if n is None:
                self._fail(f"expected a day, got {token!r}")
            following = self._peek()
            if following is not None and _singular(following) in _WEEKDAY_NAMES:
                self._pos += 1
                self.byweekday.append(_WEEKDAY_NAMES[_singular(following)](n))
            elif following == "day" and n == -1:
                self._pos += 1
                self.bymonthday.append(-1)
            elif n < 0:
                self._fail("'last' must be followed by a weekday or 'day'")
            else:
                self.bymonthday.append(n)
            nxt = self._peek()
            if nxt == "and":
                self._pos += 1
                nxt = self._peek()
            if nxt == "the":
                self._pos += 1
                nxt = self._peek()
            if nxt is not None and (
                nxt in _ORDINAL_WORDS or _ORDINAL_RE.match(nxt)
            ):
                self._pos += 1
                token = nxt
            else:
                token = None

    def _parse_until(self):
        rest = " ".join(self._tokens[self._pos :])
        self._pos = len(self._tokens)
        # a missing year or month is filled from the injected clock
        today = datetime.combine(get_now(self._clock).date(), time.min)
        try:
            until = date_parser.parse(rest, default=today)
        except (ValueError, OverflowError) as exc:
            raise RuleParseError(
                f"Could not parse recurrence {self._text!r}: invalid until date"
            ) from exc
        # floating date: inclusive through the end of that day wherever the
        # rule is evaluated
        self.until = until.date()


def parse_recurrence_text(text: str, clock=system_clock) -> RecurrenceRule:
    """Parse a free-text recurrence phrase.

    Raises RuleParseError when the phrase is not understood. Sub-daily
    phrases ("every hour") parse successfully; the normalizer rejects them.
    ``clock`` supplies the year of an until date written without one.
    """
    if not isinstance(text, str) or not text.strip():
        raise RuleParseError("Empty recurrence text")
    return _RecurrenceTextParser(text, clock).parse()


def _dateparser_timezone(zone, now):
    """Name ``zone`` for dateparser: its IANA key, else its UTC offset."""
    key = getattr(zone, "key", None)
    if key:
        return key
    if not now.utcoffset():
        return "UTC"
    return now.strftime("UTC%z")


def parse_natural_language_date(text: str, tz, clock=system_clock):
    """Resolve a due-date phrase to a moment in ``tz``.

    Keywords in `DUE_MAP` are expanded first and ``next friday`` style
    phrases are read as the coming weekday. Relative phrases are read
    against the current time in ``tz`` and prefer future dates. Raises
    RuleParseError("invalid rule") when the phrase cannot be resolved.
    """
    if not isinstance(text, str) or not text.strip():
        raise RuleParseError("invalid rule")
    phrase = lookup_alias(DUE_MAP, text) or text.strip()
    phrase = _RELATIVE_WEEKDAY_RE.sub(r"\1", phrase)
    zone = resolve_timezone(tz)
    now = get_now(clock, zone)
    tz_name = _dateparser_timezone(zone, now)
    due = dateparser.parse(
        phrase,
        languages=["en"],
        settings={
            "RELATIVE_BASE": now.replace(tzinfo=None),
            "TIMEZONE": tz_name,
            "TO_TIMEZONE": tz_name,
            "RETURN_AS_TIMEZONE_AWARE": True,
            "PREFER_DATES_FROM": "future",
        },
    )
    if due is None:
        logger.debug("dateparser could not resolve %r", phrase)
        raise RuleParseError("invalid rule")
    return due.astimezone(zone)
