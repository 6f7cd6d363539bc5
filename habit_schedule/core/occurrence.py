"""Single-day occurrence evaluation for recurrence rules.

The rule's anchor is rebound to the start of the queried local day and
expanded to at most one occurrence. That occurrence counts only if its
wall-clock date, viewed in the caller's timezone, is the queried day.
"""

import logging
from datetime import timezone

from habit_schedule.core.rules import RecurrenceRule
from habit_schedule.core.time_context import (end_of_day, resolve_timezone,
                                              start_of_day)

logger = logging.getLogger(__name__)


def first_occurrence_from(rule: RecurrenceRule, tz, day):
    """Return the first occurrence at or after the start of ``day`` in ``tz``.

    Returns None when the rule produces nothing (exhausted COUNT/UNTIL).
    Raises RuleEvaluationError for INVALID or sub-daily rules.
    """
    anchor = start_of_day(day, tz)
    expansion = rule.to_rrule(dtstart=anchor, count=1)
    return next(iter(expansion), None)


def is_due_on(rule: RecurrenceRule, tz, day) -> bool:
    """Return True if ``rule`` has an occurrence on local ``day`` in ``tz``.

    ``day`` is a date, an ISO date string or an aware datetime (whose local
    date in ``tz`` is used). Anchor days missing from a month (the 31st)
    simply produce no match. Raises RuleEvaluationError for INVALID rules.
    """
    zone = resolve_timezone(tz)
    occurrence = first_occurrence_from(rule, zone, day)
    if occurrence is None:
        return False
    # Compare as UTC instants: aware datetimes sharing a tzinfo compare by
    # wall clock, which is wrong across a DST fold.
    low = start_of_day(day, zone).astimezone(timezone.utc)
    high = end_of_day(day, zone).astimezone(timezone.utc)
    instant = occurrence.astimezone(timezone.utc)
    due = low <= instant <= high
    logger.debug(
        "Rule occurrence %s for %s in %s: due=%s", occurrence, day, zone, due
    )
    return due
