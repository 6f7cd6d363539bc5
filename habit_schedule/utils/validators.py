"""Validator utilities for incoming habit records and timezone names.

Follows the ``(ok, value)`` convention: a validator returns ``(True,
value)`` when the input is usable and ``(False, None)`` otherwise, so that
callers can report bad records without raising.
"""

from typing import Any, Optional, Tuple

from habit_schedule.core.errors import InvalidTimezoneError
from habit_schedule.core.models import Habit
from habit_schedule.core.time_context import resolve_timezone

_REQUIRED_TEXT_FIELDS = ("id", "name")


def validate_timezone_name(name: Any) -> Tuple[bool, Optional[str]]:
    """Return (ok, name) if ``name`` is a resolvable IANA timezone."""
    if not isinstance(name, str):
        return False, None
    try:
        resolve_timezone(name)
    except InvalidTimezoneError:
        return False, None
    return True, name.strip()


def _valid_target(value):
    if value is None:
        return True
    # bool is an int subclass; reject it explicitly
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_habit_record(record: Any) -> Tuple[bool, Optional[Habit]]:
    """Return (ok, habit) if ``record`` looks like a stored habit.

    Requires non-empty ``id`` and ``name``, a string ``frequency`` (when
    present), a list of string ``completions`` and a non-negative integer
    target. The schedule itself is not checked: bad rules are a legitimate
    stored state and degrade during evaluation.
    """
    if not isinstance(record, dict):
        return False, None
    for key in _REQUIRED_TEXT_FIELDS:
        value = record.get(key)
        if value is None or not str(value).strip():
            return False, None
    frequency = record.get("frequency", "")
    if frequency is not None and not isinstance(frequency, str):
        return False, None
    completions = record.get("completions", [])
    if not isinstance(completions, (list, tuple)) or not all(
        isinstance(c, str) for c in completions
    ):
        return False, None
    target = record.get("targetCompletions", record.get("target_completions"))
    if not _valid_target(target):
        return False, None
    return True, Habit.from_dict(record)
