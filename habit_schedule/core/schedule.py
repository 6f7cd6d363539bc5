"""Habit- and task-level schedule questions.

These helpers compose rule normalization and single-day occurrence
evaluation with a habit's completion history. Evaluation problems with one
habit (bad rule, unsupported frequency, malformed due date) never
propagate: the answer degrades to False and the returned `ScheduleCheck`
carries a diagnostic, which is also logged with the habit's id and name.
"""

import logging
from typing import Any, Dict, Iterable, List

from habit_schedule.core.errors import RuleEvaluationError, RuleParseError
from habit_schedule.core.models import (Habit, ScheduleCheck, TaskDue,
                                        schedule_of)
from habit_schedule.core.normalizer import (ParseError, Unsupported, Valid,
                                            normalize_rule, parse_rule)
from habit_schedule.core.occurrence import is_due_on
from habit_schedule.core.rules import INVALID_TEXT, describe_rule
from habit_schedule.core.time_context import (DATE_MED_WITH_WEEKDAY, d2s,
                                              d2t, get_now, is_same_date,
                                              normalize_completion_date,
                                              resolve_timezone, start_of_day,
                                              system_clock, t2d)
from habit_schedule.utils.aliases import INITIAL_DUE, INITIAL_RECURRENCE_RULE
from habit_schedule.utils.frequency_classes import FrequencyClasses

logger = logging.getLogger(__name__)


def _degraded(habit: Habit, reason: str) -> ScheduleCheck:
    logger.warning(
        "Failed to evaluate schedule for habit %s %s: %s", habit.id, habit.name, reason
    )
    return ScheduleCheck(False, f"habit {habit.id}: {reason}")


def get_completions_for_date(habit: Habit, day, tz) -> int:
    """Count completions whose local day in ``tz`` is ``day``.

    Legacy ``yyyy-mm-dd`` completions are read as local midnight; malformed
    entries are logged and skipped.
    """
    zone = resolve_timezone(tz)
    target = start_of_day(day, zone)
    count = 0
    for completion in habit.completions:
        try:
            moment = t2d(normalize_completion_date(completion, zone), zone)
        except (TypeError, ValueError):
            logger.warning(
                "Skipping malformed completion %r for habit %s", completion, habit.id
            )
            continue
        if is_same_date(moment, target):
            count += 1
    return count


def get_completions_for_today(habit: Habit, tz, clock=system_clock) -> int:
    """Count today's completions in ``tz``."""
    return get_completions_for_date(habit, get_now(clock, tz), tz)


def get_completed_habits_for_date(habits: Iterable[Habit], day, tz) -> List[Habit]:
    """Return the habits whose completions on ``day`` reach their target."""
    return [h for h in habits if get_completions_for_date(h, day, tz) >= h.target]


def is_habit_completed(habit: Habit, tz, clock=system_clock) -> bool:
    """True when today's completions reach the habit's target (default 1)."""
    return get_completions_for_today(habit, tz, clock) >= habit.target


def get_habit_progress(habit: Habit, tz, clock=system_clock) -> float:
    """Today's completion percentage, capped at 100."""
    return min(100.0, get_completions_for_today(habit, tz, clock) / habit.target * 100)


def check_habit_due(habit: Habit, tz, day) -> ScheduleCheck:
    """Decide whether ``habit`` is due on local ``day`` in ``tz``.

    Tasks are due on the local day of their due instant (archived or not);
    archived habits are never due; recurring habits are due when their
    normalized rule has an occurrence on ``day``.
    """
    zone = resolve_timezone(tz)
    try:
        schedule = schedule_of(habit)
    except (TypeError, ValueError) as exc:
        return _degraded(habit, f"invalid due date {habit.frequency!r} ({exc})")

    if isinstance(schedule, TaskDue):
        if schedule.due is None:
            return ScheduleCheck(False)
        return ScheduleCheck(
            is_same_date(schedule.due.astimezone(zone), start_of_day(day, zone))
        )

    if habit.archived:
        return ScheduleCheck(False)

    result = normalize_rule(schedule.text)
    if isinstance(result, ParseError):
        return _degraded(habit, f"failed to parse rrule ({result.reason})")
    if isinstance(result, Unsupported):
        return _degraded(
            habit, f"unsupported recurrence rule {schedule.text!r}"
        )
    try:
        return ScheduleCheck(is_due_on(result.rule, zone, day))
    except RuleEvaluationError as exc:
        return _degraded(habit, str(exc))


def is_habit_due(habit: Habit, tz, day) -> bool:
    """Boolean form of `check_habit_due`."""
    return check_habit_due(habit, tz, day).value


def is_habit_due_today(habit: Habit, tz, clock=system_clock) -> bool:
    """Whether ``habit`` is due today in ``tz``."""
    return is_habit_due(habit, tz, get_now(clock, tz))


def check_task_overdue(habit: Habit, tz, clock=system_clock) -> ScheduleCheck:
    """Decide whether a task's due day has passed without completion.

    Non-tasks, archived tasks and tasks without a due date are never
    overdue.
    """
    if not habit.is_task or habit.archived:
        return ScheduleCheck(False)
    zone = resolve_timezone(tz)
    try:
        schedule = schedule_of(habit)
    except (TypeError, ValueError) as exc:
        return _degraded(habit, f"invalid due date {habit.frequency!r} ({exc})")
    if schedule.due is None:
        return ScheduleCheck(False)
    due_day = schedule.due.astimezone(zone).date()
    today = get_now(clock, zone).date()
    return ScheduleCheck(
        due_day < today and not is_habit_completed(habit, zone, clock)
    )


def is_task_overdue(habit: Habit, tz, clock=system_clock) -> bool:
    """Boolean form of `check_task_overdue`."""
    return check_task_overdue(habit, tz, clock).value


def get_habit_freq(habit: Habit) -> str:
    """Return the frequency bucket name of ``habit``.

    Tasks are always ``daily``. Rules that do not normalize to a supported
    frequency are logged and bucketed as ``daily``.
    """
    if habit.is_task:
        return FrequencyClasses.DAILY.name
    result = normalize_rule(habit.frequency)
    if isinstance(result, Valid):
        return FrequencyClasses.from_rrule_freq(result.rule.freq).name
    detail = (
        result.reason
        if isinstance(result, ParseError)
        else result.rule.frequency_name
    )
    logger.error(
        "Invalid frequency: %s (habit: %s %s) (rrule: %s). Defaulting to daily",
        detail,
        habit.id,
        habit.name,
        habit.frequency,
    )
    return FrequencyClasses.DAILY.name


def get_frequency_display_text(frequency, is_recur_rule: bool, tz) -> str:
    """Human-readable schedule text.

    Recurring rules are described (``invalid`` when they do not parse);
    tasks show their due day, or the default placeholder when unset.
    """
    if is_recur_rule:
        try:
            return describe_rule(parse_rule(frequency or INITIAL_RECURRENCE_RULE))
        except RuleParseError:
            return INVALID_TEXT
    if not frequency:
        return INITIAL_DUE
    try:
        return d2s(t2d(frequency, tz), tz, DATE_MED_WITH_WEEKDAY)
    except ValueError:
        return INVALID_TEXT


def habit_status(habit: Habit, tz, clock=system_clock) -> Dict[str, Any]:
    """Return the schedule summary of one habit for today in ``tz``."""
    due = check_habit_due(habit, tz, get_now(clock, tz))
    overdue = check_task_overdue(habit, tz, clock)
    diagnostics = [c.diagnostic for c in (due, overdue) if c.diagnostic]
    return {
        "id": habit.id,
        "name": habit.name,
        "is_task": habit.is_task,
        "due_today": due.value,
        "completed": is_habit_completed(habit, tz, clock),
        "completions_today": get_completions_for_today(habit, tz, clock),
        "progress": get_habit_progress(habit, tz, clock),
        "overdue": overdue.value,
        "frequency": get_habit_freq(habit),
        "display": get_frequency_display_text(habit.frequency, not habit.is_task, tz),
        "diagnostic": diagnostics[0] if diagnostics else None,
        "evaluated_at": d2t(clock()),
    }
