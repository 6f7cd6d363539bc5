"""Public re-exports for the schedule engine.

This module re-exports the engine's functions and types so the service
(and tests) can import a stable small public surface.
"""

from .errors import (InvalidTimezoneError, RuleEvaluationError,
                     RuleParseError, ScheduleError)
from .ledger import (calculate_coins_earned_today, calculate_coins_spent_today,
                     calculate_total_earned, calculate_total_spent,
                     calculate_transactions_today)
from .models import (CoinTransaction, Habit, Recurring, ScheduleCheck, TaskDue,
                     schedule_of)
from .natural_language import (parse_natural_language_date,
                               parse_recurrence_text)
from .normalizer import (NormalizedRule, ParseError, Unsupported, Valid,
                         normalize_rule, parse_natural_language_rule,
                         parse_rule)
from .occurrence import first_occurrence_from, is_due_on
from .rules import (INVALID, RecurrenceRule, describe_rule,
                    is_unsupported_rule, serialize_rule)
from .schedule import (check_habit_due, check_task_overdue,
                       get_completed_habits_for_date,
                       get_completions_for_date, get_completions_for_today,
                       get_frequency_display_text, get_habit_freq,
                       get_habit_progress, habit_status, is_habit_completed,
                       is_habit_due, is_habit_due_today, is_task_overdue)
from .time_context import (fixed_clock, get_now, get_timezone,
                           get_today_in_timezone, system_clock)

__all__ = [
    "InvalidTimezoneError",
    "RuleEvaluationError",
    "RuleParseError",
    "ScheduleError",
    "calculate_coins_earned_today",
    "calculate_coins_spent_today",
    "calculate_total_earned",
    "calculate_total_spent",
    "calculate_transactions_today",
    "CoinTransaction",
    "Habit",
    "Recurring",
    "ScheduleCheck",
    "TaskDue",
    "schedule_of",
    "parse_natural_language_date",
    "parse_recurrence_text",
    "NormalizedRule",
    "ParseError",
    "Unsupported",
    "Valid",
    "normalize_rule",
    "parse_natural_language_rule",
    "parse_rule",
    "first_occurrence_from",
    "is_due_on",
    "INVALID",
    "RecurrenceRule",
    "describe_rule",
    "is_unsupported_rule",
    "serialize_rule",
    "check_habit_due",
    "check_task_overdue",
    "get_completed_habits_for_date",
    "get_completions_for_date",
    "get_completions_for_today",
    "get_frequency_display_text",
    "get_habit_freq",
    "get_habit_progress",
    "habit_status",
    "is_habit_completed",
    "is_habit_due",
    "is_habit_due_today",
    "is_task_overdue",
    "fixed_clock",
    "get_now",
    "get_timezone",
    "get_today_in_timezone",
    "system_clock",
]
