"""Tests for habit- and task-level schedule questions."""

import logging
import time
from datetime import date

import pytest

from habit_schedule.core import schedule
from habit_schedule.core.models import ScheduleCheck
from habit_schedule.core.time_context import fixed_clock
from tests.test_util import MONDAY_MORNING, NY, make_habit, make_task


def test_daily_habit_is_due_today():
    """A canonical daily rule is due today in New York."""
    habit = make_habit("FREQ=DAILY")
    assert schedule.is_habit_due_today(habit, NY, MONDAY_MORNING)
    assert schedule.check_habit_due(habit, NY, date(2025, 3, 10)) == ScheduleCheck(True)


def test_weekly_monday_habit():
    """A Monday-only habit is not due on Tuesday but is due the next Monday."""
    habit = make_habit("FREQ=WEEKLY;BYDAY=MO")
    assert not schedule.is_habit_due(habit, NY, date(2025, 3, 11))
    assert schedule.is_habit_due(habit, NY, date(2025, 3, 17))


def test_overdue_task_stops_being_overdue_once_completed():
    """A task due yesterday is overdue until completed today."""
    task = make_task("2025-03-09T16:00:00Z")
    assert schedule.is_task_overdue(task, NY, MONDAY_MORNING)

    done = make_task("2025-03-09T16:00:00Z", completions=["2025-03-10T14:00:00Z"])
    assert not schedule.is_task_overdue(done, NY, MONDAY_MORNING)


@pytest.mark.parametrize("frequency", ["every hour", "hourly", "FREQ=MINUTELY"])
def test_sub_daily_habit_is_not_due_and_logs(frequency, caplog):
    """Sub-daily rules degrade to not due with a diagnostic."""
    caplog.set_level(logging.WARNING)
    habit = make_habit(frequency)
    check = schedule.check_habit_due(habit, NY, date(2025, 3, 10))
    assert check.value is False
    assert not check
    assert check.diagnostic.startswith("habit h1:")
    assert any(
        "Failed to evaluate schedule for habit h1" in r.getMessage()
        for r in caplog.records
    )


def test_monthly_31st_in_30_day_month():
    """A day-31 habit has no occurrence on the last day of a 30-day month."""
    habit = make_habit("FREQ=MONTHLY;BYMONTHDAY=31")
    check = schedule.check_habit_due(habit, NY, date(2025, 9, 30))
    assert check == ScheduleCheck(False)
    assert schedule.is_habit_due(habit, NY, date(2025, 10, 31))


def test_archived_habit_is_never_due():
    """Archived habits are not due even when the rule matches."""
    habit = make_habit("FREQ=DAILY", archived=True)
    check = schedule.check_habit_due(habit, NY, date(2025, 3, 10))
    assert check == ScheduleCheck(False)


def test_malformed_rule_degrades_with_diagnostic():
    """A rule that does not parse is reported instead of raised."""
    check = schedule.check_habit_due(
        make_habit("FREQ=SOMETIMES"), NY, date(2025, 3, 10)
    )
    assert not check
    assert "failed to parse rrule" in check.diagnostic


def test_task_due_follows_local_day():
    """A task is due on the local day of its due instant."""
    late_evening = make_task("2025-03-11T03:30:00Z")
    assert schedule.is_habit_due(late_evening, NY, date(2025, 3, 10))
    assert not schedule.is_habit_due(late_evening, "UTC", date(2025, 3, 10))
    assert schedule.is_habit_due(late_evening, "UTC", date(2025, 3, 11))


def test_archived_task_is_still_due_on_its_day():
    """The task check comes before the archived check."""
    task = make_task("2025-03-10T20:00:00Z", archived=True)
    assert schedule.is_habit_due(task, NY, date(2025, 3, 10))
    assert not schedule.is_task_overdue(task, NY, fixed_clock("2025-03-12T15:00:00Z"))


def test_task_without_due_date():
    """A task with no due date is neither due nor overdue."""
    task = make_task("")
    assert schedule.check_habit_due(task, NY, date(2025, 3, 10)) == ScheduleCheck(False)
    assert schedule.check_task_overdue(task, NY, MONDAY_MORNING) == ScheduleCheck(False)


def test_task_with_unreadable_due_date():
    """An unreadable due date is not due and carries a diagnostic."""
    task = make_task("next tuesday")
    due = schedule.check_habit_due(task, NY, date(2025, 3, 10))
    overdue = schedule.check_task_overdue(task, NY, MONDAY_MORNING)
    assert not due and not overdue
    assert "invalid due date" in due.diagnostic
    assert "invalid due date" in overdue.diagnostic


@pytest.mark.parametrize(
    "due, completions, expected",
    [
        ("2025-03-05T15:00:00Z", [], True),
        ("2025-03-09T16:00:00Z", [], True),
        ("2025-03-09T16:00:00Z", ["2025-03-10T12:00:00Z"], False),
        ("2025-03-10T15:00:00Z", [], False),
        ("2025-03-10T15:00:00Z", ["2025-03-10T12:00:00Z"], False),
        ("2025-03-12T15:00:00Z", [], False),
        # 23:30 on Sunday in New York, Monday in UTC
        ("2025-03-10T03:30:00Z", [], True),
    ],
)
def test_task_overdue_law(due, completions, expected):
    """Overdue iff the due day is before today and the task is not completed."""
    task = make_task(due, completions=completions)
    assert schedule.is_task_overdue(task, NY, MONDAY_MORNING) is expected


def test_recurring_habit_is_never_overdue():
    """Only tasks can be overdue."""
    assert not schedule.is_task_overdue(make_habit("FREQ=DAILY"), NY, MONDAY_MORNING)


def test_completions_are_bucketed_by_local_day(caplog):
    """Completions near midnight count on their New York day."""
    habit = make_habit(
        completions=[
            "2025-03-10T03:30:00Z",  # Sunday 23:30 local
            "2025-03-11T03:30:00Z",  # Monday 23:30 local
            "2025-03-10",  # legacy date-only entry
            "garbage",
        ]
    )
    caplog.set_level(logging.WARNING)
    assert schedule.get_completions_for_today(habit, NY, MONDAY_MORNING) == 2
    assert schedule.get_completions_for_date(habit, date(2025, 3, 9), NY) == 1
    assert schedule.get_completions_for_date(habit, date(2025, 3, 11), "UTC") == 1
    messages = [r.getMessage() for r in caplog.records]
    assert any("Skipping malformed completion" in m for m in messages)


def test_progress_and_completion_against_target():
    """Progress is a percentage of the daily target, capped at 100."""
    once = make_habit(target_completions=2, completions=["2025-03-10T12:00:00Z"])
    assert schedule.get_habit_progress(once, NY, MONDAY_MORNING) == 50.0
    assert not schedule.is_habit_completed(once, NY, MONDAY_MORNING)

    thrice = make_habit(
        target_completions=2,
        completions=["2025-03-10T12:00:00Z"] * 3,
    )
    assert schedule.get_habit_progress(thrice, NY, MONDAY_MORNING) == 100.0
    assert schedule.is_habit_completed(thrice, NY, MONDAY_MORNING)

    default_target = make_habit(
        target_completions=0, completions=["2025-03-10T12:00:00Z"]
    )
    assert schedule.is_habit_completed(default_target, NY, MONDAY_MORNING)


def test_completed_habits_for_date():
    """Only habits meeting their target on the day are returned."""
    done = make_habit(id="a", completions=["2025-03-10T12:00:00Z"])
    pending = make_habit(id="b")
    result = schedule.get_completed_habits_for_date(
        [done, pending], date(2025, 3, 10), NY
    )
    assert [h.id for h in result] == ["a"]


@pytest.mark.parametrize(
    "frequency, is_task, expected",
    [
        ("FREQ=DAILY", False, "daily"),
        ("FREQ=WEEKLY;BYDAY=MO", False, "weekly"),
        ("monthly", False, "monthly"),
        ("FREQ=YEARLY;BYMONTH=1", False, "yearly"),
        ("2025-03-20T10:00:00Z", True, "daily"),
    ],
)
def test_get_habit_freq(frequency, is_task, expected):
    """Habits are bucketed by their rule frequency; tasks are daily."""
    habit = make_habit(frequency, is_task=is_task)
    assert schedule.get_habit_freq(habit) == expected


@pytest.mark.parametrize("frequency", ["hourly", "FREQ=SECONDLY", "not a rule"])
def test_get_habit_freq_defaults_to_daily(frequency, caplog):
    """Unsupported or unreadable rules are logged and bucketed as daily."""
    caplog.set_level(logging.ERROR)
    assert schedule.get_habit_freq(make_habit(frequency)) == "daily"
    assert any("Invalid frequency" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "frequency, is_recur_rule, tz, expected",
    [
        ("FREQ=WEEKLY;BYDAY=MO", True, NY, "every week on Monday"),
        ("", True, NY, "every day"),
        ("weekdays", True, NY, "every weekday"),
        ("hourly", True, NY, "invalid"),
        ("FREQ=NOPE", True, NY, "invalid"),
        ("", False, NY, "today"),
        ("2025-03-11T03:30:00Z", False, NY, "Mon, Mar 10, 2025"),
        ("2025-03-11T03:30:00Z", False, "UTC", "Tue, Mar 11, 2025"),
        ("not a date", False, NY, "invalid"),
    ],
)
def test_frequency_display_text(frequency, is_recur_rule, tz, expected):
    """Rules are described and task dates are rendered in the zone."""
    assert schedule.get_frequency_display_text(frequency, is_recur_rule, tz) == expected


def test_habit_status_summary():
    """The status summary combines every schedule answer for today."""
    habit = make_habit(
        "FREQ=WEEKLY;BYDAY=MO",
        target_completions=2,
        completions=["2025-03-10T12:00:00Z"],
    )
    status = schedule.habit_status(habit, NY, MONDAY_MORNING)
    assert status == {
        "id": "h1",
        "name": "Drink water",
        "is_task": False,
        "due_today": True,
        "completed": False,
        "completions_today": 1,
        "progress": 50.0,
        "overdue": False,
        "frequency": "weekly",
        "display": "every week on Monday",
        "diagnostic": None,
        "evaluated_at": "2025-03-10T15:00:00+00:00",
    }


def test_habit_status_carries_diagnostic():
    """A degraded answer surfaces its diagnostic in the summary."""
    status = schedule.habit_status(make_habit("hourly"), NY, MONDAY_MORNING)
    assert status["due_today"] is False
    assert status["display"] == "invalid"
    assert "unsupported recurrence rule" in status["diagnostic"]


def test_time_of_day_habit_is_due_on_its_weekday():
    """A stored rule with an hour part is due on its day like any other."""
    habit = make_habit("RRULE:FREQ=WEEKLY;BYDAY=MO;BYHOUR=9")
    assert schedule.check_habit_due(habit, NY, date(2025, 3, 10)) == ScheduleCheck(True)
    assert not schedule.is_habit_due(habit, NY, date(2025, 3, 11))


def test_habit_that_never_occurs_degrades_quickly():
    """An impossible stored rule is reported without searching for years."""
    habit = make_habit("FREQ=DAILY;BYMONTH=2;BYMONTHDAY=30")
    started = time.monotonic()
    check = schedule.check_habit_due(habit, NY, date(2025, 3, 10))
    assert time.monotonic() - started < 1
    assert not check
    assert "failed to parse rrule" in check.diagnostic
