"""Coin ledger aggregation over transaction snapshots.

Day bucketing reuses `is_same_date` on moments zoned into the caller's
timezone, the same comparison the schedule helpers use for "due today".
``HABIT_UNDO`` entries are always counted as earned (whatever their sign)
and never as spent.
"""

from typing import Iterable

from habit_schedule.core.models import CoinTransaction
from habit_schedule.core.time_context import (get_now, is_same_date,
                                              system_clock, t2d)


def _is_earned(transaction: CoinTransaction) -> bool:
    return transaction.amount > 0 or transaction.is_undo


def _is_spent(transaction: CoinTransaction) -> bool:
    return transaction.amount < 0 and not transaction.is_undo


def _on_today(transactions, tz, clock):
    today = get_now(clock, tz)
    return [t for t in transactions if is_same_date(t2d(t.timestamp, tz), today)]


def calculate_coins_earned_today(
    transactions: Iterable[CoinTransaction], tz, clock=system_clock
):
    """Sum today's earned amounts (undo entries included with their sign)."""
    return sum(t.amount for t in _on_today(transactions, tz, clock) if _is_earned(t))


def calculate_total_earned(transactions: Iterable[CoinTransaction]):
    """Sum all earned amounts."""
    return sum(t.amount for t in transactions if _is_earned(t))


def calculate_total_spent(transactions: Iterable[CoinTransaction]):
    """Return the absolute total of spending (undo entries excluded)."""
    return abs(sum(t.amount for t in transactions if _is_spent(t)))


def calculate_coins_spent_today(
    transactions: Iterable[CoinTransaction], tz, clock=system_clock
):
    """Return the absolute total spent today in ``tz``."""
    today = _on_today(transactions, tz, clock)
    return abs(sum(t.amount for t in today if _is_spent(t)))


def calculate_transactions_today(
    transactions: Iterable[CoinTransaction], tz, clock=system_clock
) -> int:
    """Count transactions dated today in ``tz``."""
    return len(_on_today(transactions, tz, clock))
