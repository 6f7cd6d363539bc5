"""Value types read by the schedule engine.

Habits and coin transactions are owned by the storage layer; the engine only
reads snapshots of them. The dual-purpose ``frequency`` field of a habit is
exposed as an explicit schedule variant through `schedule_of`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from habit_schedule.core.time_context import parse_instant

HABIT_UNDO = "HABIT_UNDO"


@dataclass(frozen=True)
class Habit:
    """Snapshot of a stored habit or one-off task."""

    id: str
    name: str
    frequency: str = ""
    is_task: bool = False
    archived: bool = False
    target_completions: Optional[int] = None
    completions: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def target(self) -> int:
        """Completions needed per day (missing or zero means 1)."""
        return self.target_completions or 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Habit":
        """Build a Habit from a stored record (camelCase or snake_case keys)."""

        def pick(*keys, default=None):
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        return cls(
            id=str(pick("id", default="")),
            name=str(pick("name", default="")),
            frequency=str(pick("frequency", default="")),
            is_task=bool(pick("isTask", "is_task", default=False)),
            archived=bool(pick("archived", default=False)),
            target_completions=pick("targetCompletions", "target_completions"),
            completions=tuple(pick("completions", default=())),
        )


@dataclass(frozen=True)
class TaskDue:
    """Schedule of a one-off task: a single due instant (or none set)."""

    due: Optional[datetime]


@dataclass(frozen=True)
class Recurring:
    """Schedule of a recurring habit: its stored rule text."""

    text: str


Schedule = Union[TaskDue, Recurring]


def schedule_of(habit: Habit) -> Schedule:
    """Return the explicit schedule variant behind ``habit.frequency``.

    Raises ValueError when a task carries a due date that is not an instant.
    """
    if habit.is_task:
        if not habit.frequency:
            return TaskDue(None)
        return TaskDue(parse_instant(habit.frequency))
    return Recurring(habit.frequency)


@dataclass(frozen=True)
class ScheduleCheck:
    """Boolean schedule answer with an optional diagnostic.

    The diagnostic is set when the answer was degraded to False because the
    habit's schedule could not be evaluated.
    """

    value: bool
    diagnostic: Optional[str] = None

    def __bool__(self) -> bool:
        return self.value


@dataclass(frozen=True)
class CoinTransaction:
    """Ledger entry; ``HABIT_UNDO`` entries count as earned whatever their sign."""

    id: str
    amount: float
    type: str
    timestamp: str
    description: str = ""
    related_item_id: Optional[str] = None

    @property
    def is_undo(self) -> bool:
        """True for habit-undo entries."""
        return self.type == HABIT_UNDO

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoinTransaction":
        """Build a transaction from a stored record."""
        return cls(
            id=str(data.get("id", "")),
            amount=data.get("amount", 0),
            type=str(data.get("type", "")),
            timestamp=str(data.get("timestamp", "")),
            description=str(data.get("description") or ""),
            related_item_id=data.get("relatedItemId", data.get("related_item_id")),
        )
