"""Canonical frequency buckets habits are grouped into."""

from dataclasses import dataclass
from typing import ClassVar, Dict

from dateutil import rrule


@dataclass(frozen=True)
class Frequency:
    """A frequency bucket with its dateutil frequency constant and sort number."""

    name: str
    rrule_freq: int
    number: int

    @property
    def label(self) -> str:
        """Build the label dynamically from number and name."""
        return f"frequency-{self.number:02d}-{self.name}"


class FrequencyClasses:
    """Frequency buckets supported by the schedule engine."""

    DAILY: ClassVar[Frequency] = Frequency(
        name="daily", rrule_freq=rrule.DAILY, number=1
    )
    WEEKLY: ClassVar[Frequency] = Frequency(
        name="weekly", rrule_freq=rrule.WEEKLY, number=2
    )
    MONTHLY: ClassVar[Frequency] = Frequency(
        name="monthly", rrule_freq=rrule.MONTHLY, number=3
    )
    YEARLY: ClassVar[Frequency] = Frequency(
        name="yearly", rrule_freq=rrule.YEARLY, number=4
    )

    _FREQ_MAP: ClassVar[Dict[int, Frequency]] = {
        DAILY.rrule_freq: DAILY,
        WEEKLY.rrule_freq: WEEKLY,
        MONTHLY.rrule_freq: MONTHLY,
        YEARLY.rrule_freq: YEARLY,
    }

    @classmethod
    def from_rrule_freq(cls, freq: int) -> Frequency:
        """Get the bucket for a dateutil frequency constant (KeyError if none)."""
        return cls._FREQ_MAP[freq]

    @classmethod
    def from_name(cls, name: str) -> Frequency:
        """Get the bucket by its name (KeyError if none)."""
        for freq in cls._FREQ_MAP.values():
            if freq.name == name:
                return freq
        raise KeyError(name)

    @classmethod
    def all_names(cls) -> list:
        """Return all bucket names in sort order."""
        return [f.name for f in sorted(cls._FREQ_MAP.values(), key=lambda f: f.number)]
