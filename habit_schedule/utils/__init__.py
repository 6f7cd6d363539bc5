"""Utility helpers re-exported for convenience.

This module exposes the alias tables, frequency buckets and record
validators used by the core schedule logic and the service.
"""

from .aliases import (DUE_MAP, INITIAL_DUE, INITIAL_RECURRENCE_RULE,
                      RECURRENCE_RULE_MAP, lookup_alias)
from .frequency_classes import Frequency, FrequencyClasses
from .validators import validate_habit_record, validate_timezone_name

__all__ = [
    "DUE_MAP",
    "INITIAL_DUE",
    "INITIAL_RECURRENCE_RULE",
    "RECURRENCE_RULE_MAP",
    "lookup_alias",
    "Frequency",
    "FrequencyClasses",
    "validate_habit_record",
    "validate_timezone_name",
]
