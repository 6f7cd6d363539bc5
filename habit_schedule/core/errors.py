"""Exception types raised by the schedule engine.

Parse failures surface to rule-authoring callers; evaluation failures are
raised by the occurrence evaluator and contained by the schedule status
helpers. An unsupported (sub-daily) rule is a value, not an exception.
"""


class ScheduleError(Exception):
    """Base class for schedule engine errors."""


class RuleParseError(ScheduleError, ValueError):
    """Rule or natural-language text could not be interpreted."""


class RuleEvaluationError(ScheduleError):
    """A rule could not be expanded (INVALID rule or unusable anchor)."""


class InvalidTimezoneError(ScheduleError, ValueError):
    """An IANA timezone identifier could not be resolved."""
