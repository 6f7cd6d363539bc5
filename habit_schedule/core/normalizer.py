"""Turn raw rule input into a canonical recurrence rule.

Input is either a stored rule string (strict RFC 5545 grammar), an alias
keyword, or, in natural-language mode, a free-text phrase. Two entry points
are offered:

* `parse_rule` / `parse_natural_language_rule` raise `RuleParseError` on
  malformed input and return the `INVALID` rule for sub-daily frequencies.
  Rule-authoring flows use these.
* `normalize_rule` never raises and returns a `Valid`, `Unsupported` or
  `ParseError` result, which callers match on.
"""

from dataclasses import dataclass
from typing import Union

from habit_schedule.core.errors import RuleParseError
from habit_schedule.core.natural_language import parse_recurrence_text
from habit_schedule.core.rules import (INVALID, INVALID_TEXT, RecurrenceRule,
                                       is_unsupported_rule,
                                       parse_rrule_string)
from habit_schedule.core.time_context import system_clock
from habit_schedule.utils.aliases import RECURRENCE_RULE_MAP, lookup_alias


@dataclass(frozen=True)
class Valid:
    """A supported rule."""

    rule: RecurrenceRule


@dataclass(frozen=True)
class Unsupported:
    """A rule that parsed but may not be evaluated (sub-daily or INVALID).

    ``rule`` is the rule as written, kept for diagnostics.
    """

    rule: RecurrenceRule


@dataclass(frozen=True)
class ParseError:
    """Input that could not be interpreted."""

    reason: str


NormalizedRule = Union[Valid, Unsupported, ParseError]


def _read(text, natural_language, clock=system_clock):
    """Parse ``text`` without rejecting sub-daily frequencies."""
    if not isinstance(text, str):
        raise RuleParseError(f"Recurrence rule must be text, got {type(text)}")
    text = text.strip()
    if text.lower() == INVALID_TEXT:
        return INVALID
    aliased = lookup_alias(RECURRENCE_RULE_MAP, text)
    if aliased is not None:
        return parse_rrule_string(aliased)
    if natural_language:
        return parse_recurrence_text(text, clock)
    return parse_rrule_string(text)


def _classify(rule):
    if is_unsupported_rule(rule):
        return INVALID
    return rule


def parse_rule(text: str) -> RecurrenceRule:
    """Parse a stored rule string or alias; sub-daily rules become INVALID."""
    return _classify(_read(text, natural_language=False))


def parse_natural_language_rule(text: str, clock=system_clock) -> RecurrenceRule:
    """Parse an alias or a free-text phrase; sub-daily rules become INVALID."""
    return _classify(_read(text, natural_language=True, clock=clock))


def normalize_rule(
    text: str, natural_language: bool = False, clock=system_clock
) -> NormalizedRule:
    """Normalize ``text`` into a result value instead of raising."""
    try:
        rule = _read(text, natural_language, clock)
    except RuleParseError as exc:
        return ParseError(str(exc))
    if is_unsupported_rule(rule):
        return Unsupported(rule)
    return Valid(rule)
