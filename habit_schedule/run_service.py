#!/usr/bin/env python3
"""Direct runner for the schedule evaluation without starting a server.

Reads habit records from `HABITS_JSON_FILE` (a list, or an object with
``habits`` and optional ``timezone``), evaluates them for today and prints
the report or writes it to `OUTPUT_JSON_FILE`.
"""

import json
import logging
import os
import sys

from habit_schedule.core import InvalidTimezoneError, get_timezone
from habit_schedule.core.time_context import resolve_timezone
from habit_schedule.main import build_schedule_report

logger = logging.getLogger(__name__)


def _format_result(res):
    """Format a report (or any JSON-like value) into a readable string."""
    try:
        return json.dumps(res, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        return f"<unserializable result: {e}>"


def _write_output_file(out_file, readable):
    """Write the human-readable JSON output to `out_file`.

    Returns True on success and False on filesystem errors.
    """
    try:
        with open(out_file, "w", encoding="utf-8") as fh:
            fh.write(readable + "\n")
        return True
    except OSError as exc:
        print(f"\n❌ Failed to write result to {out_file}: {exc}", file=sys.stderr)
        return False


def _load_habits_file(path):
    """Return ``(records, timezone_name)`` from a habits JSON file.

    Raises ValueError when the file does not hold a list of records or an
    object with a ``habits`` list.
    """
    with open(path, "r", encoding="utf-8") as fh:
        parsed = json.load(fh)
    if isinstance(parsed, list):
        return parsed, None
    if isinstance(parsed, dict) and isinstance(parsed.get("habits"), list):
        return parsed["habits"], parsed.get("timezone")
    raise ValueError(f"{path} must contain a list of habits or a 'habits' list")


def _resolve_timezone(name):
    if not name:
        return get_timezone()
    try:
        return resolve_timezone(name)
    except InvalidTimezoneError:
        logger.warning("Invalid timezone '%s' in habits file, using configured", name)
        return get_timezone()


def main():
    """Evaluate the habits file and print or save the report.

    Returns the process exit code.
    """
    habits_file = os.getenv("HABITS_JSON_FILE", "")
    if not habits_file:
        print("\n❌ HABITS_JSON_FILE is not set", file=sys.stderr)
        return 1
    try:
        records, tz_name = _load_habits_file(habits_file)
        report = build_schedule_report(records, _resolve_timezone(tz_name))
    except (OSError, ValueError) as e:
        logger.error("Failed to evaluate %s: %s", habits_file, e)
        print(f"\n❌ Error executing service: {e}", file=sys.stderr)
        return 1

    print("\n✅ Schedule evaluated successfully!")
    readable = _format_result(report)
    out_file = os.getenv("OUTPUT_JSON_FILE", "")
    if out_file and _write_output_file(out_file, readable):
        print(f"\nResult saved to {out_file}")
        return 0
    print("\nResult:")
    print(readable)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
