"""FastAPI service exposing the schedule engine.

Endpoints evaluate a batch of habit snapshots for today, validate rule
text for authoring flows and resolve natural-language due dates. The
service holds no state: every request carries the records it evaluates.
"""

import logging
import os

import uvicorn as _uvicorn
from fastapi import Body, Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse

from habit_schedule.core import (InvalidTimezoneError, ParseError,
                                 RuleParseError, Unsupported, describe_rule,
                                 get_timezone, get_today_in_timezone,
                                 habit_status, normalize_rule,
                                 parse_natural_language_date, serialize_rule,
                                 system_clock)
from habit_schedule.core.rules import INVALID_TEXT
from habit_schedule.core.time_context import (DATE_MED_WITH_WEEKDAY, d2s, d2t,
                                              resolve_timezone)
from habit_schedule.utils.frequency_classes import FrequencyClasses
from habit_schedule.utils.validators import validate_habit_record

logger = logging.getLogger(__name__)

uvicorn = _uvicorn  # expose for test monkeypatching
clock = system_clock  # expose for test monkeypatching

app = FastAPI()


def verify_api_key(x_api_key: str = Header(None)) -> str:
    """Verify the API key from the X-API-Key header.

    Args:
        x_api_key: API key from X-API-Key header

    Returns:
        The validated API key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    expected_key = os.getenv("API_KEY")

    # Skip validation if API_KEY is not configured
    if not expected_key:
        return None

    if not x_api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Provide X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if x_api_key != expected_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return x_api_key


def _resolve_request_timezone(name):
    """Return the requested timezone, or the configured one when omitted."""
    if name is None:
        return get_timezone()
    try:
        return resolve_timezone(name)
    except InvalidTimezoneError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def build_schedule_report(records, tz, now_clock=system_clock):
    """Evaluate habit records for today in ``tz``.

    Returns a dict with per-habit statuses, the ids of habits due today and
    of overdue tasks, and the indexes of records that failed validation.
    """
    habits = []
    invalid_records = []
    for index, record in enumerate(records or []):
        ok, habit = validate_habit_record(record)
        if not ok:
            logger.warning("Skipping invalid habit record at index %d", index)
            invalid_records.append(index)
            continue
        habits.append(habit)

    statuses = [habit_status(habit, tz, now_clock) for habit in habits]
    logger.info(
        "Evaluated %d habits (%d invalid records)", len(habits), len(invalid_records)
    )
    return {
        "status": "ok",
        "timezone": getattr(tz, "key", str(tz)),
        "today": get_today_in_timezone(tz, now_clock),
        "habits": statuses,
        "due_today": [s["id"] for s in statuses if s["due_today"]],
        "overdue": [s["id"] for s in statuses if s["overdue"]],
        "invalid_records": invalid_records,
    }


async def run_schedule_evaluation(payload: dict = Body(...)):
    """Evaluate the posted habits and return a JSONResponse."""
    tz = _resolve_request_timezone(payload.get("timezone"))
    records = payload.get("habits")
    if not isinstance(records, list):
        raise HTTPException(status_code=400, detail="'habits' must be a list")
    try:
        report = build_schedule_report(records, tz, clock)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("Schedule evaluation failed: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "detail": str(exc)},
        )
    return JSONResponse(status_code=200, content=report)


async def normalize_rule_text(payload: dict = Body(...)):
    """Validate rule text for authoring; unparseable text is a 422."""
    text = payload.get("text")
    if not isinstance(text, str):
        raise HTTPException(status_code=400, detail="'text' must be a string")
    natural = bool(payload.get("natural_language"))
    result = normalize_rule(text, natural_language=natural, clock=clock)
    if isinstance(result, ParseError):
        raise HTTPException(status_code=422, detail=result.reason)
    if isinstance(result, Unsupported):
        return JSONResponse(
            status_code=200,
            content={
                "status": "unsupported",
                "rule": INVALID_TEXT,
                "description": INVALID_TEXT,
            },
        )
    return JSONResponse(
        status_code=200,
        content={
            "status": "valid",
            "rule": serialize_rule(result.rule),
            "description": describe_rule(result.rule),
            "frequency": FrequencyClasses.from_rrule_freq(result.rule.freq).name,
        },
    )


async def parse_due_date(payload: dict = Body(...)):
    """Resolve a natural-language due date to a stored UTC instant."""
    text = payload.get("text")
    tz = _resolve_request_timezone(payload.get("timezone"))
    try:
        due = parse_natural_language_date(text, tz, clock)
    except RuleParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return JSONResponse(
        status_code=200,
        content={"due": d2t(due), "display": d2s(due, tz, DATE_MED_WITH_WEEKDAY)},
    )


__all__ = [
    "app",
    "build_schedule_report",
    "normalize_rule_text",
    "parse_due_date",
    "run_schedule_evaluation",
    "verify_api_key",
]


if __name__ == "__main__":
    port = int(os.getenv("PORT", "3000"))
    # Use the module-level uvicorn for test monkeypatching
    _uvicorn.run(
        "habit_schedule.main:app", host="0.0.0.0", port=port, reload=True
    )  # pragma: no cover

# Register the endpoints using the implementations defined above
app.post("/schedule", dependencies=[Depends(verify_api_key)])(run_schedule_evaluation)
app.post("/rules/normalize", dependencies=[Depends(verify_api_key)])(
    normalize_rule_text
)
app.post("/dates/parse", dependencies=[Depends(verify_api_key)])(parse_due_date)
