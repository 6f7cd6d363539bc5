"""Alias tables consulted before parsing user input.

`RECURRENCE_RULE_MAP` maps short keywords to canonical rule strings;
`DUE_MAP` maps due-date keywords to phrases for the date parser. Keys are
matched after trimming and lower-casing.
"""

RECURRENCE_RULE_MAP = {
    "every day": "FREQ=DAILY",
    "daily": "FREQ=DAILY",
    "every weekday": "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR",
    "weekdays": "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR",
    "every weekend": "FREQ=WEEKLY;BYDAY=SA,SU",
    "weekends": "FREQ=WEEKLY;BYDAY=SA,SU",
    "every week": "FREQ=WEEKLY",
    "weekly": "FREQ=WEEKLY",
    "biweekly": "FREQ=WEEKLY;INTERVAL=2",
    "every month": "FREQ=MONTHLY",
    "monthly": "FREQ=MONTHLY",
    "every year": "FREQ=YEARLY",
    "yearly": "FREQ=YEARLY",
    "annually": "FREQ=YEARLY",
    # sub-daily aliases still normalize to INVALID
    "hourly": "FREQ=HOURLY",
    "every minute": "FREQ=MINUTELY",
}

INITIAL_RECURRENCE_RULE = "every day"

DUE_MAP = {
    "today": "today",
    "tonight": "23:59",
    "tomorrow": "tomorrow",
    "next week": "in 1 week",
    "next month": "in 1 month",
}

INITIAL_DUE = "today"


def lookup_alias(table, text):
    """Return the aliased value for ``text`` or None."""
    return table.get(text.strip().lower())
