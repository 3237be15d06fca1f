"""Cron expression helpers built on croniter."""

from datetime import datetime
from typing import Optional

from croniter import croniter, CroniterError


def validate_cron(expression: str) -> Optional[str]:
    """Return None if `expression` is a valid cron expression, else an error message."""
    if not expression or not expression.strip():
        return "Cron expression is empty"
    fields = expression.split()
    if len(fields) not in (5, 6):
        return f"Cron expression must have 5 fields, got {len(fields)}"
    try:
        croniter(expression, datetime.now())
    except (CroniterError, ValueError, KeyError) as e:
        return str(e) or "Invalid cron expression"
    return None


def next_run_time(expression: str, base: Optional[datetime] = None) -> Optional[datetime]:
    """Next fire time after `base` (default: now), or None if the expression is invalid."""
    if validate_cron(expression) is not None:
        return None
    return croniter(expression, base or datetime.now()).get_next(datetime)


DAY_NAMES = {
    "0": "Sun", "1": "Mon", "2": "Tue", "3": "Wed",
    "4": "Thu", "5": "Fri", "6": "Sat", "7": "Sun",
    "SUN": "Sun", "MON": "Mon", "TUE": "Tue", "WED": "Wed",
    "THU": "Thu", "FRI": "Fri", "SAT": "Sat",
}


def _day(value: str) -> str:
    return DAY_NAMES.get(value.upper(), value)


def format_day_of_week(dow: str) -> str:
    if "-" in dow:
        start, _, end = dow.partition("-")
        return f"{_day(start)}-{_day(end)}"
    if "," in dow:
        return ", ".join(_day(d) for d in dow.split(","))
    return _day(dow)


def format_cron_human(expression: str) -> str:
    """Describe common cron shapes in words; anything else is returned as is."""
    parts = expression.strip().split()
    if len(parts) < 5:
        return expression

    minute, hour, day_of_month, month, day_of_week = parts[:5]
    at = f"{hour}:{minute.rjust(2, '0')}"

    if minute == "*" and hour == "*" and day_of_month == "*" and month == "*" and day_of_week == "*":
        return "every minute"
    if minute != "*" and hour == "*" and day_of_month == "*" and month == "*" and day_of_week == "*":
        return f"every hour at minute {minute}"
    if minute != "*" and hour != "*" and day_of_month == "*" and month == "*" and day_of_week == "*":
        return f"daily at {at}"
    if minute != "*" and hour != "*" and day_of_month == "*" and month == "*" and day_of_week != "*":
        return f"{format_day_of_week(day_of_week)} at {at}"
    if minute != "*" and hour != "*" and day_of_month != "*" and month == "*" and day_of_week == "*":
        return f"monthly on day {day_of_month} at {at}"
    return expression
