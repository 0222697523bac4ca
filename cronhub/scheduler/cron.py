"""
Cron expression parsing.

Accepts the standard 5-field crontab form
(minute hour day month day_of_week) and the 6-field form with a leading
seconds field. Expressions are turned into APScheduler CronTriggers.

Day-of-week numbers follow crontab: 0 and 7 are Sunday, 1 is Monday.
APScheduler counts from Monday = 0, so numeric weekdays are rewritten as
day names before the trigger is built.
"""

from typing import Any

from apscheduler.triggers.cron import CronTrigger


DEFAULT_TIMEZONE = "UTC"

# Index is the crontab weekday number
WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def _weekday_number(token: str) -> int:
    value = int(token)
    if not 0 <= value <= 7:
        raise ValueError(f"Day of week out of range: {token}")
    return value


def normalize_day_of_week(field: str) -> str:
    """
    Rewrite a crontab day-of-week field using day names.

    Named days and "*" pass through. Numeric values, ranges and steps are
    expanded, e.g. "1-5" -> "mon,tue,wed,thu,fri", "*/2" -> "sun,tue,thu,sat".

    Raises:
        ValueError: If a number is out of range or a part is malformed
    """
    days: list[str] = []

    for part in field.split(","):
        base, _, step_text = part.partition("/")
        if not base or any(c.isalpha() for c in base):
            if step_text and not base:
                raise ValueError(f"Invalid day of week: {part!r}")
            days.append(part)
            continue

        step = 1
        if step_text:
            if not step_text.isdigit() or int(step_text) == 0:
                raise ValueError(f"Invalid day of week step: {part!r}")
            step = int(step_text)

        if base == "*":
            if not step_text:
                days.append("*")
                continue
            first, last = 0, 6
        elif "-" in base:
            start_text, _, end_text = base.partition("-")
            first, last = _weekday_number(start_text), _weekday_number(end_text)
            if first > last:
                raise ValueError(f"Invalid day of week range: {part!r}")
        else:
            first = _weekday_number(base)
            last = 6 if step_text else first

        for value in range(first, last + 1, step):
            name = WEEKDAY_NAMES[value]
            if name not in days:
                days.append(name)

    return ",".join(days)


def build_trigger(expression: str, timezone: str = DEFAULT_TIMEZONE) -> CronTrigger:
    """
    Build a CronTrigger from a cron expression.

    Raises:
        ValueError: If the expression is not a valid 5- or 6-field cron string
    """
    if not isinstance(expression, str):
        raise ValueError("Cron expression must be a string")

    fields = expression.split()

    if len(fields) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = fields
    elif len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    else:
        raise ValueError(
            f"Wrong number of fields; got {len(fields)}, expected 5 or 6"
        )

    return CronTrigger(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=normalize_day_of_week(day_of_week),
        timezone=timezone,
    )


def is_valid_cron(expression: Any, timezone: str = DEFAULT_TIMEZONE) -> bool:
    """Check whether an expression can be scheduled."""
    try:
        build_trigger(expression, timezone=timezone)
    except (ValueError, TypeError):
        return False
    return True
