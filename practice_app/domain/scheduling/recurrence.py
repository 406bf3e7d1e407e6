"""
Recurrence evaluation

Turns a recurrence pattern into the next concrete start time. Pure functions,
no store access.

Weekdays in patterns count from Sunday (0) to Saturday (6), the convention
used by the calendar UI. Month and year arithmetic clamps to the last day of
the target month: Jan 31 + 1 month is Feb 28 (or 29), and a monthly pattern
pinned to day 31 lands on the 30th in 30-day months.

Without a pinned day, stepping from an already clamped date carries the
clamp forward: next_occurrence(Feb 29) is Mar 29, not Mar 31. Series
generation avoids this drift by counting from the series start.
"""

import calendar
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Union

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from .errors import InvalidPattern
from .schemas import RecurrencePattern, RecurrenceType

PatternInput = Union[RecurrencePattern, Mapping]


def sunday_based_weekday(value: datetime) -> int:
    """Python counts Monday as 0; recurrence patterns count Sunday as 0"""
    return (value.weekday() + 1) % 7


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "pattern"
    message = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"Invalid recurrence pattern ({field}): {message}"


def ensure_pattern(pattern: PatternInput) -> RecurrencePattern:
    """
    Validate a recurrence pattern.

    Accepts a RecurrencePattern or a plain mapping (e.g. the JSON stored on a
    series member) and re-checks it, so a pattern built without validation
    cannot slip through.

    Raises:
        InvalidPattern: interval below 1, unknown type, or out of range
            weekday / day-of-month values
    """
    if isinstance(pattern, RecurrencePattern):
        data = pattern.model_dump(warnings=False)
    elif isinstance(pattern, Mapping):
        data = dict(pattern)
    else:
        raise InvalidPattern("A recurrence pattern is required")

    try:
        return RecurrencePattern.model_validate(data)
    except ValidationError as e:
        raise InvalidPattern(_describe_validation_error(e)) from e


def next_occurrence(current: datetime, pattern: PatternInput) -> datetime:
    """
    Return the start of the occurrence that follows ``current``.

    The result is always strictly later than ``current`` and keeps its
    time of day.
    """
    pattern = ensure_pattern(pattern)

    if pattern.type == RecurrenceType.DAILY:
        return current + timedelta(days=pattern.interval)
    if pattern.type == RecurrenceType.WEEKLY:
        return _next_weekly(current, pattern)
    if pattern.type == RecurrenceType.MONTHLY:
        return _next_monthly(current, pattern)
    return current + relativedelta(years=pattern.interval)


def _next_weekly(current: datetime, pattern: RecurrencePattern) -> datetime:
    if not pattern.days_of_week:
        return current + timedelta(weeks=pattern.interval)

    today = sunday_based_weekday(current)
    later_this_week = [day for day in pattern.days_of_week if day > today]
    if later_this_week:
        return current + timedelta(days=later_this_week[0] - today)

    # Wrap to the earliest listed weekday, ``interval`` weeks on
    first_day = pattern.days_of_week[0]
    return current + timedelta(days=7 * pattern.interval - today + first_day)


def _next_monthly(current: datetime, pattern: RecurrencePattern) -> datetime:
    target = current + relativedelta(months=pattern.interval)
    if pattern.day_of_month:
        last_day = calendar.monthrange(target.year, target.month)[1]
        target = target.replace(day=min(pattern.day_of_month, last_day))
    return target
