"""
Series generation

Expands a base appointment and a recurrence pattern into concrete appointment
drafts. Nothing is stored here; persistence belongs to SeriesService.

Monthly (without a pinned day) and yearly series are anchored to the base
start: instance k is the base plus k intervals, so a series starting Jan 31
runs Feb 29, Mar 31, Apr 30 instead of settling on the 29th after February.
"""

import logging
from datetime import datetime

from dateutil.relativedelta import relativedelta

from .errors import InvalidBase, InvalidPattern
from .recurrence import PatternInput, ensure_pattern, next_occurrence
from .schemas import AppointmentDraft, RecurrencePattern, RecurrenceType

logger = logging.getLogger(__name__)


def effective_count(count: int, max_occurrences: int | None) -> int:
    """Cap the requested instance count by the pattern's occurrence limit"""
    if max_occurrences is not None:
        return min(count, max_occurrences)
    return count


def _following_start(
    first: datetime, current: datetime, pattern: RecurrencePattern, index: int
) -> datetime:
    """Start of instance ``index`` given the start of instance ``index - 1``"""
    if pattern.type == RecurrenceType.YEARLY:
        return first + relativedelta(years=pattern.interval * index)
    if pattern.type == RecurrenceType.MONTHLY and not pattern.day_of_month:
        return first + relativedelta(months=pattern.interval * index)
    return next_occurrence(current, pattern)


def generate_instances(
    base: AppointmentDraft, pattern: PatternInput, count: int
) -> list[AppointmentDraft]:
    """
    Generate up to ``count`` instances of ``base`` following ``pattern``.

    The first instance starts at ``base.start_time``. Every instance keeps the
    base duration and all other base fields. Generation stops early once a
    start would fall after ``pattern.end_date``.

    Raises:
        InvalidBase: base end time is not after its start time
        InvalidPattern: pattern fails validation
    """
    if base.end_time <= base.start_time:
        raise InvalidBase("Start time must be before end time")

    pattern = ensure_pattern(pattern)
    if pattern.end_date is not None and (
        (pattern.end_date.tzinfo is None) != (base.start_time.tzinfo is None)
    ):
        raise InvalidPattern(
            "Recurrence end date and appointment start must both include or both omit a timezone"
        )

    duration = base.end_time - base.start_time
    limit = effective_count(count, pattern.max_occurrences)

    instances: list[AppointmentDraft] = []
    current = base.start_time
    for index in range(1, limit + 1):
        if pattern.end_date is not None and current > pattern.end_date:
            break

        instances.append(
            base.model_copy(
                update={
                    "start_time": current,
                    "end_time": current + duration,
                    "recurrence_pattern": pattern,
                }
            )
        )
        current = _following_start(base.start_time, current, pattern, index)

    logger.debug(
        f"Generated {len(instances)}/{limit} instances for '{base.title}' ({pattern.type.value})"
    )
    return instances
