"""
Conflict detection

Two half-open intervals [s1, e1) and [s2, e2) overlap iff s1 < e2 and s2 < e1,
so back-to-back appointments do not conflict. Cancelled appointments never
conflict.

The check is advisory: a conflict check followed by an insert is not atomic,
so two concurrent bookings for the same interval can both pass. Only a
store-level constraint can rule that out.
"""

import logging
from datetime import datetime
from typing import Optional

from ...models import Appointment
from ...shared.validators import is_valid_time_range
from .errors import InvalidTimeRange
from .repository import RecordStore

logger = logging.getLogger(__name__)


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    return start_a < end_b and start_b < end_a


class ConflictDetector:
    """Looks up appointments that overlap a candidate interval"""

    def __init__(self, store: RecordStore):
        self.store = store

    def find_conflicts(
        self,
        start_time: datetime,
        end_time: datetime,
        exclude_id: Optional[int] = None,
        provider_id: Optional[str] = None,
    ) -> list[Appointment]:
        """
        Non-cancelled appointments overlapping [start_time, end_time).

        Args:
            exclude_id: appointment to ignore, used when checking an update
                against its own current slot
            provider_id: restrict the check to one provider's calendar

        Raises:
            InvalidTimeRange: start_time is not before end_time
            StoreUnavailable: the store could not be read; never treated as
                "no conflict"
        """
        if not is_valid_time_range(start_time, end_time):
            raise InvalidTimeRange("Start time must be before end time")

        conflicts = self.store.find_overlapping(
            start_time, end_time, exclude_id=exclude_id, provider_id=provider_id
        )
        if conflicts:
            logger.debug(
                f"{len(conflicts)} conflict(s) for {start_time}-{end_time}: "
                f"{[c.id for c in conflicts]}"
            )
        return conflicts

    def has_conflict(
        self,
        start_time: datetime,
        end_time: datetime,
        exclude_id: Optional[int] = None,
        provider_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.find_conflicts(start_time, end_time, exclude_id=exclude_id, provider_id=provider_id)
        )
