"""
Availability Service

Answers "what times are free on date D" by walking the working-hours window
in fixed steps and dropping every candidate slot that conflicts with an
existing appointment or a blocked time slot.

- Working hours are the provider's hours for that weekday when a provider is
  given and has some on file, otherwise the practice business hours. A
  weekday the provider marked unavailable has no slots at all.
- A candidate overlapping the break is dropped and the walk resumes at the
  end of the break.
- The buffer is kept clear after every slot: slot plus buffer must fit before
  closing and must not touch an appointment or a block.
- Slots that would run past closing time are not offered.

ProviderScheduleService maintains the blocked slots and weekly hours the
finder reads.
"""

import logging
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta
from typing import NamedTuple, Optional, Union

from ...config import (
    BUSINESS_HOURS_END,
    BUSINESS_HOURS_START,
    LUNCH_BREAK_END,
    LUNCH_BREAK_START,
    SLOT_BUFFER_MINUTES,
    SLOT_GRANULARITY_MINUTES,
)
from ...models import BlockedTimeSlot, ProviderAvailability
from ...shared.validators import is_valid_time_range, validate_required_text
from .conflict_service import ConflictDetector
from .errors import (
    InvalidConfiguration,
    InvalidDuration,
    InvalidTimeRange,
    SchedulingValidationError,
)
from .recurrence import sunday_based_weekday
from .repository import RecordStore
from .schemas import BlockedSlotCreate, TimeSlot, WorkingHours

logger = logging.getLogger(__name__)

ClockTime = Union[time, str, None]


def parse_clock(value: ClockTime) -> Optional[time]:
    """Accept a time or an "HH:MM" string as found in the environment"""
    if value is None or isinstance(value, time):
        return value
    try:
        return time.fromisoformat(value)
    except ValueError as e:
        raise InvalidConfiguration(f"Invalid clock time '{value}', expected HH:MM") from e


def _on(day: date, clock: Optional[time]) -> Optional[datetime]:
    return datetime.combine(day, clock) if clock is not None else None


class WorkingWindow(NamedTuple):
    opening: datetime
    closing: datetime
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None

    def overlaps_break(self, start: datetime, end: datetime) -> bool:
        if self.break_start is None:
            return False
        return start < self.break_end and end > self.break_start


class AvailabilityFinder:
    """Finds conflict-free slots within working hours"""

    def __init__(
        self,
        detector: ConflictDetector,
        start_hour: int = BUSINESS_HOURS_START,
        end_hour: int = BUSINESS_HOURS_END,
        granularity_minutes: int = SLOT_GRANULARITY_MINUTES,
        buffer_minutes: int = SLOT_BUFFER_MINUTES,
        break_start: ClockTime = LUNCH_BREAK_START,
        break_end: ClockTime = LUNCH_BREAK_END,
        store: Optional[RecordStore] = None,
    ):
        if not 0 <= start_hour < end_hour <= 24:
            raise InvalidConfiguration(
                f"Business hours must satisfy 0 <= start < end <= 24 (got {start_hour}-{end_hour})"
            )
        if granularity_minutes <= 0:
            raise InvalidConfiguration("Slot granularity must be a positive number of minutes")
        if buffer_minutes < 0:
            raise InvalidConfiguration("Slot buffer cannot be negative")

        break_start, break_end = parse_clock(break_start), parse_clock(break_end)
        if (break_start is None) != (break_end is None):
            raise InvalidConfiguration("Lunch break needs both a start and an end time")
        if break_start is not None and break_start >= break_end:
            raise InvalidConfiguration("Lunch break must start before it ends")

        self.detector = detector
        self.store = store or detector.store
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.granularity = timedelta(minutes=granularity_minutes)
        self.buffer = timedelta(minutes=buffer_minutes)
        self.break_start = break_start
        self.break_end = break_end

    def working_window(self, day: date, provider_id: Optional[str] = None) -> Optional[WorkingWindow]:
        """
        The bookable window on ``day``, or None when the provider does not
        work that weekday
        """
        midnight = datetime.combine(day, time.min)

        if provider_id is not None:
            hours = self.store.get_working_hours(provider_id, sunday_based_weekday(midnight))
            if hours is not None:
                if not hours.is_available:
                    return None
                return WorkingWindow(
                    datetime.combine(day, hours.start_time),
                    datetime.combine(day, hours.end_time),
                    _on(day, hours.break_start_time),
                    _on(day, hours.break_end_time),
                )

        return WorkingWindow(
            midnight + timedelta(hours=self.start_hour),
            midnight + timedelta(hours=self.end_hour),
            _on(day, self.break_start),
            _on(day, self.break_end),
        )

    def candidate_slots(
        self,
        day: date,
        duration_minutes: int,
        window: Optional[WorkingWindow] = None,
        buffer: Optional[timedelta] = None,
    ) -> Iterator[TimeSlot]:
        """Every slot of the given length inside working hours, conflicts ignored"""
        window = window or self.working_window(day)
        buffer = self.buffer if buffer is None else buffer
        length = timedelta(minutes=duration_minutes)

        current = window.opening
        while current < window.closing:
            slot_end = current + length
            if slot_end + buffer > window.closing:
                break
            if window.overlaps_break(current, slot_end):
                current = window.break_end
                continue
            yield TimeSlot(start=current, end=slot_end)
            current += self.granularity

    def find_open_slots(
        self,
        day: Union[date, datetime],
        duration_minutes: int,
        provider_id: Optional[str] = None,
        buffer_minutes: Optional[int] = None,
    ) -> list[TimeSlot]:
        """
        Conflict-free slots on ``day``.

        Stateless: with no store changes in between, repeated calls return
        the same slots.

        Args:
            buffer_minutes: overrides the configured buffer for this lookup

        Raises:
            InvalidDuration: duration_minutes is not positive or the buffer
                is negative
            StoreUnavailable: propagated from the store lookups
        """
        if duration_minutes <= 0:
            raise InvalidDuration("Duration must be a positive number of minutes")
        if buffer_minutes is not None and buffer_minutes < 0:
            raise InvalidDuration("Buffer cannot be negative")
        if isinstance(day, datetime):
            day = day.date()

        window = self.working_window(day, provider_id)
        if window is None:
            logger.debug(f"Provider {provider_id} is not available on {day}")
            return []

        buffer = self.buffer if buffer_minutes is None else timedelta(minutes=buffer_minutes)
        open_slots = [
            slot
            for slot in self.candidate_slots(day, duration_minutes, window, buffer)
            if self._is_free(slot.start, slot.end + buffer, provider_id)
        ]
        logger.debug(f"{len(open_slots)} open {duration_minutes}-minute slot(s) on {day}")
        return open_slots

    def _is_free(self, start: datetime, end: datetime, provider_id: Optional[str]) -> bool:
        if self.detector.has_conflict(start, end, provider_id=provider_id):
            return False
        return not self.store.find_blocked_overlapping(start, end, provider_id=provider_id)


class ProviderScheduleService:
    """Blocked time and weekly working hours"""

    def __init__(self, store: RecordStore):
        self.store = store

    def block_time(self, data: BlockedSlotCreate) -> BlockedTimeSlot:
        if not is_valid_time_range(data.start_time, data.end_time):
            raise InvalidTimeRange("Blocked time must start before it ends")

        slot = self.store.insert_blocked_slot(**data.model_dump())
        scope = f"provider {data.provider_id}" if data.provider_id else "all providers"
        logger.info(f"⛔ Blocked {data.start_time} - {data.end_time} for {scope}")
        return slot

    def list_blocked(
        self, start: datetime, end: datetime, provider_id: Optional[str] = None
    ) -> list[BlockedTimeSlot]:
        if not is_valid_time_range(start, end):
            raise InvalidTimeRange("Start time must be before end time")
        return self.store.find_blocked_overlapping(start, end, provider_id=provider_id)

    def unblock(self, slot_id: int) -> None:
        self.store.delete_blocked_slot(slot_id)
        logger.info(f"Removed blocked time slot {slot_id}")

    def set_working_hours(
        self, provider_id: str, day_of_week: int, hours: WorkingHours
    ) -> ProviderAvailability:
        try:
            provider_id = validate_required_text(provider_id, "Provider")
        except ValueError as e:
            raise SchedulingValidationError(str(e)) from e
        if not 0 <= day_of_week <= 6:
            raise SchedulingValidationError(
                "Day of week must be between 0 (Sunday) and 6 (Saturday)"
            )

        saved = self.store.save_working_hours(provider_id, day_of_week, hours.model_dump())
        logger.info(f"🕘 Saved working hours for provider {provider_id} on weekday {day_of_week}")
        return saved

    def get_working_hours(self, provider_id: str) -> list[ProviderAvailability]:
        return self.store.list_working_hours(provider_id)
