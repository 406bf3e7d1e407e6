"""Scheduling domain errors

Validation errors are raised before the record store is touched and carry a
message that can be shown to the user as-is. Store errors wrap database
failures and are never reinterpreted by the scheduling core.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all scheduling errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Validation --------------------------------------------------------------


class SchedulingValidationError(SchedulingError):
    """Input rejected before any store access"""


class InvalidPattern(SchedulingValidationError):
    pass


class InvalidBase(SchedulingValidationError):
    pass


class InvalidTimeRange(SchedulingValidationError):
    pass


class InvalidDuration(SchedulingValidationError):
    pass


class InvalidStatusTransition(SchedulingValidationError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change appointment status from '{current}' to '{target}'")
        self.current = current
        self.target = target


class InvalidException(SchedulingValidationError):
    pass


class InvalidConfiguration(SchedulingValidationError):
    pass


class SchedulingConflict(SchedulingValidationError):
    def __init__(self, conflicting_ids: list[int]):
        super().__init__("The requested time overlaps an existing appointment")
        self.conflicting_ids = conflicting_ids


# Lookup ------------------------------------------------------------------


class RecordNotFound(SchedulingError):
    """A lookup by id, or by series and original date, found nothing"""


class AppointmentNotFound(RecordNotFound):
    def __init__(self, appointment_id: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(detail or f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class BlockedSlotNotFound(RecordNotFound):
    def __init__(self, slot_id: int):
        super().__init__(f"Blocked time slot {slot_id} not found")
        self.slot_id = slot_id


# Store -------------------------------------------------------------------


class StoreError(SchedulingError):
    """The record store failed to complete a read or write"""


class StoreUnavailable(StoreError):
    pass


class ConstraintViolation(StoreError):
    pass


STORE_FAILURE_MESSAGE = "Could not complete the scheduling operation, please retry."
