"""Appointment service - Booking and single-appointment changes"""

import logging
from typing import Optional, Union

from ...models import Appointment
from ...shared.validators import is_valid_time_range
from .conflict_service import ConflictDetector
from .errors import (
    AppointmentNotFound,
    InvalidTimeRange,
    SchedulingConflict,
    SchedulingValidationError,
)
from .repository import RecordStore
from .schemas import AppointmentDraft, AppointmentStatus, AppointmentUpdate
from .status import ensure_transition

logger = logging.getLogger(__name__)


class AppointmentService:
    """Service layer for standalone appointment operations"""

    def __init__(self, store: RecordStore, detector: Optional[ConflictDetector] = None):
        self.store = store
        self.detector = detector or ConflictDetector(store)

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.store.get_by_id(appointment_id)
        if not appointment:
            raise AppointmentNotFound(appointment_id)
        return appointment

    def book(self, draft: AppointmentDraft, check_conflicts: bool = True) -> Appointment:
        """
        Create a standalone appointment.

        The conflict check is advisory; see conflict_service for the race
        between check and insert.
        """
        if not is_valid_time_range(draft.start_time, draft.end_time):
            raise InvalidTimeRange("Start time must be before end time")

        if check_conflicts:
            conflicts = self.detector.find_conflicts(
                draft.start_time, draft.end_time, provider_id=draft.provider_id
            )
            if conflicts:
                logger.warning(
                    f"⚠️ Booking rejected for {draft.start_time}-{draft.end_time}: "
                    f"overlaps {[c.id for c in conflicts]}"
                )
                raise SchedulingConflict([c.id for c in conflicts])

        appointment = self.store.insert(draft)
        logger.info(f"📥 Booked appointment {appointment.id} for contact {appointment.contact_id}")
        return appointment

    def update(
        self, appointment_id: int, updates: AppointmentUpdate, check_conflicts: bool = True
    ) -> Appointment:
        """Apply a partial update; moved appointments are re-checked against others"""
        fields = updates.to_fields()
        if not fields:
            raise SchedulingValidationError("No fields to update")

        appointment = self.get_appointment(appointment_id)
        start = fields.get("start_time", appointment.start_time)
        end = fields.get("end_time", appointment.end_time)
        if not is_valid_time_range(start, end):
            raise InvalidTimeRange("Start time must be before end time")

        moved = "start_time" in fields or "end_time" in fields or "provider_id" in fields
        if check_conflicts and moved and appointment.status != AppointmentStatus.CANCELLED.value:
            conflicts = self.detector.find_conflicts(
                start,
                end,
                exclude_id=appointment_id,
                provider_id=fields.get("provider_id", appointment.provider_id),
            )
            if conflicts:
                raise SchedulingConflict([c.id for c in conflicts])

        return self.store.update_by_id(appointment_id, fields)

    def change_status(
        self,
        appointment_id: int,
        status: Union[str, AppointmentStatus],
        reason: Optional[str] = None,
    ) -> Appointment:
        """Move an appointment along the status workflow"""
        appointment = self.get_appointment(appointment_id)
        target = ensure_transition(appointment.status, status)

        fields = {"status": target.value}
        if target == AppointmentStatus.CANCELLED:
            fields["cancellation_reason"] = reason

        updated = self.store.update_by_id(appointment_id, fields)
        logger.info(f"🔄 Appointment {appointment_id} status: {appointment.status} → {target.value}")
        return updated

    def delete(self, appointment_id: int) -> None:
        self.store.delete_by_id(appointment_id)
        logger.info(f"🗑️ Deleted appointment {appointment_id}")
