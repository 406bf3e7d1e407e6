"""Scheduling repository - Record store operations for appointments, blocked time and working hours"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Appointment, AppointmentException, BlockedTimeSlot, ProviderAvailability
from .errors import (
    AppointmentNotFound,
    BlockedSlotNotFound,
    ConstraintViolation,
    SchedulingValidationError,
    StoreUnavailable,
)
from .schemas import AppointmentDraft, AppointmentStatus, plain_fields

logger = logging.getLogger(__name__)

# Appointment columns callers may change; the id and timestamps belong to the store
UPDATABLE_FIELDS = frozenset(column.name for column in Appointment.__table__.columns) - {
    "id",
    "created_at",
    "updated_at",
}


def ensure_updatable(fields: dict) -> None:
    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise SchedulingValidationError(f"Unknown appointment field(s): {', '.join(unknown)}")


class RecordStore(Protocol):
    """What the scheduling core needs from persistence"""

    def find_overlapping(
        self,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
        provider_id: Optional[str] = None,
    ) -> list[Appointment]: ...

    def insert(self, draft: AppointmentDraft) -> Appointment: ...

    def update_by_id(self, appointment_id: int, fields: dict) -> Appointment: ...

    def update_where(
        self,
        series_id: str,
        start_at_or_after: datetime,
        fields: dict,
        statuses: Optional[list[str]] = None,
    ) -> int: ...

    def delete_by_id(self, appointment_id: int) -> None: ...

    def insert_exception(self, **exception_data) -> AppointmentException: ...

    def get_by_id(self, appointment_id: int) -> Optional[Appointment]: ...

    def find_instance(self, series_id: str, start_time: datetime) -> Optional[Appointment]: ...

    def list_series(self, series_id: str) -> list[Appointment]: ...

    def list_exceptions(self, series_id: str) -> list[AppointmentException]: ...

    def find_blocked_overlapping(
        self, start: datetime, end: datetime, provider_id: Optional[str] = None
    ) -> list[BlockedTimeSlot]: ...

    def insert_blocked_slot(self, **slot_data) -> BlockedTimeSlot: ...

    def delete_blocked_slot(self, slot_id: int) -> None: ...

    def get_working_hours(
        self, provider_id: str, day_of_week: int
    ) -> Optional[ProviderAvailability]: ...

    def list_working_hours(self, provider_id: str) -> list[ProviderAvailability]: ...

    def save_working_hours(
        self, provider_id: str, day_of_week: int, fields: dict
    ) -> ProviderAvailability: ...


class AppointmentRepository:
    """SQLAlchemy-backed record store for appointments, series exceptions, blocked time and working hours"""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _store_operation(self, action: str):
        """Translate database failures into scheduling store errors"""
        try:
            yield
        except IntegrityError as e:
            self._rollback()
            logger.error(f"❌ Constraint violated while trying to {action}: {e.orig}")
            raise ConstraintViolation(f"Could not {action}: a store constraint was violated") from e
        except SQLAlchemyError as e:
            self._rollback()
            logger.error(f"❌ Record store failure while trying to {action}: {e}")
            raise StoreUnavailable(f"Could not {action}") from e

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Rollback failed after store error: {e}")

    # Reads -----------------------------------------------------------------

    def find_overlapping(
        self,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
        provider_id: Optional[str] = None,
    ) -> list[Appointment]:
        """Non-cancelled appointments whose interval overlaps [start, end)"""
        with self._store_operation("check for overlapping appointments"):
            query = self.db.query(Appointment).filter(
                Appointment.status != AppointmentStatus.CANCELLED.value,
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            if exclude_id is not None:
                query = query.filter(Appointment.id != exclude_id)
            if provider_id is not None:
                query = query.filter(Appointment.provider_id == provider_id)
            return query.order_by(Appointment.start_time).all()

    def get_by_id(self, appointment_id: int) -> Optional[Appointment]:
        with self._store_operation(f"load appointment {appointment_id}"):
            return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def find_instance(self, series_id: str, start_time: datetime) -> Optional[Appointment]:
        """The series member that starts exactly at ``start_time``"""
        with self._store_operation(f"load series {series_id} instance"):
            return (
                self.db.query(Appointment)
                .filter(Appointment.series_id == series_id, Appointment.start_time == start_time)
                .first()
            )

    def list_series(self, series_id: str) -> list[Appointment]:
        with self._store_operation(f"load series {series_id}"):
            return (
                self.db.query(Appointment)
                .filter(Appointment.series_id == series_id)
                .order_by(Appointment.start_time)
                .all()
            )

    def list_exceptions(self, series_id: str) -> list[AppointmentException]:
        with self._store_operation(f"load exceptions for series {series_id}"):
            return (
                self.db.query(AppointmentException)
                .filter(AppointmentException.series_id == series_id)
                .order_by(AppointmentException.created_at, AppointmentException.id)
                .all()
            )

    def list_between(
        self, start: datetime, end: datetime, provider_id: Optional[str] = None
    ) -> list[Appointment]:
        """All appointments (any status) starting within [start, end)"""
        with self._store_operation("list appointments"):
            query = self.db.query(Appointment).filter(
                Appointment.start_time >= start, Appointment.start_time < end
            )
            if provider_id is not None:
                query = query.filter(Appointment.provider_id == provider_id)
            return query.order_by(Appointment.start_time).all()

    # Writes ----------------------------------------------------------------

    def insert(self, draft: AppointmentDraft) -> Appointment:
        """Store a draft; the database assigns the id"""
        data = plain_fields(draft.model_dump(exclude={"recurrence_pattern"}))
        if draft.recurrence_pattern is not None:
            data["recurrence_pattern"] = draft.recurrence_pattern.model_dump(mode="json")

        with self._store_operation("create appointment"):
            appointment = Appointment(**data)
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
            return appointment

    def update_by_id(self, appointment_id: int, fields: dict) -> Appointment:
        ensure_updatable(fields)
        with self._store_operation(f"update appointment {appointment_id}"):
            appointment = (
                self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
            )
            if not appointment:
                raise AppointmentNotFound(appointment_id)

            for key, value in plain_fields(fields).items():
                setattr(appointment, key, value)

            self.db.commit()
            self.db.refresh(appointment)
            return appointment

    def update_where(
        self,
        series_id: str,
        start_at_or_after: datetime,
        fields: dict,
        statuses: Optional[list[str]] = None,
    ) -> int:
        """
        Bulk update the members of a series starting at or after a date.

        Args:
            statuses: when given, only instances currently in one of these
                statuses are touched

        Returns:
            Number of rows updated
        """
        ensure_updatable(fields)
        with self._store_operation(f"update series {series_id}"):
            query = self.db.query(Appointment).filter(
                Appointment.series_id == series_id,
                Appointment.start_time >= start_at_or_after,
            )
            if statuses is not None:
                query = query.filter(Appointment.status.in_(statuses))

            count = query.update(plain_fields(fields), synchronize_session=False)
            self.db.commit()
            return count

    def delete_by_id(self, appointment_id: int) -> None:
        with self._store_operation(f"delete appointment {appointment_id}"):
            appointment = (
                self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
            )
            if not appointment:
                raise AppointmentNotFound(appointment_id)
            self.db.delete(appointment)
            self.db.commit()

    def insert_exception(self, **exception_data) -> AppointmentException:
        with self._store_operation("record series exception"):
            exception = AppointmentException(**plain_fields(exception_data))
            self.db.add(exception)
            self.db.commit()
            self.db.refresh(exception)
            return exception

    # Blocked time ----------------------------------------------------------

    def find_blocked_overlapping(
        self, start: datetime, end: datetime, provider_id: Optional[str] = None
    ) -> list[BlockedTimeSlot]:
        """
        Blocked slots overlapping [start, end).

        A block without a provider closes the calendar for everyone, so it is
        returned for every provider filter.
        """
        with self._store_operation("check blocked time"):
            query = self.db.query(BlockedTimeSlot).filter(
                BlockedTimeSlot.start_time < end,
                BlockedTimeSlot.end_time > start,
            )
            if provider_id is not None:
                query = query.filter(
                    or_(
                        BlockedTimeSlot.provider_id == provider_id,
                        BlockedTimeSlot.provider_id.is_(None),
                    )
                )
            return query.order_by(BlockedTimeSlot.start_time).all()

    def insert_blocked_slot(self, **slot_data) -> BlockedTimeSlot:
        with self._store_operation("block time"):
            slot = BlockedTimeSlot(**slot_data)
            self.db.add(slot)
            self.db.commit()
            self.db.refresh(slot)
            return slot

    def delete_blocked_slot(self, slot_id: int) -> None:
        with self._store_operation(f"remove blocked time slot {slot_id}"):
            slot = self.db.query(BlockedTimeSlot).filter(BlockedTimeSlot.id == slot_id).first()
            if not slot:
                raise BlockedSlotNotFound(slot_id)
            self.db.delete(slot)
            self.db.commit()

    # Working hours ---------------------------------------------------------

    def get_working_hours(
        self, provider_id: str, day_of_week: int
    ) -> Optional[ProviderAvailability]:
        with self._store_operation(f"load working hours for provider {provider_id}"):
            return (
                self.db.query(ProviderAvailability)
                .filter(
                    ProviderAvailability.provider_id == provider_id,
                    ProviderAvailability.day_of_week == day_of_week,
                )
                .first()
            )

    def list_working_hours(self, provider_id: str) -> list[ProviderAvailability]:
        with self._store_operation(f"load working hours for provider {provider_id}"):
            return (
                self.db.query(ProviderAvailability)
                .filter(ProviderAvailability.provider_id == provider_id)
                .order_by(ProviderAvailability.day_of_week)
                .all()
            )

    def save_working_hours(
        self, provider_id: str, day_of_week: int, fields: dict
    ) -> ProviderAvailability:
        """Create or replace a provider's hours for one weekday"""
        with self._store_operation(f"save working hours for provider {provider_id}"):
            hours = (
                self.db.query(ProviderAvailability)
                .filter(
                    ProviderAvailability.provider_id == provider_id,
                    ProviderAvailability.day_of_week == day_of_week,
                )
                .first()
            )
            if hours is None:
                hours = ProviderAvailability(provider_id=provider_id, day_of_week=day_of_week)
                self.db.add(hours)

            for key, value in fields.items():
                setattr(hours, key, value)

            self.db.commit()
            self.db.refresh(hours)
            return hours
