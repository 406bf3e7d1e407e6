from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.sql import func

from .database import Base


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    contact_id = Column(String(255), nullable=False, index=True)  # patient/contact record id
    provider_id = Column(String(255), nullable=True, index=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    # scheduled, confirmed, cancelled, completed, no_show
    status = Column(String(50), default="scheduled", nullable=False, index=True)
    # consultation, treatment, follow_up, procedure
    appointment_type = Column(String(50), default="consultation", nullable=False)
    notes = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    cancellation_reason = Column(String(1000), nullable=True)

    # Recurring series membership (absent for standalone appointments)
    series_id = Column(String(36), nullable=True, index=True)
    recurrence_pattern = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Appointment {self.id} {self.start_time}-{self.end_time} {self.status}>"


class AppointmentException(Base):
    """Audit record of a deviation applied to one instance of a series"""

    __tablename__ = "appointment_exceptions"

    id = Column(Integer, primary_key=True, index=True)
    series_id = Column(String(36), nullable=False, index=True)
    original_date = Column(DateTime, nullable=False)
    exception_type = Column(String(20), nullable=False)  # cancelled, rescheduled, modified
    new_start_time = Column(DateTime, nullable=True)
    new_end_time = Column(DateTime, nullable=True)
    reason = Column(String(1000), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ProviderAvailability(Base):
    """Weekly working hours for one provider on one weekday"""

    __tablename__ = "provider_availability"
    __table_args__ = (UniqueConstraint("provider_id", "day_of_week", name="uq_provider_weekday"),)

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(String(255), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday .. 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    break_start_time = Column(Time, nullable=True)
    break_end_time = Column(Time, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BlockedTimeSlot(Base):
    """Time taken out of the calendar (leave, meetings, maintenance)"""

    __tablename__ = "blocked_time_slots"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(String(255), nullable=True, index=True)  # NULL blocks every provider
    title = Column(String(255), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    reason = Column(String(1000), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
