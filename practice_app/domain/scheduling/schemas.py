"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...shared.validators import validate_required_text
from .errors import SchedulingValidationError


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses"""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class AppointmentType(str, Enum):
    CONSULTATION = "consultation"
    TREATMENT = "treatment"
    FOLLOW_UP = "follow_up"
    PROCEDURE = "procedure"


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ExceptionType(str, Enum):
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    MODIFIED = "modified"


def plain_fields(data: dict) -> dict:
    """Replace enum members with their stored string values"""
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}


class RecurrencePattern(BaseModel):
    """Recurrence description shared by every instance of a series"""

    type: RecurrenceType
    interval: int = 1
    days_of_week: Optional[list[int]] = None  # 0=Sunday .. 6=Saturday, weekly only
    day_of_month: Optional[int] = None  # 1-31, monthly only
    end_date: Optional[datetime] = None
    max_occurrences: Optional[int] = None

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v):
        if v < 1:
            raise ValueError("Recurrence interval must be at least 1")
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days_of_week(cls, v):
        if v is None:
            return v
        for day in v:
            if day < 0 or day > 6:
                raise ValueError("Days of week must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))

    @field_validator("day_of_month")
    @classmethod
    def validate_day_of_month(cls, v):
        if v is not None and (v < 1 or v > 31):
            raise ValueError("Day of month must be between 1 and 31")
        return v

    @field_validator("max_occurrences")
    @classmethod
    def validate_max_occurrences(cls, v):
        if v is not None and v < 1:
            raise ValueError("Maximum occurrences must be at least 1")
        return v

    @field_validator("end_date", mode="before")
    @classmethod
    def expand_end_date(cls, v):
        # A bare date means "through the end of that day"
        if isinstance(v, str) and len(v) == 10:
            v = date.fromisoformat(v)
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.max)
        return v


class AppointmentDraft(BaseModel):
    """An appointment that has not been stored yet"""

    title: str
    contact_id: str
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    provider_id: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    series_id: Optional[str] = None
    recurrence_pattern: Optional[RecurrencePattern] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return validate_required_text(v, "Appointment title")

    @field_validator("contact_id")
    @classmethod
    def validate_contact(cls, v):
        return validate_required_text(v, "Patient selection")

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v):
        if v not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            raise ValueError("New appointments must be scheduled or confirmed")
        return v


# Columns a partial update may leave alone but never clear
REQUIRED_FIELD_LABELS = {
    "title": "Appointment title",
    "contact_id": "Patient selection",
    "appointment_type": "Appointment type",
    "start_time": "Start time",
    "end_time": "End time",
}


class PartialUpdate(BaseModel):
    """Base for typed partial updates; only explicitly set fields are applied"""

    class Config:
        extra = "forbid"

    @field_validator("title", "contact_id", check_fields=False)
    @classmethod
    def validate_required_text_fields(cls, v, info):
        return validate_required_text(v, REQUIRED_FIELD_LABELS[info.field_name])

    @field_validator("appointment_type", "start_time", "end_time", check_fields=False)
    @classmethod
    def validate_not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{REQUIRED_FIELD_LABELS[info.field_name]} is required")
        return v

    def to_fields(self) -> dict:
        """Only the fields the caller explicitly set"""
        fields = plain_fields(self.model_dump(exclude_unset=True))
        # model_construct skips validation, so check again before anything is stored
        for name, label in REQUIRED_FIELD_LABELS.items():
            if name in fields and fields[name] is None:
                raise SchedulingValidationError(f"{label} is required")
        return fields


class AppointmentUpdate(PartialUpdate):
    """Fields that may be changed on a single appointment"""

    title: Optional[str] = None
    contact_id: Optional[str] = None
    provider_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    appointment_type: Optional[AppointmentType] = None
    notes: Optional[str] = None
    location: Optional[str] = None


class SeriesUpdate(PartialUpdate):
    """Fields that may be changed across every remaining instance of a series"""

    title: Optional[str] = None
    contact_id: Optional[str] = None
    provider_id: Optional[str] = None
    appointment_type: Optional[AppointmentType] = None
    notes: Optional[str] = None
    location: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    title: str
    contact_id: str
    provider_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    appointment_type: AppointmentType
    notes: Optional[str] = None
    location: Optional[str] = None
    cancellation_reason: Optional[str] = None
    series_id: Optional[str] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentExceptionResponse(BaseModel):
    id: int
    series_id: str
    original_date: datetime
    exception_type: ExceptionType
    new_start_time: Optional[datetime] = None
    new_end_time: Optional[datetime] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    start: datetime
    end: datetime


class BlockedSlotCreate(BaseModel):
    title: str
    start_time: datetime
    end_time: datetime
    provider_id: Optional[str] = None  # None blocks every provider
    reason: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return validate_required_text(v, "Block title")


class BlockedSlotResponse(BaseModel):
    id: int
    title: str
    start_time: datetime
    end_time: datetime
    provider_id: Optional[str] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkingHours(BaseModel):
    """A provider's hours for one weekday, with an optional break"""

    start_time: time
    end_time: time
    break_start_time: Optional[time] = None
    break_end_time: Optional[time] = None
    is_available: bool = True

    @model_validator(mode="after")
    def validate_hours(self):
        if self.start_time >= self.end_time:
            raise ValueError("Working hours must start before they end")
        if (self.break_start_time is None) != (self.break_end_time is None):
            raise ValueError("A break needs both a start and an end time")
        if self.break_start_time is not None:
            if self.break_start_time >= self.break_end_time:
                raise ValueError("Break must start before it ends")
            if self.break_start_time < self.start_time or self.break_end_time > self.end_time:
                raise ValueError("Break must fall within working hours")
        return self


class WorkingHoursResponse(WorkingHours):
    id: int
    provider_id: str
    day_of_week: int

    class Config:
        from_attributes = True


class FailedInstance(BaseModel):
    start_time: datetime
    reason: str


class SeriesCreateResult(BaseModel):
    """Outcome of persisting a generated series instance by instance"""

    series_id: str
    created: list[AppointmentResponse] = []
    failed: list[FailedInstance] = []
    skipped: list[datetime] = []

    @property
    def is_complete(self) -> bool:
        return not self.failed and not self.skipped


# Request bodies ----------------------------------------------------------


class NextOccurrenceRequest(BaseModel):
    current: datetime
    pattern: RecurrencePattern


class SeriesCreateRequest(BaseModel):
    base: AppointmentDraft
    pattern: RecurrencePattern
    count: Optional[int] = None
    skip_conflicts: bool = False


class SeriesUpdateRequest(BaseModel):
    from_date: datetime
    updates: SeriesUpdate


class SeriesCancelRequest(BaseModel):
    from_date: datetime
    reason: Optional[str] = None


class ExceptionCreateRequest(BaseModel):
    original_date: datetime
    exception_type: ExceptionType
    new_start_time: Optional[datetime] = None
    new_end_time: Optional[datetime] = None
    reason: Optional[str] = None
    updates: Optional[AppointmentUpdate] = None


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus
    reason: Optional[str] = None


class SeriesMutationResponse(BaseModel):
    series_id: str
    updated: int


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicting_ids: list[int] = []
