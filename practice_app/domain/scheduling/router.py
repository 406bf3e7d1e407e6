"""Scheduling router - FastAPI endpoints for appointments, recurring series and availability"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .availability_service import AvailabilityFinder, ProviderScheduleService
from .conflict_service import ConflictDetector
from .recurrence import next_occurrence
from .repository import AppointmentRepository
from .schemas import (
    AppointmentDraft,
    AppointmentExceptionResponse,
    AppointmentResponse,
    AppointmentUpdate,
    BlockedSlotCreate,
    BlockedSlotResponse,
    ConflictCheckResponse,
    ExceptionCreateRequest,
    NextOccurrenceRequest,
    SeriesCancelRequest,
    SeriesCreateRequest,
    SeriesCreateResult,
    SeriesMutationResponse,
    SeriesUpdateRequest,
    StatusChangeRequest,
    TimeSlot,
    WorkingHours,
    WorkingHoursResponse,
)
from .series_service import SeriesService
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])


def get_repository(db: Session = Depends(get_db)) -> AppointmentRepository:
    """Dependency injection for the appointment record store"""
    return AppointmentRepository(db)


def get_conflict_detector(
    repository: AppointmentRepository = Depends(get_repository),
) -> ConflictDetector:
    return ConflictDetector(repository)


def get_series_service(
    repository: AppointmentRepository = Depends(get_repository),
    detector: ConflictDetector = Depends(get_conflict_detector),
) -> SeriesService:
    """Dependency injection for SeriesService"""
    return SeriesService(repository, detector)


def get_appointment_service(
    repository: AppointmentRepository = Depends(get_repository),
    detector: ConflictDetector = Depends(get_conflict_detector),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(repository, detector)


def get_availability_finder(
    detector: ConflictDetector = Depends(get_conflict_detector),
) -> AvailabilityFinder:
    return AvailabilityFinder(detector)


def get_provider_schedule_service(
    repository: AppointmentRepository = Depends(get_repository),
) -> ProviderScheduleService:
    return ProviderScheduleService(repository)


# ============================================================================
# RECURRENCE
# ============================================================================


@router.post("/recurrence/next")
async def get_next_occurrence(data: NextOccurrenceRequest):
    """Next occurrence strictly after ``current``"""
    return {"next": next_occurrence(data.current, data.pattern)}


@router.post("/series/preview", response_model=list[AppointmentDraft])
async def preview_series(
    data: SeriesCreateRequest,
    service: SeriesService = Depends(get_series_service),
):
    """Generate series instances without storing them"""
    return service.preview(data.base, data.pattern, data.count)


# ============================================================================
# SERIES
# ============================================================================


@router.post("/series", response_model=SeriesCreateResult, status_code=201)
async def create_series(
    data: SeriesCreateRequest,
    service: SeriesService = Depends(get_series_service),
):
    """
    Create a recurring series.

    Instances are stored one by one; any that could not be stored are listed
    under ``failed`` while the rest remain in place.
    """
    return service.create_series(data.base, data.pattern, data.count, data.skip_conflicts)


@router.get("/series/{series_id}", response_model=list[AppointmentResponse])
async def get_series(
    series_id: str,
    service: SeriesService = Depends(get_series_service),
):
    return service.get_series(series_id)


@router.patch("/series/{series_id}", response_model=SeriesMutationResponse)
async def update_series(
    series_id: str,
    data: SeriesUpdateRequest,
    service: SeriesService = Depends(get_series_service),
):
    """Update every instance of a series from a date onward"""
    updated = service.update_from_date(series_id, data.from_date, data.updates)
    return SeriesMutationResponse(series_id=series_id, updated=updated)


@router.post("/series/{series_id}/cancel", response_model=SeriesMutationResponse)
async def cancel_series(
    series_id: str,
    data: SeriesCancelRequest,
    service: SeriesService = Depends(get_series_service),
):
    """Cancel every active instance of a series from a date onward"""
    updated = service.cancel_from_date(series_id, data.from_date, data.reason)
    return SeriesMutationResponse(series_id=series_id, updated=updated)


@router.get("/series/{series_id}/exceptions", response_model=list[AppointmentExceptionResponse])
async def get_series_exceptions(
    series_id: str,
    service: SeriesService = Depends(get_series_service),
):
    return service.get_exceptions(series_id)


@router.post(
    "/series/{series_id}/exceptions",
    response_model=AppointmentExceptionResponse,
    status_code=201,
)
async def create_series_exception(
    series_id: str,
    data: ExceptionCreateRequest,
    service: SeriesService = Depends(get_series_service),
):
    """Cancel, reschedule or modify a single instance of a series"""
    return service.create_exception(
        series_id,
        data.original_date,
        data.exception_type,
        new_start_time=data.new_start_time,
        new_end_time=data.new_end_time,
        reason=data.reason,
        updates=data.updates,
    )


# ============================================================================
# CONFLICTS & AVAILABILITY
# ============================================================================


@router.get("/conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    start: datetime = Query(...),
    end: datetime = Query(...),
    exclude_id: Optional[int] = Query(None),
    provider_id: Optional[str] = Query(None),
    detector: ConflictDetector = Depends(get_conflict_detector),
):
    conflicts = detector.find_conflicts(start, end, exclude_id=exclude_id, provider_id=provider_id)
    return ConflictCheckResponse(
        has_conflict=bool(conflicts), conflicting_ids=[c.id for c in conflicts]
    )


@router.get("/availability", response_model=list[TimeSlot])
async def get_availability(
    day: date = Query(..., alias="date"),
    duration_minutes: int = Query(...),
    provider_id: Optional[str] = Query(None),
    buffer_minutes: Optional[int] = Query(None),
    finder: AvailabilityFinder = Depends(get_availability_finder),
):
    """Open slots within working hours on the given date"""
    return finder.find_open_slots(
        day, duration_minutes, provider_id=provider_id, buffer_minutes=buffer_minutes
    )


# ============================================================================
# BLOCKED TIME & WORKING HOURS
# ============================================================================


@router.post("/blocked-slots", response_model=BlockedSlotResponse, status_code=201)
async def block_time(
    data: BlockedSlotCreate,
    service: ProviderScheduleService = Depends(get_provider_schedule_service),
):
    """Take time out of the calendar for one provider, or for everyone when no provider is given"""
    return service.block_time(data)


@router.get("/blocked-slots", response_model=list[BlockedSlotResponse])
async def list_blocked_slots(
    start: datetime = Query(...),
    end: datetime = Query(...),
    provider_id: Optional[str] = Query(None),
    service: ProviderScheduleService = Depends(get_provider_schedule_service),
):
    return service.list_blocked(start, end, provider_id=provider_id)


@router.delete("/blocked-slots/{slot_id}")
async def unblock_time(
    slot_id: int,
    service: ProviderScheduleService = Depends(get_provider_schedule_service),
):
    service.unblock(slot_id)
    return {"message": "Blocked time slot removed"}


@router.get(
    "/providers/{provider_id}/working-hours", response_model=list[WorkingHoursResponse]
)
async def get_working_hours(
    provider_id: str,
    service: ProviderScheduleService = Depends(get_provider_schedule_service),
):
    return service.get_working_hours(provider_id)


@router.put(
    "/providers/{provider_id}/working-hours/{day_of_week}",
    response_model=WorkingHoursResponse,
)
async def set_working_hours(
    provider_id: str,
    day_of_week: int,
    data: WorkingHours,
    service: ProviderScheduleService = Depends(get_provider_schedule_service),
):
    """Replace a provider's hours for one weekday (0=Sunday .. 6=Saturday)"""
    return service.set_working_hours(provider_id, day_of_week, data)


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/appointments", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentDraft,
    check_conflicts: bool = Query(True),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.book(data, check_conflicts=check_conflicts)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id)


@router.patch("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.update(appointment_id, data)


@router.post("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
async def change_appointment_status(
    appointment_id: int,
    data: StatusChangeRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.change_status(appointment_id, data.status, data.reason)


@router.delete("/appointments/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    service.delete(appointment_id)
    return {"message": "Appointment deleted successfully"}
