"""
Series Service

Persists generated series and applies series-wide changes:
- create_series: store each generated instance (not atomic, partial results reported)
- update_from_date: change every instance from a date onward
- cancel_from_date: cancel every still-active instance from a date onward
- create_exception: record a deviation and apply it to exactly one instance

No operation here is transactional across instances. A failure partway
through leaves the instances written so far in place.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, Union

from ...config import DEFAULT_SERIES_COUNT, MAX_SERIES_COUNT
from ...models import Appointment, AppointmentException
from ...shared.validators import is_valid_time_range, validate_uuid
from .conflict_service import ConflictDetector
from .errors import (
    AppointmentNotFound,
    InvalidException,
    SchedulingValidationError,
    StoreError,
)
from .recurrence import PatternInput
from .repository import RecordStore
from .schemas import (
    AppointmentDraft,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    ExceptionType,
    FailedInstance,
    SeriesCreateResult,
    SeriesUpdate,
)
from .series import generate_instances
from .status import ACTIVE_STATUSES, ensure_transition, is_terminal

logger = logging.getLogger(__name__)


class SeriesService:
    """Service layer for recurring appointment series"""

    def __init__(self, store: RecordStore, detector: Optional[ConflictDetector] = None):
        self.store = store
        self.detector = detector or ConflictDetector(store)

    @staticmethod
    def resolve_count(count: Optional[int]) -> int:
        if count is None:
            return DEFAULT_SERIES_COUNT
        if count < 1 or count > MAX_SERIES_COUNT:
            raise SchedulingValidationError(
                f"Number of appointments must be between 1 and {MAX_SERIES_COUNT}"
            )
        return count

    # Creation --------------------------------------------------------------

    def preview(
        self, base: AppointmentDraft, pattern: PatternInput, count: Optional[int] = None
    ) -> list[AppointmentDraft]:
        """Generated instances, nothing stored"""
        return generate_instances(base, pattern, self.resolve_count(count))

    def create_series(
        self,
        base: AppointmentDraft,
        pattern: PatternInput,
        count: Optional[int] = None,
        skip_conflicts: bool = False,
    ) -> SeriesCreateResult:
        """
        Generate a series and store it instance by instance.

        Args:
            skip_conflicts: when true, instances overlapping an existing
                appointment are not stored and are reported as skipped

        Returns:
            SeriesCreateResult with created, failed and skipped instances.
            Created instances are kept even when later ones fail.
        """
        series_id = str(uuid.uuid4())
        drafts = generate_instances(
            base.model_copy(update={"series_id": series_id}), pattern, self.resolve_count(count)
        )

        logger.info(f"📅 Creating series {series_id} with {len(drafts)} instance(s)")
        result = SeriesCreateResult(series_id=series_id)

        for draft in drafts:
            try:
                if skip_conflicts and self.detector.has_conflict(
                    draft.start_time, draft.end_time, provider_id=draft.provider_id
                ):
                    logger.info(f"⏭️ Skipping series {series_id} instance at {draft.start_time}: conflict")
                    result.skipped.append(draft.start_time)
                    continue
                appointment = self.store.insert(draft)
            except StoreError as e:
                logger.warning(
                    f"⚠️ Failed to store series {series_id} instance at {draft.start_time}: {e.message}"
                )
                result.failed.append(FailedInstance(start_time=draft.start_time, reason=e.message))
                continue

            result.created.append(AppointmentResponse.model_validate(appointment))

        if result.failed:
            logger.warning(
                f"⚠️ Series {series_id} partially created: "
                f"{len(result.created)} stored, {len(result.failed)} failed"
            )
        else:
            logger.info(f"✅ Series {series_id} created: {len(result.created)} instance(s)")
        return result

    # Reads -----------------------------------------------------------------

    def get_series(self, series_id: str) -> list[Appointment]:
        instances = self.store.list_series(series_id) if validate_uuid(series_id) else []
        if not instances:
            raise AppointmentNotFound(detail=f"Series {series_id} not found")
        return instances

    def get_exceptions(self, series_id: str) -> list[AppointmentException]:
        self.get_series(series_id)
        return self.store.list_exceptions(series_id)

    # Series-wide changes ---------------------------------------------------

    def update_from_date(self, series_id: str, from_date: datetime, updates: SeriesUpdate) -> int:
        """Apply ``updates`` to every instance starting at or after ``from_date``"""
        fields = updates.to_fields()
        if not fields:
            raise SchedulingValidationError("No fields to update")

        count = self.store.update_where(series_id, from_date, fields)
        logger.info(f"✏️ Updated {count} instance(s) of series {series_id} from {from_date}")
        return count

    def cancel_from_date(
        self, series_id: str, from_date: datetime, reason: Optional[str] = None
    ) -> int:
        """Cancel every scheduled or confirmed instance starting at or after ``from_date``"""
        count = self.store.update_where(
            series_id,
            from_date,
            {
                "status": AppointmentStatus.CANCELLED.value,
                "cancellation_reason": reason,
            },
            statuses=ACTIVE_STATUSES,
        )
        logger.info(f"🚫 Cancelled {count} instance(s) of series {series_id} from {from_date}")
        return count

    def create_exception(
        self,
        series_id: str,
        original_date: datetime,
        exception_type: Union[str, ExceptionType],
        new_start_time: Optional[datetime] = None,
        new_end_time: Optional[datetime] = None,
        reason: Optional[str] = None,
        updates: Optional[AppointmentUpdate] = None,
    ) -> AppointmentException:
        """
        Record a deviation for the instance starting at ``original_date`` and
        apply it to that instance.

        - cancelled: the instance is cancelled
        - rescheduled: the instance moves to new_start_time/new_end_time
        - modified: ``updates`` (if any) are applied to the instance

        The exception record is written first; it is an audit trail, the
        appointment itself stays authoritative.
        """
        try:
            exception_type = ExceptionType(exception_type)
        except ValueError as e:
            raise InvalidException(f"Unknown exception type '{exception_type}'") from e

        instance = self.store.find_instance(series_id, original_date)
        if not instance:
            raise AppointmentNotFound(
                detail=f"No instance of series {series_id} starts at {original_date.isoformat()}"
            )

        fields = self._exception_fields(instance, exception_type, new_start_time, new_end_time, reason, updates)

        record = self.store.insert_exception(
            series_id=series_id,
            original_date=original_date,
            exception_type=exception_type.value,
            new_start_time=new_start_time,
            new_end_time=new_end_time,
            reason=reason,
        )
        if fields:
            self.store.update_by_id(instance.id, fields)

        logger.info(
            f"📝 Recorded {exception_type.value} exception for series {series_id} at {original_date}"
        )
        return record

    @staticmethod
    def _exception_fields(
        instance: Appointment,
        exception_type: ExceptionType,
        new_start_time: Optional[datetime],
        new_end_time: Optional[datetime],
        reason: Optional[str],
        updates: Optional[AppointmentUpdate],
    ) -> dict:
        """Validate the exception and return the changes for the instance"""
        if exception_type != ExceptionType.RESCHEDULED and (new_start_time or new_end_time):
            raise InvalidException("New times are only allowed when rescheduling")

        if exception_type == ExceptionType.CANCELLED:
            ensure_transition(instance.status, AppointmentStatus.CANCELLED)
            return {
                "status": AppointmentStatus.CANCELLED.value,
                "cancellation_reason": reason,
            }

        if exception_type == ExceptionType.RESCHEDULED:
            if not is_valid_time_range(new_start_time, new_end_time):
                raise InvalidException(
                    "Rescheduling needs a new start time that is before the new end time"
                )
            if is_terminal(instance.status):
                raise InvalidException(f"Cannot reschedule a {instance.status} appointment")
            return {"start_time": new_start_time, "end_time": new_end_time}

        if updates is None:
            return {}
        fields = updates.to_fields()
        start = fields.get("start_time", instance.start_time)
        end = fields.get("end_time", instance.end_time)
        if not is_valid_time_range(start, end):
            raise InvalidException("Start time must be before end time")
        return fields
