"""
Scheduling Domain

Appointment booking, recurring series and availability for the practice.

Structure:
```
practice_app/domain/scheduling/
├── __init__.py
├── errors.py               # Validation, lookup and store error hierarchy
├── schemas.py              # Appointment, pattern and request/response schemas
├── status.py               # Appointment status workflow
├── recurrence.py           # Next occurrence for a recurrence pattern
├── series.py               # Series instance generation (pure)
├── repository.py           # Appointment, blocked time and working hours queries
├── conflict_service.py     # Overlap detection against stored appointments
├── availability_service.py # Open slots, blocked time and provider working hours
├── series_service.py       # Series persistence, bulk changes, exceptions
├── service.py              # Single appointment booking and changes
└── router.py               # Scheduling endpoints
```

ENDPOINTS (prefix /scheduling):
- POST /recurrence/next - Next occurrence of a pattern
- POST /series/preview - Generate series instances without storing them
- POST /series - Create a recurring series
- GET /series/{series_id} - Series instances
- PATCH /series/{series_id} - Update instances from a date onward
- POST /series/{series_id}/cancel - Cancel instances from a date onward
- GET|POST /series/{series_id}/exceptions - Single-instance deviations
- GET /conflicts - Overlapping appointments for an interval
- GET /availability - Open slots on a date
- GET|POST /blocked-slots, DELETE /blocked-slots/{id} - Blocked time
- GET /providers/{provider_id}/working-hours - Weekly hours
- PUT /providers/{provider_id}/working-hours/{day_of_week} - Hours for one weekday
- POST /appointments, GET|PATCH|DELETE /appointments/{id}
- POST /appointments/{id}/status - Status workflow transitions

Series operations are not transactional across instances: a failure partway
through leaves the instances already written in place.
"""

from .availability_service import AvailabilityFinder, ProviderScheduleService
from .conflict_service import ConflictDetector
from .recurrence import next_occurrence
from .router import router
from .series import generate_instances
from .series_service import SeriesService
from .service import AppointmentService

__all__ = [
    "router",
    "next_occurrence",
    "generate_instances",
    "ConflictDetector",
    "AvailabilityFinder",
    "ProviderScheduleService",
    "SeriesService",
    "AppointmentService",
]
