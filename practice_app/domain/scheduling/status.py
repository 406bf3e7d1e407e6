"""
Appointment status workflow

scheduled → confirmed
scheduled | confirmed → cancelled | completed | no_show

cancelled, completed and no_show are terminal. Nothing returns to scheduled.
"""

from typing import Union

from .errors import InvalidStatusTransition
from .schemas import AppointmentStatus

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

# Statuses an appointment can still be cancelled from
ACTIVE_STATUSES = [AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value]


def is_terminal(status: Union[str, AppointmentStatus]) -> bool:
    return not ALLOWED_TRANSITIONS[AppointmentStatus(status)]


def can_transition(current: Union[str, AppointmentStatus], target: Union[str, AppointmentStatus]) -> bool:
    return AppointmentStatus(target) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


def ensure_transition(
    current: Union[str, AppointmentStatus], target: Union[str, AppointmentStatus]
) -> AppointmentStatus:
    """Return the target status, or raise if the workflow does not allow the move"""
    if not can_transition(current, target):
        raise InvalidStatusTransition(AppointmentStatus(current).value, AppointmentStatus(target).value)
    return AppointmentStatus(target)
