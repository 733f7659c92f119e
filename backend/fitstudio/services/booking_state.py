# backend/fitstudio/services/booking_state.py
"""Allowed booking status transitions."""

from typing import Dict, FrozenSet, Union

from ..core.exceptions import InvalidStateError
from ..models.booking import Booking, BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CHECKED_IN, BookingStatus.NO_SHOW, BookingStatus.CANCELLED}
    ),
    BookingStatus.WAITLISTED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CHECKED_IN: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(current: Union[str, BookingStatus], target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[BookingStatus(current)]


def assert_transition(booking: Booking, target: BookingStatus) -> None:
    """Raise InvalidStateError unless ``booking`` may move to ``target``."""
    current = BookingStatus(booking.status)
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot change booking from {current.value} to {target.value}",
            details={
                "booking_id": booking.id,
                "current_status": current.value,
                "target_status": target.value,
            },
        )


def record_transition(from_status: Union[str, BookingStatus, None], booking: Booking) -> None:
    previous = BookingStatus(from_status).value if from_status else None
    prometheus_metrics.record_booking_transition(previous, BookingStatus(booking.status).value)
