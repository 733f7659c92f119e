"""SQLAlchemy models for the booking lifecycle."""

from .booking import ACTIVE_BOOKING_STATUSES, ROSTER_STATUSES, Booking, BookingStatus, CheckInMethod
from .class_session import ClassSession, ClassSessionStatus
from .member import Member

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "ROSTER_STATUSES",
    "Booking",
    "BookingStatus",
    "CheckInMethod",
    "ClassSession",
    "ClassSessionStatus",
    "Member",
]
