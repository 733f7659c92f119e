# backend/fitstudio/models/booking.py
"""
Booking model for FitStudio.

A booking is one member's claim on a class session. Rows are never deleted:
cancelled, checked-in and no-show bookings stay for member history and
attendance reporting.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import relationship

from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    CONFIRMED = "CONFIRMED"  # Holds a spot
    WAITLISTED = "WAITLISTED"  # Queued until a spot frees up
    CHECKED_IN = "CHECKED_IN"  # Attended
    NO_SHOW = "NO_SHOW"  # Confirmed but never checked in
    CANCELLED = "CANCELLED"


class CheckInMethod(str, Enum):
    MANUAL = "MANUAL"
    QR_SCAN = "QR_SCAN"


ACTIVE_BOOKING_STATUSES = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.WAITLISTED.value,
    BookingStatus.CHECKED_IN.value,
)

# Statuses that count towards the attendee list of a session.
ROSTER_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.CHECKED_IN.value)

_ACTIVE_STATUS_SQL = "status IN ('CONFIRMED', 'WAITLISTED', 'CHECKED_IN')"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    tenant_id = Column(String(26), nullable=False, index=True)
    member_id = Column(String(26), ForeignKey("members.id"), nullable=False)
    class_session_id = Column(String(26), ForeignKey("class_sessions.id"), nullable=False)

    status = Column(String(20), nullable=False, index=True)
    # Per-session insertion order; breaks created_at ties in the waitlist.
    sequence = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)
    promoted_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(26), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    check_in_method = Column(String(20), nullable=True)
    no_show_at = Column(DateTime(timezone=True), nullable=True)

    member = relationship("Member", back_populates="bookings")
    class_session = relationship("ClassSession", back_populates="bookings")

    __table_args__ = (
        CheckConstraint(
            "status IN ('CONFIRMED', 'WAITLISTED', 'CHECKED_IN', 'NO_SHOW', 'CANCELLED')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "check_in_method IS NULL OR check_in_method IN ('MANUAL', 'QR_SCAN')",
            name="ck_bookings_check_in_method",
        ),
        Index(
            "uq_bookings_active_member_session",
            "member_id",
            "class_session_id",
            unique=True,
            postgresql_where=text(_ACTIVE_STATUS_SQL),
            sqlite_where=text(_ACTIVE_STATUS_SQL),
        ),
        Index("ix_bookings_session_queue", "class_session_id", "status", "created_at", "sequence"),
        Index("ix_bookings_member_status", "member_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: member={self.member_id}, "
            f"session={self.class_session_id}, status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def confirm_from_waitlist(self, now: datetime) -> None:
        self.status = BookingStatus.CONFIRMED.value
        self.promoted_at = now
        logger.info(f"Booking {self.id} promoted from waitlist")

    def cancel(self, now: datetime, cancelled_by: Optional[str] = None) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancelled_by = cancelled_by
        logger.info(f"Booking {self.id} cancelled by {cancelled_by}")

    def check_in(self, now: datetime, method: CheckInMethod = CheckInMethod.MANUAL) -> None:
        self.status = BookingStatus.CHECKED_IN.value
        self.checked_in_at = now
        self.check_in_method = CheckInMethod(method).value
        logger.info(f"Booking {self.id} checked in via {self.check_in_method}")

    def mark_no_show(self, now: datetime) -> None:
        self.status = BookingStatus.NO_SHOW.value
        self.no_show_at = now
        logger.info(f"Booking {self.id} marked as no-show")
