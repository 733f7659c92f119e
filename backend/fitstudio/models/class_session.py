# backend/fitstudio/models/class_session.py
"""
ClassSession model.

One scheduled occurrence of a class type at a location. The session row is
the aggregate root for its bookings: ``spots_booked`` and ``booking_sequence``
are only changed while the session is locked.
"""

from enum import Enum
import logging
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class ClassSessionStatus(str, Enum):
    """Class session lifecycle statuses."""

    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ClassSession(Base):
    __tablename__ = "class_sessions"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    tenant_id = Column(String(26), nullable=False, index=True)
    class_type_id = Column(String(26), nullable=False)
    location_id = Column(String(26), nullable=False)
    instructor_id = Column(String(26), nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)

    capacity = Column(Integer, nullable=False)
    spots_booked = Column(Integer, nullable=False, default=0)
    booking_sequence = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=ClassSessionStatus.SCHEDULED.value)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    bookings = relationship("Booking", back_populates="class_session")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_class_sessions_capacity_positive"),
        CheckConstraint(
            "spots_booked >= 0 AND spots_booked <= capacity",
            name="ck_class_sessions_spots_within_capacity",
        ),
        CheckConstraint("end_time > start_time", name="ck_class_sessions_time_order"),
        CheckConstraint(
            "status IN ('SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')",
            name="ck_class_sessions_status",
        ),
        Index("ix_class_sessions_tenant_start", "tenant_id", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassSession {self.id}: {self.spots_booked}/{self.capacity}, "
            f"status={self.status}>"
        )

    @property
    def available_spots(self) -> int:
        return max(self.capacity - (self.spots_booked or 0), 0)

    def next_booking_sequence(self) -> int:
        """Advance and return the per-session insertion counter."""
        self.booking_sequence = (self.booking_sequence or 0) + 1
        return self.booking_sequence

    def start(self) -> None:
        self.status = ClassSessionStatus.IN_PROGRESS.value
        logger.info(f"Class session {self.id} started")

    def complete(self) -> None:
        self.status = ClassSessionStatus.COMPLETED.value
        logger.info(f"Class session {self.id} completed")

    def cancel(self, reason: Optional[str] = None) -> None:
        self.status = ClassSessionStatus.CANCELLED.value
        self.cancellation_reason = reason
        logger.info(f"Class session {self.id} cancelled")
