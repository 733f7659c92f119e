# backend/fitstudio/services/waitlist.py
"""
Waitlist promoter.

Runs inside the caller's transaction while the caller holds the session lock,
right after a spot was released, so the release and the promotion commit or
roll back together.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..models.booking import Booking, BookingStatus
from ..models.class_session import ClassSession, ClassSessionStatus
from ..repositories.booking_repository import BookingRepository
from . import capacity
from .booking_state import assert_transition, record_transition

logger = logging.getLogger(__name__)


class WaitlistPromoter:
    def __init__(self, booking_repository: BookingRepository):
        self.booking_repository = booking_repository

    def promote_next(self, session: ClassSession, now: datetime) -> Optional[Booking]:
        """
        Confirm the oldest waitlisted booking of ``session`` into a free spot.

        Returns the promoted booking, or None when the session is cancelled,
        full, or has nobody waiting. Promotes at most one booking.
        """
        if session.status == ClassSessionStatus.CANCELLED.value:
            return None
        if not capacity.has_open_spot(session):
            return None

        candidate = self.booking_repository.next_waitlisted(session.id)
        if candidate is None:
            return None

        assert_transition(candidate, BookingStatus.CONFIRMED)
        capacity.increment(session)
        candidate.confirm_from_waitlist(now)
        record_transition(BookingStatus.WAITLISTED, candidate)
        logger.info(
            "Promoted waitlisted booking",
            extra={
                "booking_id": candidate.id,
                "class_session_id": session.id,
                "tenant_id": session.tenant_id,
            },
        )
        return candidate

    def fill_open_spots(self, session: ClassSession, now: datetime) -> List[Booking]:
        """Promote FIFO until the session is full or the waitlist is empty."""
        promoted: List[Booking] = []
        while True:
            booking = self.promote_next(session, now)
            if booking is None:
                return promoted
            # Flush so the next waitlist query no longer sees this booking as WAITLISTED.
            self.booking_repository.flush()
            promoted.append(booking)
