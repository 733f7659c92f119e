# backend/fitstudio/repositories/booking_repository.py
"""
Booking data access.

Waitlist order everywhere is ``(created_at, sequence)``; ``sequence`` is the
per-session insertion counter and resolves equal timestamps.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from ..models.class_session import ClassSession
from .base_repository import BaseRepository

_QUEUE_ORDER = (Booking.created_at.asc(), Booking.sequence.asc(), Booking.id.asc())

_UPCOMING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.WAITLISTED.value)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_for_tenant_refreshed(self, booking_id: str, tenant_id: str) -> Optional[Booking]:
        """Re-read a booking after its session lock is held."""
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.tenant_id == tenant_id)
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error refreshing booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve booking: {str(e)}")

    def find_active(self, member_id: str, class_session_id: str) -> Optional[Booking]:
        """The member's CONFIRMED, WAITLISTED or CHECKED_IN booking for a session."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.member_id == member_id,
                    Booking.class_session_id == class_session_id,
                    Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding active booking: {str(e)}")
            raise RepositoryException(f"Failed to find active booking: {str(e)}")

    def next_waitlisted(self, class_session_id: str) -> Optional[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.class_session_id == class_session_id,
                    Booking.status == BookingStatus.WAITLISTED.value,
                )
                .order_by(*_QUEUE_ORDER)
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading waitlist for {class_session_id}: {str(e)}")
            raise RepositoryException(f"Failed to read waitlist: {str(e)}")

    def list_for_session(
        self,
        class_session_id: str,
        statuses: Iterable[str],
        *,
        with_member: bool = False,
    ) -> List[Booking]:
        """Bookings of a session in the given statuses, in queue order."""
        try:
            query = self.db.query(Booking).filter(
                Booking.class_session_id == class_session_id,
                Booking.status.in_(list(statuses)),
            )
            if with_member:
                query = query.options(joinedload(Booking.member))
            return query.order_by(*_QUEUE_ORDER).populate_existing().all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for {class_session_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def list_upcoming_for_member(
        self, tenant_id: str, member_id: str, now: datetime
    ) -> List[Booking]:
        try:
            return (
                self.db.query(Booking)
                .join(Booking.class_session)
                .options(contains_eager(Booking.class_session))
                .filter(
                    Booking.tenant_id == tenant_id,
                    Booking.member_id == member_id,
                    Booking.status.in_(_UPCOMING_STATUSES),
                    ClassSession.start_time > now,
                )
                .order_by(ClassSession.start_time.asc(), Booking.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing upcoming bookings: {str(e)}")
            raise RepositoryException(f"Failed to list upcoming bookings: {str(e)}")

    def list_history_for_member(
        self,
        tenant_id: str,
        member_id: str,
        now: datetime,
        *,
        offset: int,
        limit: int,
    ) -> Tuple[List[Booking], int]:
        """Bookings whose session has already started, any status, newest first."""
        try:
            query = (
                self.db.query(Booking)
                .join(Booking.class_session)
                .filter(
                    Booking.tenant_id == tenant_id,
                    Booking.member_id == member_id,
                    ClassSession.start_time < now,
                )
            )
            total = query.count()
            items = (
                query.options(contains_eager(Booking.class_session))
                .order_by(ClassSession.start_time.desc(), Booking.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return items, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing booking history: {str(e)}")
            raise RepositoryException(f"Failed to list booking history: {str(e)}")
