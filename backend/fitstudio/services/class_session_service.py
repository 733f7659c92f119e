# backend/fitstudio/services/class_session_service.py
"""
Class session lifecycle for staff: scheduling with instructor conflict checks,
updates and capacity changes, start, completion, cancellation, no-show
reconciliation, the weekly schedule and the roster/waitlist projections.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    ConflictException,
    InstructorConflictException,
    InvalidStateError,
    NotFoundException,
    ValidationException,
)
from ..core.session_lock import session_lock
from ..core.timezone_utils import ensure_utc, utc_now
from ..events.booking_events import BookingEventType
from ..models.booking import ROSTER_STATUSES, Booking, BookingStatus
from ..models.class_session import ClassSession, ClassSessionStatus
from ..principal import Principal
from ..repositories.booking_repository import BookingRepository
from ..repositories.class_session_repository import ClassSessionRepository
from . import capacity as capacity_tracker
from .base import BaseService
from .booking_state import record_transition
from .notification_service import NotificationService, get_notification_service
from .waitlist import WaitlistPromoter

logger = logging.getLogger(__name__)

SCHEDULE_WEEK = timedelta(days=7)

# Allowed session transitions.
_SESSION_TRANSITIONS = {
    ClassSessionStatus.SCHEDULED: frozenset(
        {ClassSessionStatus.IN_PROGRESS, ClassSessionStatus.COMPLETED, ClassSessionStatus.CANCELLED}
    ),
    ClassSessionStatus.IN_PROGRESS: frozenset({ClassSessionStatus.COMPLETED}),
    ClassSessionStatus.COMPLETED: frozenset(),
    ClassSessionStatus.CANCELLED: frozenset(),
}


@dataclass
class WaitlistEntry:
    booking: Booking
    position: int


@dataclass
class CapacityChange:
    session: ClassSession
    promoted: List[Booking]


class ClassSessionService(BaseService):
    """Service layer for class session scheduling and lifecycle."""

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db)
        self.session_repository = ClassSessionRepository(db)
        self.booking_repository = BookingRepository(db)
        self.waitlist_promoter = WaitlistPromoter(self.booking_repository)
        self.notification_service = notification_service or get_notification_service()
        self.clock = clock

    @BaseService.measure_operation("schedule")
    def schedule(
        self,
        principal: Principal,
        *,
        class_type_id: str,
        location_id: str,
        start_time: datetime,
        end_time: datetime,
        capacity: int,
        instructor_id: Optional[str] = None,
    ) -> ClassSession:
        self.require_scheduler(principal)
        start_time = ensure_utc(start_time)
        end_time = ensure_utc(end_time)
        if end_time <= start_time:
            raise ValidationException(
                "End time must be after start time", details={"field": "endTime"}
            )
        if capacity < 1:
            raise ValidationException("Capacity must be at least 1", details={"field": "capacity"})

        with self.transaction():
            if instructor_id:
                self._assert_instructor_free(
                    principal.tenant_id, instructor_id, start_time, end_time
                )
            session = self.session_repository.create(
                tenant_id=principal.tenant_id,
                class_type_id=class_type_id,
                location_id=location_id,
                instructor_id=instructor_id,
                start_time=start_time,
                end_time=end_time,
                capacity=capacity,
                spots_booked=0,
                booking_sequence=0,
                status=ClassSessionStatus.SCHEDULED.value,
            )

        self.logger.info(
            "Scheduled class session",
            extra={"class_session_id": session.id, "tenant_id": principal.tenant_id},
        )
        return session

    @BaseService.measure_operation("get_session")
    def get(self, principal: Principal, class_session_id: str) -> ClassSession:
        session = self.session_repository.get_for_tenant(class_session_id, principal.tenant_id)
        if session is None:
            raise NotFoundException(
                "Class session not found", details={"class_session_id": class_session_id}
            )
        return session

    @BaseService.measure_operation("list_sessions")
    def list(
        self,
        principal: Principal,
        *,
        status: Optional[ClassSessionStatus] = None,
        starts_after: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
        location_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ClassSession]:
        return self.session_repository.list_for_tenant(
            principal.tenant_id,
            status=status.value if status else None,
            starts_after=ensure_utc(starts_after),
            starts_before=ensure_utc(starts_before),
            location_id=location_id,
            limit=limit,
            offset=offset,
        )

    @BaseService.measure_operation("update_capacity")
    def update_capacity(
        self, principal: Principal, class_session_id: str, capacity: int
    ) -> CapacityChange:
        """
        Change a scheduled session's capacity.

        Shrinking below the number of booked spots is rejected. Growing it
        promotes waitlisted bookings in FIFO order until the new spots are
        filled.
        """
        self.require_scheduler(principal)
        if capacity < 1:
            raise ValidationException("Capacity must be at least 1", details={"field": "capacity"})
        self.get(principal, class_session_id)

        with session_lock(class_session_id):
            with self.transaction():
                session = self._lock_session(class_session_id, principal.tenant_id)
                self._assert_scheduled(session, "Only scheduled classes can change capacity")
                promoted = self._apply_capacity(session, capacity)

        self.logger.info(
            "Changed class capacity",
            extra={
                "class_session_id": session.id,
                "capacity": capacity,
                "promoted": len(promoted),
            },
        )
        self._notify_promoted(promoted)
        return CapacityChange(session=session, promoted=promoted)

    @BaseService.measure_operation("update_session")
    def update(
        self,
        principal: Principal,
        class_session_id: str,
        *,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        instructor_id: Optional[str] = None,
        capacity: Optional[int] = None,
    ) -> CapacityChange:
        """
        Reschedule, reassign or resize a scheduled session.

        Omitted fields keep their current value. The resulting time window must
        not overlap another live class of the session's instructor, and a
        capacity change follows the same rules as ``update_capacity``.
        """
        self.require_scheduler(principal)
        if capacity is not None and capacity < 1:
            raise ValidationException("Capacity must be at least 1", details={"field": "capacity"})
        self.get(principal, class_session_id)

        with session_lock(class_session_id):
            with self.transaction():
                session = self._lock_session(class_session_id, principal.tenant_id)
                self._assert_scheduled(session, "Can only update scheduled classes")

                new_start = ensure_utc(start_time or session.start_time)
                new_end = ensure_utc(end_time or session.end_time)
                if new_end <= new_start:
                    raise ValidationException(
                        "End time must be after start time", details={"field": "endTime"}
                    )
                new_instructor = instructor_id or session.instructor_id
                moved = start_time is not None or end_time is not None
                if new_instructor and (moved or new_instructor != session.instructor_id):
                    self._assert_instructor_free(
                        principal.tenant_id,
                        new_instructor,
                        new_start,
                        new_end,
                        exclude_id=session.id,
                    )

                session.start_time = new_start
                session.end_time = new_end
                session.instructor_id = new_instructor
                promoted: List[Booking] = []
                if capacity is not None:
                    promoted = self._apply_capacity(session, capacity)

        self.logger.info(
            "Updated class session",
            extra={
                "class_session_id": session.id,
                "tenant_id": principal.tenant_id,
                "promoted": len(promoted),
            },
        )
        self._notify_promoted(promoted)
        return CapacityChange(session=session, promoted=promoted)

    @BaseService.measure_operation("weekly_schedule")
    def weekly_schedule(
        self,
        principal: Principal,
        week_start: Optional[datetime] = None,
        location_id: Optional[str] = None,
    ) -> Tuple[datetime, List[ClassSession]]:
        """
        SCHEDULED sessions starting within the seven days from ``week_start``.

        Defaults to the current week, which starts on Sunday at 00:00 UTC.
        """
        if week_start is None:
            today = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
            week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        week_start = ensure_utc(week_start)
        sessions = self.session_repository.list_for_tenant(
            principal.tenant_id,
            status=ClassSessionStatus.SCHEDULED.value,
            starts_after=week_start,
            starts_before=week_start + SCHEDULE_WEEK,
            location_id=location_id,
            limit=1000,
        )
        return week_start, sessions

    @BaseService.measure_operation("start_session")
    def start(self, principal: Principal, class_session_id: str) -> ClassSession:
        self.require_class_runner(principal)
        return self._transition(principal, class_session_id, ClassSessionStatus.IN_PROGRESS)

    @BaseService.measure_operation("complete_session")
    def complete(self, principal: Principal, class_session_id: str) -> ClassSession:
        self.require_class_runner(principal)
        return self._transition(principal, class_session_id, ClassSessionStatus.COMPLETED)

    @BaseService.measure_operation("cancel_session")
    def cancel(
        self, principal: Principal, class_session_id: str, reason: Optional[str] = None
    ) -> Tuple[ClassSession, List[Booking]]:
        """
        Cancel a scheduled session and every CONFIRMED or WAITLISTED booking on it.

        Nobody is promoted. Each cancelled CONFIRMED booking releases its spot;
        CHECKED_IN bookings are left alone and keep theirs.
        """
        self.require_scheduler(principal)
        self.get(principal, class_session_id)

        with session_lock(class_session_id):
            with self.transaction():
                session = self._lock_session(class_session_id, principal.tenant_id)
                self._assert_session_transition(session, ClassSessionStatus.CANCELLED)
                affected = self.booking_repository.list_for_session(
                    session.id,
                    (BookingStatus.CONFIRMED.value, BookingStatus.WAITLISTED.value),
                )
                now = self.clock()
                previous = [BookingStatus(b.status) for b in affected]
                session.cancel(reason)
                for status, booking in zip(previous, affected):
                    booking.cancel(now, cancelled_by=principal.user_id)
                    if status == BookingStatus.CONFIRMED:
                        capacity_tracker.decrement(session)

        for status, booking in zip(previous, affected):
            record_transition(status, booking)
            self.notification_service.notify(BookingEventType.CANCELLED, booking)
        self.logger.info(
            "Cancelled class session",
            extra={
                "class_session_id": session.id,
                "tenant_id": principal.tenant_id,
                "cancelled_bookings": len(affected),
            },
        )
        return session, affected

    @BaseService.measure_operation("reconcile_no_shows")
    def reconcile_no_shows(self, principal: Principal, class_session_id: str) -> List[Booking]:
        """Mark every booking still CONFIRMED after the class ended as NO_SHOW."""
        self.require_class_runner(principal)
        self.get(principal, class_session_id)

        with session_lock(class_session_id):
            with self.transaction():
                session = self._lock_session(class_session_id, principal.tenant_id)
                if session.status == ClassSessionStatus.CANCELLED.value:
                    raise InvalidStateError(
                        "Cannot record no-shows for a cancelled class",
                        details={"class_session_id": session.id},
                    )
                now = self.clock()
                if now < ensure_utc(session.end_time):
                    raise InvalidStateError(
                        "No-shows can only be recorded after the class has ended",
                        details={"class_session_id": session.id},
                    )
                no_shows = self.booking_repository.list_for_session(
                    session.id, (BookingStatus.CONFIRMED.value,)
                )
                for booking in no_shows:
                    booking.mark_no_show(now)

        for booking in no_shows:
            record_transition(BookingStatus.CONFIRMED, booking)
        self.logger.info(
            "Reconciled no-shows",
            extra={"class_session_id": class_session_id, "no_shows": len(no_shows)},
        )
        return no_shows

    @BaseService.measure_operation("roster")
    def roster(self, principal: Principal, class_session_id: str) -> List[Booking]:
        """CONFIRMED and CHECKED_IN bookings with their members, in booking order."""
        self.require_staff(principal)
        session = self.get(principal, class_session_id)
        return self.booking_repository.list_for_session(
            session.id, ROSTER_STATUSES, with_member=True
        )

    @BaseService.measure_operation("waitlist")
    def waitlist(self, principal: Principal, class_session_id: str) -> List[WaitlistEntry]:
        """WAITLISTED bookings in promotion order, with 1-based positions."""
        self.require_staff(principal)
        session = self.get(principal, class_session_id)
        bookings = self.booking_repository.list_for_session(
            session.id, (BookingStatus.WAITLISTED.value,), with_member=True
        )
        return [WaitlistEntry(booking=b, position=i) for i, b in enumerate(bookings, start=1)]

    def _transition(
        self, principal: Principal, class_session_id: str, target: ClassSessionStatus
    ) -> ClassSession:
        self.get(principal, class_session_id)
        with session_lock(class_session_id):
            with self.transaction():
                session = self._lock_session(class_session_id, principal.tenant_id)
                self._assert_session_transition(session, target)
                if target == ClassSessionStatus.IN_PROGRESS:
                    session.start()
                else:
                    session.complete()
        return session

    @staticmethod
    def _assert_session_transition(session: ClassSession, target: ClassSessionStatus) -> None:
        current = ClassSessionStatus(session.status)
        if target not in _SESSION_TRANSITIONS[current]:
            raise InvalidStateError(
                f"Cannot change class session from {current.value} to {target.value}",
                details={
                    "class_session_id": session.id,
                    "current_status": current.value,
                    "target_status": target.value,
                },
            )

    @staticmethod
    def _assert_scheduled(session: ClassSession, message: str) -> None:
        if session.status != ClassSessionStatus.SCHEDULED.value:
            raise InvalidStateError(
                message, details={"class_session_id": session.id, "status": session.status}
            )

    def _assert_instructor_free(
        self,
        tenant_id: str,
        instructor_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_id: Optional[str] = None,
    ) -> None:
        conflict = self.session_repository.find_instructor_conflict(
            tenant_id, instructor_id, start_time, end_time, exclude_id=exclude_id
        )
        if conflict is not None:
            raise InstructorConflictException(instructor_id, conflict.id)

    def _apply_capacity(self, session: ClassSession, capacity: int) -> List[Booking]:
        """Set a locked session's capacity and promote into any spots it opens."""
        if capacity < session.spots_booked:
            raise ConflictException(
                "Capacity cannot be lower than the number of booked spots",
                details={
                    "class_session_id": session.id,
                    "spots_booked": session.spots_booked,
                    "capacity": capacity,
                },
            )
        session.capacity = capacity
        return self.waitlist_promoter.fill_open_spots(session, self.clock())

    def _notify_promoted(self, promoted: List[Booking]) -> None:
        for booking in promoted:
            self.notification_service.notify(BookingEventType.PROMOTED, booking)

    def _lock_session(self, class_session_id: str, tenant_id: str) -> ClassSession:
        session = self.session_repository.get_for_update(class_session_id, tenant_id)
        if session is None:
            raise NotFoundException(
                "Class session not found", details={"class_session_id": class_session_id}
            )
        return session
