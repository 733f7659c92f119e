# backend/fitstudio/services/booking_service.py
"""
Booking Service for FitStudio

Handles the member side of the booking lifecycle:
- booking a class (confirmed or waitlisted by capacity)
- cancellation with waitlist promotion
- staff check-in (manual and QR scan)
- single no-show marking
- member upcoming/history projections

Every mutation follows the same sequence: take the per-session lock, open a
transaction, re-read the session row FOR UPDATE, apply the change, commit,
release the lock and only then hand notifications to the dispatcher.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.exceptions import (
    DuplicateBookingException,
    ForbiddenException,
    IntegrityViolation,
    InvalidStateError,
    NotFoundException,
    ValidationException,
)
from ..core.session_lock import session_lock
from ..core.timezone_utils import ensure_utc, utc_now
from ..events.booking_events import BookingEventType
from ..models.booking import Booking, BookingStatus, CheckInMethod
from ..models.class_session import ClassSession, ClassSessionStatus
from ..models.member import Member
from ..principal import Principal
from ..repositories.booking_repository import BookingRepository
from ..repositories.class_session_repository import ClassSessionRepository
from ..repositories.member_repository import MemberRepository
from . import capacity
from .base import BaseService
from .booking_state import assert_transition, record_transition
from .notification_service import NotificationService, get_notification_service
from .waitlist import WaitlistPromoter

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    booking: Booking
    promoted: Optional[Booking] = None


@dataclass
class BookingPage:
    items: List[Booking] = field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 20

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page


class BookingService(BaseService):
    """Service layer for member bookings."""

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db)
        self.booking_repository = BookingRepository(db)
        self.session_repository = ClassSessionRepository(db)
        self.member_repository = MemberRepository(db)
        self.waitlist = WaitlistPromoter(self.booking_repository)
        self.notification_service = notification_service or get_notification_service()
        self.settings = settings or get_settings()
        self.clock = clock

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    @BaseService.measure_operation("book")
    def book(
        self,
        principal: Principal,
        class_session_id: str,
        member_id: Optional[str] = None,
    ) -> Booking:
        """
        Book a class session for a member.

        Members always book for themselves; staff book on behalf of the member
        they name. The booking is CONFIRMED while the session has an open spot
        and WAITLISTED otherwise.

        Raises:
            ValidationException: staff caller without a member id
            ForbiddenException: member caller without a member profile
            NotFoundException: member or session not in the caller's tenant
            InvalidStateError: session not SCHEDULED or already started
            DuplicateBookingException: member already holds an active booking
        """
        member = self._resolve_member(principal, member_id)
        self._get_session_or_404(class_session_id, principal.tenant_id)

        with session_lock(class_session_id):
            try:
                with self.transaction():
                    session = self._lock_session(class_session_id, principal.tenant_id)
                    now = self.clock()
                    self._ensure_bookable(session, now)

                    if self.booking_repository.find_active(member.id, session.id) is not None:
                        raise DuplicateBookingException(member.id, session.id)

                    if capacity.has_open_spot(session):
                        capacity.increment(session)
                        status = BookingStatus.CONFIRMED
                    else:
                        status = BookingStatus.WAITLISTED

                    booking = self.booking_repository.create(
                        tenant_id=principal.tenant_id,
                        member_id=member.id,
                        class_session_id=session.id,
                        status=status.value,
                        sequence=session.next_booking_sequence(),
                        created_at=now,
                    )
            except IntegrityViolation as exc:
                # Active-booking unique index caught a duplicate the read missed.
                raise DuplicateBookingException(member.id, class_session_id) from exc

        record_transition(None, booking)
        self.logger.info(
            f"Booked class session as {booking.status}",
            extra={
                "booking_id": booking.id,
                "class_session_id": class_session_id,
                "tenant_id": principal.tenant_id,
                "member_id": member.id,
            },
        )
        self.notification_service.notify(
            BookingEventType.CONFIRMED
            if booking.status == BookingStatus.CONFIRMED.value
            else BookingEventType.WAITLISTED,
            booking,
        )
        return booking

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("cancel_booking")
    def cancel(self, principal: Principal, booking_id: str) -> CancellationResult:
        """
        Cancel a CONFIRMED or WAITLISTED booking.

        Releasing a confirmed spot promotes the oldest waitlisted booking in the
        same transaction, so the counter and the waitlist never diverge.
        Cancelling twice raises InvalidStateError and changes nothing.
        """
        booking = self._get_booking_or_404(booking_id, principal.tenant_id)
        if not principal.is_staff and booking.member_id != principal.member_id:
            raise ForbiddenException("You can only cancel your own bookings")

        with session_lock(booking.class_session_id):
            with self.transaction():
                session = self._lock_session(booking.class_session_id, principal.tenant_id)
                booking = self._refresh_booking(booking_id, principal.tenant_id)
                previous = BookingStatus(booking.status)
                assert_transition(booking, BookingStatus.CANCELLED)

                now = self.clock()
                booking.cancel(now, cancelled_by=principal.user_id)
                promoted = None
                if previous == BookingStatus.CONFIRMED:
                    capacity.decrement(session)
                    self.booking_repository.flush()
                    promoted = self.waitlist.promote_next(session, now)

        record_transition(previous, booking)
        self.logger.info(
            "Cancelled booking",
            extra={
                "booking_id": booking.id,
                "class_session_id": booking.class_session_id,
                "tenant_id": principal.tenant_id,
                "promoted_booking_id": promoted.id if promoted else None,
            },
        )
        self.notification_service.notify(BookingEventType.CANCELLED, booking)
        if promoted is not None:
            self.notification_service.notify(BookingEventType.PROMOTED, promoted)
        return CancellationResult(booking=booking, promoted=promoted)

    # ------------------------------------------------------------------
    # Check-in and no-show
    # ------------------------------------------------------------------

    @BaseService.measure_operation("check_in")
    def check_in(
        self,
        principal: Principal,
        booking_id: str,
        method: CheckInMethod = CheckInMethod.MANUAL,
    ) -> Booking:
        """Staff check-in of a CONFIRMED booking inside the check-in window."""
        self.require_staff(principal)
        booking = self._get_booking_or_404(booking_id, principal.tenant_id)
        return self._check_in(principal, booking, method)

    @BaseService.measure_operation("check_in_by_qr")
    def check_in_by_qr(
        self, principal: Principal, member_id: str, class_session_id: str
    ) -> Booking:
        """Check in the member's active booking for a session from a scanned QR payload."""
        self.require_staff(principal)
        booking = self.booking_repository.find_active(member_id, class_session_id)
        if booking is None or booking.tenant_id != principal.tenant_id:
            raise NotFoundException(
                "No booking found for this member and class",
                details={"member_id": member_id, "class_session_id": class_session_id},
            )
        return self._check_in(principal, booking, CheckInMethod.QR_SCAN)

    def _check_in(self, principal: Principal, booking: Booking, method: CheckInMethod) -> Booking:
        booking_id = booking.id
        with session_lock(booking.class_session_id):
            with self.transaction():
                session = self._lock_session(booking.class_session_id, principal.tenant_id)
                booking = self._refresh_booking(booking_id, principal.tenant_id)
                assert_transition(booking, BookingStatus.CHECKED_IN)
                now = self.clock()
                self._ensure_check_in_window(session, now)
                booking.check_in(now, method)

        record_transition(BookingStatus.CONFIRMED, booking)
        self.logger.info(
            "Checked in booking",
            extra={
                "booking_id": booking.id,
                "class_session_id": booking.class_session_id,
                "tenant_id": principal.tenant_id,
                "method": booking.check_in_method,
            },
        )
        self.notification_service.notify(BookingEventType.CHECKED_IN, booking)
        return booking

    @BaseService.measure_operation("mark_no_show")
    def mark_no_show(self, principal: Principal, booking_id: str) -> Booking:
        """Mark one CONFIRMED booking as NO_SHOW once its session has ended."""
        self.require_class_runner(principal)
        booking = self._get_booking_or_404(booking_id, principal.tenant_id)

        with session_lock(booking.class_session_id):
            with self.transaction():
                session = self._lock_session(booking.class_session_id, principal.tenant_id)
                booking = self._refresh_booking(booking_id, principal.tenant_id)
                assert_transition(booking, BookingStatus.NO_SHOW)
                now = self.clock()
                if now < ensure_utc(session.end_time):
                    raise InvalidStateError(
                        "No-shows can only be recorded after the class has ended",
                        details={"class_session_id": session.id},
                    )
                booking.mark_no_show(now)

        record_transition(BookingStatus.CONFIRMED, booking)
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("get_booking")
    def get_booking(self, principal: Principal, booking_id: str) -> Booking:
        booking = self._get_booking_or_404(booking_id, principal.tenant_id)
        if not principal.is_staff and booking.member_id != principal.member_id:
            raise ForbiddenException("You can only view your own bookings")
        return booking

    @BaseService.measure_operation("list_upcoming")
    def list_upcoming(self, principal: Principal, member_id: Optional[str] = None) -> List[Booking]:
        """CONFIRMED and WAITLISTED bookings for sessions that have not started yet."""
        target = self._resolve_member_id(principal, member_id)
        return self.booking_repository.list_upcoming_for_member(
            principal.tenant_id, target, self.clock()
        )

    @BaseService.measure_operation("list_history")
    def list_history(
        self,
        principal: Principal,
        page: int = 1,
        per_page: int = 20,
        member_id: Optional[str] = None,
    ) -> BookingPage:
        if page < 1 or per_page < 1:
            raise ValidationException("page and perPage must be positive")
        target = self._resolve_member_id(principal, member_id)
        items, total = self.booking_repository.list_history_for_member(
            principal.tenant_id,
            target,
            self.clock(),
            offset=(page - 1) * per_page,
            limit=per_page,
        )
        return BookingPage(items=items, total=total, page=page, per_page=per_page)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_member_id(self, principal: Principal, member_id: Optional[str]) -> str:
        if principal.is_staff:
            if not member_id:
                raise ValidationException(
                    "memberId is required when staff act for a member",
                    details={"field": "memberId"},
                )
            return member_id
        if not principal.member_id:
            raise ForbiddenException("Member profile required")
        return principal.member_id

    def _resolve_member(self, principal: Principal, member_id: Optional[str]) -> Member:
        target = self._resolve_member_id(principal, member_id)
        member = self.member_repository.get_active_for_tenant(target, principal.tenant_id)
        if member is None:
            raise NotFoundException("Member not found", details={"member_id": target})
        return member

    def _get_session_or_404(self, class_session_id: str, tenant_id: str) -> ClassSession:
        session = self.session_repository.get_for_tenant(class_session_id, tenant_id)
        if session is None:
            raise NotFoundException(
                "Class session not found", details={"class_session_id": class_session_id}
            )
        return session

    def _lock_session(self, class_session_id: str, tenant_id: str) -> ClassSession:
        session = self.session_repository.get_for_update(class_session_id, tenant_id)
        if session is None:
            raise NotFoundException(
                "Class session not found", details={"class_session_id": class_session_id}
            )
        return session

    def _get_booking_or_404(self, booking_id: str, tenant_id: str) -> Booking:
        booking = self.booking_repository.get_for_tenant(booking_id, tenant_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _refresh_booking(self, booking_id: str, tenant_id: str) -> Booking:
        booking = self.booking_repository.get_for_tenant_refreshed(booking_id, tenant_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @staticmethod
    def _ensure_bookable(session: ClassSession, now: datetime) -> None:
        if session.status != ClassSessionStatus.SCHEDULED.value:
            raise InvalidStateError(
                "Class session is not open for booking",
                details={"class_session_id": session.id, "status": session.status},
            )
        if ensure_utc(session.start_time) <= now:
            raise InvalidStateError(
                "Class session has already started",
                details={"class_session_id": session.id},
            )

    def check_in_window(self, session: ClassSession) -> Tuple[datetime, datetime]:
        """Inclusive ``(opens_at, closes_at)`` bounds for checking in to ``session``."""
        grace = timedelta(minutes=self.settings.check_in_grace_minutes)
        return ensure_utc(session.start_time) - grace, ensure_utc(session.end_time)

    def _ensure_check_in_window(self, session: ClassSession, now: datetime) -> None:
        opens_at, closes_at = self.check_in_window(session)
        if now < opens_at or now > closes_at:
            raise InvalidStateError(
                "Check-in is not open for this class",
                details={
                    "class_session_id": session.id,
                    "opens_at": opens_at.isoformat(),
                    "closes_at": closes_at.isoformat(),
                },
            )
