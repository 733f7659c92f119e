# backend/fitstudio/services/notification_service.py
"""
Best-effort booking notifications.

Events are dispatched after the booking transaction commits. Delivery runs on
a small thread pool through a pluggable sender; any failure is logged and
counted and never reaches the caller. Concrete email/SMS providers plug in as
senders.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
import logging
from typing import Callable, Optional

from ..core.config import get_settings
from ..core.timezone_utils import utc_now
from ..events.booking_events import BookingEvent, BookingEventType
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

NotificationSender = Callable[[BookingEvent], None]


def log_sender(event: BookingEvent) -> None:
    """Default sender: record the event in the application log."""
    logger.info(
        "Booking notification",
        extra={
            "event_type": event.event_type.value,
            "booking_id": event.booking_id,
            "member_id": event.member_id,
            "tenant_id": event.tenant_id,
        },
    )


class NotificationService:
    def __init__(
        self,
        sender: Optional[NotificationSender] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        enabled: bool = True,
        max_workers: int = 2,
    ):
        self.sender = sender or log_sender
        self.enabled = enabled
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="fitstudio-notify"
        )

    @staticmethod
    def build_event(event_type: BookingEventType, booking: Booking) -> BookingEvent:
        member = booking.member
        session = booking.class_session
        return BookingEvent(
            event_type=event_type,
            booking_id=booking.id,
            tenant_id=booking.tenant_id,
            member_id=booking.member_id,
            class_session_id=booking.class_session_id,
            status=booking.status,
            occurred_at=utc_now(),
            member_name=member.full_name if member is not None else None,
            member_email=member.email if member is not None else None,
            member_phone=member.phone if member is not None else None,
            class_start_time=session.start_time if session is not None else None,
        )

    def dispatch(self, event: BookingEvent) -> Optional[Future]:
        """Queue ``event`` for delivery. Returns the delivery future, or None if skipped."""
        if not self.enabled:
            prometheus_metrics.record_notification(event.event_type.value, "skipped")
            return None
        try:
            return self._executor.submit(self._deliver, event)
        except RuntimeError as exc:
            # Executor already shut down (process is stopping).
            prometheus_metrics.record_notification(event.event_type.value, "failed")
            logger.warning(
                "Notification dropped",
                extra={"event_type": event.event_type.value, "error": str(exc)},
            )
            return None

    def notify(self, event_type: BookingEventType, booking: Booking) -> Optional[Future]:
        try:
            event = self.build_event(event_type, booking)
        except Exception as exc:
            prometheus_metrics.record_notification(event_type.value, "failed")
            logger.warning(
                "Could not build notification",
                extra={"event_type": event_type.value, "booking_id": booking.id, "error": str(exc)},
            )
            return None
        return self.dispatch(event)

    def _deliver(self, event: BookingEvent) -> bool:
        try:
            self.sender(event)
        except Exception as exc:
            prometheus_metrics.record_notification(event.event_type.value, "failed")
            logger.warning(
                "Notification delivery failed",
                extra={
                    "event_type": event.event_type.value,
                    "booking_id": event.booking_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False
        prometheus_metrics.record_notification(event.event_type.value, "sent")
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


@lru_cache
def get_notification_service() -> NotificationService:
    cfg = get_settings()
    return NotificationService(
        enabled=cfg.notifications_enabled,
        max_workers=cfg.notification_workers,
    )
