"""Booking domain events handed to the notification dispatcher."""
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class BookingEventType(str, Enum):
    CONFIRMED = "booking.confirmed"
    WAITLISTED = "booking.waitlisted"
    CANCELLED = "booking.cancelled"
    PROMOTED = "booking.promoted"
    CHECKED_IN = "booking.checked_in"


@dataclass(frozen=True)
class BookingEvent:
    """
    Snapshot of a booking at the moment an event fired.

    Built in the request thread so delivery never touches ORM objects.
    """

    event_type: BookingEventType
    booking_id: str
    tenant_id: str
    member_id: str
    class_session_id: str
    status: str
    occurred_at: datetime
    member_name: Optional[str] = None
    member_email: Optional[str] = None
    member_phone: Optional[str] = None
    class_start_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return data
