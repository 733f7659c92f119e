"""Booking request and response schemas."""

from typing import List, Optional

from pydantic import Field

from ..core.ulid_helper import ULID_PATTERN
from ..models.booking import BookingStatus, CheckInMethod
from ._strict_base import StrictModel, StrictRequestModel, UtcDatetime


class BookingCreateRequest(StrictRequestModel):
    class_session_id: str = Field(pattern=ULID_PATTERN)
    # Only honoured for staff callers; members always book for themselves.
    member_id: Optional[str] = Field(default=None, pattern=ULID_PATTERN)


class QrCheckInRequest(StrictRequestModel):
    """Payload encoded in the member's QR code."""

    member_id: str = Field(pattern=ULID_PATTERN)
    class_session_id: str = Field(pattern=ULID_PATTERN)


class BookingResponse(StrictModel):
    id: str
    tenant_id: str
    member_id: str
    class_session_id: str
    status: BookingStatus
    sequence: int
    created_at: UtcDatetime
    updated_at: Optional[UtcDatetime] = None
    promoted_at: Optional[UtcDatetime] = None
    cancelled_at: Optional[UtcDatetime] = None
    cancelled_by: Optional[str] = None
    checked_in_at: Optional[UtcDatetime] = None
    check_in_method: Optional[CheckInMethod] = None
    no_show_at: Optional[UtcDatetime] = None


class BookingData(StrictModel):
    booking: BookingResponse


class BookingListData(StrictModel):
    bookings: List[BookingResponse]


class CancellationData(StrictModel):
    booking: BookingResponse
    promoted: Optional[BookingResponse] = None
