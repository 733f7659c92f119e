"""Class session request and response schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from ..core.ulid_helper import ULID_PATTERN
from ..models.booking import BookingStatus, CheckInMethod
from ..models.class_session import ClassSessionStatus
from ._strict_base import StrictModel, StrictRequestModel, UtcDatetime
from .booking import BookingResponse


class ClassSessionCreateRequest(StrictRequestModel):
    class_type_id: str = Field(pattern=ULID_PATTERN)
    location_id: str = Field(pattern=ULID_PATTERN)
    instructor_id: Optional[str] = Field(default=None, pattern=ULID_PATTERN)
    start_time: datetime
    end_time: datetime
    capacity: int = Field(ge=1, le=1000)

    @model_validator(mode="after")
    def _check_times(self) -> "ClassSessionCreateRequest":
        if self.start_time.tzinfo is None or self.end_time.tzinfo is None:
            raise ValueError("startTime and endTime must include a timezone offset")
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class CapacityUpdateRequest(StrictRequestModel):
    capacity: int = Field(ge=1, le=1000)


class ClassSessionUpdateRequest(StrictRequestModel):
    instructor_id: Optional[str] = Field(default=None, pattern=ULID_PATTERN)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, ge=1, le=1000)

    @model_validator(mode="after")
    def _check_fields(self) -> "ClassSessionUpdateRequest":
        if all(
            value is None
            for value in (self.instructor_id, self.start_time, self.end_time, self.capacity)
        ):
            raise ValueError("Provide at least one field to update")
        for value in (self.start_time, self.end_time):
            if value is not None and value.tzinfo is None:
                raise ValueError("startTime and endTime must include a timezone offset")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class ClassSessionCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class ClassSessionResponse(StrictModel):
    id: str
    tenant_id: str
    class_type_id: str
    location_id: str
    instructor_id: Optional[str] = None
    start_time: UtcDatetime
    end_time: UtcDatetime
    capacity: int
    spots_booked: int
    status: ClassSessionStatus
    cancellation_reason: Optional[str] = None
    available_spots: int
    created_at: UtcDatetime


class ClassSessionData(StrictModel):
    session: ClassSessionResponse


class ClassSessionListData(StrictModel):
    sessions: List[ClassSessionResponse]


class CapacityChangeData(StrictModel):
    session: ClassSessionResponse
    promoted: List[BookingResponse]


class ClassSessionCancelData(StrictModel):
    session: ClassSessionResponse
    cancelled_bookings: List[BookingResponse]


class RosterEntry(StrictModel):
    booking_id: str
    member_id: str
    member_name: str
    status: BookingStatus
    booked_at: UtcDatetime
    checked_in_at: Optional[UtcDatetime] = None
    check_in_method: Optional[CheckInMethod] = None


class RosterData(StrictModel):
    roster: List[RosterEntry]


class WaitlistEntryResponse(StrictModel):
    booking_id: str
    member_id: str
    member_name: str
    position: int
    waitlisted_at: UtcDatetime


class WaitlistData(StrictModel):
    waitlist: List[WaitlistEntryResponse]


class ClassScheduleData(StrictModel):
    week_start: UtcDatetime
    week_end: UtcDatetime
    sessions: List[ClassSessionResponse]
