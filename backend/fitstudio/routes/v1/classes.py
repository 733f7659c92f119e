# backend/fitstudio/routes/v1/classes.py
"""
Class session routes - API v1

Endpoints:
    POST / - Schedule a class session
    GET / - List class sessions
    GET /schedule - Scheduled sessions for one week (Sunday start)
    GET /{class_session_id} - Session details
    PUT /{class_session_id} - Reschedule, reassign instructor or resize
    PATCH /{class_session_id}/capacity - Change capacity (promotes waitlist when raised)
    POST /{class_session_id}/start - Mark in progress
    POST /{class_session_id}/complete - Mark completed
    POST /{class_session_id}/cancel - Cancel the session and its bookings
    POST /{class_session_id}/no-shows - Mark remaining confirmed bookings as no-show
    GET /{class_session_id}/roster - Confirmed and checked-in members
    GET /{class_session_id}/waitlist - Waitlisted members in promotion order
"""

from datetime import datetime
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ...api.dependencies import get_class_session_service, get_current_principal
from ...core.exceptions import DomainException
from ...models.class_session import ClassSession, ClassSessionStatus
from ...principal import Principal
from ...schemas.base_responses import ApiResponse
from ...schemas.booking import BookingListData
from ...schemas.class_session import (
    CapacityChangeData,
    CapacityUpdateRequest,
    ClassScheduleData,
    ClassSessionCancelData,
    ClassSessionCancelRequest,
    ClassSessionCreateRequest,
    ClassSessionData,
    ClassSessionListData,
    ClassSessionResponse,
    ClassSessionUpdateRequest,
    RosterData,
    RosterEntry,
    WaitlistData,
    WaitlistEntryResponse,
)
from ...services.class_session_service import SCHEDULE_WEEK, CapacityChange, ClassSessionService
from ._helpers import ULID_PATH_PATTERN, bookings_out, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["classes-v1"])

ClassSessionId = Annotated[
    str, Path(description="Class session ULID", pattern=ULID_PATH_PATTERN)
]


def _session_data(session: ClassSession) -> ClassSessionData:
    return ClassSessionData(session=ClassSessionResponse.model_validate(session))


def _capacity_change_data(change: CapacityChange) -> CapacityChangeData:
    return CapacityChangeData(
        session=ClassSessionResponse.model_validate(change.session),
        promoted=bookings_out(change.promoted),
    )


@router.post(
    "",
    response_model=ApiResponse[ClassSessionData],
    status_code=status.HTTP_201_CREATED,
)
def schedule_class_session(
    payload: ClassSessionCreateRequest = Body(...),
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[ClassSessionData]:
    try:
        session = service.schedule(
            principal,
            class_type_id=payload.class_type_id,
            location_id=payload.location_id,
            instructor_id=payload.instructor_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            capacity=payload.capacity,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[ClassSessionData](data=_session_data(session))


@router.get("", response_model=ApiResponse[ClassSessionListData])
def list_class_sessions(
    status_filter: Optional[ClassSessionStatus] = Query(None, alias="status"),
    starts_after: Optional[datetime] = Query(None, alias="from"),
    starts_before: Optional[datetime] = Query(None, alias="to"),
    location_id: Optional[str] = Query(None, alias="locationId", pattern=ULID_PATH_PATTERN),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[ClassSessionListData]:
    try:
        sessions = service.list(
            principal,
            status=status_filter,
            starts_after=starts_after,
            starts_before=starts_before,
            location_id=location_id,
            limit=limit,
            offset=offset,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[ClassSessionListData](
        data=ClassSessionListData(
            sessions=[ClassSessionResponse.model_validate(s) for s in sessions]
        )
    )


# Declared before /{class_session_id} so "schedule" is not matched as an id.
@router.get("/schedule", response_model=ApiResponse[ClassScheduleData])
def get_weekly_schedule(
    week_start: Optional[datetime] = Query(None, alias="startDate"),
    location_id: Optional[str] = Query(None, alias="locationId", pattern=ULID_PATH_PATTERN),
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[ClassScheduleData]:
    try:
        start, sessions = service.weekly_schedule(principal, week_start, location_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[ClassScheduleData](
        data=ClassScheduleData(
            week_start=start,
            week_end=start + SCHEDULE_WEEK,
            sessions=[ClassSessionResponse.model_validate(s) for s in sessions],
        )
    )


@router.get("/{class_session_id}", response_model=ApiResponse[ClassSessionData])
def get_class_session(
    class_session_id: ClassSessionId,
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[ClassSessionData]:
    try:
        session = service.get(principal, class_session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[ClassSessionData](data=_session_data(session))


@router.put("/{class_session_id}", response_model=ApiResponse[CapacityChangeData])
def update_class_session(
    class_session_id: ClassSessionId,
    payload: ClassSessionUpdateRequest = Body(...),
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[CapacityChangeData]:
    try:
        change = service.update(
            principal,
            class_session_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            instructor_id=payload.instructor_id,
            capacity=payload.capacity,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[CapacityChangeData](data=_capacity_change_data(change))


@router.patch("/{class_session_id}/capacity", response_model=ApiResponse[CapacityChangeData])
def update_class_capacity(
    class_session_id: ClassSessionId,
    payload: CapacityUpdateRequest = Body(...),
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[CapacityChangeData]:
    try:
        change = service.update_capacity(principal, class_session_id, payload.capacity)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[CapacityChangeData](data=_capacity_change_data(change))


@router.post("/{class_session_id}/start", response_model=ApiResponse[ClassSessionData])
def start_class_session(
    class_session_id: ClassSessionId,
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[ClassSessionData]:
    try:
        session = service.start(principal, class_session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[ClassSessionData](data=_session_data(session))


@router.post("/{class_session_id}/complete", response_model=ApiResponse[ClassSessionData])
def complete_class_session(
    class_session_id: ClassSessionId,
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[ClassSessionData]:
    try:
        session = service.complete(principal, class_session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[ClassSessionData](data=_session_data(session))


@router.post("/{class_session_id}/cancel", response_model=ApiResponse[ClassSessionCancelData])
def cancel_class_session(
    class_session_id: ClassSessionId,
    payload: Optional[ClassSessionCancelRequest] = Body(None),
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[ClassSessionCancelData]:
    reason = payload.reason if payload else None
    try:
        session, cancelled = service.cancel(principal, class_session_id, reason)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[ClassSessionCancelData](
        data=ClassSessionCancelData(
            session=ClassSessionResponse.model_validate(session),
            cancelled_bookings=bookings_out(cancelled),
        )
    )


@router.post("/{class_session_id}/no-shows", response_model=ApiResponse[BookingListData])
def reconcile_no_shows(
    class_session_id: ClassSessionId,
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[BookingListData]:
    try:
        bookings = service.reconcile_no_shows(principal, class_session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingListData](data=BookingListData(bookings=bookings_out(bookings)))


@router.get("/{class_session_id}/roster", response_model=ApiResponse[RosterData])
def get_class_roster(
    class_session_id: ClassSessionId,
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[RosterData]:
    try:
        bookings = service.roster(principal, class_session_id)
    except DomainException as e:
        handle_domain_exception(e)
    roster = [
        RosterEntry(
            booking_id=b.id,
            member_id=b.member_id,
            member_name=b.member.full_name,
            status=b.status,
            booked_at=b.created_at,
            checked_in_at=b.checked_in_at,
            check_in_method=b.check_in_method,
        )
        for b in bookings
    ]
    return ApiResponse[RosterData](data=RosterData(roster=roster))


@router.get("/{class_session_id}/waitlist", response_model=ApiResponse[WaitlistData])
def get_class_waitlist(
    class_session_id: ClassSessionId,
    principal: Principal = Depends(get_current_principal),
    service: ClassSessionService = Depends(get_class_session_service),
) -> ApiResponse[WaitlistData]:
    try:
        entries = service.waitlist(principal, class_session_id)
    except DomainException as e:
        handle_domain_exception(e)
    waitlist = [
        WaitlistEntryResponse(
            booking_id=entry.booking.id,
            member_id=entry.booking.member_id,
            member_name=entry.booking.member.full_name,
            position=entry.position,
            waitlisted_at=entry.booking.created_at,
        )
        for entry in entries
    ]
    return ApiResponse[WaitlistData](data=WaitlistData(waitlist=waitlist))
