# backend/fitstudio/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Book a class (member for self, staff for a member)
    GET /upcoming - Upcoming confirmed and waitlisted bookings
    GET /history - Past bookings, paginated
    POST /check-in/qr - Check in from a scanned member QR code
    GET /{booking_id} - Booking details
    DELETE /{booking_id} - Cancel a booking (promotes the waitlist)
    POST /{booking_id}/check-in - Manual staff check-in
    POST /{booking_id}/no-show - Mark a booking as no-show
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ...api.dependencies import get_booking_service, get_current_principal
from ...core.exceptions import DomainException
from ...principal import Principal
from ...schemas.base_responses import ApiResponse, PaginatedApiResponse, PaginationMeta
from ...schemas.booking import (
    BookingCreateRequest,
    BookingData,
    BookingListData,
    CancellationData,
    QrCheckInRequest,
)
from ...services.booking_service import BookingService
from ._helpers import ULID_PATH_PATTERN, booking_out, bookings_out, handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

BookingId = Annotated[str, Path(description="Booking ULID", pattern=ULID_PATH_PATTERN)]


@router.post(
    "",
    response_model=ApiResponse[BookingData],
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    payload: BookingCreateRequest = Body(...),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingData]:
    """Book a class; the booking is CONFIRMED or WAITLISTED depending on capacity."""
    try:
        booking = service.book(principal, payload.class_session_id, payload.member_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingData](data=BookingData(booking=booking_out(booking)))


@router.get("/upcoming", response_model=ApiResponse[BookingListData])
def get_upcoming_bookings(
    member_id: Optional[str] = Query(
        None, alias="memberId", pattern=ULID_PATH_PATTERN, description="Staff only"
    ),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingListData]:
    try:
        bookings = service.list_upcoming(principal, member_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingListData](data=BookingListData(bookings=bookings_out(bookings)))


@router.get("/history", response_model=PaginatedApiResponse[BookingListData])
def get_booking_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100, alias="perPage"),
    member_id: Optional[str] = Query(
        None, alias="memberId", pattern=ULID_PATH_PATTERN, description="Staff only"
    ),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> PaginatedApiResponse[BookingListData]:
    try:
        result = service.list_history(principal, page=page, per_page=per_page, member_id=member_id)
    except DomainException as e:
        handle_domain_exception(e)
    return PaginatedApiResponse[BookingListData](
        data=BookingListData(bookings=bookings_out(result.items)),
        meta=PaginationMeta(
            page=result.page,
            per_page=result.per_page,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@router.post("/check-in/qr", response_model=ApiResponse[BookingData])
def check_in_by_qr(
    payload: QrCheckInRequest = Body(...),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingData]:
    try:
        booking = service.check_in_by_qr(principal, payload.member_id, payload.class_session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingData](data=BookingData(booking=booking_out(booking)))


@router.get("/{booking_id}", response_model=ApiResponse[BookingData])
def get_booking(
    booking_id: BookingId,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingData]:
    try:
        booking = service.get_booking(principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingData](data=BookingData(booking=booking_out(booking)))


@router.delete("/{booking_id}", response_model=ApiResponse[CancellationData])
def cancel_booking(
    booking_id: BookingId,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[CancellationData]:
    """Cancel a booking; a freed spot goes to the oldest waitlisted booking."""
    try:
        result = service.cancel(principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[CancellationData](
        data=CancellationData(
            booking=booking_out(result.booking), promoted=booking_out(result.promoted)
        )
    )


@router.post("/{booking_id}/check-in", response_model=ApiResponse[BookingData])
def check_in_booking(
    booking_id: BookingId,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingData]:
    try:
        booking = service.check_in(principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingData](data=BookingData(booking=booking_out(booking)))


@router.post("/{booking_id}/no-show", response_model=ApiResponse[BookingData])
def mark_booking_no_show(
    booking_id: BookingId,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingData]:
    try:
        booking = service.mark_no_show(principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingData](data=BookingData(booking=booking_out(booking)))
