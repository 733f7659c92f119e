"""Shared helpers for v1 route modules."""

from typing import List, NoReturn, Optional

from fastapi import HTTPException, status

from ...core.exceptions import DomainException
from ...models.booking import Booking
from ...schemas.booking import BookingResponse

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def booking_out(booking: Optional[Booking]) -> Optional[BookingResponse]:
    if booking is None:
        return None
    return BookingResponse.model_validate(booking)


def bookings_out(bookings: List[Booking]) -> List[BookingResponse]:
    return [BookingResponse.model_validate(b) for b in bookings]
