from .booking_events import BookingEvent, BookingEventType

__all__ = ["BookingEvent", "BookingEventType"]
