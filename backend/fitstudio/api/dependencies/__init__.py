"""FastAPI dependencies: database session, authenticated principal, services."""

from .auth import get_current_principal
from .database import get_db
from .services import get_booking_service, get_class_session_service

__all__ = [
    "get_booking_service",
    "get_class_session_service",
    "get_current_principal",
    "get_db",
]
