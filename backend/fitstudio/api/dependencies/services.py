# backend/fitstudio/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import Settings, get_settings
from ...services.booking_service import BookingService
from ...services.class_session_service import ClassSessionService
from ...services.notification_service import NotificationService, get_notification_service
from .database import get_db


def get_notification_service_dep() -> NotificationService:
    return get_notification_service()


def get_booking_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service_dep),
    settings: Settings = Depends(get_settings),
) -> BookingService:
    return BookingService(db, notification_service=notification_service, settings=settings)


def get_class_session_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service_dep),
) -> ClassSessionService:
    return ClassSessionService(db, notification_service=notification_service)
