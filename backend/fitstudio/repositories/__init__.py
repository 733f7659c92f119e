"""Repository layer: data access only, no commits."""

from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .class_session_repository import ClassSessionRepository
from .member_repository import MemberRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "ClassSessionRepository",
    "IRepository",
    "MemberRepository",
]
