# backend/fitstudio/services/capacity.py
"""
Session capacity tracker.

Owns the ``spots_booked`` counter of a class session. Callers must hold the
session lock and a row-locked copy of the session; the tracker only checks
and mutates the in-memory row, and the surrounding transaction persists it.
"""

import logging

from ..core.exceptions import CapacityInvariantError
from ..models.class_session import ClassSession

logger = logging.getLogger(__name__)


def has_open_spot(session: ClassSession) -> bool:
    return (session.spots_booked or 0) < session.capacity


def increment(session: ClassSession) -> int:
    """Take one spot. Raises CapacityInvariantError if the session is already full."""
    booked = session.spots_booked or 0
    if booked >= session.capacity:
        logger.error(
            "Refusing to overbook class session",
            extra={
                "class_session_id": session.id,
                "spots_booked": booked,
                "capacity": session.capacity,
            },
        )
        raise CapacityInvariantError(session.id, booked, session.capacity, "increment")
    session.spots_booked = booked + 1
    return session.spots_booked


def decrement(session: ClassSession) -> int:
    """Release one spot. Raises CapacityInvariantError if no spot is booked."""
    booked = session.spots_booked or 0
    if booked <= 0:
        logger.error(
            "Refusing to release a spot on an empty class session",
            extra={
                "class_session_id": session.id,
                "spots_booked": booked,
                "capacity": session.capacity,
            },
        )
        raise CapacityInvariantError(session.id, booked, session.capacity, "decrement")
    session.spots_booked = booked - 1
    return session.spots_booked
