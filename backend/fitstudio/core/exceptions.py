# backend/fitstudio/core/exceptions.py
"""
Domain-specific exceptions for the FitStudio booking service.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request data fails business validation."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class NotFoundException(DomainException):
    """Raised when a resource does not exist or belongs to another tenant."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class InvalidStateError(DomainException):
    """Raised when a booking or session transition is not allowed from its current state."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "INVALID_STATE"


class ServiceException(DomainException):
    """Raised when a service operation fails unexpectedly."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "INTERNAL_ERROR"


# Specific business exceptions


class DuplicateBookingException(ConflictException):
    """Raised when a member already holds an active booking for the session."""

    def __init__(self, member_id: str, class_session_id: str):
        super().__init__(
            message="Member already has an active booking for this class",
            code="DUPLICATE_BOOKING",
            details={"member_id": member_id, "class_session_id": class_session_id},
        )


class CapacityInvariantError(ConflictException):
    """Raised when a counter change would leave spots_booked outside [0, capacity]."""

    def __init__(self, class_session_id: str, spots_booked: int, capacity: int, operation: str):
        super().__init__(
            message=f"Cannot {operation} spots booked for class session {class_session_id}",
            code="CAPACITY_INVARIANT",
            details={
                "class_session_id": class_session_id,
                "spots_booked": spots_booked,
                "capacity": capacity,
                "operation": operation,
            },
        )


class SessionBusyException(ConflictException):
    """Raised when the per-session lock cannot be acquired in time."""

    def __init__(self, class_session_id: str):
        super().__init__(
            message="Class session is busy, please retry",
            code="SESSION_BUSY",
            details={"class_session_id": class_session_id},
        )


class InstructorConflictException(ConflictException):
    """Raised when an instructor would teach two overlapping classes."""

    def __init__(self, instructor_id: str, conflicting_session_id: str):
        super().__init__(
            message="Instructor has a conflicting class at this time",
            code="INSTRUCTOR_CONFLICT",
            details={
                "instructor_id": instructor_id,
                "conflicting_class_session_id": conflicting_session_id,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class IntegrityViolation(RepositoryException):
    """Raised when a write is rejected by a database constraint."""
