# backend/tutorbook/core/exceptions.py
"""
Domain exceptions for the Tutorbook booking engine.

Each carries a human-readable ``message``, a stable machine ``code`` and a
``details`` dict, and knows its HTTP status. Conflicts and invalid
transitions are ordinary outcomes; raising one never leaves a half-applied
change behind because every mutation runs inside a single transaction.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

# Starlette renamed the 422 constant; fall back to the number on older releases
HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Root of the booking engine's error taxonomy."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or type(self).__name__
        self.details = details or {}
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": self.message, "code": self.code, "details": self.details},
        )


class ValidationException(DomainException):
    """Malformed or missing input. Nothing was written."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenException(DomainException):
    """The actor is not a party to the booking."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """The store failed underneath a service call; the caller may retry."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "The booking store could not complete the request",
                "code": self.code,
                "details": self.details,
            },
        )


class BookingConflictException(ConflictException):
    """
    The requested interval overlaps an active booking of the same teacher.

    Also raised with ``code="BOOKING_BUSY"`` when the teacher's schedule
    lock could not be taken in time.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: str = "BOOKING_CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message or "This time slot conflicts with an existing booking",
            code=code,
            details=details,
        )


class InvalidTransitionException(BusinessRuleException):
    """The lifecycle table has no edge from the current status to the requested one."""

    def __init__(
        self,
        current_status: str,
        requested_status: str,
        message: Optional[str] = None,
    ):
        super().__init__(
            message
            or f"Cannot change booking status from '{current_status}' to '{requested_status}'",
            code="INVALID_TRANSITION",
            details={"current_status": current_status, "requested_status": requested_status},
        )


class RepositoryException(Exception):
    """A data access call failed (connectivity, constraint, bad query)."""


def is_db_pool_exhaustion(exc: Exception) -> bool:
    """True when ``exc`` looks like every pooled connection was busy."""
    text = str(exc).lower()
    return "queuepool" in text or ("timeout" in text and ("connection" in text or "pool" in text))
