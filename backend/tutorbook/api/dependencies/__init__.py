# backend/tutorbook/api/dependencies/__init__.py
"""FastAPI ``Depends`` providers for routes."""

from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_event_publisher,
    get_payment_status_service,
)

__all__ = [
    "get_availability_service",
    "get_booking_service",
    "get_db",
    "get_event_publisher",
    "get_payment_status_service",
]
