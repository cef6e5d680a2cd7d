"""Service layer: business operations over the booking store."""

from .availability_service import AvailabilityService
from .base import BaseService
from .booking_service import BookingPage, BookingService
from .conflict_checker import ConflictChecker, find_conflicts, has_conflict
from .payment_status_service import PaymentStatusService

__all__ = [
    "AvailabilityService",
    "BaseService",
    "BookingPage",
    "BookingService",
    "ConflictChecker",
    "PaymentStatusService",
    "find_conflicts",
    "has_conflict",
]
