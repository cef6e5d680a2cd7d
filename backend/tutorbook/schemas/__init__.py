from .base import HealthResponse
from .booking import (
    AvailabilityResponse,
    AvailabilitySlotResponse,
    BookingCreate,
    BookingFeedbackCreate,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    BookingStatusUpdate,
    PaymentStatusUpdate,
)

__all__ = [
    "AvailabilityResponse",
    "AvailabilitySlotResponse",
    "BookingCreate",
    "BookingFeedbackCreate",
    "BookingListResponse",
    "BookingReschedule",
    "BookingResponse",
    "BookingStatusUpdate",
    "HealthResponse",
    "PaymentStatusUpdate",
]
