# backend/tutorbook/api/dependencies/services.py
"""Service providers. Each request gets services bound to its own session."""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...events import EventPublisher
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.payment_status_service import PaymentStatusService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_event_publisher() -> EventPublisher:
    """Process-wide publisher; the dispatcher holds no per-request state."""
    return EventPublisher()


def get_booking_service(
    db: Session = Depends(get_db),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> BookingService:
    return BookingService(db, event_publisher=event_publisher)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_payment_status_service(db: Session = Depends(get_db)) -> PaymentStatusService:
    return PaymentStatusService(db)
