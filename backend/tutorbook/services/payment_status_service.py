# backend/tutorbook/services/payment_status_service.py
"""
Payment status updates from the payment collaborator.

The collaborator owns ``payment_status`` and nothing else: lifecycle
status, date and time are never touched here, and no lifecycle event is
published.
"""

import logging

from sqlalchemy.orm import Session

from ..core.enums import PaymentStatus
from ..core.exceptions import NotFoundException, ValidationException
from ..models.booking import Booking
from ..repositories import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def _payment_move_allowed(current: PaymentStatus, target: PaymentStatus) -> bool:
    # A refund needs a payment; once refunded, the payment is closed.
    if current == PaymentStatus.REFUNDED:
        return False
    if target == PaymentStatus.REFUNDED:
        return current == PaymentStatus.PAID
    return True


class PaymentStatusService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("update_payment_status")
    def update_payment_status(self, booking_id: str, payment_status: PaymentStatus | str) -> Booking:
        """
        Record a new payment status on a booking.

        Setting the current value again is a no-op. The row is re-read under
        a lock so the move is judged against the committed payment status.

        Raises:
            NotFoundException: Booking not found
            ValidationException: Unknown status or a move the payment flow forbids
            ConflictException: The row changed between read and write (STALE_WRITE)
        """
        try:
            target = PaymentStatus(payment_status)
        except ValueError as exc:
            raise ValidationException(
                f"Unknown payment status: {payment_status}", code="INVALID_PAYMENT_STATUS"
            ) from exc

        with self.transaction():
            booking = self.repository.get_for_update(booking_id)
            if booking is None:
                raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")

            current = PaymentStatus(booking.payment_status)
            if target != current and not _payment_move_allowed(current, target):
                raise ValidationException(
                    f"Cannot change payment status from '{current.value}' to '{target.value}'",
                    code="INVALID_PAYMENT_TRANSITION",
                    details={"current_status": current.value, "requested_status": target.value},
                )
            booking.payment_status = target.value
            self.flush_or_conflict("booking payment")

        self.logger.info(
            f"Payment status for booking {booking_id}: {current.value} -> {target.value}"
        )
        return booking
