# backend/tutorbook/services/availability_service.py
"""
Availability Service for the Tutorbook platform.

A teacher's free slots on a date are derived, never stored: the working
window from settings is cut into consecutive fixed-length slots and every
slot that overlaps an active booking is dropped. Recomputed per call.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import NotFoundException, ValidationException
from ..domain.interval import AvailabilitySlot, TimeInterval
from ..repositories import RepositoryFactory
from .base import BaseService
from .conflict_checker import has_conflict

logger = logging.getLogger(__name__)


def candidate_slots(
    window_start: int, window_end: int, slot_length: int
) -> List[TimeInterval]:
    """
    Cut ``[window_start, window_end)`` into consecutive slots.

    A trailing remainder shorter than ``slot_length`` is not a slot.
    """
    slots = []
    start = window_start
    while start + slot_length <= window_end:
        slots.append(TimeInterval(start, start + slot_length))
        start += slot_length
    return slots


class AvailabilityService(BaseService):
    """Computes bookable slots for a teacher from their active bookings."""

    def __init__(self, db: Session, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or default_settings
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    @BaseService.measure_operation("compute_available_slots")
    def compute_available_slots(
        self, teacher_id: str, target_date: Optional[date]
    ) -> List[AvailabilitySlot]:
        """
        Get the teacher's bookable slots on a date, in chronological order.

        Args:
            teacher_id: Teacher to look up
            target_date: Day to compute; required

        Returns:
            Slots inside the working window that overlap no active booking

        Raises:
            ValidationException: If no date is given
            NotFoundException: If the teacher does not exist
        """
        if target_date is None:
            raise ValidationException("A date is required to compute availability", code="DATE_REQUIRED")

        teacher = self.user_repository.get_by_id(teacher_id, load_relationships=False)
        if teacher is None or not teacher.is_teacher:
            raise NotFoundException(f"Teacher {teacher_id} not found", code="TEACHER_NOT_FOUND")

        active = self.booking_repository.get_active_bookings_for_teacher_on_date(
            teacher_id, target_date
        )
        slots = [
            AvailabilitySlot(date=target_date, interval=interval)
            for interval in candidate_slots(
                self.config.working_day_start_minutes,
                self.config.working_day_end_minutes,
                self.config.slot_length_minutes,
            )
            if not has_conflict(interval, target_date, active)
        ]

        self.logger.debug(
            f"Teacher {teacher_id} has {len(slots)} free slots on {target_date} "
            f"({len(active)} active bookings)"
        )
        return slots
