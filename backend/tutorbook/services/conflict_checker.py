# backend/tutorbook/services/conflict_checker.py
"""
Conflict Checker Service for the Tutorbook platform.

Handles booking overlap detection for a single teacher:
- Pure interval checks over a list of bookings
- Store-backed checks that always read the teacher's current bookings

A candidate ``[s, e)`` conflicts with a booking ``[bs, be)`` on the same
date iff ``s < be and bs < e``. Back-to-back bookings are fine.
"""

from datetime import date
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, cast

from sqlalchemy.orm import Session

from ..domain.interval import TimeInterval
from ..models.booking import Booking
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class ScheduledBooking(Protocol):
    """Anything with a booking's date and HH:MM start/end."""

    booking_date: Any
    start_time: Any
    end_time: Any


def _overlapping(
    candidate: TimeInterval, candidate_date: date, bookings: Iterable[ScheduledBooking]
) -> Iterable[ScheduledBooking]:
    for booking in bookings:
        if booking.booking_date != candidate_date:
            continue
        existing = TimeInterval.from_hhmm(booking.start_time, booking.end_time)
        if candidate.overlaps(existing):
            yield booking


def has_conflict(
    candidate: TimeInterval, candidate_date: date, active_bookings: Iterable[ScheduledBooking]
) -> bool:
    """Return True on the first active booking that overlaps ``candidate``."""
    return next(iter(_overlapping(candidate, candidate_date, active_bookings)), None) is not None


def find_conflicts(
    candidate: TimeInterval, candidate_date: date, active_bookings: Iterable[ScheduledBooking]
) -> List[ScheduledBooking]:
    """Return every active booking that overlaps ``candidate``."""
    return list(_overlapping(candidate, candidate_date, active_bookings))


def describe_conflicts(bookings: Iterable[Booking]) -> List[Dict[str, Any]]:
    """Summaries of conflicting bookings for error details."""
    return [
        {
            "booking_id": booking.id,
            "date": booking.booking_date.isoformat(),
            "start_time": booking.start_time,
            "end_time": booking.end_time,
            "status": booking.status,
        }
        for booking in bookings
    ]


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts against the store.

    Never consults a cache: the answer must reflect bookings committed a
    moment ago, including by other workers.
    """

    def __init__(self, db: Session, repository: Optional[BookingRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional BookingRepository instance
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("check_booking_conflicts")
    def check_booking_conflicts(
        self,
        teacher_id: str,
        check_date: date,
        interval: TimeInterval,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Find the teacher's active bookings that overlap a time range.

        Args:
            teacher_id: The teacher to check
            check_date: The date to check
            interval: Candidate interval
            exclude_booking_id: Optional booking ID to exclude (the one being moved)

        Returns:
            Conflicting bookings, empty when the slot is free
        """
        bookings = self.repository.get_active_bookings_for_teacher_on_date(
            teacher_id, check_date, exclude_booking_id
        )
        conflicts = cast(List[Booking], find_conflicts(interval, check_date, bookings))

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for {teacher_id} "
                f"on {check_date} at {interval}"
            )

        return conflicts

    @BaseService.measure_operation("check_time_conflicts")
    def check_time_conflicts(
        self,
        teacher_id: str,
        check_date: date,
        interval: TimeInterval,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """Boolean form of check_booking_conflicts."""
        return bool(
            self.check_booking_conflicts(teacher_id, check_date, interval, exclude_booking_id)
        )
