# backend/tutorbook/repositories/booking_repository.py
"""
Booking Repository for the Tutorbook platform.

Implements all data access operations for booking management:
- Booking creation (integrity errors exposed for conflict handling)
- Active-booking lookups for conflict detection and availability
- Participant-scoped listing with paging
"""

from datetime import date
import logging
from typing import Any, List, Optional, Tuple, cast

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..domain.booking_lifecycle import ACTIVE_STATUSES, BookingStatus
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access. Always reads the store; no caching."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def get_active_bookings_for_teacher_on_date(
        self,
        teacher_id: str,
        booking_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Get the teacher's bookings that occupy time on a date.

        Args:
            teacher_id: The teacher ID
            booking_date: The date to check
            exclude_booking_id: Optional booking to leave out (rescheduling)

        Returns:
            Active bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.teacher_id == teacher_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(_ACTIVE_VALUES),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)

            return cast(List[Booking], query.order_by(Booking.start_time).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting active bookings for teacher {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to get active bookings: {str(e)}")

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        """Get a booking with its student and teacher loaded."""
        return self.get_by_id(booking_id, load_relationships=True)

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """
        Re-read a booking with ``SELECT ... FOR UPDATE``.

        ``populate_existing`` overwrites whatever this session already holds
        for the row, so status checks run against the committed state.
        """
        try:
            query = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id)
                .populate_existing()
                .with_for_update()
            )
            return cast(Optional[Booking], query.first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock booking: {str(e)}") from e

    def get_bookings_for_user(
        self,
        user_id: str,
        status: Optional[BookingStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        """
        Get bookings where the user is either the student or the teacher.

        Args:
            user_id: Participant ID
            status: Optional status filter
            offset: Rows to skip
            limit: Maximum rows to return

        Returns:
            (page of bookings newest first, total matching count)
        """
        try:
            query = self.db.query(Booking).filter(
                or_(Booking.student_id == user_id, Booking.teacher_id == user_id)
            )
            if status is not None:
                query = query.filter(Booking.status == status.value)

            total = query.count()
            rows = (
                query.order_by(Booking.booking_date.desc(), Booking.start_time.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return cast(List[Booking], rows), total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Booking.student), joinedload(Booking.teacher))
