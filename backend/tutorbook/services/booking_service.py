# backend/tutorbook/services/booking_service.py
"""
Booking Service for the Tutorbook platform.

Handles all booking lifecycle operations:
- Creating bookings without double-booking a teacher
- Status changes checked against the lifecycle table
- Rescheduling with self-excluding conflict checks
- Participant-scoped reads and listing
- Student feedback on completed lessons

Every mutation that can occupy a teacher's time runs inside
``teacher_lock`` and a single transaction that first locks the teacher
row, then re-checks for conflicts, then writes. The partial unique index
on bookings backs this up; a violation of that index surfaces as a
conflict, any other integrity error as a store failure. Status changes
re-read the booking under a row lock and the version column rejects any
write based on a stale read.
Events are published only after commit.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
import math
from typing import List, NoReturn, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.enums import RoleName
from ..core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.teacher_lock import teacher_lock
from ..core.ulid_helper import generate_ulid
from ..domain.booking_lifecycle import (
    RESCHEDULABLE_STATUSES,
    BookingStatus,
    coerce_status,
    ensure_transition,
)
from ..domain.interval import TimeInterval, normalize_hhmm
from ..events import BookingStatusChanged, EventPublisher
from ..models.booking import SLOT_INDEX_NAME, Booking
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..schemas.booking import MEETING_LINK_REGEX, BookingCreate
from .base import BaseService
from .conflict_checker import ConflictChecker, describe_conflicts

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
MAX_CANCEL_REASON_LENGTH = 300
MAX_FEEDBACK_COMMENT_LENGTH = 1000
MAX_PAGE_SIZE = 100
SQLITE_SLOT_VIOLATION = (
    "UNIQUE constraint failed: bookings.teacher_id, bookings.booking_date, bookings.start_time"
)


def calculate_price(hourly_rate: Decimal, duration_minutes: int) -> Decimal:
    """``hourly_rate * duration / 60``, rounded half-up to cents."""
    return (Decimal(hourly_rate) * Decimal(duration_minutes) / Decimal(60)).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_slot_index_violation(exc: IntegrityError) -> bool:
    """Whether ``exc`` came from the active-slot unique index."""
    message = str(exc.orig)
    # PostgreSQL names the index, SQLite lists its columns
    return SLOT_INDEX_NAME in message or SQLITE_SLOT_VIOLATION in message


@dataclass
class BookingPage:
    """One page of a participant's bookings."""

    items: List[Booking]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.total else 0


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Centralizes all booking business logic and coordinates with the
    conflict checker, the teacher lock and the event publisher.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[BookingRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        event_publisher: Optional[EventPublisher] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            repository: Optional BookingRepository instance
            conflict_checker: Optional ConflictChecker instance
            event_publisher: Optional EventPublisher (defaults to logging dispatcher)
            config: Optional settings override
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db, self.repository)
        self.event_publisher = event_publisher or EventPublisher()
        self.config = config or default_settings

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(self, booking_data: BookingCreate) -> Booking:
        """
        Create a pending booking for a student with a teacher.

        Args:
            booking_data: Validated request (participants, date, start, duration)

        Returns:
            The created booking, status pending, price frozen

        Raises:
            ValidationException: Bad duration/time, wrong roles, or self-booking
            NotFoundException: Student or teacher does not exist
            BookingConflictException: The interval overlaps an active booking,
                or the teacher lock timed out (code BOOKING_BUSY)
        """
        self.log_operation(
            "create_booking",
            student_id=booking_data.student_id,
            teacher_id=booking_data.teacher_id,
            booking_date=booking_data.booking_date.isoformat(),
            start_time=booking_data.start_time,
            duration=booking_data.duration,
        )

        interval = self._build_interval(booking_data.start_time, booking_data.duration)
        self._resolve_participants(booking_data.student_id, booking_data.teacher_id)

        with teacher_lock(booking_data.teacher_id):
            with self.transaction():
                teacher = self.user_repository.lock_teacher_row(booking_data.teacher_id)
                if teacher is None:
                    raise NotFoundException("Teacher not found", code="TEACHER_NOT_FOUND")

                self._ensure_slot_free(
                    booking_data.teacher_id,
                    booking_data.booking_date,
                    interval,
                    operation="create",
                )

                hourly_rate = Decimal(teacher.hourly_rate)
                try:
                    booking = self.repository.create(
                        id=generate_ulid(),
                        student_id=booking_data.student_id,
                        teacher_id=booking_data.teacher_id,
                        subject=booking_data.subject,
                        booking_date=booking_data.booking_date,
                        start_time=interval.start_hhmm,
                        end_time=interval.end_hhmm,
                        duration_minutes=interval.duration_minutes,
                        notes=booking_data.notes,
                        hourly_rate=hourly_rate,
                        price=calculate_price(hourly_rate, interval.duration_minutes),
                        status=BookingStatus.PENDING.value,
                    )
                except IntegrityError as exc:
                    self._raise_for_integrity_error(
                        exc, booking_data.teacher_id, booking_data.booking_date, interval, "create"
                    )

        self.logger.info(
            f"Booking {booking.id} created for teacher {booking.teacher_id} on "
            f"{booking.booking_date} {booking.start_time}-{booking.end_time} (price {booking.price})"
        )
        self._publish(booking, None, booking_data.student_id)
        return booking

    # Lifecycle

    @BaseService.measure_operation("update_status")
    def update_status(
        self,
        booking_id: str,
        actor_id: str,
        new_status: BookingStatus | str,
        *,
        cancel_reason: Optional[str] = None,
        meeting_link: Optional[str] = None,
        new_date: Optional[date] = None,
        new_time: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking along its lifecycle.

        Args:
            booking_id: Booking to change
            actor_id: Student or teacher of the booking
            new_status: Target status
            cancel_reason: Stored when cancelling
            meeting_link: Attached when confirming
            new_date: Required when the target is 'rescheduled'
            new_time: Required when the target is 'rescheduled'

        Returns:
            Updated booking

        Raises:
            NotFoundException: Booking not found
            ForbiddenException: Actor is not a party to the booking
            InvalidTransitionException: Transition not in the lifecycle table
            ValidationException: Missing or malformed extra fields
            BookingConflictException: Reschedule target is taken
        """
        self.log_operation(
            "update_status", booking_id=booking_id, actor_id=actor_id, new_status=str(new_status)
        )
        booking = self._get_booking_for_actor(booking_id, actor_id)
        target = self._coerce_target_status(new_status)

        if target == BookingStatus.RESCHEDULED:
            if new_date is None or not new_time:
                raise ValidationException(
                    "new_date and new_time are required to reschedule",
                    code="RESCHEDULE_TARGET_REQUIRED",
                )
            return self._reschedule(booking, actor_id, new_date, new_time, via_status_update=True)

        if cancel_reason is not None and len(cancel_reason) > MAX_CANCEL_REASON_LENGTH:
            raise ValidationException(
                f"cancel_reason must be at most {MAX_CANCEL_REASON_LENGTH} characters"
            )
        if meeting_link and not MEETING_LINK_REGEX.fullmatch(meeting_link):
            raise ValidationException(
                "meeting_link must be an http(s) URL", code="INVALID_MEETING_LINK"
            )

        # Cancelling frees the slot and confirming holds it, so serialize with creates
        with teacher_lock(booking.teacher_id):
            with self.transaction():
                booking = self._lock_booking(booking_id)
                previous = booking.current_status

                if target == BookingStatus.CANCELLED:
                    cancelled_by = booking.party_of(actor_id)
                    assert cancelled_by is not None  # authorized above
                    booking.cancel(cancelled_by, cancel_reason)
                elif target == BookingStatus.CONFIRMED:
                    booking.confirm(meeting_link)
                elif target == BookingStatus.COMPLETED:
                    booking.complete()
                else:
                    # Nothing transitions back to pending
                    ensure_transition(previous, target)

                self.flush_or_conflict("booking")

        self._publish(booking, previous, actor_id)
        return booking

    @BaseService.measure_operation("reschedule_booking")
    def reschedule(
        self, booking_id: str, actor_id: str, new_date: date, new_time: str
    ) -> Booking:
        """
        Move a pending or confirmed booking to a new date and start time.

        The booking keeps its duration. The conflict check ignores the
        booking itself, so moving to the same slot succeeds.

        Raises:
            NotFoundException: Booking not found
            ForbiddenException: Actor is not a party to the booking
            InvalidTransitionException: Booking is not pending or confirmed
            BookingConflictException: New slot overlaps another active booking
        """
        self.log_operation(
            "reschedule_booking",
            booking_id=booking_id,
            actor_id=actor_id,
            new_date=new_date.isoformat() if new_date else None,
            new_time=new_time,
        )
        booking = self._get_booking_for_actor(booking_id, actor_id)
        return self._reschedule(booking, actor_id, new_date, new_time, via_status_update=False)

    def _reschedule(
        self,
        booking: Booking,
        actor_id: str,
        new_date: date,
        new_time: str,
        via_status_update: bool,
    ) -> Booking:
        teacher_id = booking.teacher_id

        with teacher_lock(teacher_id):
            with self.transaction():
                self.user_repository.lock_teacher_row(teacher_id)
                # Check against the committed status, not the one read before the lock
                booking = self._lock_booking(booking.id)
                previous = booking.current_status

                if via_status_update:
                    ensure_transition(previous, BookingStatus.RESCHEDULED)
                elif previous not in RESCHEDULABLE_STATUSES:
                    raise InvalidTransitionException(
                        previous.value,
                        BookingStatus.RESCHEDULED.value,
                        message=(
                            "Only pending or confirmed bookings can be rescheduled "
                            f"(current: {previous.value})"
                        ),
                    )

                new_interval = self._build_interval(new_time, booking.duration_minutes)
                self._ensure_slot_free(
                    teacher_id,
                    new_date,
                    new_interval,
                    operation="reschedule",
                    exclude_booking_id=booking.id,
                )

                booking.move_to(new_date, new_interval)
                try:
                    self.flush_or_conflict("booking")
                except IntegrityError as exc:
                    self._raise_for_integrity_error(
                        exc, teacher_id, new_date, new_interval, "reschedule"
                    )

        self._publish(booking, previous, actor_id)
        return booking

    # Reads

    @BaseService.measure_operation("get_booking_for_user")
    def get_booking_for_user(self, booking_id: str, actor_id: str) -> Booking:
        """
        Get booking details for one of its parties.

        Raises:
            NotFoundException: Booking not found
            ForbiddenException: Actor is not the student or teacher
        """
        return self._get_booking_for_actor(booking_id, actor_id)

    @BaseService.measure_operation("list_bookings_for_user")
    def list_bookings_for_user(
        self,
        actor_id: str,
        status: Optional[BookingStatus | str] = None,
        page: int = 1,
        per_page: int = 10,
    ) -> BookingPage:
        """
        Get the actor's bookings as student or teacher, newest first.

        Args:
            actor_id: Participant whose bookings to list
            status: Optional status filter
            page: 1-based page number
            per_page: Page size (max 100)

        Returns:
            BookingPage with items and totals
        """
        if page < 1:
            raise ValidationException("page must be at least 1")
        if not 1 <= per_page <= MAX_PAGE_SIZE:
            raise ValidationException(f"per_page must be between 1 and {MAX_PAGE_SIZE}")

        status_filter = self._coerce_target_status(status) if status is not None else None

        if self.user_repository.get_by_id(actor_id, load_relationships=False) is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")

        items, total = self.repository.get_bookings_for_user(
            actor_id, status=status_filter, offset=(page - 1) * per_page, limit=per_page
        )
        return BookingPage(items=items, total=total, page=page, per_page=per_page)

    # Feedback

    @BaseService.measure_operation("submit_feedback")
    def submit_feedback(
        self,
        booking_id: str,
        actor_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> Booking:
        """
        Record the student's rating of a completed lesson. Once per booking.

        Raises:
            NotFoundException: Booking not found
            ForbiddenException: Actor is not the booking's student
            ValidationException: Lesson not completed, bad rating or comment,
                or feedback already given
        """
        if not 1 <= rating <= 5:
            raise ValidationException("rating must be between 1 and 5")
        if comment is not None and len(comment) > MAX_FEEDBACK_COMMENT_LENGTH:
            raise ValidationException(
                f"comment must be at most {MAX_FEEDBACK_COMMENT_LENGTH} characters"
            )

        with self.transaction():
            booking = self._get_booking_for_actor(booking_id, actor_id)
            if actor_id != booking.student_id:
                raise ForbiddenException("Only the student can leave feedback")
            if booking.current_status != BookingStatus.COMPLETED:
                raise ValidationException(
                    "Feedback can only be given for completed lessons",
                    code="BOOKING_NOT_COMPLETED",
                )
            if booking.feedback_rating is not None:
                raise ValidationException(
                    "Feedback was already submitted for this booking",
                    code="FEEDBACK_ALREADY_SUBMITTED",
                )

            booking.feedback_rating = rating
            booking.feedback_comment = comment.strip() if comment else None
            booking.feedback_submitted_at = _utcnow()

        self.logger.info(f"Feedback ({rating}/5) recorded for booking {booking.id}")
        return booking

    # Helpers

    def _build_interval(self, start_time: str, duration: int) -> TimeInterval:
        """Validate start + duration and return the occupied interval."""
        minimum = self.config.min_booking_duration_minutes
        maximum = self.config.max_booking_duration_minutes
        if not minimum <= duration <= maximum:
            raise ValidationException(
                f"Duration must be between {minimum} and {maximum} minutes",
                code="INVALID_DURATION",
                details={"duration": duration},
            )
        try:
            interval = TimeInterval.from_start_and_duration(normalize_hhmm(start_time), duration)
        except ValueError as exc:
            raise ValidationException(str(exc), code="INVALID_TIME") from exc
        if interval.end_minutes >= 24 * 60:
            # End must be expressible as HH:MM on the same date
            raise ValidationException(
                "Booking must end before midnight", code="INVALID_TIME"
            )
        return interval

    def _resolve_participants(self, student_id: str, teacher_id: str) -> Tuple[User, User]:
        if student_id == teacher_id:
            raise ValidationException("A user cannot book a lesson with themselves")

        student = self.user_repository.get_by_id(student_id, load_relationships=False)
        if student is None:
            raise NotFoundException("Student not found", code="STUDENT_NOT_FOUND")
        teacher = self.user_repository.get_by_id(teacher_id, load_relationships=False)
        if teacher is None:
            raise NotFoundException("Teacher not found", code="TEACHER_NOT_FOUND")

        if student.role != RoleName.STUDENT.value:
            raise ValidationException(f"User {student_id} is not a student", code="INVALID_ROLE")
        if teacher.role != RoleName.TEACHER.value:
            raise ValidationException(f"User {teacher_id} is not a teacher", code="INVALID_ROLE")
        if teacher.hourly_rate is None:
            raise ValidationException(
                "Teacher has no hourly rate and cannot be booked", code="TEACHER_RATE_MISSING"
            )
        return student, teacher

    def _get_booking_for_actor(self, booking_id: str, actor_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if not booking.is_party(actor_id):
            raise ForbiddenException(
                "You don't have permission to access this booking", code="NOT_A_PARTY"
            )
        return booking

    def _lock_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_for_update(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def _coerce_target_status(self, value: BookingStatus | str) -> BookingStatus:
        try:
            return coerce_status(value)
        except ValueError as exc:
            raise ValidationException(
                f"Unknown booking status: {value}", code="INVALID_STATUS"
            ) from exc

    def _ensure_slot_free(
        self,
        teacher_id: str,
        booking_date: date,
        interval: TimeInterval,
        operation: str,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        conflicts = self.conflict_checker.check_booking_conflicts(
            teacher_id, booking_date, interval, exclude_booking_id
        )
        if conflicts:
            prometheus_metrics.record_booking_conflict(operation)
            raise BookingConflictException(
                details={
                    "teacher_id": teacher_id,
                    "date": booking_date.isoformat(),
                    "start_time": interval.start_hhmm,
                    "end_time": interval.end_hhmm,
                    "conflicts": describe_conflicts(conflicts),
                }
            )

    def _raise_for_integrity_error(
        self,
        exc: IntegrityError,
        teacher_id: str,
        booking_date: date,
        interval: TimeInterval,
        operation: str,
    ) -> NoReturn:
        """Re-raise a slot-index violation as a conflict; anything else as is."""
        if not is_slot_index_violation(exc):
            raise exc
        self.logger.warning(
            f"Unique slot constraint rejected {operation} for teacher {teacher_id} "
            f"on {booking_date} at {interval}: {exc.orig}"
        )
        prometheus_metrics.record_booking_conflict(operation)
        raise BookingConflictException(
            details={
                "teacher_id": teacher_id,
                "date": booking_date.isoformat(),
                "start_time": interval.start_hhmm,
                "end_time": interval.end_hhmm,
            }
        ) from exc

    def _publish(
        self, booking: Booking, previous: Optional[BookingStatus], actor_id: str
    ) -> None:
        event = BookingStatusChanged(
            booking_id=booking.id,
            from_status=previous.value if previous is not None else None,
            to_status=booking.status,
            actor_id=actor_id,
            occurred_at=_utcnow(),
            amount=booking.price,
        )
        self.event_publisher.publish(event)
