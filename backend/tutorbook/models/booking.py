# backend/tutorbook/models/booking.py
"""
Booking model for the Tutorbook platform.

Represents a one-on-one session between a student and a teacher.
Bookings are self-contained: date, "HH:MM" start/end, duration and the
price frozen at creation all live on the record. A booking is never
deleted; terminal bookings (completed/cancelled) stay for history.

Status changes go through the transition methods below, which check the
lifecycle table before touching any field.
"""

from datetime import date, datetime, timezone
import logging
from typing import Any, Optional, cast

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import CancelledBy, PaymentStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.booking_lifecycle import (
    ACTIVE_STATUSES,
    BookingStatus,
    coerce_status,
    ensure_transition,
)
from ..domain.interval import TimeInterval

logger = logging.getLogger(__name__)

ACTIVE_STATUS_VALUES = tuple(sorted(status.value for status in ACTIVE_STATUSES))
SLOT_INDEX_NAME = "uq_bookings_teacher_active_start"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    """
    Scheduled session between a student and a teacher.

    Design: ``start_time``/``end_time`` are stored as zero-padded "HH:MM"
    strings on a single implicit timezone; overlap checks convert them to
    minute offsets via ``interval``.
    """

    __tablename__ = "bookings"

    # Primary key
    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    # Participants (immutable after creation)
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    teacher_id = Column(String(26), ForeignKey("users.id"), nullable=False)

    # Self-contained booking data
    subject = Column(String(100), nullable=False)
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    # Pricing snapshot (frozen at creation)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    meeting_link = Column(String(500), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation tracking
    cancelled_by = Column(String(10), nullable=True)
    cancel_reason = Column(String(300), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Reschedule snapshot of the previously occupied slot
    rescheduled_from_date = Column(Date, nullable=True)
    rescheduled_from_time = Column(String(5), nullable=True)
    rescheduled_at = Column(DateTime(timezone=True), nullable=True)

    # Student feedback (completed bookings only)
    feedback_rating = Column(Integer, nullable=True)
    feedback_comment = Column(Text, nullable=True)
    feedback_submitted_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Bumped on every UPDATE; a write based on a stale read matches no row
    version = Column(Integer, nullable=False)

    # Relationships
    student = relationship("User", foreign_keys=[student_id], backref="student_bookings")
    teacher = relationship("User", foreign_keys=[teacher_id], backref="teacher_bookings")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'rescheduled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'failed')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('student', 'teacher')",
            name="ck_bookings_cancelled_by",
        ),
        CheckConstraint(
            "duration_minutes > 0",
            name="check_duration_positive",
        ),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("start_time < end_time", name="check_time_order"),
        CheckConstraint(
            "feedback_rating IS NULL OR (feedback_rating >= 1 AND feedback_rating <= 5)",
            name="check_feedback_rating_range",
        ),
        Index("ix_bookings_teacher_date", "teacher_id", "booking_date"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs: Any) -> None:
        """Initialize in pending status with payment pending."""
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if not self.payment_status:
            self.payment_status = PaymentStatus.PENDING.value
        logger.info(
            f"Creating booking for student {self.student_id} with teacher {self.teacher_id}"
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Booking {self.id}: student={self.student_id}, "
            f"teacher={self.teacher_id}, date={self.booking_date}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    # Derived values

    @property
    def interval(self) -> TimeInterval:
        """The occupied ``[start, end)`` interval on ``booking_date``."""
        return TimeInterval.from_hhmm(cast(str, self.start_time), cast(str, self.end_time))

    @property
    def current_status(self) -> BookingStatus:
        return coerce_status(cast(str, self.status))

    @property
    def booking_reference(self) -> str:
        """Short display id, e.g. ``BK3F9A2C``."""
        return f"BK{str(self.id)[-6:].upper()}"

    def is_party(self, user_id: str) -> bool:
        """Whether ``user_id`` is this booking's student or teacher."""
        return user_id in (self.student_id, self.teacher_id)

    def party_of(self, user_id: str) -> Optional[CancelledBy]:
        if user_id == self.student_id:
            return CancelledBy.STUDENT
        if user_id == self.teacher_id:
            return CancelledBy.TEACHER
        return None

    # Lifecycle transitions

    def _transition(self, target: BookingStatus) -> BookingStatus:
        previous = self.current_status
        ensure_transition(previous, target)
        self.status = target.value
        return previous

    def confirm(self, meeting_link: Optional[str] = None) -> None:
        """Confirm this booking, optionally attaching a meeting link."""
        self._transition(BookingStatus.CONFIRMED)
        self.confirmed_at = _utcnow()
        if meeting_link:
            self.meeting_link = meeting_link
        logger.info(f"Booking {self.id} confirmed")

    def cancel(self, cancelled_by: CancelledBy, reason: Optional[str] = None) -> None:
        """Cancel this booking and record who cancelled and why."""
        self._transition(BookingStatus.CANCELLED)
        self.cancelled_by = cancelled_by.value
        self.cancel_reason = reason
        self.cancelled_at = _utcnow()
        logger.info(f"Booking {self.id} cancelled by {cancelled_by.value}")

    def complete(self) -> None:
        """Mark booking as completed."""
        self._transition(BookingStatus.COMPLETED)
        self.completed_at = _utcnow()
        logger.info(f"Booking {self.id} marked as completed")

    def move_to(self, new_date: date, new_interval: TimeInterval) -> None:
        """
        Relocate this booking and mark it rescheduled.

        Callers check rescheduling eligibility and conflicts first; this
        only snapshots the old slot and overwrites date/time.
        """
        self.rescheduled_from_date = self.booking_date
        self.rescheduled_from_time = self.start_time
        self.booking_date = new_date
        self.start_time = new_interval.start_hhmm
        self.end_time = new_interval.end_hhmm
        self.status = BookingStatus.RESCHEDULED.value
        self.rescheduled_at = _utcnow()
        logger.info(
            f"Booking {self.id} rescheduled from {self.rescheduled_from_date} "
            f"{self.rescheduled_from_time} to {new_date} {self.start_time}"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses and audit snapshots."""
        return {
            "id": self.id,
            "booking_reference": self.booking_reference,
            "student_id": self.student_id,
            "teacher_id": self.teacher_id,
            "subject": self.subject,
            "booking_date": self.booking_date.isoformat() if self.booking_date else None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
            "status": self.status,
            "hourly_rate": float(self.hourly_rate) if self.hourly_rate is not None else None,
            "price": float(self.price) if self.price is not None else None,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "meeting_link": self.meeting_link,
            "cancelled_by": self.cancelled_by,
            "cancel_reason": self.cancel_reason,
            "rescheduled_from": (
                {
                    "date": self.rescheduled_from_date.isoformat(),
                    "time": self.rescheduled_from_time,
                }
                if self.rescheduled_from_date
                else None
            ),
            "feedback": (
                {
                    "rating": self.feedback_rating,
                    "comment": self.feedback_comment,
                    "submitted_at": self.feedback_submitted_at.isoformat()
                    if self.feedback_submitted_at
                    else None,
                }
                if self.feedback_rating is not None
                else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# Last line of defence against double-booking the same start slot.
Index(
    SLOT_INDEX_NAME,
    Booking.teacher_id,
    Booking.booking_date,
    Booking.start_time,
    unique=True,
    postgresql_where=Booking.status.in_(ACTIVE_STATUS_VALUES),
    sqlite_where=Booking.status.in_(ACTIVE_STATUS_VALUES),
)
