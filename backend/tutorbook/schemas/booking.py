# backend/tutorbook/schemas/booking.py
"""
Booking request and response schemas.

Request bodies accept the short field names used by API clients
(``date``, ``time``, ``duration``); the canonical attribute names match
the model columns. Times are 24-hour "HH:MM" strings, normalized to the
zero-padded form.
"""

from datetime import date, datetime
import math
import re
from typing import Any, List, Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.enums import PaymentStatus
from ..domain.booking_lifecycle import BookingStatus
from ..domain.interval import AvailabilitySlot, normalize_hhmm
from .base import Money, StandardizedModel, StrictRequestModel

MEETING_LINK_REGEX = re.compile(r"^https?://\S+$", re.IGNORECASE)


def _validate_hhmm(value: object) -> object:
    if isinstance(value, str):
        try:
            return normalize_hhmm(value)
        except ValueError:
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
    return value


def _validate_meeting_link(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    if not MEETING_LINK_REGEX.fullmatch(candidate):
        raise ValueError("meeting_link must be an http(s) URL")
    return candidate


class BookingCreate(StrictRequestModel):
    """
    Request a lesson with a teacher.

    The end time is derived from ``start_time`` + ``duration``; clients
    never send it.
    """

    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(..., min_length=1, description="Student making the booking")
    teacher_id: str = Field(..., min_length=1, description="Teacher to book")
    subject: str = Field(..., min_length=1, max_length=100)
    booking_date: date = Field(..., alias="date", description="Lesson date (YYYY-MM-DD)")
    start_time: str = Field(..., alias="time", description="Start time, HH:MM 24-hour")
    duration: int = Field(..., gt=0, description="Length in minutes")
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("subject")
    @classmethod
    def _strip_subject(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("subject must not be blank")
        return stripped

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return _validate_hhmm(v)


class BookingStatusUpdate(StrictRequestModel):
    """Lifecycle change requested by one of the booking's parties."""

    actor_id: str = Field(..., min_length=1)
    new_status: BookingStatus
    cancel_reason: Optional[str] = Field(None, max_length=300)
    meeting_link: Optional[str] = Field(None, max_length=500)
    # Only used when new_status is 'rescheduled'
    new_date: Optional[date] = None
    new_time: Optional[str] = None

    @field_validator("new_time", mode="before")
    @classmethod
    def _parse_new_time(cls, v: object) -> object:
        return _validate_hhmm(v)

    @field_validator("meeting_link")
    @classmethod
    def _check_meeting_link(cls, v: Optional[str]) -> Optional[str]:
        return _validate_meeting_link(v)


class BookingReschedule(StrictRequestModel):
    actor_id: str = Field(..., min_length=1)
    new_date: date
    new_time: str

    @field_validator("new_time", mode="before")
    @classmethod
    def _parse_new_time(cls, v: object) -> object:
        return _validate_hhmm(v)


class BookingFeedbackCreate(StrictRequestModel):
    actor_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class PaymentStatusUpdate(StrictRequestModel):
    """Sent by the payment collaborator; touches nothing but payment_status."""

    payment_status: PaymentStatus


class RescheduledFromInfo(StandardizedModel):
    """Slot the booking occupied before its last reschedule."""

    date: date
    time: str


class FeedbackInfo(StandardizedModel):
    rating: int
    comment: Optional[str] = None
    submitted_at: Optional[datetime] = None


class BookingResponse(StandardizedModel):
    """Booking as returned to either party."""

    id: str
    booking_reference: str
    student_id: str
    teacher_id: str
    subject: str
    booking_date: date
    start_time: str
    end_time: str
    duration_minutes: int
    status: BookingStatus
    hourly_rate: Money
    price: Money
    payment_status: PaymentStatus
    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    rescheduled_from: Optional[RescheduledFromInfo] = None
    rescheduled_at: Optional[datetime] = None
    feedback: Optional[FeedbackInfo] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Any) -> "BookingResponse":
        """Create BookingResponse from a Booking ORM model."""
        rescheduled_from = None
        if booking.rescheduled_from_date is not None:
            rescheduled_from = RescheduledFromInfo(
                date=booking.rescheduled_from_date,
                time=booking.rescheduled_from_time,
            )

        feedback = None
        if booking.feedback_rating is not None:
            feedback = FeedbackInfo(
                rating=booking.feedback_rating,
                comment=booking.feedback_comment,
                submitted_at=booking.feedback_submitted_at,
            )

        return cls(
            id=booking.id,
            booking_reference=booking.booking_reference,
            student_id=booking.student_id,
            teacher_id=booking.teacher_id,
            subject=booking.subject,
            booking_date=booking.booking_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            duration_minutes=booking.duration_minutes,
            status=booking.status,
            hourly_rate=booking.hourly_rate,
            price=booking.price,
            payment_status=booking.payment_status,
            notes=booking.notes,
            meeting_link=booking.meeting_link,
            confirmed_at=booking.confirmed_at,
            completed_at=booking.completed_at,
            cancelled_by=booking.cancelled_by,
            cancel_reason=booking.cancel_reason,
            cancelled_at=booking.cancelled_at,
            rescheduled_from=rescheduled_from,
            rescheduled_at=booking.rescheduled_at,
            feedback=feedback,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class BookingListResponse(StandardizedModel):
    """Response for booking list endpoints."""

    bookings: List[BookingResponse]
    total: int
    page: int
    per_page: int
    total_pages: int

    @classmethod
    def build(
        cls, bookings: List[Any], total: int, page: int, per_page: int
    ) -> "BookingListResponse":
        return cls(
            bookings=[BookingResponse.from_booking(b) for b in bookings],
            total=total,
            page=page,
            per_page=per_page,
            total_pages=math.ceil(total / per_page) if total else 0,
        )


class AvailabilitySlotResponse(StandardizedModel):
    date: date
    start: str
    end: str

    @classmethod
    def from_slot(cls, slot: AvailabilitySlot) -> "AvailabilitySlotResponse":
        return cls(date=slot.date, start=slot.start, end=slot.end)


class AvailabilityResponse(StandardizedModel):
    """A teacher's free slots on one date, chronological."""

    teacher_id: str
    date: date
    slots: List[AvailabilitySlotResponse]

    @classmethod
    def build(
        cls, teacher_id: str, target_date: date, slots: List[AvailabilitySlot]
    ) -> "AvailabilityResponse":
        return cls(
            teacher_id=teacher_id,
            date=target_date,
            slots=[AvailabilitySlotResponse.from_slot(s) for s in slots],
        )

