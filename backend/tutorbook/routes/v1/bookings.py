# backend/tutorbook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService and PaymentStatusService.

Authentication is handled upstream; the acting user is passed explicitly
as ``actor_id`` and checked against the booking's parties.

Endpoints:
    POST / - Create a booking
    GET / - List the actor's bookings with pagination
    GET /{booking_id} - Booking details for one of its parties
    PATCH /{booking_id}/status - Lifecycle change (confirm, cancel, complete, reschedule)
    PATCH /{booking_id}/reschedule - Move a pending or confirmed booking
    POST /{booking_id}/feedback - Student rating of a completed lesson
    PATCH /{booking_id}/payment-status - Payment collaborator update
"""

import asyncio
import logging
from typing import Annotated, NoReturn, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_booking_service, get_payment_status_service
from ...core.exceptions import DomainException
from ...domain.booking_lifecycle import BookingStatus
from ...schemas.booking import (
    BookingCreate,
    BookingFeedbackCreate,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    BookingStatusUpdate,
    PaymentStatusUpdate,
)
from ...services.booking_service import BookingService
from ...services.payment_status_service import PaymentStatusService

logger = logging.getLogger(__name__)

# mounted under /api/v1/bookings by main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"

BookingId = Annotated[
    str,
    Path(
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
]


def handle_domain_exception(exc: DomainException) -> NoReturn:
    raise exc.to_http_exception() from exc


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Create a booking in pending status.

    Returns 409 when the slot overlaps one of the teacher's active bookings.
    """
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, booking_data)
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    actor_id: str = Query(..., min_length=1, description="User whose bookings to list"),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100, alias="limit"),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """List bookings where the actor is the student or the teacher, newest first."""
    try:
        result = await asyncio.to_thread(
            booking_service.list_bookings_for_user,
            actor_id,
            status=status_filter,
            page=page,
            per_page=per_page,
        )
        return BookingListResponse.build(result.items, result.total, result.page, result.per_page)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_details(
    booking_id: BookingId,
    actor_id: str = Query(..., min_length=1),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Get full booking details."""
    try:
        booking = await asyncio.to_thread(
            booking_service.get_booking_for_user, booking_id, actor_id
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    update_data: BookingStatusUpdate,
    booking_id: BookingId,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Move a booking along its lifecycle.

    Transitions outside the lifecycle table return 422 and change nothing.
    """
    try:
        booking = await asyncio.to_thread(
            lambda: booking_service.update_status(
                booking_id,
                update_data.actor_id,
                update_data.new_status,
                cancel_reason=update_data.cancel_reason,
                meeting_link=update_data.meeting_link,
                new_date=update_data.new_date,
                new_time=update_data.new_time,
            )
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    reschedule_data: BookingReschedule,
    booking_id: BookingId,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Reschedule a booking; the original slot is kept in ``rescheduled_from``."""
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule,
            booking_id,
            reschedule_data.actor_id,
            reschedule_data.new_date,
            reschedule_data.new_time,
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/feedback", response_model=BookingResponse)
async def submit_booking_feedback(
    feedback: BookingFeedbackCreate,
    booking_id: BookingId,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.submit_feedback,
            booking_id,
            feedback.actor_id,
            feedback.rating,
            feedback.comment,
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/payment-status", response_model=BookingResponse)
async def update_payment_status(
    update_data: PaymentStatusUpdate,
    booking_id: BookingId,
    payment_service: PaymentStatusService = Depends(get_payment_status_service),
) -> BookingResponse:
    """Payment collaborator hook. Only ``payment_status`` changes."""
    try:
        booking = await asyncio.to_thread(
            payment_service.update_payment_status, booking_id, update_data.payment_status
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)
