# backend/tutorbook/routes/v1/teachers.py
"""
Teacher routes - API v1

Endpoints:
    GET /{teacher_id}/availability?date=YYYY-MM-DD - Free slots on a date
"""

import asyncio
from datetime import date
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_availability_service
from ...core.exceptions import DomainException
from ...schemas.booking import AvailabilityResponse
from ...services.availability_service import AvailabilityService
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["teachers-v1"])


@router.get("/{teacher_id}/availability", response_model=AvailabilityResponse)
async def get_teacher_availability(
    teacher_id: str,
    target_date: Optional[date] = Query(None, alias="date", description="Day to check (YYYY-MM-DD)"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """
    Get the teacher's bookable slots on a date, in chronological order.

    ``date`` is required; omitting it is a 400, not a default to today.
    """
    try:
        slots = await asyncio.to_thread(
            availability_service.compute_available_slots, teacher_id, target_date
        )
        # compute_available_slots rejects a missing date above
        assert target_date is not None
        return AvailabilityResponse.build(teacher_id, target_date, slots)
    except DomainException as e:
        handle_domain_exception(e)
