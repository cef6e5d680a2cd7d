"""Pure scheduling rules: intervals and the booking lifecycle."""

from .booking_lifecycle import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    RESCHEDULABLE_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    can_transition,
    ensure_transition,
)
from .interval import AvailabilitySlot, TimeInterval, format_hhmm, parse_hhmm

__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "RESCHEDULABLE_STATUSES",
    "TERMINAL_STATUSES",
    "AvailabilitySlot",
    "BookingStatus",
    "TimeInterval",
    "can_transition",
    "ensure_transition",
    "format_hhmm",
    "parse_hhmm",
]
