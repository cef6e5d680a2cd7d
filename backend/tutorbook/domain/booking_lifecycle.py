"""
Booking lifecycle states and the transition table.

Every status change in the engine is checked against ``ALLOWED_TRANSITIONS``
and nowhere else. Adding a status without listing its outgoing transitions
fails at import time.
"""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Mapping

from ..core.exceptions import InvalidTransitionException


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Requested by the student, awaiting the teacher
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"  # Moved to a new slot, awaiting reconfirmation


ALLOWED_TRANSITIONS: Mapping[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.RESCHEDULED}
    ),
    BookingStatus.RESCHEDULED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

_missing = set(BookingStatus) - set(ALLOWED_TRANSITIONS)
assert not _missing, f"Transition table is missing statuses: {sorted(s.value for s in _missing)}"

# Statuses that occupy the teacher's time. A rescheduled booking holds its new slot.
ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED}
)

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

RESCHEDULABLE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)


def coerce_status(value: BookingStatus | str) -> BookingStatus:
    """Return ``value`` as a BookingStatus, raising ValueError for unknown names."""
    if isinstance(value, BookingStatus):
        return value
    return BookingStatus(str(value).strip().lower())


def can_transition(current: BookingStatus | str, target: BookingStatus | str) -> bool:
    return coerce_status(target) in ALLOWED_TRANSITIONS[coerce_status(current)]


def ensure_transition(current: BookingStatus | str, target: BookingStatus | str) -> None:
    """Raise InvalidTransitionException unless ``current -> target`` is in the table."""
    current_status = coerce_status(current)
    target_status = coerce_status(target)
    if target_status not in ALLOWED_TRANSITIONS[current_status]:
        raise InvalidTransitionException(current_status.value, target_status.value)


def is_active(status: BookingStatus | str) -> bool:
    return coerce_status(status) in ACTIVE_STATUSES
