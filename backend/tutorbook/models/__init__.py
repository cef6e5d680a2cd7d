"""
Database models for the Tutorbook platform.

- User: the user directory record (role and hourly rate)
- Booking: a scheduled student/teacher session and its lifecycle
"""

from .booking import Booking, BookingStatus
from .user import User

__all__ = [
    "Booking",
    "BookingStatus",
    "User",
]
