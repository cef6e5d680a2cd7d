# backend/tutorbook/repositories/__init__.py
"""
Repository layer for the Tutorbook platform.

Usage:
    from tutorbook.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    bookings = repository.get_active_bookings_for_teacher_on_date(teacher_id, day)
"""

from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "IRepository",
    "RepositoryFactory",
    "UserRepository",
]
