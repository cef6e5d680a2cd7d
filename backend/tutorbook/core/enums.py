# backend/tutorbook/core/enums.py
"""
Core enums for the Tutorbook platform.

These enums are stored as their string values in the database and
returned as-is in API responses.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles known to the user directory."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class PaymentStatus(str, Enum):
    """Payment state of a booking, owned by the payment collaborator."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class CancelledBy(str, Enum):
    """Which party cancelled a booking."""

    STUDENT = "student"
    TEACHER = "teacher"
