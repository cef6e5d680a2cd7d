"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import bookings, teachers

__all__ = ["bookings", "teachers"]
