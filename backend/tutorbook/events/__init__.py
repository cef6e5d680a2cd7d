"""Booking lifecycle events and their publisher."""

from .booking_events import BookingStatusChanged
from .publisher import EventPublisher, LoggingNotificationDispatcher, NotificationDispatcher

__all__ = [
    "BookingStatusChanged",
    "EventPublisher",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
]
