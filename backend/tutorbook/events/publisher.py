"""Event publisher - hands committed booking events to the notification dispatcher."""
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


class NotificationDispatcher(Protocol):
    """Delivery side of notifications (email, push, chat). Lives outside the engine."""

    def dispatch(self, event_type: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotificationDispatcher:
    """Default dispatcher: records the event in the application log."""

    def dispatch(self, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info(
            f"Dispatching {event_type} for booking {payload.get('booking_id')}",
            extra={"event_payload": payload},
        )


class EventPublisher:
    """Publishes domain events to the notification dispatcher."""

    def __init__(self, dispatcher: Optional[NotificationDispatcher] = None):
        self.dispatcher: NotificationDispatcher = dispatcher or LoggingNotificationDispatcher()

    def publish(self, event: Event) -> None:
        """
        Fire-and-forget delivery of a committed event.

        Call only after the mutation has committed. Dispatcher failures are
        logged and swallowed; they never undo the booking change.
        """
        event_type = type(event).__name__
        payload = event.to_dict()

        # JSON-friendly payload for any transport
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
            elif isinstance(value, Decimal):
                payload[key] = str(value)

        try:
            self.dispatcher.dispatch(f"event:{event_type}", payload)
        except Exception as exc:
            logger.error(
                f"Notification dispatch failed for {event_type} "
                f"(booking {payload.get('booking_id')}): {exc}",
                exc_info=True,
            )
