"""Booking domain events."""
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional


@dataclass
class BookingStatusChanged:
    """
    Fired after a committed lifecycle change.

    ``from_status`` is None for a newly created booking. ``amount`` carries
    the frozen price so the payment collaborator learns of it at creation.
    """

    booking_id: str
    from_status: Optional[str]
    to_status: str
    actor_id: str
    occurred_at: datetime
    amount: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
