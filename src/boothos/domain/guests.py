"""Domain models for front-desk check-ins and guest notifications."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Checkin:
    """A guest waiting at the front desk for their photos."""

    id: str
    event_id: str
    name: str
    email: str
    created_at: datetime


@dataclass(frozen=True)
class GuestNotification:
    """Signals that new photos are ready for a guest."""

    event_id: str
    email: str
    count: int
    created_at: datetime
