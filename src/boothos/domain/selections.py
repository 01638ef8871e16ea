"""Domain models for guest selection links."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SelectionToken:
    """Single-use credential letting a guest pick favorites."""

    token: str
    event_id: str
    email: str
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None


@dataclass(frozen=True)
class SelectionContext:
    """A redeemable selection token resolved against its event."""

    token: SelectionToken
    allowed_selections: int
