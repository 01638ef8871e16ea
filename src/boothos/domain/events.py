"""Domain models for events and their usage counters."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UsageCounters:
    """Raw per-event counters and plan overrides as stored."""

    photo_used: int = 0
    photo_cap: int | None = None
    ai_used: int = 0
    ai_credits: int | None = None


@dataclass(frozen=True)
class EventRecord:
    """Represents an event owned by a business."""

    id: str
    name: str
    slug: str
    business_name: str
    plan: str
    status: str
    counters: UsageCounters
    payment_status: str | None = None
    background_removal_enabled: bool = True
    allowed_selections: int = 3
    overlay_theme: str = "default"
    created_at: datetime | None = None


@dataclass(frozen=True)
class SubscriptionRecord:
    """Billing subscription state for the business owning an event."""

    status: str
    plan: str | None = None


@dataclass(frozen=True)
class UsageSnapshot:
    """Derived usage view returned to callers."""

    photo_used: int
    photo_cap: int | None
    remaining_photos: int | None
    ai_credits: int
    ai_used: int
    remaining_ai: int
    watermark: bool

    def as_dict(self) -> dict[str, object]:
        """Serialize for API responses."""
        return {
            "photoUsed": self.photo_used,
            "photoCap": self.photo_cap,
            "remainingPhotos": self.remaining_photos,
            "aiCredits": self.ai_credits,
            "aiUsed": self.ai_used,
            "remainingAi": self.remaining_ai,
            "watermark": self.watermark,
        }
