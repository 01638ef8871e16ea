"""Supabase-backed event repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from boothos.domain.events import EventRecord, SubscriptionRecord, UsageCounters
from boothos.services.usage import EventRepository

_EVENT_COLUMNS = (
    "id, name, slug, business_id, business_name, plan, status, payment_status, "
    "photo_used, photo_cap, ai_used, ai_credits, background_removal_enabled, "
    "allowed_selections, overlay_theme, created_at"
)


@dataclass
class SupabaseEventRepository(EventRepository):
    """Supabase implementation for events and usage counters."""

    client: Client

    def get_event(self, event_id: str) -> EventRecord | None:
        """Return an event by id, if present."""
        response = (
            self.client.table("events")
            .select(_EVENT_COLUMNS)
            .eq("id", event_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_event(response.data[0])

    def get_subscription(self, event_id: str) -> SubscriptionRecord | None:
        """Return the owning business's subscription, if any."""
        event_response = (
            self.client.table("events")
            .select("business_id")
            .eq("id", event_id)
            .limit(1)
            .execute()
        )
        if not event_response.data or not event_response.data[0].get("business_id"):
            return None
        response = (
            self.client.table("subscriptions")
            .select("status, plan")
            .eq("business_id", event_response.data[0]["business_id"])
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return SubscriptionRecord(status=row["status"], plan=row.get("plan"))

    def adjust_usage(
        self,
        event_id: str,
        *,
        photos: int = 0,
        ai_credits: int = 0,
        photo_limit: int | None = None,
        ai_limit: int | None = None,
    ) -> UsageCounters | None:
        """Apply deltas in one conditional UPDATE inside Postgres."""
        response = self.client.rpc(
            "adjust_event_usage",
            {
                "p_event_id": event_id,
                "p_photos": photos,
                "p_ai_credits": ai_credits,
                "p_photo_limit": photo_limit,
                "p_ai_limit": ai_limit,
            },
        ).execute()
        if not response.data:
            return None
        return _parse_counters(response.data[0])


def _parse_counters(row: dict[str, object]) -> UsageCounters:
    return UsageCounters(
        photo_used=int(row.get("photo_used") or 0),
        photo_cap=row.get("photo_cap"),
        ai_used=int(row.get("ai_used") or 0),
        ai_credits=row.get("ai_credits"),
    )


def _parse_event(row: dict[str, object]) -> EventRecord:
    created_at = row.get("created_at")
    allowed = row.get("allowed_selections")
    removal = row.get("background_removal_enabled")
    return EventRecord(
        id=str(row["id"]),
        name=str(row["name"]),
        slug=str(row.get("slug") or ""),
        business_name=str(row.get("business_name") or ""),
        plan=str(row.get("plan") or "free"),
        status=str(row.get("status") or "draft"),
        counters=_parse_counters(row),
        payment_status=row.get("payment_status"),
        background_removal_enabled=True if removal is None else bool(removal),
        allowed_selections=int(allowed) if allowed is not None else 3,
        overlay_theme=str(row.get("overlay_theme") or "default"),
        created_at=datetime.fromisoformat(str(created_at)) if created_at else None,
    )
