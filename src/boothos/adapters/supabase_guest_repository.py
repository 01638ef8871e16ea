"""Supabase-backed check-in and notification repositories."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from boothos.domain.guests import Checkin, GuestNotification
from boothos.services.guests import CheckinRepository, NotificationRepository


@dataclass
class SupabaseCheckinRepository(CheckinRepository):
    """Supabase implementation for the front-desk queue."""

    client: Client

    def upsert_checkin(self, event_id: str, name: str, email: str) -> Checkin:
        """Insert or refresh a check-in keyed by event and email."""
        response = (
            self.client.table("checkins")
            .upsert(
                {
                    "event_id": event_id,
                    "name": name,
                    "email": email,
                    "created_at": datetime.now(tz=UTC).isoformat(),
                },
                on_conflict="event_id,email",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save check-in")
        return _parse_checkin(response.data[0])

    def list_checkins(self, event_id: str) -> list[Checkin]:
        """Return check-ins, newest first."""
        response = (
            self.client.table("checkins")
            .select("id, event_id, name, email, created_at")
            .eq("event_id", event_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_checkin(row) for row in response.data or []]

    def delete_checkins_by_email(self, event_id: str, email: str) -> int:
        """Delete check-ins for an email."""
        response = (
            self.client.table("checkins")
            .delete()
            .eq("event_id", event_id)
            .eq("email", email)
            .execute()
        )
        return len(response.data or [])


@dataclass
class SupabaseNotificationRepository(NotificationRepository):
    """Supabase implementation for pending guest notifications."""

    client: Client

    def add_notification(self, event_id: str, email: str, count: int) -> None:
        """Insert a notification row."""
        response = (
            self.client.table("guest_notifications")
            .insert(
                {
                    "event_id": event_id,
                    "email": email,
                    "count": count,
                    "created_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to record notification")

    def pop_notifications(self, event_id: str) -> list[GuestNotification]:
        """Read pending notifications, then delete the ones read."""
        response = (
            self.client.table("guest_notifications")
            .select("id, event_id, email, count, created_at")
            .eq("event_id", event_id)
            .order("created_at")
            .execute()
        )
        rows = response.data or []
        if rows:
            (
                self.client.table("guest_notifications")
                .delete()
                .in_("id", [row["id"] for row in rows])
                .execute()
            )
        return [
            GuestNotification(
                event_id=str(row["event_id"]),
                email=str(row["email"]),
                count=int(row["count"]),
                created_at=datetime.fromisoformat(str(row["created_at"])),
            )
            for row in rows
        ]


def _parse_checkin(row: dict[str, object]) -> Checkin:
    return Checkin(
        id=str(row["id"]),
        event_id=str(row["event_id"]),
        name=str(row.get("name") or ""),
        email=str(row["email"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )
