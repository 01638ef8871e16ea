"""Supabase-backed selection token repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from boothos.domain.selections import SelectionToken
from boothos.services.selections import SelectionRepository


@dataclass
class SupabaseSelectionRepository(SelectionRepository):
    """Supabase implementation for guest selection tokens."""

    client: Client

    def create_token(self, token: SelectionToken) -> SelectionToken:
        """Insert a selection token."""
        response = (
            self.client.table("selection_tokens")
            .insert(
                {
                    "token": token.token,
                    "event_id": token.event_id,
                    "email": token.email,
                    "created_at": token.created_at.isoformat(),
                    "expires_at": token.expires_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create selection token")
        return _parse_token(response.data[0])

    def get_token(self, event_id: str, token: str) -> SelectionToken | None:
        """Return a token scoped to its event."""
        response = (
            self.client.table("selection_tokens")
            .select("token, event_id, email, created_at, expires_at, used_at")
            .eq("event_id", event_id)
            .eq("token", token)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_token(response.data[0])

    def mark_used(self, event_id: str, token: str, used_at: datetime) -> bool:
        """Set ``used_at`` only while it is still empty."""
        response = (
            self.client.table("selection_tokens")
            .update({"used_at": used_at.isoformat()})
            .eq("event_id", event_id)
            .eq("token", token)
            .is_("used_at", "null")
            .execute()
        )
        return bool(response.data)

    def release(self, event_id: str, token: str) -> None:
        """Clear ``used_at`` after a failed redemption."""
        (
            self.client.table("selection_tokens")
            .update({"used_at": None})
            .eq("event_id", event_id)
            .eq("token", token)
            .execute()
        )


def _parse_token(row: dict[str, object]) -> SelectionToken:
    used_at = row.get("used_at")
    return SelectionToken(
        token=str(row["token"]),
        event_id=str(row["event_id"]),
        email=str(row["email"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        expires_at=datetime.fromisoformat(str(row["expires_at"])),
        used_at=datetime.fromisoformat(str(used_at)) if used_at else None,
    )
