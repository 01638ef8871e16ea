"""Supabase-backed background repository."""

from dataclasses import dataclass

from supabase import Client

from boothos.domain.backgrounds import Background
from boothos.services.backgrounds import BackgroundRepository

_COLUMNS = "id, name, description, category, storage_key, origin, event_id, enabled"


@dataclass
class SupabaseBackgroundRepository(BackgroundRepository):
    """Supabase implementation for backgrounds and frames."""

    client: Client

    def list_backgrounds(self, event_id: str) -> list[Background]:
        """Return shared defaults followed by event backgrounds."""
        defaults = (
            self.client.table("backgrounds")
            .select(_COLUMNS)
            .is_("event_id", "null")
            .order("name")
            .execute()
        )
        scoped = (
            self.client.table("backgrounds")
            .select(_COLUMNS)
            .eq("event_id", event_id)
            .order("created_at", desc=True)
            .execute()
        )
        rows = [*(defaults.data or []), *(scoped.data or [])]
        return [_parse_background(row) for row in rows]

    def get_background(self, background_id: str) -> Background | None:
        """Return a background by id, if present."""
        response = (
            self.client.table("backgrounds")
            .select(_COLUMNS)
            .eq("id", background_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_background(response.data[0])

    def create_background(self, background: Background) -> Background:
        """Insert a background row."""
        response = (
            self.client.table("backgrounds")
            .insert(
                {
                    "id": background.id,
                    "name": background.name,
                    "description": background.description,
                    "category": background.category,
                    "storage_key": background.storage_key,
                    "origin": background.origin,
                    "event_id": background.event_id,
                    "enabled": background.enabled,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create background")
        return _parse_background(response.data[0])

    def delete_background(self, background_id: str) -> None:
        """Delete a background row."""
        self.client.table("backgrounds").delete().eq("id", background_id).execute()


def _parse_background(row: dict[str, object]) -> Background:
    enabled = row.get("enabled")
    return Background(
        id=str(row["id"]),
        name=str(row["name"]),
        description=str(row.get("description") or ""),
        category=str(row.get("category") or "background"),
        storage_key=str(row["storage_key"]),
        origin=str(row.get("origin") or "event"),
        event_id=row.get("event_id"),
        enabled=True if enabled is None else bool(enabled),
    )
