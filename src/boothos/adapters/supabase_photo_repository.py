"""Supabase-backed photo repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from boothos.domain.photos import PhotoAsset
from boothos.services.delivery import PhotoRepository


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for guest photo metadata."""

    client: Client

    def create_photo(self, photo: PhotoAsset) -> PhotoAsset:
        """Insert a photo row and return it."""
        response = (
            self.client.table("photos")
            .insert(
                {
                    "id": photo.id,
                    "event_id": photo.event_id,
                    "email": photo.email,
                    "original_name": photo.original_name,
                    "original_content_type": photo.original_content_type,
                    "original_key": photo.original_key,
                    "cutout_key": photo.cutout_key,
                    "preview_key": photo.preview_key,
                    "composite_key": photo.composite_key,
                    "filter_id": photo.filter_id,
                    "background_id": photo.background_id,
                    "created_at": photo.created_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create photo")
        return _parse_photo(response.data[0])

    def get_photo(self, photo_id: str) -> PhotoAsset | None:
        """Return a photo by id, if present."""
        response = (
            self.client.table("photos")
            .select("*")
            .eq("id", photo_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_photo(response.data[0])

    def list_photos_by_email(self, event_id: str, email: str) -> list[PhotoAsset]:
        """Return a guest's photos, oldest first."""
        response = (
            self.client.table("photos")
            .select("*")
            .eq("event_id", event_id)
            .eq("email", email)
            .order("created_at")
            .execute()
        )
        return [_parse_photo(row) for row in response.data or []]

    def delete_photo(self, photo_id: str) -> None:
        """Delete a photo row."""
        self.client.table("photos").delete().eq("id", photo_id).execute()


def _parse_photo(row: dict[str, object]) -> PhotoAsset:
    return PhotoAsset(
        id=str(row["id"]),
        event_id=str(row["event_id"]),
        email=str(row["email"]),
        original_name=str(row["original_name"]),
        original_content_type=str(row["original_content_type"]),
        original_key=str(row["original_key"]),
        cutout_key=row.get("cutout_key"),
        preview_key=row.get("preview_key"),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        composite_key=row.get("composite_key"),
        filter_id=row.get("filter_id"),
        background_id=row.get("background_id"),
    )
