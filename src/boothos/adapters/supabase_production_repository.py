"""Supabase-backed production repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from boothos.domain.productions import Attachment, ProductionSet
from boothos.services.delivery import ProductionRepository

_COLUMNS = (
    "id, event_id, email, download_token, token_expires_at, channel, created_at, "
    "attachments, download_count, last_downloaded_at"
)


@dataclass
class SupabaseProductionRepository(ProductionRepository):
    """Supabase implementation for delivery bundles."""

    client: Client

    def create_production(self, production: ProductionSet) -> ProductionSet:
        """Insert a production row."""
        response = (
            self.client.table("productions")
            .insert(
                {
                    "id": production.id,
                    "event_id": production.event_id,
                    "email": production.email,
                    "download_token": production.download_token,
                    "token_expires_at": production.token_expires_at.isoformat(),
                    "channel": production.channel,
                    "created_at": production.created_at.isoformat(),
                    "attachments": [
                        {
                            "filename": attachment.filename,
                            "storage_key": attachment.storage_key,
                            "content_type": attachment.content_type,
                            "size": attachment.size,
                        }
                        for attachment in production.attachments
                    ],
                    "download_count": production.download_count,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create production")
        return _parse_production(response.data[0])

    def get_production(self, production_id: str) -> ProductionSet | None:
        """Return a production by id, if present."""
        return self._first("id", production_id)

    def get_by_token(self, token: str) -> ProductionSet | None:
        """Return a production by download token, if present."""
        return self._first("download_token", token)

    def record_download(self, production_id: str, downloaded_at: datetime) -> None:
        """Increment the counter atomically in Postgres."""
        self.client.rpc(
            "record_production_download",
            {
                "p_production_id": production_id,
                "p_downloaded_at": downloaded_at.isoformat(),
            },
        ).execute()

    def list_expired(self, event_id: str, now: datetime) -> list[ProductionSet]:
        """Return productions whose tokens have lapsed."""
        response = (
            self.client.table("productions")
            .select(_COLUMNS)
            .eq("event_id", event_id)
            .lt("token_expires_at", now.isoformat())
            .execute()
        )
        return [_parse_production(row) for row in response.data or []]

    def delete_production(self, production_id: str) -> None:
        """Delete a production row."""
        self.client.table("productions").delete().eq("id", production_id).execute()

    def _first(self, column: str, value: str) -> ProductionSet | None:
        response = (
            self.client.table("productions")
            .select(_COLUMNS)
            .eq(column, value)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_production(response.data[0])


def _parse_production(row: dict[str, object]) -> ProductionSet:
    last_downloaded = row.get("last_downloaded_at")
    return ProductionSet(
        id=str(row["id"]),
        event_id=str(row["event_id"]),
        email=str(row["email"]),
        download_token=str(row["download_token"]),
        token_expires_at=datetime.fromisoformat(str(row["token_expires_at"])),
        channel=str(row.get("channel") or "attachments"),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        attachments=[
            Attachment(
                filename=item["filename"],
                storage_key=item["storage_key"],
                content_type=item["content_type"],
                size=int(item.get("size") or 0),
            )
            for item in row.get("attachments") or []
        ],
        download_count=int(row.get("download_count") or 0),
        last_downloaded_at=(
            datetime.fromisoformat(str(last_downloaded)) if last_downloaded else None
        ),
    )
