"""Supabase Storage asset store with an ``assets`` index table."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from boothos.domain.errors import NotFound
from boothos.services.assets import (
    AssetBlob,
    AssetMissingError,
    AssetStore,
    StoredAsset,
)

_logger = logging.getLogger(__name__)
_COLUMNS = "key, content_type, size, owner_email, created_at, expires_at"


@dataclass
class SupabaseAssetStore(AssetStore):
    """Bytes in a Storage bucket, metadata in a table."""

    client: Client
    bucket: str

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        *,
        owner_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> StoredAsset:
        """Upload bytes, then upsert the index row."""
        self.client.storage.from_(self.bucket).upload(
            key,
            data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        created_at = datetime.now(tz=UTC)
        response = (
            self.client.table("assets")
            .upsert(
                {
                    "key": key,
                    "content_type": content_type,
                    "size": len(data),
                    "owner_email": owner_email,
                    "created_at": created_at.isoformat(),
                    "expires_at": expires_at.isoformat() if expires_at else None,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to index asset")
        return _row_to_asset(response.data[0])

    async def get(self, key: str) -> AssetBlob:
        """Download bytes for an indexed key."""
        response = (
            self.client.table("assets")
            .select(_COLUMNS)
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise NotFound(f"Asset {key} not found")
        try:
            data = self.client.storage.from_(self.bucket).download(key)
        except Exception as exc:
            _logger.warning("Asset bytes missing for indexed key %s: %s", key, exc)
            raise AssetMissingError(f"Asset {key} is missing its content") from exc
        return AssetBlob(data=data, content_type=response.data[0]["content_type"])

    async def delete(self, key: str) -> None:
        """Remove the object, then the index row."""
        self.client.storage.from_(self.bucket).remove([key])
        self.client.table("assets").delete().eq("key", key).execute()

    async def list_assets(self, prefix: str) -> list[StoredAsset]:
        """Return index rows under a key prefix."""
        response = (
            self.client.table("assets")
            .select(_COLUMNS)
            .like("key", f"{prefix}%")
            .order("key")
            .execute()
        )
        return [_row_to_asset(row) for row in response.data or []]

    def public_url(self, key: str) -> str | None:
        """Return the bucket's public URL for a key."""
        return self.client.storage.from_(self.bucket).get_public_url(key)


def _row_to_asset(row: dict[str, object]) -> StoredAsset:
    expires_at = row.get("expires_at")
    return StoredAsset(
        key=str(row["key"]),
        content_type=str(row["content_type"]),
        size=int(row.get("size") or 0),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        owner_email=row.get("owner_email"),
        expires_at=datetime.fromisoformat(str(expires_at)) if expires_at else None,
    )
