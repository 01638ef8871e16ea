"""Asset storage interface and key layout."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from boothos.domain.errors import NotFound


class AssetMissingError(NotFound):
    """Index entry exists but its bytes are gone."""


@dataclass(frozen=True)
class StoredAsset:
    """Index metadata for a stored object."""

    key: str
    content_type: str
    size: int
    created_at: datetime
    owner_email: str | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True)
class AssetBlob:
    """Object bytes with their content type."""

    data: bytes
    content_type: str


class AssetStore(Protocol):
    """Durable storage for originals, cutouts, backgrounds and productions."""

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        *,
        owner_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> StoredAsset:
        """Store bytes under a key and index them."""

    async def get(self, key: str) -> AssetBlob:
        """Return stored bytes; raise NotFound or AssetMissingError."""

    async def delete(self, key: str) -> None:
        """Delete bytes first, then the index entry."""

    async def list_assets(self, prefix: str) -> list[StoredAsset]:
        """Return index entries under a prefix without reading bytes."""

    def public_url(self, key: str) -> str | None:
        """Return a public URL for a key, if the backend exposes one."""


def photo_key(event_id: str, session: str, kind: str, timestamp: int) -> str:
    """Key for a photo artifact such as ``original`` or ``cutout``."""
    return f"event/{event_id}/photo/{session}/{kind}-{timestamp}"


def background_key(event_id: str | None, background_id: str) -> str:
    """Key for a background; shared defaults live outside any event."""
    if event_id is None:
        return f"shared/background/{background_id}"
    return f"event/{event_id}/background/{background_id}"


def production_key(event_id: str, production_id: str, filename: str) -> str:
    """Key for a delivered attachment."""
    return f"event/{event_id}/production/{production_id}/{filename}"
