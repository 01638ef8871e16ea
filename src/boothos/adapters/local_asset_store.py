"""Filesystem-backed asset store with a JSON index."""

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from boothos.domain.errors import NotFound, ValidationError
from boothos.services.assets import (
    AssetBlob,
    AssetMissingError,
    AssetStore,
    StoredAsset,
)

_logger = logging.getLogger(__name__)
_INDEX_FILE = "index.json"


@dataclass
class LocalAssetStore(AssetStore):
    """Stores bytes under ``root/objects`` and metadata in one index file.

    Index mutations are serialized through a lock and written with an atomic
    rename, so concurrent writers never lose entries.
    """

    root: Path
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        *,
        owner_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> StoredAsset:
        """Write bytes, then record the index entry."""
        path = self._object_path(key)
        await asyncio.to_thread(_write_bytes, path, data)
        asset = StoredAsset(
            key=key,
            content_type=content_type,
            size=len(data),
            created_at=datetime.now(tz=UTC),
            owner_email=owner_email,
            expires_at=expires_at,
        )
        async with self._lock:
            index = await asyncio.to_thread(self._read_index)
            index[key] = _serialize(asset)
            await asyncio.to_thread(self._write_index, index)
        return asset

    async def get(self, key: str) -> AssetBlob:
        """Return bytes for an indexed key."""
        index = await asyncio.to_thread(self._read_index)
        entry = index.get(key)
        if entry is None:
            raise NotFound(f"Asset {key} not found")
        try:
            data = await asyncio.to_thread(self._object_path(key).read_bytes)
        except FileNotFoundError as exc:
            _logger.warning("Asset bytes missing for indexed key %s", key)
            raise AssetMissingError(f"Asset {key} is missing its content") from exc
        return AssetBlob(data=data, content_type=str(entry["content_type"]))

    async def delete(self, key: str) -> None:
        """Remove bytes, then drop the index entry."""
        path = self._object_path(key)
        await asyncio.to_thread(path.unlink, True)
        async with self._lock:
            index = await asyncio.to_thread(self._read_index)
            if index.pop(key, None) is not None:
                await asyncio.to_thread(self._write_index, index)

    async def list_assets(self, prefix: str) -> list[StoredAsset]:
        """Return index entries whose key starts with ``prefix``."""
        index = await asyncio.to_thread(self._read_index)
        return [
            _deserialize(key, entry)
            for key, entry in sorted(index.items())
            if key.startswith(prefix)
        ]

    def public_url(self, key: str) -> str | None:
        """Local files are only reachable through the API."""
        return None

    def _object_path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or any(part in {"..", "/"} for part in parts):
            raise ValidationError(f"Invalid asset key {key!r}")
        return self.root.joinpath("objects", *parts)

    def _read_index(self) -> dict[str, dict[str, object]]:
        try:
            raw = (self.root / _INDEX_FILE).read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}

    def _write_index(self, index: dict[str, dict[str, object]]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".index-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(index, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self.root / _INDEX_FILE)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _serialize(asset: StoredAsset) -> dict[str, object]:
    return {
        "content_type": asset.content_type,
        "size": asset.size,
        "created_at": asset.created_at.isoformat(),
        "owner_email": asset.owner_email,
        "expires_at": asset.expires_at.isoformat() if asset.expires_at else None,
    }


def _deserialize(key: str, entry: dict[str, object]) -> StoredAsset:
    expires_at = entry.get("expires_at")
    return StoredAsset(
        key=key,
        content_type=str(entry["content_type"]),
        size=int(entry.get("size", 0)),
        created_at=datetime.fromisoformat(str(entry["created_at"])),
        owner_email=entry.get("owner_email"),
        expires_at=datetime.fromisoformat(str(expires_at)) if expires_at else None,
    )
