"""Short-lived staging of raw uploads for the remote cutout service.

The background-removal service pulls source images over HTTP instead of
receiving bytes, so uploads are written to a staging directory under a random
name and exposed through a URL signed with HMAC-SHA256 over that name.
"""

import asyncio
import hashlib
import hmac
import json
import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

_logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/heic": ".heic",
}


def sign_staged_name(name: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of a staged filename."""
    return hmac.new(secret.encode(), name.encode(), hashlib.sha256).hexdigest()


def verify_staged_token(name: str, token: str, secret: str) -> bool:
    """Constant-time check of a retrieval token."""
    if not token:
        return False
    return hmac.compare_digest(sign_staged_name(name, secret), token)


@dataclass(frozen=True)
class StagedFile:
    """A staged upload and its signed retrieval URL."""

    name: str
    path: Path
    url: str


@dataclass(frozen=True)
class StagedContent:
    """Bytes served back to the remote service."""

    data: bytes
    content_type: str


@dataclass
class StagingArea:
    """Filesystem staging directory with JSON metadata sidecars."""

    root: Path
    public_base_url: str

    async def stage(
        self, data: bytes, content_type: str, secret: str
    ) -> StagedFile:
        """Write bytes under a random name and return the signed URL."""
        name = secrets.token_hex(16) + _EXTENSIONS.get(content_type, ".bin")
        path = self.root / name
        await asyncio.to_thread(self._write, path, data, content_type)
        token = sign_staged_name(name, secret)
        base = self.public_base_url.rstrip("/")
        url = f"{base}/bgremover/source/{quote(name)}?token={token}"
        return StagedFile(name=name, path=path, url=url)

    async def read(self, name: str) -> StagedContent | None:
        """Read a staged file, or None when it no longer exists."""
        safe_name = os.path.basename(name)
        if not safe_name or safe_name.endswith(".json"):
            return None
        return await asyncio.to_thread(self._read, self.root / safe_name)

    async def discard(self, staged: StagedFile) -> None:
        """Delete a staged file and its sidecar, logging any failure."""
        for path in (staged.path, _sidecar(staged.path)):
            try:
                await asyncio.to_thread(path.unlink, True)
            except OSError:
                _logger.warning("Failed to delete staged file %s", path)

    def _write(self, path: Path, data: bytes, content_type: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        _sidecar(path).write_text(json.dumps({"contentType": content_type}))

    def _read(self, path: Path) -> StagedContent | None:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        content_type = "application/octet-stream"
        try:
            meta = json.loads(_sidecar(path).read_text())
        except (OSError, ValueError):
            meta = {}
        if isinstance(meta, dict) and meta.get("contentType"):
            content_type = str(meta["contentType"])
        return StagedContent(data=data, content_type=content_type)


def _sidecar(path: Path) -> Path:
    return path.with_name(path.name + ".json")
