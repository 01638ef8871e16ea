"""Tests for the filesystem asset store."""

import asyncio
import json
from pathlib import Path

import pytest

from boothos.adapters.local_asset_store import LocalAssetStore
from boothos.domain.errors import NotFound, ValidationError
from boothos.services.assets import (
    AssetMissingError,
    background_key,
    photo_key,
    production_key,
)


def test_put_get_and_list(tmp_path: Path) -> None:
    store = LocalAssetStore(root=tmp_path)
    key = photo_key("evt-1", "photo-1", "original", 1700)

    stored = asyncio.run(
        store.put(key, b"bytes", "image/jpeg", owner_email="guest@example.com")
    )
    blob = asyncio.run(store.get(key))
    listed = asyncio.run(store.list_assets("event/evt-1/"))

    assert stored.size == 5
    assert blob.data == b"bytes"
    assert blob.content_type == "image/jpeg"
    assert [asset.key for asset in listed] == [key]
    assert listed[0].owner_email == "guest@example.com"
    assert store.public_url(key) is None


def test_get_unknown_key_raises_not_found(tmp_path: Path) -> None:
    store = LocalAssetStore(root=tmp_path)

    with pytest.raises(NotFound):
        asyncio.run(store.get("event/evt-1/photo/x/original-1"))


def test_index_entry_without_bytes_is_reported(tmp_path: Path) -> None:
    store = LocalAssetStore(root=tmp_path)
    key = background_key("evt-1", "bg-1")
    asyncio.run(store.put(key, b"png", "image/png"))
    (tmp_path / "objects" / Path(key)).unlink()

    with pytest.raises(AssetMissingError):
        asyncio.run(store.get(key))


def test_delete_removes_bytes_and_index(tmp_path: Path) -> None:
    store = LocalAssetStore(root=tmp_path)
    key = production_key("evt-1", "prod-1", "01-guest-original.png")
    asyncio.run(store.put(key, b"png", "image/png"))

    asyncio.run(store.delete(key))
    asyncio.run(store.delete(key))

    assert not (tmp_path / "objects" / Path(key)).exists()
    assert asyncio.run(store.list_assets("event/")) == []


def test_concurrent_puts_keep_every_index_entry(tmp_path: Path) -> None:
    store = LocalAssetStore(root=tmp_path)
    keys = [photo_key("evt-1", f"photo-{n}", "original", n) for n in range(20)]

    async def put_all() -> None:
        await asyncio.gather(
            *(store.put(key, key.encode(), "image/png") for key in keys)
        )

    asyncio.run(put_all())

    index = json.loads((tmp_path / "index.json").read_text())
    assert sorted(index) == sorted(keys)


def test_keys_cannot_escape_root(tmp_path: Path) -> None:
    store = LocalAssetStore(root=tmp_path)

    with pytest.raises(ValidationError):
        asyncio.run(store.put("event/../../etc/passwd", b"x", "text/plain"))


def test_key_layout() -> None:
    assert photo_key("e", "p", "cutout", 5) == "event/e/photo/p/cutout-5"
    assert background_key(None, "bg") == "shared/background/bg"
    assert background_key("e", "bg") == "event/e/background/bg"
    assert production_key("e", "p", "a.png") == "event/e/production/p/a.png"
