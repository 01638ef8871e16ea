"""Tests for HTTP-based adapters."""

import asyncio
import base64
import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from boothos.adapters.bgremover_client import (
    BgRemovalError,
    HttpxBackgroundRemovalClient,
)
from boothos.adapters.openai_image_client import OpenAIImageClient
from boothos.services.staging import StagingArea, verify_staged_token


def _client(
    tmp_path: Path,
    handler: Callable[[httpx.Request], httpx.Response],
    **overrides: object,
) -> HttpxBackgroundRemovalClient:
    values: dict[str, object] = {
        "api_base": "https://bg.example/",
        "service_token": "service-token",
        "staging_secret": "staging-secret",
        "staging": StagingArea(root=tmp_path, public_base_url="https://booth.example"),
        "http_client": httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        "timeout_seconds": 5.0,
    }
    values.update(overrides)
    return HttpxBackgroundRemovalClient(**values)  # type: ignore[arg-type]


def test_remove_background_success_cleans_staging(tmp_path: Path) -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/remove-bg":
            payload = json.loads(request.content.decode())
            seen["authorization"] = request.headers["Authorization"]
            seen["image_url"] = payload["imageUrl"]
            return httpx.Response(
                200,
                json={"outputUrl": "https://bg.example/out/cutout.png", "mode": "fast"},
            )
        assert request.url.path == "/out/cutout.png"
        return httpx.Response(
            200, content=b"cutout-bytes", headers={"content-type": "image/png"}
        )

    client = _client(tmp_path, handler)

    result = asyncio.run(client.remove_background(b"raw", "guest.jpg", "image/jpeg"))

    assert result.data == b"cutout-bytes"
    assert result.content_type == "image/png"
    assert result.mode == "fast"
    assert seen["authorization"] == "Bearer service-token"
    image_url = str(seen["image_url"])
    assert image_url.startswith("https://booth.example/bgremover/source/")
    name, token = image_url.rsplit("/", 1)[1].split("?token=")
    assert verify_staged_token(name, token, "staging-secret")
    assert list(tmp_path.iterdir()) == []


def test_remove_background_failure_cleans_staging(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="model overloaded")

    client = _client(tmp_path, handler)

    with pytest.raises(BgRemovalError) as excinfo:
        asyncio.run(client.remove_background(b"raw", "guest.png", "image/png"))

    assert excinfo.value.status_code == 502
    assert "503" in excinfo.value.message
    assert list(tmp_path.iterdir()) == []


def test_remove_background_requires_output_url(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "done"})

    client = _client(tmp_path, handler)

    with pytest.raises(BgRemovalError, match="no output URL"):
        asyncio.run(client.remove_background(b"raw", "guest.png", "image/png"))
    assert list(tmp_path.iterdir()) == []


def test_remove_background_timeout_is_reported(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(tmp_path, handler)

    with pytest.raises(BgRemovalError, match="timed out"):
        asyncio.run(client.remove_background(b"raw", "slow.png", "image/png"))
    assert list(tmp_path.iterdir()) == []


def test_remove_background_without_credentials(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(tmp_path, handler, service_token=None)

    with pytest.raises(BgRemovalError, match="not configured"):
        asyncio.run(client.remove_background(b"raw", "guest.png", "image/png"))


class _FakeImages:
    def __init__(self, payload: bytes | None) -> None:
        self.payload = payload
        self.last_kwargs: dict[str, object] = {}

    async def generate(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_kwargs = kwargs
        encoded = base64.b64encode(self.payload).decode() if self.payload else None
        item = type("Image", (), {"b64_json": encoded})()
        return type("Resp", (), {"data": [item]})()


class _FakeOpenAI:
    def __init__(self, payload: bytes | None) -> None:
        self.images = _FakeImages(payload)


def test_openai_image_client_decodes_b64() -> None:
    fake = _FakeOpenAI(b"png-bytes")
    client = OpenAIImageClient(client=fake)  # type: ignore[arg-type]

    result = asyncio.run(client.generate("snowy cabin", "1024x1024"))

    assert result == b"png-bytes"
    assert fake.images.last_kwargs["model"] == "gpt-image-1"
    assert fake.images.last_kwargs["size"] == "1024x1024"


def test_openai_image_client_rejects_empty_response() -> None:
    client = OpenAIImageClient(client=_FakeOpenAI(None))  # type: ignore[arg-type]

    with pytest.raises(RuntimeError):
        asyncio.run(client.generate("anything", "1024x1024"))
