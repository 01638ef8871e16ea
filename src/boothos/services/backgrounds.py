"""Background catalogue and AI-generated backdrops."""

import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

from boothos.domain.backgrounds import BACKGROUND_CATEGORIES, Background
from boothos.domain.errors import (
    Forbidden,
    NotFound,
    UpstreamFailure,
    ValidationError,
)
from boothos.domain.events import EventRecord
from boothos.services.assets import AssetBlob, AssetStore, background_key
from boothos.services.usage import UsageGate

_logger = logging.getLogger(__name__)

_PROMPT_PREFIX = {
    "background": (
        "Design a 1:1 photobooth background. Leave a clear central band for "
        "people. No text, no watermarks, high-resolution, photo-friendly lighting."
    ),
    "frame": (
        "Design a 1:1 photobooth overlay frame. Keep the center transparent/empty "
        "for subjects. Use clean edges. If text is requested, place it along the "
        "top/bottom without covering the center."
    ),
}


class BackgroundRepository(Protocol):
    """Persistence interface for backgrounds."""

    def list_backgrounds(self, event_id: str) -> list[Background]:
        """Return shared defaults plus the event's own backgrounds."""

    def get_background(self, background_id: str) -> Background | None:
        """Return a background by id, if present."""

    def create_background(self, background: Background) -> Background:
        """Persist a background record."""

    def delete_background(self, background_id: str) -> None:
        """Delete a background record."""


class AiImageClient(Protocol):
    """Interface for text-to-image generation."""

    async def generate(self, prompt: str, size: str) -> bytes:
        """Return PNG bytes for a prompt."""


@dataclass(frozen=True)
class GeneratedBackground:
    """An AI background together with the usage after charging for it."""

    background: Background
    usage: dict[str, object]


@dataclass
class BackgroundService:
    """Service for listing, uploading, deleting and generating backgrounds."""

    repository: BackgroundRepository
    assets: AssetStore
    gate: UsageGate
    ai_client: AiImageClient | None = None

    def list_backgrounds(self, event_id: str) -> list[Background]:
        """Return enabled backgrounds visible to an event."""
        return [
            background
            for background in self.repository.list_backgrounds(event_id)
            if background.enabled
        ]

    def get_for_event(self, event_id: str, background_id: str) -> Background:
        """Return a background usable by the event or raise NotFound."""
        background = self.repository.get_background(background_id)
        if background is None or not background.enabled:
            raise NotFound(f"Background {background_id} not found")
        if background.event_id is not None and background.event_id != event_id:
            raise NotFound(f"Background {background_id} not found")
        return background

    async def load(self, background: Background) -> AssetBlob:
        """Fetch the background image bytes."""
        return await self.assets.get(background.storage_key)

    async def add_background(  # noqa: PLR0913
        self,
        event_id: str,
        *,
        name: str,
        data: bytes,
        content_type: str,
        description: str = "",
        category: str = "background",
        origin: str = "event",
    ) -> Background:
        """Store an uploaded background scoped to the event."""
        if category not in BACKGROUND_CATEGORIES:
            raise ValidationError(f"Unknown background category {category!r}")
        if not name.strip():
            raise ValidationError("Background name is required.")
        if not data:
            raise ValidationError("Background image is required.")
        background_id = str(uuid.uuid4())
        key = background_key(event_id, background_id)
        await self.assets.put(key, data, content_type)
        return self.repository.create_background(
            Background(
                id=background_id,
                name=name.strip()[:60],
                description=description,
                category=category,
                storage_key=key,
                origin=origin,
                event_id=event_id,
            )
        )

    async def delete_background(self, event_id: str, background_id: str) -> None:
        """Delete an event-owned background; shared defaults are protected."""
        background = self.repository.get_background(background_id)
        if background is None:
            raise NotFound(f"Background {background_id} not found")
        if background.is_default or background.event_id != event_id:
            raise Forbidden("Default backgrounds cannot be deleted.")
        await self.assets.delete(background.storage_key)
        self.repository.delete_background(background_id)

    async def generate(
        self, event: EventRecord, prompt: str, category: str = "background"
    ) -> GeneratedBackground:
        """Generate a background, charging one AI credit."""
        cleaned = prompt.strip()
        if not cleaned:
            raise ValidationError("Prompt is required.")
        if category not in BACKGROUND_CATEGORIES:
            raise ValidationError(f"Unknown background category {category!r}")
        if not self.gate.allows_ai_backgrounds(event):
            raise Forbidden("AI backgrounds not enabled for this event.")
        if self.ai_client is None:
            raise UpstreamFailure("AI image generation is not configured.")
        self.gate.reserve_ai_credit(event)
        try:
            data = await self.ai_client.generate(
                f"{_PROMPT_PREFIX[category]} Style request: {cleaned}", "1024x1024"
            )
        except Exception as exc:
            self.gate.refund_ai_credit(event)
            _logger.exception("AI background generation failed for event %s", event.id)
            raise UpstreamFailure("Failed to generate background.") from exc
        background = await self.add_background(
            event.id,
            name=cleaned,
            description="AI generated",
            data=data,
            content_type="image/png",
            category=category,
            origin="ai",
        )
        usage = self.gate.usage(self.gate.get_event(event.id))
        return GeneratedBackground(background=background, usage=usage.as_dict())
