"""Single-use guest selection links."""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from boothos.domain.errors import ExpiredOrInvalid, ValidationError
from boothos.domain.photos import normalize_email
from boothos.domain.pipeline import DeliveryResult, Selection
from boothos.domain.selections import SelectionContext, SelectionToken
from boothos.services.backgrounds import BackgroundService
from boothos.services.delivery import DeliveryPipeline, PhotoRepository

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SelectionRepository(Protocol):
    """Persistence interface for selection tokens."""

    def create_token(self, token: SelectionToken) -> SelectionToken:
        """Persist a new token."""

    def get_token(self, event_id: str, token: str) -> SelectionToken | None:
        """Return a token scoped to an event."""

    def mark_used(self, event_id: str, token: str, used_at: datetime) -> bool:
        """Set ``used_at`` only if unset; report whether this call set it."""

    def release(self, event_id: str, token: str) -> None:
        """Clear ``used_at`` so the token can be redeemed again."""


@dataclass
class SelectionService:
    """Issues, resolves and redeems guest selection links."""

    repository: SelectionRepository
    pipeline: DeliveryPipeline
    photos: PhotoRepository
    backgrounds: BackgroundService
    public_base_url: str
    ttl_hours: int = 72
    clock: Callable[[], datetime] = _utcnow

    def create_token(self, event_id: str, email: str) -> SelectionToken:
        """Issue a token letting the guest pick favorites."""
        self.pipeline.gate.get_event(event_id)
        normalized = normalize_email(email)
        if not normalized or "@" not in normalized:
            raise ValidationError("Email is required.")
        now = self.clock()
        return self.repository.create_token(
            SelectionToken(
                token=str(uuid.uuid4()),
                event_id=event_id,
                email=normalized,
                created_at=now,
                expires_at=now + timedelta(hours=self.ttl_hours),
            )
        )

    def share_url(self, token: SelectionToken) -> str:
        """Guest-facing URL for a selection token."""
        base = self.public_base_url.rstrip("/")
        return f"{base}/events/{token.event_id}/selections/{token.token}"

    def resolve_token(self, event_id: str, token: str) -> SelectionContext | None:
        """Return the context for a redeemable token; None otherwise."""
        record = self.repository.get_token(event_id, token)
        if record is None or record.used_at is not None:
            return None
        if record.expires_at < self.clock():
            return None
        event = self.pipeline.gate.events.get_event(event_id)
        if event is None:
            return None
        return SelectionContext(
            token=record, allowed_selections=event.allowed_selections
        )

    def mark_used(self, event_id: str, token: str) -> bool:
        """Claim a token; only the first caller gets True."""
        return self.repository.mark_used(event_id, token, self.clock())

    def describe(self, event_id: str, token: str) -> dict[str, object]:
        """Payload for the guest selection page."""
        context = self._require(event_id, token)
        gate = self.pipeline.gate
        event = gate.get_event(event_id)
        usage = gate.usage(event)
        photos = self.photos.list_photos_by_email(event_id, context.token.email)
        return {
            "email": context.token.email,
            "photos": [
                {
                    "id": photo.id,
                    "originalName": photo.original_name,
                    "hasCutout": photo.cutout_key is not None,
                    "filterId": photo.filter_id,
                    "backgroundId": photo.background_id,
                    "createdAt": photo.created_at.isoformat(),
                }
                for photo in photos
            ],
            "backgrounds": [
                {
                    "id": background.id,
                    "name": background.name,
                    "category": background.category,
                    "isDefault": background.is_default,
                }
                for background in self.backgrounds.list_backgrounds(event_id)
            ],
            "allowedSelections": context.allowed_selections,
            "usage": usage.as_dict(),
            "event": {
                "name": event.name,
                "plan": event.plan,
                "watermark": usage.watermark,
            },
        }

    async def submit(
        self, event_id: str, token: str, selections: list[Selection]
    ) -> DeliveryResult:
        """Deliver the guest's picks and burn the token."""
        context = self._require(event_id, token)
        if not selections:
            raise ValidationError("No selections provided.")
        allowed = context.allowed_selections
        if len(selections) > allowed:
            raise ValidationError(f"You can select up to {allowed} photo(s).")
        if not self.mark_used(event_id, token):
            raise ExpiredOrInvalid()
        try:
            result = await self.pipeline.deliver(
                event_id, context.token.email, selections
            )
        except Exception:
            self.repository.release(event_id, token)
            raise
        _logger.info("Selection token redeemed for event %s", event_id)
        return result

    def _require(self, event_id: str, token: str) -> SelectionContext:
        context = self.resolve_token(event_id, token)
        if context is None:
            raise ExpiredOrInvalid()
        return context
