"""Photo intake, composition and tokenized delivery."""

import io
import logging
import secrets
import uuid
import zipfile
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import PurePath
from typing import Protocol

from boothos.adapters.bgremover_client import BackgroundRemovalClient
from boothos.domain.backgrounds import Background
from boothos.domain.errors import (
    BoothError,
    Forbidden,
    LinkExpired,
    NotFound,
    PaymentRequired,
    UpstreamFailure,
    ValidationError,
)
from boothos.domain.events import EventRecord
from boothos.domain.imaging import DEFAULT_CANVAS_SIZE
from boothos.domain.photos import PhotoAsset, UploadedFile, normalize_email
from boothos.domain.pipeline import (
    BatchResult,
    DeliveryResult,
    ItemResult,
    PipelineStage,
    Selection,
)
from boothos.domain.productions import Attachment, ProductionSet
from boothos.imaging.compositor import (
    CompositionError,
    compose,
    match_background,
    resize,
)
from boothos.imaging.filters import FILTER_IDS, apply_filter
from boothos.imaging.watermark import apply_watermark
from boothos.services.assets import AssetStore, photo_key, production_key
from boothos.services.backgrounds import BackgroundService
from boothos.services.email import (
    MailAttachment,
    MailReceipt,
    MailTransport,
    OutgoingEmail,
    render_attachments_email,
    render_link_email,
)
from boothos.services.guests import GuestService
from boothos.services.usage import UsageGate

_logger = logging.getLogger(__name__)

DELIVERY_CHANNELS = ("attachments", "link")
PREVIEW_SIZE = (640, 640)
_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class PhotoRepository(Protocol):
    """Persistence interface for guest photos."""

    def create_photo(self, photo: PhotoAsset) -> PhotoAsset:
        """Persist a photo record."""

    def get_photo(self, photo_id: str) -> PhotoAsset | None:
        """Return a photo by id, if present."""

    def list_photos_by_email(self, event_id: str, email: str) -> list[PhotoAsset]:
        """Return a guest's photos for an event, oldest first."""

    def delete_photo(self, photo_id: str) -> None:
        """Delete a photo record."""


class ProductionRepository(Protocol):
    """Persistence interface for delivery bundles."""

    def create_production(self, production: ProductionSet) -> ProductionSet:
        """Persist a production set."""

    def get_production(self, production_id: str) -> ProductionSet | None:
        """Return a production by id."""

    def get_by_token(self, token: str) -> ProductionSet | None:
        """Return a production by download token."""

    def record_download(self, production_id: str, downloaded_at: datetime) -> None:
        """Increment the download counter."""

    def list_expired(self, event_id: str, now: datetime) -> list[ProductionSet]:
        """Return productions whose token expired before ``now``."""

    def delete_production(self, production_id: str) -> None:
        """Delete a production record."""


@dataclass
class DownloadPayload:
    """A resolved download ready to stream."""

    production: ProductionSet
    filename: str
    content_type: str
    chunks: AsyncIterator[bytes]


class _ChunkSink(io.RawIOBase):
    """Write-only, non-seekable buffer drained between zip entries."""

    def __init__(self) -> None:
        super().__init__()
        self._chunks: list[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, data: bytes) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


@dataclass
class DeliveryPipeline:
    """Moves guest photos from upload to a delivered production."""

    gate: UsageGate
    photos: PhotoRepository
    productions: ProductionRepository
    assets: AssetStore
    bg_client: BackgroundRemovalClient
    backgrounds: BackgroundService
    guests: GuestService
    mailer: MailTransport
    public_base_url: str
    default_channel: str = "attachments"
    ttl_hours: dict[str, int] = field(
        default_factory=lambda: {"attachments": 72, "link": 168}
    )
    canvas_size: tuple[int, int] = DEFAULT_CANVAS_SIZE
    clock: Callable[[], datetime] = _utcnow

    async def ingest_batch(  # noqa: PLR0913
        self,
        event_id: str,
        email: str,
        uploads: list[UploadedFile],
        *,
        remove_background: bool | None = None,
        ai_prompt: str | None = None,
        background_id: str | None = None,
        filter_id: str | None = None,
    ) -> BatchResult:
        """Process an upload batch and net usage to the number of successes."""
        event = self._admit(event_id)
        guest_email = _require_email(email)
        if not uploads:
            raise ValidationError("No photos were uploaded.")
        if filter_id and filter_id not in FILTER_IDS:
            raise ValidationError(f"Unknown filter {filter_id!r}")

        allows_removal = self.gate.allows_background_removal(event)
        if remove_background and not allows_removal:
            raise Forbidden("Background removal not enabled for this plan.")
        should_remove = (
            allows_removal if remove_background is None else remove_background
        )

        prompt = (ai_prompt or "").strip()
        if prompt:
            if not self.gate.allows_ai_backgrounds(event):
                raise Forbidden("AI backgrounds not enabled for this plan.")
            if self.gate.usage(event).remaining_ai <= 0:
                raise PaymentRequired("AI credits exhausted.")

        chosen = (
            self.backgrounds.get_for_event(event.id, background_id)
            if background_id
            else None
        )

        self.gate.reserve_photos(event, len(uploads))
        results: list[ItemResult] = []
        ai_background_id: str | None = None
        ai_error: str | None = None
        try:
            backdrop: bytes | None = None
            if prompt:
                try:
                    generated = await self.backgrounds.generate(event, prompt)
                except BoothError as exc:
                    _logger.warning(
                        "AI background failed for event %s: %s", event.id, exc
                    )
                    ai_error = exc.message
                else:
                    ai_background_id = generated.background.id
                    backdrop = (await self.backgrounds.load(generated.background)).data
            if backdrop is None and chosen is not None:
                backdrop = (await self.backgrounds.load(chosen)).data
            for upload in uploads:
                results.append(
                    await self._ingest_one(
                        event,
                        guest_email,
                        upload,
                        remove=should_remove,
                        backdrop=backdrop,
                        background_id=ai_background_id or background_id,
                        filter_id=filter_id,
                    )
                )
        finally:
            succeeded = sum(1 for item in results if item.success)
            self.gate.release_photos(event, len(uploads) - succeeded)

        batch = BatchResult(
            results=results,
            ai_background_id=ai_background_id,
            ai_background_error=ai_error,
        )
        if batch.uploaded == 0:
            raise UpstreamFailure(
                "All uploads failed",
                failures=[item.as_dict() for item in results],
            )
        self.guests.notify_photos_ready(event.id, guest_email, batch.uploaded)
        self.guests.clear_checkin(event.id, guest_email)
        batch.usage = self.gate.usage(self.gate.get_event(event.id)).as_dict()
        _logger.info(
            "Ingested batch for event %s: %s uploaded, %s failed",
            event.id,
            batch.uploaded,
            batch.failed,
        )
        return batch

    async def deliver(
        self,
        event_id: str,
        email: str,
        selections: list[Selection],
        *,
        channel: str | None = None,
    ) -> DeliveryResult:
        """Compose, brand and package selections, then notify the guest."""
        event = self._admit(event_id)
        guest_email = _require_email(email)
        if not selections:
            raise ValidationError("No photo selections were provided.")
        resolved_channel = channel or self.default_channel
        if resolved_channel not in DELIVERY_CHANNELS:
            raise ValidationError(f"Unknown delivery channel {resolved_channel!r}")

        now = self.clock()
        expires_at = now + timedelta(hours=self.ttl_hours[resolved_channel])
        production_id = str(uuid.uuid4())
        watermark = self.gate.watermark_enabled(event)
        use_cutouts = self.gate.allows_background_removal(event)

        delivered = [
            self._owned_photo(event.id, guest_email, selection.photo_id)
            for selection in selections
        ]
        backdrops = {
            selection.background_id: self.backgrounds.get_for_event(
                event.id, selection.background_id
            )
            for selection in selections
            if selection.background_id
        }

        attachments: list[Attachment] = []
        mail_files: list[MailAttachment] = []
        try:
            for index, (selection, photo) in enumerate(
                zip(selections, delivered, strict=True), start=1
            ):
                background = (
                    backdrops[selection.background_id]
                    if selection.background_id
                    else None
                )
                data, content_type, suffix = await self._render_selection(
                    photo,
                    selection,
                    background,
                    use_cutouts=use_cutouts,
                    watermark=watermark,
                )
                stem = f"{index:02d}-{_stem(photo)}-{suffix}"
                filename = f"{stem}{_extension(content_type)}"
                key = production_key(event.id, production_id, filename)
                await self.assets.put(
                    key,
                    data,
                    content_type,
                    owner_email=guest_email,
                    expires_at=expires_at,
                )
                attachments.append(
                    Attachment(
                        filename=filename,
                        storage_key=key,
                        content_type=content_type,
                        size=len(data),
                    )
                )
                mail_files.append(
                    MailAttachment(
                        filename=filename, content=data, content_type=content_type
                    )
                )

            production = self.productions.create_production(
                ProductionSet(
                    id=production_id,
                    event_id=event.id,
                    email=guest_email,
                    download_token=secrets.token_urlsafe(32),
                    token_expires_at=expires_at,
                    channel=resolved_channel,
                    created_at=now,
                    attachments=attachments,
                )
            )
        except Exception:
            _logger.warning(
                "Delivery for event %s aborted, removing %s rendered files",
                event.id,
                len(attachments),
            )
            for attachment in attachments:
                await self._delete_quietly(attachment.storage_key)
            raise
        download_url = self.download_url(production)

        if resolved_channel == "attachments":
            message = render_attachments_email(
                to=guest_email,
                event_name=event.name,
                business_name=event.business_name,
                attachments=mail_files,
                download_url=download_url,
                expires_at=expires_at,
            )
        else:
            message = render_link_email(
                to=guest_email,
                event_name=event.name,
                business_name=event.business_name,
                photo_count=len(attachments),
                download_url=download_url,
                expires_at=expires_at,
            )
        receipt = await self._send(message)
        stage = (
            PipelineStage.EMAILED if receipt.delivered else PipelineStage.LINK_ISSUED
        )

        cleaned = 0
        if resolved_channel == "attachments":
            cleaned = await self._remove_photos(delivered)
            if cleaned:
                stage = PipelineStage.CLEANED_UP

        _logger.info(
            "Delivered %s photos for event %s via %s (%s)",
            len(attachments),
            event.id,
            resolved_channel,
            receipt.mode,
        )
        return DeliveryResult(
            production=production,
            stage=stage,
            email_delivered=receipt.delivered,
            delivery_mode=receipt.mode,
            download_url=download_url,
            cleaned_up=cleaned,
        )

    async def open_download(self, token: str) -> DownloadPayload:
        """Resolve a download token into a streamable payload."""
        production = self.productions.get_by_token(token)
        if production is None:
            raise NotFound("Download not found.")
        if production.is_expired(self.clock()):
            raise LinkExpired()
        if not production.attachments:
            raise NotFound("Download not found.")
        if len(production.attachments) == 1:
            attachment = production.attachments[0]
            blob = await self.assets.get(attachment.storage_key)
            return DownloadPayload(
                production=production,
                filename=attachment.filename,
                content_type=attachment.content_type,
                chunks=_single_chunk(blob.data),
            )
        return DownloadPayload(
            production=production,
            filename=f"boothos-photos-{production.id[:8]}.zip",
            content_type="application/zip",
            chunks=self._zip_stream(production.attachments),
        )

    def record_download(self, production: ProductionSet) -> None:
        """Count a download; failures never affect the response."""
        try:
            self.productions.record_download(production.id, self.clock())
        except Exception:
            _logger.exception("Failed to record download for %s", production.id)

    async def resend(
        self, event_id: str, production_id: str, email: str | None = None
    ) -> MailReceipt:
        """Send the download link for an existing production again."""
        event = self.gate.get_event(event_id)
        production = self.productions.get_production(production_id)
        if production is None or production.event_id != event.id:
            raise NotFound("Production not found.")
        if production.is_expired(self.clock()):
            raise LinkExpired()
        recipient = _require_email(email) if email else production.email
        message = render_link_email(
            to=recipient,
            event_name=event.name,
            business_name=event.business_name,
            photo_count=len(production.attachments),
            download_url=self.download_url(production),
            expires_at=production.token_expires_at,
        )
        receipt = await self._send(message)
        if receipt.mode == "failed":
            raise UpstreamFailure("Failed to send email")
        return receipt

    async def purge_expired(self, event_id: str) -> int:
        """Delete expired productions and their files."""
        event = self.gate.get_event(event_id)
        expired = self.productions.list_expired(event.id, self.clock())
        for production in expired:
            for attachment in production.attachments:
                await self._delete_quietly(attachment.storage_key)
            self.productions.delete_production(production.id)
        if expired:
            _logger.info("Purged %s expired productions for %s", len(expired), event.id)
        return len(expired)

    def download_url(self, production: ProductionSet) -> str:
        """Public URL for a production's download token."""
        base = self.public_base_url.rstrip("/")
        return f"{base}/productions/{production.download_token}/download"

    def _admit(self, event_id: str) -> EventRecord:
        event = self.gate.get_event(event_id)
        if event.status != "live":
            raise ValidationError("Event is not active")
        if self.gate.event_requires_payment(event):
            raise PaymentRequired("Payment required for this event.")
        return event

    def _owned_photo(self, event_id: str, email: str, photo_id: str) -> PhotoAsset:
        photo = self.photos.get_photo(photo_id)
        if photo is None or photo.event_id != event_id or photo.email != email:
            raise NotFound(f"Photo {photo_id} was not found.")
        return photo

    async def _ingest_one(  # noqa: PLR0913
        self,
        event: EventRecord,
        email: str,
        upload: UploadedFile,
        *,
        remove: bool,
        backdrop: bytes | None,
        background_id: str | None,
        filter_id: str | None,
    ) -> ItemResult:
        stage = PipelineStage.INTAKE
        if not upload.data or not upload.content_type.startswith("image/"):
            return ItemResult(
                filename=upload.filename,
                success=False,
                stage=stage,
                error="Unsupported or empty file.",
            )
        photo_id = str(uuid.uuid4())
        stamp = int(self.clock().timestamp() * 1000)
        stored_keys: list[str] = []
        try:
            stage = PipelineStage.PERSISTING
            original_key = photo_key(event.id, photo_id, "original", stamp)
            await self.assets.put(
                original_key, upload.data, upload.content_type, owner_email=email
            )
            stored_keys.append(original_key)

            cutout: bytes | None = None
            cutout_key: str | None = None
            if remove:
                stage = PipelineStage.REMOVING_BACKGROUND
                result = await self.bg_client.remove_background(
                    upload.data, upload.filename, upload.content_type
                )
                cutout = result.data
                cutout_key = photo_key(event.id, photo_id, "cutout", stamp)
                await self.assets.put(
                    cutout_key, cutout, result.content_type, owner_email=email
                )
                stored_keys.append(cutout_key)

            preview_source = cutout or upload.data
            preview_key = photo_key(event.id, photo_id, "preview", stamp)
            preview = resize(preview_source, *PREVIEW_SIZE)
            await self.assets.put(
                preview_key,
                preview,
                "image/png" if cutout else upload.content_type,
                owner_email=email,
            )
            stored_keys.append(preview_key)

            composite_key: str | None = None
            if backdrop is not None and cutout is not None:
                stage = PipelineStage.COMPOSING
                composite = compose(cutout, backdrop, canvas_size=self.canvas_size)
                if filter_id:
                    stage = PipelineStage.BRANDING
                    composite = apply_filter(composite, filter_id)
                composite_key = photo_key(event.id, photo_id, "composite", stamp)
                await self.assets.put(
                    composite_key, composite, "image/png", owner_email=email
                )
                stored_keys.append(composite_key)

            stage = PipelineStage.PERSISTING
            self.photos.create_photo(
                PhotoAsset(
                    id=photo_id,
                    event_id=event.id,
                    email=email,
                    original_name=upload.filename,
                    original_content_type=upload.content_type,
                    original_key=original_key,
                    cutout_key=cutout_key,
                    preview_key=preview_key,
                    created_at=self.clock(),
                    composite_key=composite_key,
                    filter_id=filter_id,
                    background_id=background_id,
                )
            )
        except (BoothError, CompositionError) as exc:
            _logger.warning(
                "Upload %s failed at %s: %s", upload.filename, stage.value, exc
            )
            error = str(exc)
        except Exception as exc:
            _logger.exception(
                "Upload %s failed unexpectedly at %s", upload.filename, stage.value
            )
            error = str(exc) or type(exc).__name__
        else:
            return ItemResult(
                filename=upload.filename,
                success=True,
                stage=stage,
                photo_id=photo_id,
            )
        for key in stored_keys:
            await self._delete_quietly(key)
        return ItemResult(
            filename=upload.filename,
            success=False,
            stage=stage,
            error=error,
        )

    async def _render_selection(
        self,
        photo: PhotoAsset,
        selection: Selection,
        background: Background | None,
        *,
        use_cutouts: bool,
        watermark: bool,
    ) -> tuple[bytes, str, str]:
        if use_cutouts and photo.cutout_key:
            source = await self.assets.get(photo.cutout_key)
            uses_cutout = True
        else:
            source = await self.assets.get(photo.original_key)
            uses_cutout = False
        data = source.data
        content_type = source.content_type
        suffix = "original"

        if background is not None and uses_cutout:
            backdrop = await self.backgrounds.load(background)
            try:
                if selection.match_background:
                    data = match_background(data, backdrop.data)
                data = compose(
                    data,
                    backdrop.data,
                    selection.transform,
                    canvas_size=self.canvas_size,
                )
            except CompositionError as exc:
                raise UpstreamFailure(
                    f"Failed to compose photo {photo.id}: {exc}"
                ) from exc
            content_type = "image/png"
            suffix = _slug(background.name) or background.id

        try:
            if photo.filter_id and photo.filter_id != "none":
                data = apply_filter(data, photo.filter_id)
                content_type = "image/png"
            if watermark:
                data = apply_watermark(data)
                content_type = "image/png"
        except CompositionError as exc:
            raise UpstreamFailure(f"Failed to brand photo {photo.id}: {exc}") from exc
        return data, content_type, suffix

    async def _send(self, message: OutgoingEmail) -> MailReceipt:
        try:
            return await self.mailer.send(message)
        except Exception:
            _logger.exception("Email send failed for %s", message.to)
            return MailReceipt(delivered=False, mode="failed")

    async def _remove_photos(self, photos: list[PhotoAsset]) -> int:
        removed = 0
        for photo in {photo.id: photo for photo in photos}.values():
            keys = [
                photo.original_key,
                photo.cutout_key,
                photo.preview_key,
                photo.composite_key,
            ]
            for key in keys:
                if key:
                    await self._delete_quietly(key)
            try:
                self.photos.delete_photo(photo.id)
            except Exception:
                _logger.exception("Failed to delete photo record %s", photo.id)
                continue
            removed += 1
        return removed

    async def _delete_quietly(self, key: str) -> None:
        try:
            await self.assets.delete(key)
        except Exception:
            _logger.exception("Failed to delete asset %s", key)

    async def _zip_stream(self, attachments: list[Attachment]) -> AsyncIterator[bytes]:
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_STORED) as archive:
            for attachment in attachments:
                try:
                    blob = await self.assets.get(attachment.storage_key)
                except NotFound:
                    _logger.warning(
                        "Skipping missing attachment %s", attachment.storage_key
                    )
                    continue
                archive.writestr(attachment.filename, blob.data)
                chunk = sink.drain()
                if chunk:
                    yield chunk
        tail = sink.drain()
        if tail:
            yield tail


async def _single_chunk(data: bytes) -> AsyncIterator[bytes]:
    yield data


def _require_email(email: str | None) -> str:
    normalized = normalize_email(email or "")
    if not normalized or "@" not in normalized:
        raise ValidationError("A valid email is required.")
    return normalized


def _stem(photo: PhotoAsset) -> str:
    return _slug(PurePath(photo.original_name).stem) or photo.id[:8]


def _slug(value: str) -> str:
    cleaned = "".join(ch if ch.isalnum() else "-" for ch in value.lower())
    return "-".join(part for part in cleaned.split("-") if part)[:40]


def _extension(content_type: str) -> str:
    return _EXTENSIONS.get(content_type, ".bin")
