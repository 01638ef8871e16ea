"""Staff API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Request,
    UploadFile,
    status,
)

from boothos.api.models import (
    CheckinRequest,
    DeliverRequest,
    GenerateBackgroundRequest,
    ResendRequest,
    SelectionStartRequest,
)
from boothos.domain.photos import UploadedFile

if TYPE_CHECKING:
    from boothos.containers import AppContainer
    from boothos.domain.backgrounds import Background


def _get_staff_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.staff_token


async def require_staff(
    x_staff_token: str | None = Header(default=None),
    staff_token: str = Depends(_get_staff_token),
) -> None:
    """Ensure requests include a valid staff token."""
    if not x_staff_token or x_staff_token != staff_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


router = APIRouter(
    prefix="/events/{event_id}",
    tags=["staff"],
    dependencies=[Depends(require_staff)],
)


@router.post("/photos")
async def upload_photos(  # noqa: PLR0913
    event_id: str,
    request: Request,
    email: str = Form(...),
    photos: list[UploadFile] = File(...),
    remove_background: bool | None = Form(default=None),
    ai_prompt: str | None = Form(default=None),
    background_id: str | None = Form(default=None),
    filter_id: str | None = Form(default=None),
) -> dict[str, object]:
    """Ingest a batch of guest photos."""
    container: AppContainer = request.app.state.container
    uploads = [
        UploadedFile(
            filename=photo.filename or "upload",
            content_type=photo.content_type or "application/octet-stream",
            data=await photo.read(),
        )
        for photo in photos
    ]
    batch = await container.pipeline.ingest_batch(
        event_id,
        email,
        uploads,
        remove_background=remove_background,
        ai_prompt=ai_prompt,
        background_id=background_id or None,
        filter_id=filter_id or None,
    )
    return {
        "uploaded": batch.uploaded,
        "failed": batch.failed,
        "results": [item.as_dict() for item in batch.results],
        "usage": batch.usage,
        "aiBackgroundId": batch.ai_background_id,
        "aiBackgroundError": batch.ai_background_error,
    }


@router.post("/deliver")
async def deliver(
    event_id: str, body: DeliverRequest, request: Request
) -> dict[str, object]:
    """Compose and send selected photos to a guest."""
    container: AppContainer = request.app.state.container
    result = await container.pipeline.deliver(
        event_id,
        body.email,
        [selection.to_selection() for selection in body.selections],
        channel=body.channel,
    )
    return {
        "status": "ok",
        "productionId": result.production.id,
        "stage": result.stage.value,
        "emailDelivered": result.email_delivered,
        "deliveryMode": result.delivery_mode,
        "downloadUrl": result.download_url,
        "expiresAt": result.production.token_expires_at.isoformat(),
        "cleanedUp": result.cleaned_up,
    }


@router.post("/productions/{production_id}/resend")
async def resend_production(
    event_id: str, production_id: str, body: ResendRequest, request: Request
) -> dict[str, object]:
    """Email the download link for a production again."""
    container: AppContainer = request.app.state.container
    receipt = await container.pipeline.resend(event_id, production_id, body.email)
    return {"status": "ok", "delivered": receipt.delivered, "mode": receipt.mode}


@router.delete("/productions/expired")
async def purge_productions(event_id: str, request: Request) -> dict[str, int]:
    """Delete expired productions and their files."""
    container: AppContainer = request.app.state.container
    return {"purged": await container.pipeline.purge_expired(event_id)}


@router.post("/selections")
async def start_selection(
    event_id: str, body: SelectionStartRequest, request: Request
) -> dict[str, str]:
    """Create a selection link for a guest."""
    container: AppContainer = request.app.state.container
    token = container.selections.create_token(event_id, body.email)
    return {
        "token": token.token,
        "shareUrl": container.selections.share_url(token),
        "expiresAt": token.expires_at.isoformat(),
    }


@router.get("/usage")
async def event_usage(event_id: str, request: Request) -> dict[str, object]:
    """Return quotas and remaining headroom."""
    container: AppContainer = request.app.state.container
    event = container.gate.get_event(event_id)
    return {
        "usage": container.gate.usage(event).as_dict(),
        "requiresPayment": container.gate.event_requires_payment(event),
    }


@router.get("/backgrounds")
async def list_backgrounds(event_id: str, request: Request) -> dict[str, object]:
    """List backgrounds visible to the event."""
    container: AppContainer = request.app.state.container
    return {
        "backgrounds": [
            _background_payload(background)
            for background in container.backgrounds.list_backgrounds(event_id)
        ]
    }


@router.post("/backgrounds")
async def add_background(  # noqa: PLR0913
    event_id: str,
    request: Request,
    name: str = Form(...),
    file: UploadFile = File(...),
    description: str = Form(default=""),
    category: str = Form(default="background"),
) -> dict[str, object]:
    """Upload an event background or frame."""
    container: AppContainer = request.app.state.container
    container.gate.get_event(event_id)
    background = await container.backgrounds.add_background(
        event_id,
        name=name,
        data=await file.read(),
        content_type=file.content_type or "image/png",
        description=description,
        category=category,
    )
    return {"background": _background_payload(background)}


@router.post("/backgrounds/generate")
async def generate_background(
    event_id: str, body: GenerateBackgroundRequest, request: Request
) -> dict[str, object]:
    """Generate an AI background, spending one credit."""
    container: AppContainer = request.app.state.container
    event = container.gate.get_event(event_id)
    generated = await container.backgrounds.generate(event, body.prompt, body.category)
    return {
        "background": _background_payload(generated.background),
        "usage": generated.usage,
    }


@router.delete("/backgrounds/{background_id}")
async def delete_background(
    event_id: str, background_id: str, request: Request
) -> dict[str, str]:
    """Delete an event-owned background."""
    container: AppContainer = request.app.state.container
    await container.backgrounds.delete_background(event_id, background_id)
    return {"status": "ok"}


@router.get("/notifications")
async def pop_notifications(event_id: str, request: Request) -> dict[str, object]:
    """Drain pending "photos ready" notifications."""
    container: AppContainer = request.app.state.container
    return {
        "notifications": [
            {
                "email": notification.email,
                "count": notification.count,
                "createdAt": notification.created_at.isoformat(),
            }
            for notification in container.guests.pop_notifications(event_id)
        ]
    }


@router.get("/checkins")
async def list_checkins(event_id: str, request: Request) -> dict[str, object]:
    """Return the front-desk queue."""
    container: AppContainer = request.app.state.container
    return {
        "checkins": [
            {
                "id": checkin.id,
                "name": checkin.name,
                "email": checkin.email,
                "createdAt": checkin.created_at.isoformat(),
            }
            for checkin in container.guests.list_checkins(event_id)
        ]
    }


@router.post("/checkins")
async def create_checkin(
    event_id: str, body: CheckinRequest, request: Request
) -> dict[str, object]:
    """Add a guest to the front-desk queue."""
    container: AppContainer = request.app.state.container
    container.gate.get_event(event_id)
    checkin = container.guests.check_in(event_id, body.name, body.email)
    return {"checkin": {"id": checkin.id, "email": checkin.email}}


def _background_payload(background: Background) -> dict[str, object]:
    return {
        "id": background.id,
        "name": background.name,
        "description": background.description,
        "category": background.category,
        "origin": background.origin,
        "isDefault": background.is_default,
    }
