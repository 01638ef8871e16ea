"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import PurePath

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from boothos.api.models import SelectionSubmitRequest
from boothos.api.staff import router as staff_router
from boothos.app_logging import configure_logging
from boothos.containers import AppContainer
from boothos.domain.errors import BoothError
from boothos.imaging.watermark import render_overlay
from boothos.services.staging import verify_staged_token

_MAX_OVERLAY_SIDE = 4096


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(staff_router)

    @app.exception_handler(BoothError)
    async def booth_error_handler(request: Request, exc: BoothError) -> JSONResponse:
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/bgremover/source/{file_name}")
    async def staged_source(
        file_name: str, request: Request, token: str | None = None
    ) -> Response:
        """Serve a staged upload to the background-removal service."""
        state_container: AppContainer = request.app.state.container
        secret = state_container.settings.resolved_staging_secret()
        if not secret:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Staging secret is not configured",
            )
        name = PurePath(file_name).name
        if not token or not verify_staged_token(name, token, secret):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
        content = await state_container.staging.read(name)
        if content is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return Response(
            content=content.data,
            media_type=content.content_type,
            headers={"Cache-Control": "no-store"},
        )

    @app.get("/productions/{token}/download")
    async def download_production(token: str, request: Request) -> StreamingResponse:
        """Stream a production as one file or a zip bundle."""
        state_container: AppContainer = request.app.state.container
        pipeline = state_container.pipeline
        payload = await pipeline.open_download(token)
        return StreamingResponse(
            payload.chunks,
            media_type=payload.content_type,
            headers={
                "Content-Disposition": f'attachment; filename="{payload.filename}"',
                "Cache-Control": "no-store",
            },
            background=BackgroundTask(pipeline.record_download, payload.production),
        )

    @app.get("/events/{event_id}/selections/{token}")
    async def describe_selection(
        event_id: str, token: str, request: Request
    ) -> dict[str, object]:
        """Photos and backgrounds available to a selection link."""
        state_container: AppContainer = request.app.state.container
        return state_container.selections.describe(event_id, token)

    @app.post("/events/{event_id}/selections/{token}")
    async def submit_selection(
        event_id: str, token: str, body: SelectionSubmitRequest, request: Request
    ) -> dict[str, object]:
        """Deliver a guest's picks and burn the link."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.selections.submit(
            event_id,
            token,
            [selection.to_selection() for selection in body.selections],
        )
        return {
            "status": "ok",
            "emailDelivered": result.email_delivered,
            "downloadUrl": result.download_url,
        }

    @app.get("/overlays/{theme}")
    async def overlay(
        theme: str,
        width: int = Query(default=1920, ge=1, le=_MAX_OVERLAY_SIDE),
        height: int = Query(default=1080, ge=1, le=_MAX_OVERLAY_SIDE),
    ) -> Response:
        """Render a themed live-view overlay."""
        return Response(
            content=render_overlay(width, height, theme),
            media_type="image/png",
            headers={"Cache-Control": "public, max-age=3600"},
        )

    return app
