"""Remote background-removal client using httpx."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from boothos.domain.errors import UpstreamFailure
from boothos.services.staging import StagingArea

_logger = logging.getLogger(__name__)


class BgRemovalError(UpstreamFailure):
    """Raised when a cutout could not be produced."""


@dataclass(frozen=True)
class CutoutResult:
    """A cutout returned by the remote service."""

    data: bytes
    content_type: str
    output_url: str
    mode: str | None = None


class BackgroundRemovalClient(Protocol):
    """Interface for producing cutouts from raw photos."""

    async def remove_background(
        self, data: bytes, filename: str, content_type: str
    ) -> CutoutResult:
        """Return a cutout for the given image bytes."""


@dataclass
class HttpxBackgroundRemovalClient(BackgroundRemovalClient):
    """Stages uploads, signs a pull URL and calls the remote service."""

    api_base: str | None
    service_token: str | None
    staging_secret: str | None
    staging: StagingArea
    http_client: httpx.AsyncClient
    timeout_seconds: float = 45.0

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        *,
        api_base: str | None,
        service_token: str | None,
        staging_secret: str | None,
        staging: StagingArea,
        timeout_seconds: float = 45.0,
    ) -> "HttpxBackgroundRemovalClient":
        """Create a client with a managed httpx session."""
        return cls(
            api_base=api_base,
            service_token=service_token,
            staging_secret=staging_secret,
            staging=staging,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    def is_configured(self) -> bool:
        """Return True when the service URL and credentials are set."""
        return bool(self.api_base and self.service_token and self.staging_secret)

    async def remove_background(
        self, data: bytes, filename: str, content_type: str
    ) -> CutoutResult:
        """Stage the upload, invoke the service, and fetch the cutout."""
        if not self.is_configured():
            raise BgRemovalError("Background removal service is not configured")
        staged = await self.staging.stage(
            data, content_type, secret=str(self.staging_secret)
        )
        try:
            payload = await self._invoke(staged.url, filename)
            output_url = payload.get("outputUrl")
            if not isinstance(output_url, str) or not output_url:
                raise BgRemovalError("Background removal returned no output URL")
            cutout = await self._fetch(output_url)
            mode = payload.get("mode")
            return CutoutResult(
                data=cutout.content,
                content_type=cutout.headers.get("content-type", "image/png"),
                output_url=output_url,
                mode=str(mode) if mode else None,
            )
        finally:
            await self.staging.discard(staged)

    async def _invoke(self, image_url: str, filename: str) -> dict[str, object]:
        endpoint = f"{str(self.api_base).rstrip('/')}/remove-bg"
        try:
            response = await self.http_client.post(
                endpoint,
                json={"imageUrl": image_url},
                headers={"Authorization": f"Bearer {self.service_token}"},
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise BgRemovalError(
                f"Background removal timed out for {filename}"
            ) from exc
        except httpx.HTTPError as exc:
            raise BgRemovalError(f"Background removal request failed: {exc}") from exc
        if not response.is_success:
            detail = response.text.strip() or response.reason_phrase
            _logger.warning(
                "Background removal failed: status=%s file=%s",
                response.status_code,
                filename,
            )
            raise BgRemovalError(
                f"Background removal failed ({response.status_code}): {detail}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise BgRemovalError("Background removal returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise BgRemovalError("Background removal returned an unexpected payload")
        return payload

    async def _fetch(self, output_url: str) -> httpx.Response:
        try:
            response = await self.http_client.get(
                output_url, timeout=self.timeout_seconds
            )
        except httpx.HTTPError as exc:
            raise BgRemovalError(f"Failed to fetch cutout: {exc}") from exc
        if not response.is_success:
            raise BgRemovalError(f"Failed to fetch cutout ({response.status_code})")
        return response

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
