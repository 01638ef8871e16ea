"""Domain models for guest photos."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PhotoAsset:
    """A guest upload plus its derived artifacts."""

    id: str
    event_id: str
    email: str
    original_name: str
    original_content_type: str
    original_key: str
    cutout_key: str | None
    preview_key: str | None
    created_at: datetime
    composite_key: str | None = None
    filter_id: str | None = None
    background_id: str | None = None


@dataclass(frozen=True)
class UploadedFile:
    """Raw upload handed to the pipeline."""

    filename: str
    content_type: str
    data: bytes


def normalize_email(email: str) -> str:
    """Normalize an email for ownership comparisons."""
    return email.strip().lower()
