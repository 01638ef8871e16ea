"""Domain models for delivery bundles."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Attachment:
    """A persisted file belonging to a production."""

    filename: str
    storage_key: str
    content_type: str
    size: int


@dataclass(frozen=True)
class ProductionSet:
    """A tokenized delivery bundle for one guest."""

    id: str
    event_id: str
    email: str
    download_token: str
    token_expires_at: datetime
    channel: str
    created_at: datetime
    attachments: list[Attachment] = field(default_factory=list)
    download_count: int = 0
    last_downloaded_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return True once the download token is past its expiry."""
        return self.token_expires_at < now
