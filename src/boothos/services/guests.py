"""Front-desk check-ins and "photos ready" notifications."""

import logging
from dataclasses import dataclass
from typing import Protocol

from boothos.domain.errors import ValidationError
from boothos.domain.guests import Checkin, GuestNotification
from boothos.domain.photos import normalize_email

_logger = logging.getLogger(__name__)


class CheckinRepository(Protocol):
    """Persistence interface for check-ins."""

    def upsert_checkin(self, event_id: str, name: str, email: str) -> Checkin:
        """Create or refresh the check-in for an email."""

    def list_checkins(self, event_id: str) -> list[Checkin]:
        """Return check-ins, newest first."""

    def delete_checkins_by_email(self, event_id: str, email: str) -> int:
        """Delete check-ins for an email and return how many were removed."""


class NotificationRepository(Protocol):
    """Persistence interface for guest notifications."""

    def add_notification(self, event_id: str, email: str, count: int) -> None:
        """Record that ``count`` photos are ready for ``email``."""

    def pop_notifications(self, event_id: str) -> list[GuestNotification]:
        """Return and clear pending notifications."""


@dataclass
class GuestService:
    """Service for guest-facing bookkeeping around uploads."""

    checkins: CheckinRepository
    notifications: NotificationRepository

    def check_in(self, event_id: str, name: str, email: str) -> Checkin:
        """Register a guest waiting for photos."""
        normalized = normalize_email(email)
        if not normalized or "@" not in normalized:
            raise ValidationError("A valid email is required.")
        return self.checkins.upsert_checkin(event_id, name.strip(), normalized)

    def list_checkins(self, event_id: str) -> list[Checkin]:
        """Return the current check-in queue."""
        return self.checkins.list_checkins(event_id)

    def clear_checkin(self, event_id: str, email: str) -> int:
        """Remove a guest from the queue; absent entries are fine."""
        return self.checkins.delete_checkins_by_email(event_id, normalize_email(email))

    def notify_photos_ready(self, event_id: str, email: str, count: int) -> None:
        """Record a notification for the guest."""
        self.notifications.add_notification(event_id, normalize_email(email), count)
        _logger.info("Photos ready: event=%s count=%s", event_id, count)

    def pop_notifications(self, event_id: str) -> list[GuestNotification]:
        """Drain pending notifications."""
        return self.notifications.pop_notifications(event_id)
