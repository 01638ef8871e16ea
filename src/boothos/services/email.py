"""Guest email composition and the mail transport interface."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from html import escape
from typing import Protocol


@dataclass(frozen=True)
class MailAttachment:
    """A file attached to an outgoing email."""

    filename: str
    content: bytes
    content_type: str


@dataclass(frozen=True)
class OutgoingEmail:
    """A rendered email ready to hand to a transport."""

    to: str
    subject: str
    html: str
    text: str
    attachments: list[MailAttachment] = field(default_factory=list)


@dataclass(frozen=True)
class MailReceipt:
    """How a message left the system."""

    delivered: bool
    mode: str
    location: str | None = None


class MailTransport(Protocol):
    """Interface for sending guest emails."""

    async def send(self, message: OutgoingEmail) -> MailReceipt:
        """Send a message, or park it somewhere recoverable."""


_SHELL = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="margin:0;padding:0;font-family:Arial,Helvetica,sans-serif;background-color:#f4f4f5;">
  <div style="max-width:600px;margin:0 auto;padding:40px 20px;">
    <div style="background:linear-gradient(135deg,#6366f1 0%,#8b5cf6 100%);border-radius:16px 16px 0 0;padding:32px;text-align:center;">
      <p style="letter-spacing:0.2em;text-transform:uppercase;color:#e0e7ff;font-size:11px;margin:0 0 8px;">{business}</p>
      <h1 style="color:#fff;margin:0;">Your Photos Are Ready!</h1>
    </div>
    <div style="background-color:#fff;border-radius:0 0 16px 16px;padding:32px;">
      {body}
    </div>
    <p style="color:#94a3b8;font-size:11px;text-align:center;">&copy; {year} {business}</p>
  </div>
</body>
</html>
"""


def _plural(count: int) -> tuple[str, str]:
    return ("photo", "is") if count == 1 else ("photos", "are")


def _ready_line(count: int, event_name: str) -> str:
    noun, verb = _plural(count)
    return (
        f'<p style="color:#374151;">Your {count} {noun} from '
        f"<strong>{escape(event_name)}</strong> {verb} ready.</p>"
    )


def _expiry_line(expires_at: datetime) -> str:
    return (
        '<p style="color:#6b7280;font-size:14px;text-align:center;">'
        f"This download link expires on {expires_at:%B %d, %Y at %H:%M} UTC.</p>"
    )


def _download_button(download_url: str) -> str:
    return (
        '<div style="text-align:center;margin:32px 0;">'
        f'<a href="{escape(download_url, quote=True)}" style="display:inline-block;'
        "background:#6366f1;color:#fff;text-decoration:none;padding:16px 32px;"
        'border-radius:8px;font-weight:600;">Download Photos</a></div>'
    )


def _wrap(event_name: str, business_name: str, body: str) -> str:
    return _SHELL.format(
        title=f"Your Photos from {escape(event_name)}",
        business=escape(business_name),
        body=body,
        year=datetime.now(tz=UTC).year,
    )


def render_attachments_email(  # noqa: PLR0913
    *,
    to: str,
    event_name: str,
    business_name: str,
    attachments: list[MailAttachment],
    download_url: str,
    expires_at: datetime,
) -> OutgoingEmail:
    """Email carrying the finished photos inline."""
    count = len(attachments)
    body = "".join(
        [
            _ready_line(count, event_name),
            '<p style="color:#374151;">Your edited shots are attached to this email. '
            "If you have any issues opening the files, use the link below.</p>",
            _download_button(download_url),
            _expiry_line(expires_at),
        ]
    )
    noun, verb = _plural(count)
    return OutgoingEmail(
        to=to,
        subject=f"Your Photos from {event_name}",
        html=_wrap(event_name, business_name, body),
        text=(
            f"Your {count} {noun} from {event_name} {verb} attached. "
            f"Download: {download_url}"
        ),
        attachments=attachments,
    )


def render_link_email(  # noqa: PLR0913
    *,
    to: str,
    event_name: str,
    business_name: str,
    photo_count: int,
    download_url: str,
    expires_at: datetime,
) -> OutgoingEmail:
    """Email with a download button instead of attachments."""
    body = "".join(
        [
            _ready_line(photo_count, event_name),
            _download_button(download_url),
            _expiry_line(expires_at),
        ]
    )
    noun, verb = _plural(photo_count)
    return OutgoingEmail(
        to=to,
        subject=f"Your Photos from {event_name}",
        html=_wrap(event_name, business_name, body),
        text=(
            f"Your {photo_count} {noun} from {event_name} {verb} ready. "
            f"Download: {download_url}"
        ),
    )
