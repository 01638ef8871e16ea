"""SMTP mail transport with a local outbox fallback."""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import UTC, datetime
from email.message import EmailMessage
from html import escape
from pathlib import Path

from boothos.services.email import MailReceipt, MailTransport, OutgoingEmail

_logger = logging.getLogger(__name__)


@dataclass
class SmtpMailer(MailTransport):
    """Sends through SMTP when configured; otherwise writes to the outbox."""

    outbox_dir: Path
    sender: str
    host: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = None
    timeout_seconds: float = 30.0

    def is_configured(self) -> bool:
        """Return True when SMTP credentials are present."""
        return bool(self.host and self.username and self.password)

    async def send(self, message: OutgoingEmail) -> MailReceipt:
        """Deliver via SMTP, falling back to the outbox on any failure."""
        if self.is_configured():
            try:
                await asyncio.to_thread(self._send_smtp, message)
                return MailReceipt(delivered=True, mode="smtp")
            except (OSError, smtplib.SMTPException):
                _logger.exception("SMTP send failed, falling back to local outbox")
        else:
            _logger.warning("SMTP is not configured; writing email to outbox")
        folder = await asyncio.to_thread(self._write_outbox, message)
        return MailReceipt(delivered=False, mode="outbox", location=str(folder))

    def _build(self, message: OutgoingEmail) -> EmailMessage:
        envelope = EmailMessage()
        envelope["From"] = f"BoothOS <{self.sender}>"
        envelope["To"] = message.to
        envelope["Subject"] = message.subject
        envelope.set_content(message.text)
        envelope.add_alternative(message.html, subtype="html")
        for attachment in message.attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            envelope.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return envelope

    def _send_smtp(self, message: OutgoingEmail) -> None:
        envelope = self._build(message)
        if self.port == 465:
            with smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout_seconds
            ) as smtp:
                smtp.login(self.username, self.password)
                smtp.send_message(envelope)
            return
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(envelope)

    def _write_outbox(self, message: OutgoingEmail) -> Path:
        stamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H-%M-%S-%f")
        folder = self.outbox_dir / f"email-{stamp}"
        folder.mkdir(parents=True, exist_ok=True)
        lines = []
        for attachment in message.attachments:
            (folder / Path(attachment.filename).name).write_bytes(attachment.content)
            lines.append(
                f"Saved attachment {attachment.filename} "
                f"({attachment.content_type}, {len(attachment.content)} bytes)"
            )
        content = "\n".join(
            [
                "<p>This is a local-only fallback. Configure SMTP_* env vars "
                "to deliver email.</p>",
                f"<p>To: {escape(message.to)}</p>",
                f"<p>Subject: {escape(message.subject)}</p>",
                message.html,
                f"<pre>{escape(chr(10).join(lines))}</pre>",
            ]
        )
        (folder / "email.html").write_text(content, encoding="utf-8")
        _logger.warning("Email for %s saved to %s", message.to, folder)
        return folder
