# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email delivery using async SMTP.

Sends notifications with aiosmtplib. Every message carries a plain
text and an HTML part.

Configuration comes from SMTPSettings (SMTP_ environment prefix).
Deliveries are skipped while the settings are incomplete. send() never
raises for a delivery problem; it reports it in the DeliveryResult.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from enum import Enum
from html import escape
from typing import Any

import aiosmtplib

from src.core.config.settings import SMTPSettings
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    """Outcome of a delivery attempt."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class NotificationPayload:
    """Payload for sending a notification.

    Attributes:
        notification_type: Type of notification.
        title: Notification title, used as the email subject.
        message: Notification message body.
        recipient_id: User ID of the recipient.
        recipient_email: Email address.
        recipient_name: Recipient display name.
        details: Labelled lines rendered below the message.
        data: Additional data for the notification.
    """

    notification_type: str
    title: str
    message: str
    recipient_id: str
    recipient_email: str
    recipient_name: str | None = None
    details: dict[str, str] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryResult:
    """Result of a send operation.

    Attributes:
        status: Delivery status.
        message_id: Message-ID header of the sent email.
        error_message: Error message if failed or skipped.
        sent_at: When the attempt finished.
        metadata: Additional result metadata.
    """

    status: DeliveryStatus
    message_id: str | None = None
    error_message: str | None = None
    sent_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message_id": self.message_id,
            "error_message": self.error_message,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "metadata": self.metadata,
        }


class EmailChannel:
    """Sends notifications by email over async SMTP.

    Attributes:
        _settings: SMTP connection settings.
    """

    def __init__(self, settings: SMTPSettings) -> None:
        self._settings = settings
        if not settings.is_configured:
            logger.warning(
                "Email notifications disabled: SMTP_HOST, SMTP_USERNAME, "
                "SMTP_PASSWORD, or SMTP_FROM_EMAIL not set"
            )

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    async def send(self, payload: NotificationPayload) -> DeliveryResult:
        """Send email notification via SMTP.

        Args:
            payload: The notification payload.

        Returns:
            DeliveryResult with delivery status.
        """
        if not self._settings.is_configured:
            return self._skipped("SMTP not configured")

        if not payload.recipient_email:
            return self._skipped("No recipient email address")

        message = self.build_message(payload)
        password = self._settings.password
        try:
            await aiosmtplib.send(
                message,
                hostname=self._settings.host,
                port=self._settings.port,
                username=self._settings.username,
                password=password.get_secret_value() if password else None,
                start_tls=self._settings.use_tls,
                timeout=self._settings.timeout,
            )
        except (aiosmtplib.SMTPException, OSError, TimeoutError) as e:
            logger.error(
                "Failed to send email to %s: %s",
                payload.recipient_email,
                str(e),
                exc_info=True,
            )
            return self._failed(
                f"SMTP error: {str(e)}",
                metadata={"recipient": payload.recipient_email},
            )

        logger.info("Email sent to %s: %s", payload.recipient_email, payload.title)
        return self._sent(
            message_id=message["Message-ID"],
            metadata={"recipient": payload.recipient_email},
        )

    def build_message(self, payload: NotificationPayload) -> MIMEMultipart:
        """Build the MIME message with plain text and HTML alternatives."""
        message = MIMEMultipart("alternative")
        message["From"] = formataddr((self._settings.from_name, self._settings.from_email or ""))
        message["To"] = payload.recipient_email
        message["Subject"] = payload.title
        message["Message-ID"] = make_msgid()

        message.attach(MIMEText(self._build_plain_text(payload), "plain", "utf-8"))
        message.attach(MIMEText(self._build_html(payload), "html", "utf-8"))
        return message

    def _build_plain_text(self, payload: NotificationPayload) -> str:
        lines = [
            payload.title,
            "=" * len(payload.title),
            "",
            payload.message,
            "",
        ]
        for label, value in payload.details.items():
            lines.append(f"{label}: {value}")
        if payload.details:
            lines.append("")

        lines.extend([
            "---",
            f"This message was sent by {self._settings.from_name}.",
        ])
        return "\n".join(lines)

    def _build_html(self, payload: NotificationPayload) -> str:
        title = escape(payload.title)
        message = escape(payload.message).replace("\n", "<br>")
        rows = "".join(
            f'<tr><td style="color: #6B7280; padding: 4px 12px 4px 0;">'
            f"<strong>{escape(label)}</strong></td>"
            f'<td style="font-family: monospace;">{escape(value)}</td></tr>'
            for label, value in payload.details.items()
        )
        details = f'<table style="margin: 16px 0;">{rows}</table>' if rows else ""
        sender = escape(self._settings.from_name)

        html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1F2937;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #4F46E5; font-size: 22px;">{title}</h1>
        <p>{message}</p>
        {details}
        <p style="font-size: 12px; color: #9CA3AF;">
            This message was sent by {sender}.
        </p>
    </div>
</body>
</html>
        """
        return html.strip()

    def _sent(self, message_id: str | None, metadata: dict[str, Any]) -> DeliveryResult:
        return DeliveryResult(
            status=DeliveryStatus.SENT,
            message_id=message_id,
            sent_at=utc_now(),
            metadata=metadata,
        )

    def _failed(self, error_message: str, metadata: dict[str, Any]) -> DeliveryResult:
        return DeliveryResult(
            status=DeliveryStatus.FAILED,
            error_message=error_message,
            sent_at=utc_now(),
            metadata=metadata,
        )

    def _skipped(self, reason: str) -> DeliveryResult:
        return DeliveryResult(
            status=DeliveryStatus.SKIPPED,
            error_message=reason,
            sent_at=utc_now(),
        )
