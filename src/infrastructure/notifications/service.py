# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Credentials notifier.

Subscribes to the credentials event and emails each newly enrolled
student their login. Delivery is fire-and-forget: a skipped or failed
send is logged and never reaches the enrollment that produced it.
"""

import logging
from typing import Any

from src.infrastructure.events import EventBus, EventData, EventTypes
from src.infrastructure.notifications.email import (
    DeliveryResult,
    DeliveryStatus,
    EmailChannel,
    NotificationPayload,
)

logger = logging.getLogger(__name__)

CREDENTIALS_NOTIFICATION_TYPE = "student_credentials"


class CredentialsNotifier:
    """Delivers one-time student credentials through a channel.

    Attributes:
        _channel: Email channel used for delivery.
        _sent: Number of successful deliveries.
        _failed: Number of failed deliveries.
        _skipped: Number of skipped deliveries.
    """

    def __init__(self, channel: EmailChannel) -> None:
        self._channel = channel
        self._sent = 0
        self._failed = 0
        self._skipped = 0

    def register(self, event_bus: EventBus) -> None:
        """Subscribe to credential events on the bus."""
        event_bus.subscribe(EventTypes.Enrollment.CREDENTIALS_ISSUED, self.handle)

    def unregister(self, event_bus: EventBus) -> None:
        event_bus.unsubscribe(EventTypes.Enrollment.CREDENTIALS_ISSUED, self.handle)

    async def handle(self, event: EventData) -> None:
        """Event handler for credentials issued events."""
        payload = self.build_payload(event.payload)
        result = await self._channel.send(payload)
        self._record(result, payload)

    @staticmethod
    def build_payload(data: dict[str, Any]) -> NotificationPayload:
        """Render the credentials message for a student."""
        details = {
            "Email": data["email"],
            "Password": data["password"],
            "Class": data.get("class_name") or "",
            "Section": data.get("section_name") or "",
        }
        if data.get("roll_number"):
            details["Roll number"] = data["roll_number"]

        return NotificationPayload(
            notification_type=CREDENTIALS_NOTIFICATION_TYPE,
            title="Your student account is ready",
            message=(
                f"Hello {data['name']},\n"
                "You have been enrolled. Use the credentials below to sign in "
                "and change your password after the first login."
            ),
            recipient_id=data["student_id"],
            recipient_email=data["email"],
            recipient_name=data["name"],
            details=details,
        )

    def _record(self, result: DeliveryResult, payload: NotificationPayload) -> None:
        if result.status == DeliveryStatus.SENT:
            self._sent += 1
        elif result.status == DeliveryStatus.SKIPPED:
            self._skipped += 1
            logger.info(
                "Credentials delivery skipped for student %s: %s",
                payload.recipient_id,
                result.error_message,
            )
        else:
            self._failed += 1
            logger.warning(
                "Credentials delivery failed for student %s: %s",
                payload.recipient_id,
                result.error_message,
            )

    def get_stats(self) -> dict[str, int]:
        return {"sent": self._sent, "failed": self._failed, "skipped": self._skipped}
