# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification system for Campus Roster.

Delivers generated student credentials by email. The notifier is
wired to the event bus in the application lifespan:

    channel = EmailChannel(settings.smtp)
    notifier = CredentialsNotifier(channel)
    notifier.register(event_bus)
"""

from src.infrastructure.notifications.email import (
    DeliveryResult,
    DeliveryStatus,
    EmailChannel,
    NotificationPayload,
)
from src.infrastructure.notifications.service import CredentialsNotifier

__all__ = [
    "CredentialsNotifier",
    "DeliveryResult",
    "DeliveryStatus",
    "NotificationPayload",
    "EmailChannel",
]
