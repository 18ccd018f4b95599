# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure module for Campus Roster.

In-process publish/subscribe used to announce enrollment changes and to
hand one-time credentials to the notification layer.

Components:
- EventBus: In-memory pub/sub with pattern matching
- EventTypes: Centralized event type constants
- EventPatterns: Wildcard subscriptions

Example:
    bus = EventBus()
    bus.subscribe(EventTypes.Enrollment.CREDENTIALS_ISSUED, notifier.handle)
    await bus.publish(
        EventTypes.Enrollment.STUDENT_ENROLLED,
        {"student_id": "123", "section_id": "456"},
        organization_id="789",
    )
"""

from src.infrastructure.events.bus import EventBus, EventData, EventHandler
from src.infrastructure.events.types import EventPatterns, EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "EventPatterns",
    "EventTypes",
]
