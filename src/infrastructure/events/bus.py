# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus for Campus Roster.

Events are published and subscribed to by event type strings. The bus is
constructed during application start-up and handed to the services that
publish on it; there is no module-level instance.

The EventBus supports:
- Exact event type matching (e.g., "enrollment.credentials.issued")
- Wildcard pattern matching (e.g., "enrollment.*")
- Async handlers, several per event type

Example:
    bus = EventBus()

    async def on_credentials(event: EventData) -> None:
        ...

    bus.subscribe(EventTypes.Enrollment.CREDENTIALS_ISSUED, on_credentials)
    await bus.publish(
        EventTypes.Enrollment.CREDENTIALS_ISSUED,
        {"student_id": "123"},
        organization_id="org-1",
    )
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


@dataclass
class EventData:
    """Container for event data with metadata.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
        organization_id: Organization the event belongs to.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)
    organization_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
            "organization_id": self.organization_id,
        }


EventHandler = Callable[[EventData], Awaitable[None]]


def _is_pattern(event_type: str) -> bool:
    return "*" in event_type or "?" in event_type


class EventBus:
    """In-memory async event bus with pattern matching support.

    Designed for single-process async use. A handler that raises is
    logged and does not affect the publisher or other handlers.

    Attributes:
        _handlers: Dictionary mapping event types to handler lists.
        _pattern_handlers: Dictionary mapping patterns to handler lists.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._event_count = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type or pattern.

        Args:
            event_type: Event type string or pattern with wildcards.
            handler: Async function to call when event is published.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        registry.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Unsubscribe a handler from an event type or pattern.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False

        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
        organization_id: str | None = None,
    ) -> EventData:
        """Publish an event to all matching subscribers.

        Handlers are called concurrently using asyncio.gather. Errors in
        individual handlers are logged but don't stop other handlers.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.
            organization_id: Organization the event belongs to.

        Returns:
            EventData object with event metadata.
        """
        event = EventData(
            event_type=event_type,
            payload=payload,
            organization_id=organization_id,
        )
        self._event_count += 1

        handlers_to_call: list[EventHandler] = list(self._handlers.get(event_type, []))
        for pattern, pattern_handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                handlers_to_call.extend(pattern_handlers)

        if not handlers_to_call:
            logger.debug("No handlers for event: %s", event_type)
            return event

        logger.debug(
            "Publishing event %s to %d handlers",
            event_type,
            len(handlers_to_call),
        )

        async def safe_call(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for event %s: %s",
                    event_type,
                    str(e),
                    exc_info=True,
                )

        await asyncio.gather(*[safe_call(handler) for handler in handlers_to_call])
        return event

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics.

        Returns:
            Dictionary with subscription and event counts.
        """
        exact_count = sum(len(h) for h in self._handlers.values())
        pattern_count = sum(len(h) for h in self._pattern_handlers.values())

        return {
            "total_handlers": exact_count + pattern_count,
            "events_published": self._event_count,
            "event_types": list(self._handlers.keys()),
            "patterns": list(self._pattern_handlers.keys()),
        }
