# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-process event bus.

NotificationService publishes lifecycle events here (year closed,
window opened or ended, override used). Delivery adapters subscribe by
exact type or by fnmatch pattern such as "reopening.*". A failing
subscriber is logged and never fails the write that published the event.

Example:
    get_event_bus().subscribe("reopening.*", on_reopening_event)
    await get_event_bus().publish(EventTypes.Reopening.CREATED, payload, tenant_id)
"""

import asyncio
import fnmatch
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from edurecords.utils.datetime import utc_now

logger = logging.getLogger(__name__)

EventHandler = Callable[["EventData"], Awaitable[None]]

_WILDCARDS = frozenset("*?[")


@dataclass
class EventData:
    """One published event; tenant_id is None only for system events."""

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)
    tenant_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
            "tenant_id": self.tenant_id,
        }


class EventBus:
    """Async fan-out to subscribers within one process and event loop."""

    def __init__(self) -> None:
        self._exact: defaultdict[str, list[EventHandler]] = defaultdict(list)
        self._patterns: defaultdict[str, list[EventHandler]] = defaultdict(list)
        self._published = 0

    def _table(self, key: str) -> defaultdict[str, list[EventHandler]]:
        return self._patterns if _WILDCARDS.intersection(key) else self._exact

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Call `handler` for `event_type`, which may be an fnmatch pattern."""
        self._table(event_type)[event_type].append(handler)
        logger.debug("Subscribed %s to %s", getattr(handler, "__name__", handler), event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Remove one subscription; False if it did not exist."""
        table = self._table(event_type)
        handlers = table.get(event_type, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del table[event_type]
        return True

    def handlers_for(self, event_type: str) -> list[EventHandler]:
        handlers = list(self._exact.get(event_type, []))
        for pattern, subscribed in self._patterns.items():
            if fnmatch.fnmatchcase(event_type, pattern):
                handlers.extend(subscribed)
        return handlers

    async def _deliver(self, handler: EventHandler, event: EventData) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception("Subscriber failed on %s (event %s)", event.event_type, event.event_id)

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
        tenant_id: str | None = None,
    ) -> EventData:
        """Deliver a new event to every matching subscriber concurrently.

        Returns:
            The published event.
        """
        event = EventData(event_type=event_type, payload=payload, tenant_id=tenant_id)
        self._published += 1

        handlers = self.handlers_for(event_type)
        if handlers:
            await asyncio.gather(*(self._deliver(h, event) for h in handlers))
        else:
            logger.debug("No subscriber for %s (tenant %s)", event_type, tenant_id)
        return event

    def clear(self) -> None:
        self._exact.clear()
        self._patterns.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "exact_subscriptions": len(self._exact),
            "pattern_subscriptions": len(self._patterns),
            "events_published": self._published,
        }


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Drop the process-wide bus and its subscriptions."""
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
