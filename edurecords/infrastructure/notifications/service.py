# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification dispatch for academic lifecycle events.

Domain services call NotificationService.notify() after a state change
has been committed. The service publishes the notification on the event
bus, where delivery adapters (email, in-app) subscribe. Dispatch is
best-effort: failures are logged and returned as a failed result, never
raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from edurecords.infrastructure.events import EventBus, get_event_bus

logger = logging.getLogger(__name__)


@dataclass
class NotificationResult:
    """Outcome of one dispatch attempt.

    Attributes:
        event_type: Event type that was published.
        delivered: Whether the notification was handed to the bus.
        errors: Error messages collected during dispatch.
    """

    event_type: str
    delivered: bool
    errors: list[str] = field(default_factory=list)


class NotificationService:
    """Publish lifecycle notifications to interested audiences."""

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self.event_bus = event_bus or get_event_bus()

    async def notify(
        self,
        event_type: str,
        tenant_id: str,
        subject: str,
        payload: dict[str, Any],
        audiences: list[str],
    ) -> NotificationResult:
        """Dispatch a notification.

        Args:
            event_type: One of EventTypes.
            tenant_id: Tenant the notification concerns.
            subject: Human-readable subject line.
            payload: Event details.
            audiences: Recipient groups (see Audiences).

        Returns:
            NotificationResult describing the attempt.
        """
        try:
            await self.event_bus.publish(
                event_type,
                {"subject": subject, "audiences": audiences, **payload},
                tenant_id=tenant_id,
            )
        except Exception as e:
            logger.error(
                "Failed to dispatch notification %s for tenant %s: %s",
                event_type,
                tenant_id,
                str(e),
                exc_info=True,
            )
            return NotificationResult(event_type=event_type, delivered=False, errors=[str(e)])

        logger.debug("Dispatched %s to %s (tenant: %s)", event_type, audiences, tenant_id)
        return NotificationResult(event_type=event_type, delivered=True)
