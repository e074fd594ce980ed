"""
dispatcher.py — Deliver detected hazard notifications.

Fire-and-forget semantics: a channel failure is logged and recorded as a
FAILED DeliveryAttempt, never raised. One bad notification does not stop
the rest of the batch, and never fails the refresh cycle that produced it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from safespot.alerts.channels.push import LoggingPushChannel, NotificationChannel
from safespot.alerts.models import DeliveryAttempt, DeliveryStatus, HazardNotification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Hands each HazardNotification to a channel."""

    def __init__(self, channel: Optional[NotificationChannel] = None):
        self.channel = channel or LoggingPushChannel()

    async def dispatch(
        self,
        notifications: Iterable[HazardNotification],
    ) -> List[DeliveryAttempt]:
        attempts: List[DeliveryAttempt] = []

        for note in notifications:
            try:
                attempt = await self.channel.send(note.title, note.body, note.priority)
            except Exception as exc:
                logger.error(
                    "[%s] Notification for %s failed: %s",
                    getattr(self.channel, "name", "channel"), note.hazard.id, exc,
                    extra={"hazard_id": note.hazard.id},
                )
                attempt = DeliveryAttempt(
                    channel=getattr(self.channel, "name", "channel"),
                    status=DeliveryStatus.FAILED,
                    completed_at=datetime.now(timezone.utc),
                    error_message=str(exc),
                )
            attempt.hazard_id = note.hazard.id
            attempts.append(attempt)

        return attempts
