"""
push.py — On-device push notification channel.

Delivery mechanics (Expo / APNs / FCM) live outside this service; the
pipeline only needs "dispatch a notification with payload X". This channel
logs the notification and reports it as delivered, which is also what a
headless deployment wants.

Any object with the same ``send`` coroutine can replace it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from safespot.alerts.models import DeliveryAttempt, DeliveryStatus, NotificationPriority

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    name: str

    async def send(
        self,
        title: str,
        body: str,
        priority: NotificationPriority,
    ) -> DeliveryAttempt: ...


class LoggingPushChannel:
    """Simulated push delivery: one log line per notification."""

    name = "push"

    async def send(
        self,
        title: str,
        body: str,
        priority: NotificationPriority,
    ) -> DeliveryAttempt:
        attempt = DeliveryAttempt(channel=self.name, status=DeliveryStatus.SENDING)

        level = logging.WARNING if priority == NotificationPriority.HIGH else logging.INFO
        logger.log(level, "[PUSH] %s — %s (priority=%s)", title, body, priority.value)

        attempt.status = DeliveryStatus.DELIVERED
        attempt.completed_at = datetime.now(timezone.utc)
        return attempt
