"""
models.py — Notification events and delivery records.

ChangeDetector produces HazardNotification events; the dispatcher hands
each one to a channel and records a DeliveryAttempt. Detection never
delivers anything itself.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from safespot.hazards.models import Criticality, HazardRecord


class NotificationPriority(str, Enum):
    HIGH   = "high"
    NORMAL = "normal"


class DeliveryStatus(str, Enum):
    """Delivery state per notification."""
    SENDING   = "sending"
    DELIVERED = "delivered"
    FAILED    = "failed"


CRITICAL_TITLE = "CRITICAL ALERT"
DEFAULT_TITLE = "SafeSpot Alert"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HazardNotification:
    """A new hazard near the user, worth telling them about."""
    hazard: HazardRecord
    criticality: Criticality
    distance_km: float

    @property
    def title(self) -> str:
        return CRITICAL_TITLE if self.criticality == Criticality.CRITICAL else DEFAULT_TITLE

    @property
    def body(self) -> str:
        return f"{self.hazard.event_label} detected near your location"

    @property
    def priority(self) -> NotificationPriority:
        if self.criticality == Criticality.CRITICAL:
            return NotificationPriority.HIGH
        return NotificationPriority.NORMAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hazard_id": self.hazard.id,
            "type": self.hazard.type.value,
            "criticality": self.criticality.value,
            "distance_km": round(self.distance_km, 3),
            "title": self.title,
            "body": self.body,
            "priority": self.priority.value,
        }


@dataclass
class DeliveryAttempt:
    """Record of one notification handed to one channel."""
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    channel: str = "push"
    hazard_id: str = ""
    status: DeliveryStatus = DeliveryStatus.SENDING
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "channel": self.channel,
            "hazard_id": self.hazard_id,
            "status": self.status.value,
            "attempted_at": self.attempted_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "error_message": self.error_message,
        }
