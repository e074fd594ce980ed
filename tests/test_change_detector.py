"""
test_change_detector.py — New-hazard detection and notification dispatch.

Run with:
    pytest tests/test_change_detector.py -v
"""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from safespot.alerts.change_detector import find_new_nearby
from safespot.alerts.dispatcher import NotificationDispatcher
from safespot.alerts.models import (
    CRITICAL_TITLE,
    DEFAULT_TITLE,
    DeliveryAttempt,
    DeliveryStatus,
    HazardNotification,
    NotificationPriority,
)
from safespot.hazards.models import (
    Criticality,
    FeedSource,
    HazardRecord,
    HazardType,
    Location,
    Snapshot,
    UserLocation,
)

USER = UserLocation(37.3230, -122.0322)
NEAR = Location(37.4, -122.0)       # ~9 km
FAR = Location(34.05, -118.24)      # Los Angeles, ~490 km


def _make_hazard(
    hid: str,
    location: Optional[Location] = NEAR,
    hazard_type: HazardType = HazardType.EARTHQUAKE,
    label: str = "Magnitude 4.2 Earthquake",
) -> HazardRecord:
    source = FeedSource.SEISMIC if hazard_type == HazardType.EARTHQUAKE else FeedSource.WEATHER
    return HazardRecord(
        id=hid,
        type=hazard_type,
        source=source,
        location=location,
        event_label=label,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Detection
# ═══════════════════════════════════════════════════════════════════════════

class TestFindNewNearby:

    def test_only_unseen_and_nearby(self):
        previous = Snapshot(earthquakes=[_make_hazard("A"), _make_hazard("B", FAR)])
        fresh = [
            _make_hazard("A", NEAR),
            _make_hazard("B", FAR),
            _make_hazard("C", NEAR),
            _make_hazard("D", FAR),
        ]

        events = find_new_nearby(fresh, previous, USER)

        assert [e.hazard.id for e in events] == ["C"]
        assert events[0].distance_km == pytest.approx(9.02, abs=0.01)

    def test_seen_ids_span_both_feeds(self):
        previous = Snapshot(alerts=[_make_hazard("A", hazard_type=HazardType.FLOOD)])
        events = find_new_nearby([_make_hazard("A")], previous, USER)
        assert events == []

    def test_no_previous_snapshot_treats_all_as_new(self):
        events = find_new_nearby([_make_hazard("A"), _make_hazard("B")], None, USER)
        assert [e.hazard.id for e in events] == ["A", "B"]

    def test_no_user_location(self):
        assert find_new_nearby([_make_hazard("A")], None, None) == []

    def test_unlocated_hazard_is_skipped(self):
        assert find_new_nearby([_make_hazard("A", location=None)], None, USER) == []

    def test_same_snapshot_twice_yields_nothing(self):
        snapshot = Snapshot(earthquakes=[_make_hazard("A"), _make_hazard("C")])
        assert find_new_nearby(snapshot.all_hazards(), snapshot, USER) == []

    def test_radius_is_configurable(self):
        assert find_new_nearby([_make_hazard("A")], None, USER, radius_km=5.0) == []

    def test_criticality_tag(self):
        events = find_new_nearby(
            [_make_hazard("Q"), _make_hazard("F", hazard_type=HazardType.FLOOD, label="Flood Warning")],
            None,
            USER,
        )
        assert [e.criticality for e in events] == [Criticality.CRITICAL, Criticality.MODERATE]


# ═══════════════════════════════════════════════════════════════════════════
# Notification payload
# ═══════════════════════════════════════════════════════════════════════════

class TestHazardNotification:

    def test_critical_payload(self):
        note = HazardNotification(_make_hazard("Q"), Criticality.CRITICAL, 9.02)
        assert note.title == CRITICAL_TITLE == "CRITICAL ALERT"
        assert note.body == "Magnitude 4.2 Earthquake detected near your location"
        assert note.priority == NotificationPriority.HIGH

    def test_moderate_payload(self):
        note = HazardNotification(
            _make_hazard("F", hazard_type=HazardType.FLOOD, label="Flood Warning"),
            Criticality.MODERATE,
            3.0,
        )
        assert note.title == DEFAULT_TITLE == "SafeSpot Alert"
        assert note.priority == NotificationPriority.NORMAL
        assert note.to_dict()["hazard_id"] == "F"


# ═══════════════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════════════

class _RecordingChannel:
    name = "test"

    def __init__(self, fail_on: str = ""):
        self.sent = []
        self.fail_on = fail_on

    async def send(self, title, body, priority) -> DeliveryAttempt:
        if self.fail_on and self.fail_on in body:
            raise ConnectionError("push service unreachable")
        self.sent.append((title, body, priority))
        return DeliveryAttempt(channel=self.name, status=DeliveryStatus.DELIVERED)


class TestNotificationDispatcher:

    def test_default_channel_delivers(self):
        note = HazardNotification(_make_hazard("Q"), Criticality.CRITICAL, 9.0)
        attempts = asyncio.run(NotificationDispatcher().dispatch([note]))
        assert [a.status for a in attempts] == [DeliveryStatus.DELIVERED]
        assert attempts[0].hazard_id == "Q"
        assert attempts[0].channel == "push"

    def test_failure_is_recorded_and_batch_continues(self):
        channel = _RecordingChannel(fail_on="Flood")
        notes = [
            HazardNotification(
                _make_hazard("F", hazard_type=HazardType.FLOOD, label="Flood Warning"),
                Criticality.MODERATE, 2.0,
            ),
            HazardNotification(_make_hazard("Q"), Criticality.CRITICAL, 9.0),
        ]

        attempts = asyncio.run(NotificationDispatcher(channel).dispatch(notes))

        assert [a.status for a in attempts] == [DeliveryStatus.FAILED, DeliveryStatus.DELIVERED]
        assert attempts[0].error_message == "push service unreachable"
        assert attempts[0].hazard_id == "F"
        assert len(channel.sent) == 1

    def test_empty_batch(self):
        assert asyncio.run(NotificationDispatcher().dispatch([])) == []
