"""
alerts_store.py — Aggregate hazard state and its refresh state machine.

═══════════════════════════════════════════════════════════════════════════
STATE MACHINE
═══════════════════════════════════════════════════════════════════════════

            begin_refresh                commit_snapshot
    IDLE ─────────────────► LOADING ─────────────────► SUCCESS ──► IDLE
     ▲                         │
     │                         │ record_failure
     │                         ▼
     │                       ERROR ──(no retry)──────────────────► IDLE
     │                         │
     │                         │ (retry scheduled)
     │     cancel_retry        ▼                  (LOADING ──abort_refresh──► IDLE)
     └──────────────────── RETRY_PENDING ──begin_refresh──► LOADING

Only the refresh completion path writes hazard state (single writer);
everything else reads. A failed refresh keeps the previous hazard sets
visible (stale-while-error) and flips connectivity to offline.

The nearby-hazards view is derived on every call, never stored: proximity
filter (fixed radius) → severity score → sort critical-first, then by
hazard type name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence

from safespot.core.errors import InvalidStateTransitionError
from safespot.hazards.models import (
    ConnectivityStatus,
    Criticality,
    HazardRecord,
    NearestShelter,
    ShelterRecord,
    Snapshot,
    UserLocation,
)
from safespot.ml.severity_model import SeverityFeatures, SeverityScorer
from safespot.spatial.geo_engine import distance, format_distance, nearest, sort_by_distance

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE          = "idle"
    LOADING       = "loading"
    SUCCESS       = "success"
    ERROR         = "error"
    RETRY_PENDING = "retry_pending"


_TRANSITIONS: Mapping[RefreshState, FrozenSet[RefreshState]] = {
    RefreshState.IDLE:          frozenset({RefreshState.LOADING}),
    RefreshState.LOADING:       frozenset({RefreshState.SUCCESS, RefreshState.ERROR, RefreshState.IDLE}),
    RefreshState.SUCCESS:       frozenset({RefreshState.IDLE}),
    RefreshState.ERROR:         frozenset({RefreshState.RETRY_PENDING, RefreshState.IDLE}),
    RefreshState.RETRY_PENDING: frozenset({RefreshState.LOADING, RefreshState.IDLE}),
}


@dataclass(frozen=True)
class NearbyHazard:
    """One entry of the derived nearby view."""
    hazard: HazardRecord  # severity filled in
    criticality: Criticality
    distance_km: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.hazard.to_dict(),
            "criticality": self.criticality.value,
            "distance_km": round(self.distance_km, 3),
            "distance_label": format_distance(self.distance_km),
        }


class AlertsStore:
    """
    Current hazards, user location, connectivity and refresh status.

    Usage:
        store = AlertsStore(SeverityScorer(), shelters)
        store.set_user_location(UserLocation(37.32, -122.03))
        store.begin_refresh(user_initiated=True)
        store.commit_snapshot(snapshot)
        store.get_nearby_hazards()
    """

    def __init__(
        self,
        scorer: SeverityScorer,
        shelters: Sequence[ShelterRecord] = (),
        *,
        radius_km: float = 50.0,
        auto_refresh_enabled: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.scorer = scorer
        self.shelters = tuple(shelters)
        self.radius_km = radius_km
        self._clock = clock

        self.earthquakes: List[HazardRecord] = []
        self.alerts: List[HazardRecord] = []
        self.last_updated: Optional[datetime] = None
        self.user_location: Optional[UserLocation] = None
        self.auto_refresh_enabled = auto_refresh_enabled
        self.connectivity = ConnectivityStatus.CONNECTED
        self.loading = False  # user-visible spinner; silent refreshes leave it off
        self.error: Optional[str] = None
        self._state = RefreshState.IDLE

    # ── State machine ──

    @property
    def state(self) -> RefreshState:
        return self._state

    def _transition(self, target: RefreshState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidStateTransitionError(self._state.value, target.value)
        logger.debug("Refresh state %s → %s", self._state.value, target.value)
        self._state = target

    def begin_refresh(self, user_initiated: bool) -> None:
        self._transition(RefreshState.LOADING)
        self.loading = user_initiated
        self.error = None

    def commit_snapshot(self, snapshot: Snapshot) -> None:
        """Replace (never merge) the hazard sets with a fresh snapshot."""
        self._transition(RefreshState.SUCCESS)
        self.earthquakes = list(snapshot.earthquakes)
        self.alerts = list(snapshot.alerts)
        self.last_updated = snapshot.fetched_at
        self.connectivity = ConnectivityStatus.CONNECTED
        self.loading = False
        self.error = None
        self._transition(RefreshState.IDLE)

    def record_failure(self, message: str, *, retry_scheduled: bool) -> None:
        """Go offline; previous hazard sets stay visible."""
        self._transition(RefreshState.ERROR)
        self.connectivity = ConnectivityStatus.OFFLINE
        self.loading = False
        self.error = message
        self._transition(
            RefreshState.RETRY_PENDING if retry_scheduled else RefreshState.IDLE
        )

    def abort_refresh(self) -> None:
        """Abandon an in-flight refresh (caller cancelled); hazard state is untouched."""
        if self._state == RefreshState.LOADING:
            self.loading = False
            self._transition(RefreshState.IDLE)

    def cancel_retry(self) -> None:
        if self._state == RefreshState.RETRY_PENDING:
            self._transition(RefreshState.IDLE)

    def load_cached(self, snapshot: Snapshot) -> None:
        """
        Seed state from the persisted snapshot at start-up.

        Cached data is shown as offline until a live fetch succeeds.
        """
        self.earthquakes = list(snapshot.earthquakes)
        self.alerts = list(snapshot.alerts)
        self.last_updated = snapshot.fetched_at
        self.connectivity = ConnectivityStatus.OFFLINE
        logger.info(
            "Restored cached snapshot from %s (%d earthquakes, %d alerts)",
            snapshot.fetched_at.isoformat(), len(snapshot.earthquakes), len(snapshot.alerts),
        )

    # ── External inputs ──

    def set_user_location(self, location: Optional[UserLocation]) -> None:
        self.user_location = location

    def set_auto_refresh(self, enabled: bool) -> None:
        self.auto_refresh_enabled = enabled

    # ── Derived views ──

    def get_nearby_hazards(self, now: Optional[datetime] = None) -> List[NearbyHazard]:
        """
        Hazards within the proximity radius, scored and sorted.

        Order: critical before moderate, then hazard type name (A→Z);
        the sort is stable, so feed order breaks remaining ties.
        """
        user = self.user_location
        if user is None:
            return []

        hour = (now or self._clock()).hour
        nearby: List[NearbyHazard] = []

        for hazard in [*self.earthquakes, *self.alerts]:
            if hazard.location is None:
                continue
            d = distance(user, hazard.location)
            if d > self.radius_km:
                continue
            severity = self.scorer.score(
                SeverityFeatures(
                    distance_km=d,
                    hazard_type=hazard.type,
                    magnitude_like=hazard.magnitude_like or 0.0,
                    elevation_m=user.altitude,
                    hour_of_day=hour,
                )
            )
            nearby.append(
                NearbyHazard(
                    hazard=replace(hazard, severity=severity),
                    criticality=hazard.criticality,
                    distance_km=d,
                )
            )

        nearby.sort(
            key=lambda n: (n.criticality != Criticality.CRITICAL, n.hazard.type.value)
        )
        return nearby

    def nearest_shelter(self) -> Optional[NearestShelter]:
        return nearest(self.user_location, self.shelters)

    def shelters_by_distance(self) -> List[NearestShelter]:
        if self.user_location is None:
            return []
        return sort_by_distance(self.user_location, self.shelters)

    def status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "connectivity": self.connectivity.value,
            "loading": self.loading,
            "error": self.error,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "auto_refresh_enabled": self.auto_refresh_enabled,
            "has_location": self.user_location is not None,
            "earthquake_count": len(self.earthquakes),
            "alert_count": len(self.alerts),
        }
