"""
change_detector.py — Find hazards that are both new and near the user.

A hazard is:
    new          iff its id is absent from the previous snapshot's combined
                 (earthquakes + alerts) id set
    notifiable   iff new AND within radius_km of the user

Hazards whose location could not be resolved are never notifiable, and
nothing is notifiable while the user location is unknown.

The previous snapshot must be the *persisted* one, read before this cycle
writes its own snapshot; the refresh scheduler enforces that ordering.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from safespot.alerts.models import HazardNotification
from safespot.hazards.models import HazardRecord, Snapshot, UserLocation
from safespot.spatial.geo_engine import distance

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 50.0


def find_new_nearby(
    new_hazards: Iterable[HazardRecord],
    previous_snapshot: Optional[Snapshot],
    user_location: Optional[UserLocation],
    radius_km: float = DEFAULT_RADIUS_KM,
) -> List[HazardNotification]:
    """
    Notification events for new hazards within ``radius_km`` of the user.

    Parameters
    ----------
    new_hazards : iterable of HazardRecord
        Every hazard from the freshly fetched snapshot, both feeds.
    previous_snapshot : Snapshot | None
        The persisted snapshot from the last successful cycle. None means
        no cache, so every hazard counts as new.
    user_location : UserLocation | None
    radius_km : float
        Inclusive proximity radius.

    Returns
    -------
    list of HazardNotification
        In input order, each tagged with its criticality.
    """
    if user_location is None:
        return []

    seen = previous_snapshot.hazard_ids if previous_snapshot else frozenset()
    events: List[HazardNotification] = []

    for hazard in new_hazards:
        if hazard.id in seen or hazard.location is None:
            continue
        d = distance(user_location, hazard.location)
        if d <= radius_km:
            events.append(
                HazardNotification(
                    hazard=hazard,
                    criticality=hazard.criticality,
                    distance_km=d,
                )
            )

    if events:
        logger.info(
            "%d new hazard(s) within %.0f km",
            len(events), radius_km,
            extra={"notification_count": len(events)},
        )
    return events
