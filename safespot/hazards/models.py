"""
models.py — Data structures shared across the hazard pipeline.

All records are plain dataclasses with explicit to_dict()/from_dict() so
they can cross the JSON snapshot boundary and the HTTP surface unchanged.

Lifecycle:
    HazardRecord / Snapshot   — created fresh on every successful fetch cycle,
                                never merged; a new Snapshot wholly replaces
                                the previous one.
    ShelterRecord             — loaded once at start-up, never mutated.
    UserLocation              — supplied by the location provider, read-only
                                to the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class HazardType(str, Enum):
    """The six normalized hazard categories."""
    EARTHQUAKE = "earthquake"
    FLOOD      = "flood"
    WILDFIRE   = "wildfire"
    TORNADO    = "tornado"
    STORM      = "storm"
    OTHER      = "other"


class Criticality(str, Enum):
    """Coarse tier derived from hazard type (distinct from the 0–100 score)."""
    CRITICAL = "critical"
    MODERATE = "moderate"


class IntensityKind(str, Enum):
    """What the single magnitude_like number measures."""
    MAGNITUDE   = "magnitude"    # Richter-like, earthquakes
    WATER_DEPTH = "water_depth"  # metres, floods
    WIND_SPEED  = "wind_speed"   # mph, storms


class FeedSource(str, Enum):
    SEISMIC = "seismic"
    WEATHER = "weather"


class ConnectivityStatus(str, Enum):
    CONNECTED = "connected"
    OFFLINE   = "offline"


CRITICAL_TYPES = frozenset({HazardType.EARTHQUAKE, HazardType.WILDFIRE, HazardType.TORNADO})


def criticality_for(hazard_type: HazardType) -> Criticality:
    if hazard_type in CRITICAL_TYPES:
        return Criticality.CRITICAL
    return Criticality.MODERATE


# ═══════════════════════════════════════════════════════════════════════════
# Locations
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Location:
    """A geographic point in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(f"Latitude must be in [-90, 90], got {self.latitude}")
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(f"Longitude must be in [-180, 180], got {self.longitude}")

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class UserLocation:
    """The user's position. Altitude defaults to 0 m when unknown."""
    latitude: float
    longitude: float
    altitude: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Hazards
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class HazardRecord:
    """
    A single seismic or weather hazard, normalized.

    Attributes
    ----------
    id : str
        Source identifier, stable across polls for the same physical event.
    type : HazardType
        Always one of the six categories (OTHER when nothing matched).
    location : Location | None
        Point location, or centroid of the alert area. None when the
        geometry could not be resolved; such hazards are never "nearby".
    event_label : str
        Human description ("Magnitude 4.2 Earthquake", "Flood Warning").
    magnitude_like : float | None
        Source-specific intensity, interpreted through ``intensity_kind``.
    severity : int | None
        0–100 score, filled by the severity scorer for a given viewer.
    """
    id: str
    type: HazardType
    source: FeedSource
    location: Optional[Location] = None
    raw_geometry: Optional[Dict[str, Any]] = None
    event_label: str = ""
    magnitude_like: Optional[float] = None
    intensity_kind: Optional[IntensityKind] = None
    observed_at: Optional[str] = None    # ISO-8601
    effective_at: Optional[str] = None   # ISO-8601, weather alerts
    ends_at: Optional[str] = None        # ISO-8601, weather alerts
    severity: Optional[int] = None

    @property
    def criticality(self) -> Criticality:
        return criticality_for(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "source": self.source.value,
            "location": self.location.to_dict() if self.location else None,
            "raw_geometry": self.raw_geometry,
            "event_label": self.event_label,
            "magnitude_like": self.magnitude_like,
            "intensity_kind": self.intensity_kind.value if self.intensity_kind else None,
            "observed_at": self.observed_at,
            "effective_at": self.effective_at,
            "ends_at": self.ends_at,
            "severity": self.severity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HazardRecord":
        loc = data.get("location")
        kind = data.get("intensity_kind")
        return cls(
            id=str(data["id"]),
            type=HazardType(data.get("type", HazardType.OTHER.value)),
            source=FeedSource(data["source"]),
            location=Location(loc["latitude"], loc["longitude"]) if loc else None,
            raw_geometry=data.get("raw_geometry"),
            event_label=data.get("event_label", ""),
            magnitude_like=data.get("magnitude_like"),
            intensity_kind=IntensityKind(kind) if kind else None,
            observed_at=data.get("observed_at"),
            effective_at=data.get("effective_at"),
            ends_at=data.get("ends_at"),
            severity=data.get("severity"),
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Snapshot:
    """
    The complete hazard set from one successful fetch cycle.

    Only one Snapshot is retained at a time; there is no history.
    """
    earthquakes: List[HazardRecord] = field(default_factory=list)
    alerts: List[HazardRecord] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=_utc_now)

    @property
    def hazard_ids(self) -> frozenset:
        """Combined id set across both feeds."""
        return frozenset(h.id for h in self.earthquakes) | frozenset(h.id for h in self.alerts)

    def all_hazards(self) -> List[HazardRecord]:
        return [*self.earthquakes, *self.alerts]


# ═══════════════════════════════════════════════════════════════════════════
# Shelters
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ShelterRecord:
    """Static emergency-shelter reference data."""
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
    capacity: int
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "capacity": self.capacity,
            "type": self.type,
        }


@dataclass(frozen=True)
class NearestShelter:
    """A shelter paired with its distance from the user."""
    shelter: ShelterRecord
    distance_km: float

    def to_dict(self) -> Dict[str, Any]:
        return {**self.shelter.to_dict(), "distance_km": self.distance_km}
