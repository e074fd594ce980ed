"""
Pydantic schemas for the local hazard API.

Separated from the route handlers so tests and other callers can build
and validate payloads without importing FastAPI routing.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LocationInput(BaseModel):
    """User position from the device location provider."""
    latitude: float = Field(
        ..., ge=-90.0, le=90.0,
        description="Latitude in decimal degrees",
        examples=[37.3230],
    )
    longitude: float = Field(
        ..., ge=-180.0, le=180.0,
        description="Longitude in decimal degrees",
        examples=[-122.0322],
    )
    altitude: float = Field(
        default=0.0,
        description="Metres above sea level; feeds the elevation term of the severity score",
        examples=[72.0],
    )


class AutoRefreshInput(BaseModel):
    enabled: bool = Field(..., description="Poll the feeds every refresh interval")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class LocationOut(BaseModel):
    latitude: float
    longitude: float


class HazardOut(BaseModel):
    id: str
    type: str
    source: str
    location: Optional[LocationOut] = None
    raw_geometry: Optional[Dict[str, Any]] = None
    event_label: str = ""
    magnitude_like: Optional[float] = None
    intensity_kind: Optional[str] = None
    observed_at: Optional[str] = None
    effective_at: Optional[str] = None
    ends_at: Optional[str] = None
    severity: Optional[int] = Field(None, ge=0, le=100)


class NearbyHazardOut(HazardOut):
    criticality: str = Field(..., examples=["critical"])
    distance_km: float
    distance_label: str = Field(..., examples=["9.02 km"])


class HazardsResponse(BaseModel):
    earthquakes: List[HazardOut]
    alerts: List[HazardOut]
    last_updated: Optional[str] = None
    connectivity: str


class NearbyHazardsResponse(BaseModel):
    count: int
    radius_km: float
    hazards: List[NearbyHazardOut]


class StatusResponse(BaseModel):
    state: str
    connectivity: str
    loading: bool
    error: Optional[str] = None
    last_updated: Optional[str] = None
    auto_refresh_enabled: bool
    has_location: bool
    earthquake_count: int
    alert_count: int
    refreshing: bool
    retry_pending: bool
    periodic_running: bool


class NotificationOut(BaseModel):
    hazard_id: str
    type: str
    criticality: str
    distance_km: float
    title: str
    body: str
    priority: str


class RefreshResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    retry_scheduled: bool = False
    notifications: List[NotificationOut] = []
    status: StatusResponse


class ShelterOut(BaseModel):
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
    capacity: int
    type: str
    distance_km: Optional[float] = None
    distance_label: Optional[str] = None


class SheltersResponse(BaseModel):
    count: int
    shelters: List[ShelterOut]
