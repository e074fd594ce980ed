"""
geo_engine.py — Pure geospatial math for hazard proximity.

Provides:
    - Haversine distance between two (lat, lon) points
    - Centroid extraction from GeoJSON Point / Polygon / MultiPolygon
    - Inclusive radius test (is a hazard inside the user's radius?)
    - Nearest-of-set search for emergency shelters

All distances are in **kilometers**. Coordinates are in **decimal degrees**.
GeoJSON coordinates arrive in (lon, lat) order; everything returned here is
(latitude, longitude).

Mathematical Foundation — Haversine Formula
============================================
Given two points P₁(φ₁, λ₁) and P₂(φ₂, λ₂):

    a = sin²(Δφ / 2) + cos(φ₁) · cos(φ₂) · sin²(Δλ / 2)
    c = 2 · atan2(√a, √(1 − a))
    d = R · c

with R = 6,371 km. The result is symmetric and zero for identical points.

Centroid approximation
======================
Polygon centroids are the arithmetic mean of the outer ring's vertices,
not the area-weighted centroid. For non-convex rings the point can fall
outside the polygon. MultiPolygons use only their first polygon's outer
ring. Both approximations are good enough for a 50 km proximity test.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from safespot.hazards.models import Location, NearestShelter, ShelterRecord


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EARTH_RADIUS_KM: float = 6_371.0


class GeoPoint(Protocol):
    latitude: float
    longitude: float


# ---------------------------------------------------------------------------
# Haversine implementation
# ---------------------------------------------------------------------------

def distance(a: GeoPoint, b: GeoPoint) -> float:
    """
    Great-circle distance between two points, in kilometers.

    Examples
    --------
    >>> round(distance(Location(37.3230, -122.0322), Location(37.4, -122.0)), 2)
    9.02
    >>> distance(Location(0, 0), Location(0, 0))
    0.0
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2.0) ** 2
    )
    # rounding noise can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))

    c = 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))
    return EARTH_RADIUS_KM * c


# ---------------------------------------------------------------------------
# Centroids
# ---------------------------------------------------------------------------

def _ring_mean(ring: Sequence[Sequence[float]]) -> Optional[Location]:
    if not ring:
        return None
    lon_sum = 0.0
    lat_sum = 0.0
    for vertex in ring:
        lon_sum += float(vertex[0])
        lat_sum += float(vertex[1])
    n = len(ring)
    return _location(lat_sum / n, lon_sum / n)


def _location(lat: float, lon: float) -> Optional[Location]:
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return Location(latitude=lat, longitude=lon)


def centroid(geometry: Optional[Dict[str, Any]]) -> Optional[Location]:
    """
    Representative point of a GeoJSON geometry.

    Point         → the point itself
    Polygon       → vertex mean of the outer ring
    MultiPolygon  → vertex mean of the first polygon's outer ring
    anything else → None

    Missing, empty or non-numeric coordinates yield None, as does a
    point outside the latitude/longitude range.
    """
    if not geometry or not geometry.get("coordinates"):
        return None

    kind = geometry.get("type")
    coords = geometry["coordinates"]

    try:
        if kind == "Point":
            return _location(float(coords[1]), float(coords[0]))
        if kind == "Polygon":
            return _ring_mean(coords[0])
        if kind == "MultiPolygon":
            return _ring_mean(coords[0][0])
    except (IndexError, TypeError, ValueError):
        return None

    return None


# ---------------------------------------------------------------------------
# Proximity
# ---------------------------------------------------------------------------

def is_nearby(
    user: Optional[GeoPoint],
    target: Optional[GeoPoint],
    radius_km: float,
) -> bool:
    """
    True iff ``distance(user, target) <= radius_km``. The boundary is inclusive.

    Unknown user or target locations are never nearby.
    """
    if user is None or target is None:
        return False
    return distance(user, target) <= radius_km


def nearest(
    user: Optional[GeoPoint],
    shelters: Iterable[ShelterRecord],
) -> Optional[NearestShelter]:
    """
    Linear scan for the closest shelter.

    Returns None if the user location is unknown or the set is empty.
    Ties go to the first shelter encountered in input order.
    """
    if user is None:
        return None

    best: Optional[NearestShelter] = None
    for shelter in shelters:
        d = distance(user, shelter)
        if best is None or d < best.distance_km:
            best = NearestShelter(shelter=shelter, distance_km=d)
    return best


def sort_by_distance(
    user: GeoPoint,
    shelters: Iterable[ShelterRecord],
) -> List[NearestShelter]:
    """All shelters paired with their distance, closest first (stable)."""
    ranked = [NearestShelter(shelter=s, distance_km=distance(user, s)) for s in shelters]
    ranked.sort(key=lambda r: r.distance_km)
    return ranked


# ---------------------------------------------------------------------------
# Utility: Human-readable distance
# ---------------------------------------------------------------------------

def format_distance(km: float) -> str:
    """
    Format a distance for display.

    >>> format_distance(0.45)
    '450 m'
    >>> format_distance(9.0227)
    '9.02 km'
    """
    if km < 1.0:
        return f"{int(km * 1000)} m"
    return f"{km:.2f} km"
