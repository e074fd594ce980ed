"""
classifier.py — Normalize raw seismic / weather feed records into HazardRecords.

Input shapes
============
Seismic (USGS GeoJSON summary feed):
    {"id": "nc7300", "geometry": {"type": "Point", "coordinates": [lon, lat, depth]},
     "properties": {"mag": 4.2, "time": 1718000000000, "place": "...", "type": "earthquake"}}

Weather (NWS CAP alerts, GeoJSON):
    {"id": "urn:oid:...", "geometry": {"type": "Polygon", ...} | null,
     "properties": {"event": "Flood Warning", "effective": "...", "ends": "...",
                    "parameters": {"maxWindGust": ["60 MPH"], ...}}}

Classification policy (first match wins, fixed order)
=====================================================
    1. explicit seismic source tag      → earthquake
    2. event text contains flood words  → flood
    3.                     fire words   → wildfire
    4.                     tornado words→ tornado
    5.                     storm words  → storm
    6. otherwise                        → other

The order matters: "Flood and High Wind Warning" is a flood, not a storm.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from safespot.hazards.models import (
    FeedSource,
    HazardRecord,
    HazardType,
    IntensityKind,
)
from safespot.spatial.geo_engine import centroid

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Keyword rules, evaluated strictly in this order
# ---------------------------------------------------------------------------

KEYWORD_RULES: Tuple[Tuple[HazardType, Tuple[str, ...]], ...] = (
    (HazardType.FLOOD,    ("flood", "flash flood", "river flood", "coastal flood")),
    (HazardType.WILDFIRE, ("fire", "red flag", "extreme fire")),
    (HazardType.TORNADO,  ("tornado", "funnel cloud")),
    (HazardType.STORM,    ("thunderstorm", "severe weather", "wind", "hail", "storm")),
)

# NWS parameter names that carry a wind speed ("60 MPH")
_WIND_PARAMETERS = ("maxWindGust", "windGust", "windSpeed")

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def _is_seismic(properties: Dict[str, Any], source: Optional[FeedSource]) -> bool:
    if source == FeedSource.SEISMIC:
        return True
    return str(properties.get("type") or "").lower() == "earthquake"


def classify_type(
    properties: Dict[str, Any],
    source: Optional[FeedSource] = None,
) -> HazardType:
    """Resolve the hazard category for a raw record's properties."""
    if _is_seismic(properties, source):
        return HazardType.EARTHQUAKE

    event = str(properties.get("event") or "").lower()
    for hazard_type, keywords in KEYWORD_RULES:
        if any(k in event for k in keywords):
            return hazard_type
    return HazardType.OTHER


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _epoch_ms_to_iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _first_number(values: Any) -> Optional[float]:
    """'60 MPH' / ['60 MPH'] / 60 → 60.0"""
    if values is None:
        return None
    if isinstance(values, (int, float)):
        return float(values)
    if isinstance(values, (list, tuple)):
        values = values[0] if values else None
        if values is None:
            return None
    match = _NUMBER_RE.search(str(values))
    return float(match.group()) if match else None


def _weather_intensity(
    properties: Dict[str, Any],
    hazard_type: HazardType,
) -> Tuple[Optional[float], Optional[IntensityKind]]:
    parameters = properties.get("parameters") or {}
    if hazard_type == HazardType.STORM:
        for name in _WIND_PARAMETERS:
            speed = _first_number(parameters.get(name))
            if speed is not None:
                return speed, IntensityKind.WIND_SPEED
    if hazard_type == HazardType.FLOOD:
        depth = _first_number(parameters.get("waterDepth"))
        if depth is not None:
            return depth, IntensityKind.WATER_DEPTH
    return None, None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def classify(
    raw: Dict[str, Any],
    source: Optional[FeedSource] = None,
) -> HazardRecord:
    """
    Map one raw feed record into a normalized HazardRecord.

    Parameters
    ----------
    raw : dict
        A GeoJSON feature from either feed.
    source : FeedSource | None
        The feed the record came from. SEISMIC forces the earthquake category;
        without it, ``properties.type == "earthquake"`` is the seismic tag.

    Raises
    ------
    ValueError
        If the record has no identifier (identity diffing needs one).
    """
    record_id = raw.get("id")
    if record_id in (None, ""):
        raise ValueError("Hazard record has no id")

    properties = raw.get("properties") or {}
    geometry = raw.get("geometry")
    hazard_type = classify_type(properties, source)

    if hazard_type == HazardType.EARTHQUAKE:
        mag = properties.get("mag")
        magnitude = float(mag) if isinstance(mag, (int, float)) else None
        return HazardRecord(
            id=str(record_id),
            type=hazard_type,
            source=FeedSource.SEISMIC,
            location=centroid(geometry),
            raw_geometry=geometry,
            event_label=f"Magnitude {mag} Earthquake",
            magnitude_like=magnitude,
            intensity_kind=IntensityKind.MAGNITUDE if magnitude is not None else None,
            observed_at=_epoch_ms_to_iso(properties.get("time")),
        )

    magnitude, kind = _weather_intensity(properties, hazard_type)
    return HazardRecord(
        id=str(record_id),
        type=hazard_type,
        source=source or FeedSource.WEATHER,
        location=centroid(geometry),
        raw_geometry=geometry,
        event_label=str(properties.get("event") or properties.get("headline") or ""),
        magnitude_like=magnitude,
        intensity_kind=kind,
        observed_at=properties.get("sent") or properties.get("effective"),
        effective_at=properties.get("effective"),
        ends_at=properties.get("ends"),
    )


def classify_feed(
    features: Iterable[Dict[str, Any]],
    source: FeedSource,
) -> List[HazardRecord]:
    """
    Classify every feature of one feed, skipping records without an id.

    A record that cannot be identified cannot be diffed across polls, so it
    is dropped with a warning rather than failing the whole feed.
    """
    records: List[HazardRecord] = []
    skipped = 0
    for feature in features:
        try:
            records.append(classify(feature, source))
        except (ValueError, TypeError, AttributeError) as exc:
            skipped += 1
            logger.warning("Skipping %s record: %s", source.value, exc)
    if skipped:
        logger.info(
            "Classified %d %s records (%d skipped)",
            len(records), source.value, skipped,
            extra={"source": source.value},
        )
    return records
