"""
FastAPI routes: hazard state exposed to the UI.

Provides endpoints to:
    GET    /api/v1/hazards            — current hazard sets
    GET    /api/v1/hazards/nearby     — scored hazards within the radius
    GET    /api/v1/status             — refresh state and connectivity
    POST   /api/v1/refresh            — user-initiated refresh
    PUT    /api/v1/location           — set user location
    DELETE /api/v1/location           — clear user location
    PUT    /api/v1/auto-refresh       — enable/disable polling
    GET    /api/v1/shelters           — shelters, nearest first when located
    GET    /api/v1/shelters/nearest   — the single nearest shelter
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from safespot.api.schemas import (
    AutoRefreshInput,
    HazardsResponse,
    LocationInput,
    NearbyHazardsResponse,
    RefreshResponse,
    ShelterOut,
    SheltersResponse,
    StatusResponse,
)
from safespot.core.errors import NotFoundError, RefreshInProgressError
from safespot.hazards.models import UserLocation
from safespot.spatial.geo_engine import format_distance
from safespot.state.context import AlertsContext

router = APIRouter(prefix="/api/v1", tags=["hazards"])


def _context(request: Request) -> AlertsContext:
    return request.app.state.context


def _status(ctx: AlertsContext) -> Dict[str, Any]:
    return {
        **ctx.store.status(),
        "refreshing": ctx.scheduler.is_refreshing,
        "retry_pending": ctx.scheduler.retry_pending,
        "periodic_running": ctx.scheduler.periodic_running,
    }


# ---------------------------------------------------------------------------
# Hazards
# ---------------------------------------------------------------------------

@router.get("/hazards", response_model=HazardsResponse)
async def list_hazards(request: Request):
    store = _context(request).store
    return {
        "earthquakes": [h.to_dict() for h in store.earthquakes],
        "alerts": [h.to_dict() for h in store.alerts],
        "last_updated": store.last_updated.isoformat() if store.last_updated else None,
        "connectivity": store.connectivity.value,
    }


@router.get("/hazards/nearby", response_model=NearbyHazardsResponse)
async def nearby_hazards(request: Request):
    """Hazards within the proximity radius, critical first."""
    store = _context(request).store
    nearby = store.get_nearby_hazards()
    return {
        "count": len(nearby),
        "radius_km": store.radius_km,
        "hazards": [n.to_dict() for n in nearby],
    }


# ---------------------------------------------------------------------------
# Refresh control
# ---------------------------------------------------------------------------

@router.get("/status", response_model=StatusResponse)
async def status(request: Request):
    return _status(_context(request))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(request: Request):
    """
    Run one refresh cycle now.

    A failed fetch is not an HTTP error: the response carries
    ``success=false``, the error message, and whether a retry is queued.
    """
    ctx = _context(request)
    if ctx.scheduler.is_refreshing:
        raise RefreshInProgressError()

    outcome = await ctx.scheduler.refresh(user_initiated=True)
    if outcome.skipped:
        raise RefreshInProgressError()

    return {
        "success": outcome.success,
        "error": outcome.error,
        "retry_scheduled": outcome.retry_scheduled,
        "notifications": [n.to_dict() for n in outcome.notifications],
        "status": _status(ctx),
    }


@router.put("/location", response_model=StatusResponse)
async def set_location(body: LocationInput, request: Request):
    ctx = _context(request)
    ctx.scheduler.set_user_location(
        UserLocation(body.latitude, body.longitude, body.altitude)
    )
    return _status(ctx)


@router.delete("/location", response_model=StatusResponse)
async def clear_location(request: Request):
    ctx = _context(request)
    ctx.scheduler.set_user_location(None)
    return _status(ctx)


@router.put("/auto-refresh", response_model=StatusResponse)
async def set_auto_refresh(body: AutoRefreshInput, request: Request):
    ctx = _context(request)
    ctx.scheduler.set_auto_refresh(body.enabled)
    return _status(ctx)


# ---------------------------------------------------------------------------
# Shelters
# ---------------------------------------------------------------------------

def _shelter_out(entry) -> Dict[str, Any]:
    data = entry.to_dict()
    data["distance_label"] = format_distance(entry.distance_km)
    return data


@router.get("/shelters", response_model=SheltersResponse)
async def list_shelters(request: Request):
    store = _context(request).store
    if store.user_location is None:
        shelters = [s.to_dict() for s in store.shelters]
    else:
        shelters = [_shelter_out(e) for e in store.shelters_by_distance()]
    return {"count": len(shelters), "shelters": shelters}


@router.get("/shelters/nearest", response_model=ShelterOut)
async def nearest_shelter(request: Request):
    store = _context(request).store
    found = store.nearest_shelter()
    if found is None:
        raise NotFoundError(
            "Shelter",
            reason="no location set" if store.user_location is None else "no shelters loaded",
        )
    return _shelter_out(found)
