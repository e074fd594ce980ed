"""
test_geo_engine.py — Distance, centroid, proximity and nearest-shelter tests.

Run with:
    pytest tests/test_geo_engine.py -v
"""

from __future__ import annotations

import pytest

from safespot.hazards.models import Location, ShelterRecord, UserLocation
from safespot.spatial.geo_engine import (
    centroid,
    distance,
    format_distance,
    is_nearby,
    nearest,
    sort_by_distance,
)


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

# Cupertino (37.3230°N, 122.0322°W)
USER = UserLocation(37.3230, -122.0322)


def _make_shelter(sid: str, lat: float, lon: float) -> ShelterRecord:
    return ShelterRecord(
        id=sid,
        name=f"Shelter {sid}",
        address="",
        latitude=lat,
        longitude=lon,
        capacity=100,
        type="Community Center",
    )


# ═══════════════════════════════════════════════════════════════════════════
# Distance
# ═══════════════════════════════════════════════════════════════════════════

class TestDistance:

    def test_identical_points_are_zero(self):
        assert distance(Location(10.0, 20.0), Location(10.0, 20.0)) == 0.0

    def test_symmetric(self):
        a, b = Location(37.3230, -122.0322), Location(40.7128, -74.0060)
        assert distance(a, b) == pytest.approx(distance(b, a))

    def test_known_value(self):
        d = distance(Location(37.3230, -122.0322), Location(37.4, -122.0))
        assert d == pytest.approx(9.02, abs=0.01)

    def test_one_degree_latitude(self):
        assert distance(Location(0, 0), Location(1, 0)) == pytest.approx(111.19, abs=0.01)

    def test_antipodes_do_not_raise(self):
        d = distance(Location(90, 0), Location(-90, 0))
        assert d == pytest.approx(20015.09, abs=0.1)

    def test_accepts_any_lat_lon_object(self):
        shelter = _make_shelter("S", 37.3230, -122.0322)
        assert distance(USER, shelter) == pytest.approx(0.0)


# ═══════════════════════════════════════════════════════════════════════════
# Centroid
# ═══════════════════════════════════════════════════════════════════════════

class TestCentroid:

    def test_point_swaps_to_lat_lon(self):
        loc = centroid({"type": "Point", "coordinates": [-122.0, 37.4, 8.5]})
        assert loc == Location(37.4, -122.0)

    def test_polygon_is_vertex_mean_of_outer_ring(self):
        ring = [[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0]]
        loc = centroid({"type": "Polygon", "coordinates": [ring]})
        assert loc.latitude == pytest.approx(1.0)
        assert loc.longitude == pytest.approx(1.0)

    def test_polygon_ignores_holes(self):
        outer = [[0.0, 0.0], [4.0, 0.0], [4.0, 4.0], [0.0, 4.0]]
        hole = [[3.0, 3.0], [3.5, 3.0], [3.5, 3.5]]
        loc = centroid({"type": "Polygon", "coordinates": [outer, hole]})
        assert loc.latitude == pytest.approx(2.0)

    def test_multipolygon_uses_first_polygon(self):
        first = [[[0.0, 10.0], [2.0, 10.0], [2.0, 12.0], [0.0, 12.0]]]
        second = [[[50.0, 50.0], [51.0, 50.0], [51.0, 51.0]]]
        loc = centroid({"type": "MultiPolygon", "coordinates": [first, second]})
        assert loc == Location(11.0, 1.0)

    @pytest.mark.parametrize("geometry", [
        None,
        {},
        {"type": "Point", "coordinates": []},
        {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
        {"type": "Polygon", "coordinates": [[]]},
        {"type": "Point", "coordinates": ["x", "y"]},
        {"type": "Point", "coordinates": [10.0, 95.0]},
        {"type": "Point", "coordinates": [-181.0, 0.0]},
        {"type": "Polygon", "coordinates": [[[0.0, 100.0], [1.0, 100.0], [1.0, 101.0]]]},
    ])
    def test_unresolvable_geometry_is_none(self, geometry):
        assert centroid(geometry) is None


# ═══════════════════════════════════════════════════════════════════════════
# Proximity + nearest
# ═══════════════════════════════════════════════════════════════════════════

class TestIsNearby:

    def test_inside_radius(self):
        assert is_nearby(USER, Location(37.4, -122.0), 50.0)

    def test_boundary_is_inclusive(self):
        target = Location(37.4, -122.0)
        assert is_nearby(USER, target, distance(USER, target))

    def test_outside_radius(self):
        assert not is_nearby(USER, Location(34.05, -118.24), 50.0)

    def test_missing_side_is_never_nearby(self):
        assert not is_nearby(None, Location(37.4, -122.0), 50.0)
        assert not is_nearby(USER, None, 50.0)


class TestNearest:

    def test_picks_closest(self):
        shelters = [
            _make_shelter("far", 37.80, -122.40),
            _make_shelter("near", 37.33, -122.03),
            _make_shelter("mid", 37.40, -122.00),
        ]
        assert nearest(USER, shelters).shelter.id == "near"

    def test_first_wins_on_tie(self):
        shelters = [_make_shelter("a", 37.4, -122.0), _make_shelter("b", 37.4, -122.0)]
        assert nearest(USER, shelters).shelter.id == "a"

    def test_no_user_or_empty_set(self):
        assert nearest(None, [_make_shelter("a", 0, 0)]) is None
        assert nearest(USER, []) is None

    def test_sort_by_distance(self):
        shelters = [
            _make_shelter("far", 37.80, -122.40),
            _make_shelter("near", 37.33, -122.03),
        ]
        ranked = sort_by_distance(USER, shelters)
        assert [r.shelter.id for r in ranked] == ["near", "far"]
        assert ranked[0].distance_km < ranked[1].distance_km


class TestFormatDistance:

    def test_metres_below_one_km(self):
        assert format_distance(0.45) == "450 m"

    def test_kilometres(self):
        assert format_distance(9.0227) == "9.02 km"
