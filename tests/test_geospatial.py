import math

import pytest

from hailcrm.models.domain import HailDamageZone, Location, Severity
from hailcrm.services.geospatial import (
    distance_km,
    haversine_km,
    is_in_hail_zone,
    zone_polygon_coordinates,
)


def test_haversine_one_degree_on_equator():
    expected = 6371.0 * math.pi / 180
    assert haversine_km(0, 0, 0, 1) == pytest.approx(expected)
    assert distance_km(Location(0, 0), Location(1, 0)) == pytest.approx(expected)


def test_haversine_is_zero_for_same_point():
    assert haversine_km(21.5, 39.2, 21.5, 39.2) == 0


def test_zone_membership_uses_radius_in_meters():
    zone = HailDamageZone(id="Z1", center=Location(0, 0), severity=Severity.HIGH, radius=1000)

    assert is_in_hail_zone(Location(0, 0.001), zone)  # ~111 m away
    assert not is_in_hail_zone(Location(0, 0.02), zone)  # ~2.2 km away


def test_zone_polygon_ring_surrounds_center():
    center = Location(32.7767, -96.797)
    ring = zone_polygon_coordinates(center, radius_km=2.0, points=16)

    assert len(ring) == 16
    for point in ring:
        assert distance_km(center, point) == pytest.approx(2.0, rel=0.02)


def test_zone_polygon_rejects_degenerate_ring():
    with pytest.raises(ValueError):
        zone_polygon_coordinates(Location(0, 0), 1.0, points=2)
