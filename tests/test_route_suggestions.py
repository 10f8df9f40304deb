import math
from datetime import datetime, timezone

import pytest

from hailcrm.models.domain import HailDamageZone, Lead, Location, Severity
from hailcrm.services.routing.solver import estimate_minutes, nearest_neighbor_order, route_distance_km
from hailcrm.services.routing.suggestions import generate_route_suggestions

NOW = datetime(2026, 5, 1, 15, 30, tzinfo=timezone.utc)
STAMP = int(NOW.timestamp() * 1000)


def _lead(lid: str, lat: float, lng: float, canvassed: bool = False) -> Lead:
    return Lead(
        id=lid,
        name=f"Lead {lid}",
        address=f"{lid} Main St",
        location=Location(lat=lat, lng=lng),
        status="new",
        canvassed=canvassed,
    )


def _zone(zid: str, lat: float, lng: float, severity: Severity, radius: float = 1000.0) -> HailDamageZone:
    return HailDamageZone(id=zid, center=Location(lat=lat, lng=lng), severity=severity, radius=radius)


def test_nearest_neighbor_visits_closest_first():
    leads = [_lead("A", 0, 1), _lead("B", 0, 5), _lead("C", 0, 2)]

    ordered = nearest_neighbor_order(Location(0, 0), leads)

    assert [lead.id for lead in ordered] == ["A", "C", "B"]


def test_nearest_neighbor_breaks_ties_by_input_order():
    leads = [_lead("east", 0, 1), _lead("west", 0, -1)]

    assert [lead.id for lead in nearest_neighbor_order(Location(0, 0), leads)] == ["east", "west"]
    assert [lead.id for lead in nearest_neighbor_order(Location(0, 0), leads[::-1])] == ["west", "east"]


def test_route_metrics():
    points = [Location(0, 0), Location(0, 1), Location(0, 2)]
    distance = route_distance_km(points)

    assert distance == pytest.approx(2 * 6371.0 * math.pi / 180)
    assert estimate_minutes(distance, 2) == 697
    assert estimate_minutes(2.5, 0) == 8  # 7.5 rounds up
    assert route_distance_km([Location(0, 0)]) == 0


def test_high_severity_route_before_proximity_route():
    position = Location(0, 0)
    leads = [_lead("L1", 0, 0.01), _lead("L2", 0, 0.012)]
    zones = [_zone("Z1", 0, 0.01, Severity.HIGH, radius=2000)]

    routes = generate_route_suggestions(position, leads, zones, now=NOW)

    assert [route.priority for route in routes] == [10, 5]
    high, nearby = routes
    assert high.id == f"high-severity-{STAMP}"
    assert high.name == "High Priority - Severe Damage Zones"
    assert [lead.id for lead in high.leads] == ["L1", "L2"]
    assert high.hail_zones == zones
    assert high.potential_leads == 2
    assert nearby.id == f"nearby-{STAMP}"
    assert nearby.hail_zones == []


def test_all_three_strategies_sorted_by_priority():
    position = Location(0, 0)
    leads = [
        _lead("near", 0, 0.02),
        _lead("medium", 0.3, 0.3),
        _lead("high", -0.3, -0.3),
    ]
    zones = [
        _zone("M", 0.3, 0.3, Severity.MEDIUM, radius=500),
        _zone("H", -0.3, -0.3, Severity.HIGH, radius=500),
    ]

    routes = generate_route_suggestions(position, leads, zones, now=NOW)

    assert [route.priority for route in routes] == [10, 7, 5]
    assert [[lead.id for lead in route.leads] for route in routes] == [["high"], ["medium"], ["near"]]
    assert routes[1].name == "Medium Priority - Moderate Damage Zones"


def test_canvassed_leads_are_excluded():
    position = Location(0, 0)
    leads = [_lead("done", 0, 0.01, canvassed=True), _lead("open", 0, 0.011)]
    zones = [_zone("Z1", 0, 0.01, Severity.HIGH, radius=1000)]

    routes = generate_route_suggestions(position, leads, zones, now=NOW)

    for route in routes:
        assert [lead.id for lead in route.leads] == ["open"]
        assert route.potential_leads == 1


def test_empty_strategies_are_omitted():
    position = Location(0, 0)
    far_lead = _lead("far", 1, 1)
    low_zone = _zone("low", 1, 1, Severity.LOW, radius=5000)

    assert generate_route_suggestions(position, [], [], now=NOW) == []
    # Low severity zones never produce a zone route, and the lead is too far for proximity.
    assert generate_route_suggestions(position, [far_lead], [low_zone], now=NOW) == []


def test_high_zone_without_leads_inside_is_skipped():
    position = Location(0, 0)
    leads = [_lead("near", 0, 0.01)]
    zones = [_zone("H", 1, 1, Severity.HIGH)]

    routes = generate_route_suggestions(position, leads, zones, now=NOW)

    assert [route.priority for route in routes] == [5]


def test_proximity_radius_is_five_kilometres():
    position = Location(0, 0)
    inside = _lead("inside", 0, 0.044)  # ~4.9 km
    outside = _lead("outside", 0, 0.046)  # ~5.1 km

    routes = generate_route_suggestions(position, [outside, inside], [], now=NOW)

    assert len(routes) == 1
    assert [lead.id for lead in routes[0].leads] == ["inside"]


def test_suggestions_are_deterministic():
    position = Location(32.78, -96.8)
    leads = [_lead(f"L{i}", 32.78 + i * 0.003, -96.8 - i * 0.002) for i in range(8)]
    zones = [
        _zone("H", 32.79, -96.81, Severity.HIGH, radius=2500),
        _zone("M", 32.78, -96.80, Severity.MEDIUM, radius=1500),
    ]

    first = generate_route_suggestions(position, leads, zones, now=NOW)
    second = generate_route_suggestions(position, leads, zones, now=NOW)

    assert first == second
    assert first
