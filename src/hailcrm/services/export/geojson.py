"""GeoJSON export of route suggestions and hail zones for map overlays."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from shapely.geometry import LineString, Polygon, mapping

from ...models.domain import HailDamageZone, Location, Severity
from ..geospatial import zone_polygon_coordinates
from ..routing.models import SuggestedRoute

SEVERITY_COLORS = {
    Severity.LOW: "#e0e005",
    Severity.MEDIUM: "#e0af00",
    Severity.HIGH: "#e0003e",
}


def generate_route_color(index: int) -> str:
    """Generate distinct colors for routes."""
    colors = [
        "#02d8e0", "#38e000", "#0000c1", "#611cc7", "#13aae0",
        "#a4d819", "#00e0bb", "#e000a2", "#3100e0", "#e0bb0b",
    ]
    return colors[index % len(colors)]


def _as_lists(geometry: Dict[str, Any]) -> Dict[str, Any]:
    """shapely's mapping() yields tuples; GeoJSON consumers expect arrays."""

    def convert(value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [convert(item) for item in value]
        return value

    return {"type": geometry["type"], "coordinates": convert(geometry["coordinates"])}


def zone_to_feature(zone: HailDamageZone, points: int = 32) -> Dict[str, Any]:
    ring = zone_polygon_coordinates(zone.center, zone.radius / 1000, points=points)
    polygon = Polygon([(location.lng, location.lat) for location in ring])
    return {
        "type": "Feature",
        "id": zone.id,
        "geometry": _as_lists(mapping(polygon)),
        "properties": {
            "kind": "hail_zone",
            "severity": zone.severity.value,
            "radius_m": zone.radius,
            "timestamp": zone.timestamp.isoformat() if zone.timestamp else None,
            "fillColor": SEVERITY_COLORS[zone.severity],
            "fillOpacity": 0.33,
        },
    }


def route_to_feature(route: SuggestedRoute, position: Location, index: int = 0) -> Dict[str, Any]:
    points = [(position.lng, position.lat)] + [(lead.location.lng, lead.location.lat) for lead in route.leads]
    geometry = LineString(points)
    return {
        "type": "Feature",
        "id": route.id,
        "geometry": _as_lists(mapping(geometry)),
        "properties": {
            "kind": "suggested_route",
            "name": route.name,
            "priority": route.priority,
            "lead_ids": [lead.id for lead in route.leads],
            "total_distance_km": round(route.total_distance, 3),
            "estimated_time_min": route.estimated_time,
            "lineColor": generate_route_color(index),
            "lineWidth": 3,
        },
    }


def suggestions_to_geojson(routes: Sequence[SuggestedRoute], position: Location) -> Dict[str, Any]:
    """Build a FeatureCollection with one line per route and one polygon per zone."""
    features: List[Dict[str, Any]] = []
    seen_zones: set[str] = set()
    for idx, route in enumerate(routes):
        features.append(route_to_feature(route, position, idx))
        for zone in route.hail_zones:
            if zone.id in seen_zones:
                continue
            seen_zones.add(zone.id)
            features.append(zone_to_feature(zone))
    return {"type": "FeatureCollection", "features": features}
