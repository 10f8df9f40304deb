"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import HailDamageZone, Location

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(point1: Location, point2: Location) -> float:
    return haversine_km(point1.lat, point1.lng, point2.lat, point2.lng)


def is_in_hail_zone(point: Location, zone: HailDamageZone) -> bool:
    """Return True if the point lies within the zone radius (given in meters)."""

    return distance_km(point, zone.center) <= zone.radius / 1000


def zone_polygon_coordinates(center: Location, radius_km: float, points: int = 32) -> list[Location]:
    """Approximate a circular zone as a polygon ring for map overlays."""

    if points < 3:
        raise ValueError("A zone polygon needs at least 3 points.")
    lat_change = radius_km / KM_PER_DEGREE_LAT
    lng_change = radius_km / (KM_PER_DEGREE_LAT * math.cos(math.radians(center.lat)))
    coordinates: list[Location] = []
    for i in range(points):
        angle = (i / points) * 2 * math.pi
        coordinates.append(
            Location(
                lat=center.lat + lat_change * math.sin(angle),
                lng=center.lng + lng_change * math.cos(angle),
            )
        )
    return coordinates
