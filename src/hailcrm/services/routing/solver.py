"""Greedy nearest-neighbour ordering and straight-line route metrics."""

from __future__ import annotations

import math
from typing import Sequence

from ...models.domain import Lead, Location
from ..geospatial import distance_km

MINUTES_PER_KM = 3
MINUTES_PER_STOP = 15


def nearest_neighbor_order(start: Location, leads: Sequence[Lead]) -> list[Lead]:
    """Order leads by repeatedly visiting the closest unvisited one.

    Ties keep the earlier lead in ``leads``, so the result is deterministic for
    a given input order. This is a greedy tour, not an optimal one.
    """
    unvisited = list(leads)
    route: list[Lead] = []
    current = start

    while unvisited:
        nearest_idx = 0
        min_distance = distance_km(current, unvisited[0].location)
        for idx in range(1, len(unvisited)):
            candidate = distance_km(current, unvisited[idx].location)
            if candidate < min_distance:
                min_distance = candidate
                nearest_idx = idx

        nearest = unvisited.pop(nearest_idx)
        route.append(nearest)
        current = nearest.location

    return route


def route_distance_km(points: Sequence[Location]) -> float:
    """Sum of consecutive haversine legs along ``points``."""
    return sum(distance_km(points[i], points[i + 1]) for i in range(len(points) - 1))


def estimate_minutes(total_distance_km: float, stop_count: int) -> int:
    # Rounds halves up.
    return math.floor(total_distance_km * MINUTES_PER_KM + stop_count * MINUTES_PER_STOP + 0.5)
