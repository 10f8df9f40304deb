"""Route suggestions combining hail damage zones with open leads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from ...models.domain import HailDamageZone, Lead, Location, Severity
from ..geospatial import distance_km, is_in_hail_zone
from .models import SuggestedRoute
from .solver import estimate_minutes, nearest_neighbor_order, route_distance_km

logger = logging.getLogger(__name__)

PROXIMITY_RADIUS_KM = 5.0

HIGH_SEVERITY_PRIORITY = 10
MEDIUM_SEVERITY_PRIORITY = 7
PROXIMITY_PRIORITY = 5


def _build_route(
    *,
    route_id: str,
    name: str,
    position: Location,
    leads: Sequence[Lead],
    zones: Sequence[HailDamageZone],
    priority: int,
) -> SuggestedRoute:
    ordered = nearest_neighbor_order(position, leads)
    total_distance = route_distance_km([position, *(lead.location for lead in ordered)])
    return SuggestedRoute(
        id=route_id,
        name=name,
        leads=ordered,
        hail_zones=list(zones),
        total_distance=total_distance,
        estimated_time=estimate_minutes(total_distance, len(ordered)),
        priority=priority,
        potential_leads=len(leads),
    )


def _zone_strategy(
    *,
    position: Location,
    leads: Sequence[Lead],
    zones: Sequence[HailDamageZone],
    severity: Severity,
    route_id: str,
    name: str,
    priority: int,
) -> SuggestedRoute | None:
    severity_zones = [zone for zone in zones if zone.severity == severity]
    if not severity_zones:
        return None
    candidates = [
        lead
        for lead in leads
        if not lead.canvassed and any(is_in_hail_zone(lead.location, zone) for zone in severity_zones)
    ]
    if not candidates:
        return None
    return _build_route(
        route_id=route_id,
        name=name,
        position=position,
        leads=candidates,
        zones=severity_zones,
        priority=priority,
    )


def generate_route_suggestions(
    position: Location,
    leads: Sequence[Lead],
    zones: Sequence[HailDamageZone],
    *,
    now: datetime | None = None,
) -> list[SuggestedRoute]:
    """Produce up to three candidate routes ranked by priority.

    Strategies: uncanvassed leads inside high-severity zones, the same for
    medium-severity zones, and uncanvassed leads within 5 km of ``position``.
    A strategy with no qualifying leads contributes no route.
    """
    stamp = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
    suggestions: list[SuggestedRoute] = []

    high = _zone_strategy(
        position=position,
        leads=leads,
        zones=zones,
        severity=Severity.HIGH,
        route_id=f"high-severity-{stamp}",
        name="High Priority - Severe Damage Zones",
        priority=HIGH_SEVERITY_PRIORITY,
    )
    if high:
        suggestions.append(high)

    medium = _zone_strategy(
        position=position,
        leads=leads,
        zones=zones,
        severity=Severity.MEDIUM,
        route_id=f"medium-severity-{stamp}",
        name="Medium Priority - Moderate Damage Zones",
        priority=MEDIUM_SEVERITY_PRIORITY,
    )
    if medium:
        suggestions.append(medium)

    nearby = [
        lead
        for lead in leads
        if not lead.canvassed and distance_km(position, lead.location) <= PROXIMITY_RADIUS_KM
    ]
    if nearby:
        suggestions.append(
            _build_route(
                route_id=f"nearby-{stamp}",
                name="Nearby Uncanvassed Leads",
                position=position,
                leads=nearby,
                zones=[],
                priority=PROXIMITY_PRIORITY,
            )
        )

    # sorted() is stable, so equal priorities keep strategy order.
    suggestions = sorted(suggestions, key=lambda route: route.priority, reverse=True)
    logger.debug(
        f"Generated {len(suggestions)} route suggestion(s) from {len(leads)} leads and {len(zones)} zones"
    )
    return suggestions
