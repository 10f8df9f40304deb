"""Serializers for route suggestions."""

from __future__ import annotations

import csv
import io
from typing import Sequence

from ...schemas.routing import HailDamageZoneModel, LeadModel, SuggestedRouteModel
from ..routing.models import SuggestedRoute


def suggested_route_to_model(route: SuggestedRoute) -> SuggestedRouteModel:
    return SuggestedRouteModel(
        id=route.id,
        name=route.name,
        leads=[LeadModel.from_domain(lead) for lead in route.leads],
        hail_zones=[HailDamageZoneModel.from_domain(zone) for zone in route.hail_zones],
        total_distance=route.total_distance,
        estimated_time=route.estimated_time,
        priority=route.priority,
        potential_leads=route.potential_leads,
    )


def suggestions_to_csv(routes: Sequence[SuggestedRoute]) -> str:
    """One row per stop, for printing a canvassing sheet."""
    buffer = io.StringIO()
    fieldnames = [
        "route_id",
        "route_name",
        "priority",
        "sequence",
        "lead_id",
        "lead_name",
        "address",
        "latitude",
        "longitude",
        "total_distance_km",
        "estimated_time_min",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for route in routes:
        for sequence, lead in enumerate(route.leads, start=1):
            writer.writerow(
                {
                    "route_id": route.id,
                    "route_name": route.name,
                    "priority": route.priority,
                    "sequence": sequence,
                    "lead_id": lead.id,
                    "lead_name": lead.name,
                    "address": lead.address,
                    "latitude": lead.location.lat,
                    "longitude": lead.location.lng,
                    "total_distance_km": round(route.total_distance, 3),
                    "estimated_time_min": route.estimated_time,
                }
            )
    return buffer.getvalue()
