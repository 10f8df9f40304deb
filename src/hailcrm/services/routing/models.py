"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from ...models.domain import HailDamageZone, Lead


@dataclass(slots=True)
class SuggestedRoute:
    id: str
    name: str
    leads: List[Lead]
    hail_zones: List[HailDamageZone]
    total_distance: float
    estimated_time: int
    priority: int
    potential_leads: int
