"""Offline route cache schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RouteDownloadRequest(BaseModel):
    route: Dict[str, Any] = Field(
        ...,
        description="Route payload as shown on the map (routeName/name, stops, totalDistance, estimatedTime).",
    )
    leads: List[Dict[str, Any]] = Field(default_factory=list, description="Leads visited by the route.")


class CachedRouteModel(BaseModel):
    id: str
    name: str
    stops: List[Any]
    total_distance: float
    estimated_time: float
    cached_at: Optional[datetime] = None


class CacheStatsModel(BaseModel):
    total_size: int
    route_count: int
    lead_count: int
    last_sync: Optional[datetime] = None


class CacheOperationResponse(BaseModel):
    success: bool
