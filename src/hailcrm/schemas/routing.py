"""Route suggestion request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import HailDamageZone, Lead, Location, Severity


class LocationModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Location:
        return Location(lat=self.lat, lng=self.lng)

    @classmethod
    def from_domain(cls, location: Location) -> "LocationModel":
        return cls(lat=location.lat, lng=location.lng)


class LeadModel(BaseModel):
    id: str
    name: str = ""
    address: str = ""
    location: LocationModel
    status: str = "new"
    canvassed: Optional[bool] = None

    def to_domain(self) -> Lead:
        return Lead(
            id=self.id,
            name=self.name,
            address=self.address,
            location=self.location.to_domain(),
            status=self.status,
            canvassed=bool(self.canvassed),
        )

    @classmethod
    def from_domain(cls, lead: Lead) -> "LeadModel":
        return cls(
            id=lead.id,
            name=lead.name,
            address=lead.address,
            location=LocationModel.from_domain(lead.location),
            status=lead.status,
            canvassed=lead.canvassed,
        )


class HailDamageZoneModel(BaseModel):
    id: str
    center: LocationModel
    severity: Severity
    radius: float = Field(..., ge=0, description="Zone radius in meters.")
    timestamp: Optional[datetime] = None

    def to_domain(self) -> HailDamageZone:
        return HailDamageZone(
            id=self.id,
            center=self.center.to_domain(),
            severity=self.severity,
            radius=self.radius,
            timestamp=self.timestamp,
        )

    @classmethod
    def from_domain(cls, zone: HailDamageZone) -> "HailDamageZoneModel":
        return cls(
            id=zone.id,
            center=LocationModel.from_domain(zone.center),
            severity=zone.severity,
            radius=zone.radius,
            timestamp=zone.timestamp,
        )


class RouteSuggestionRequest(BaseModel):
    position: LocationModel
    leads: List[LeadModel] = Field(default_factory=list)
    zones: List[HailDamageZoneModel] = Field(default_factory=list)


class SuggestedRouteModel(BaseModel):
    id: str
    name: str
    leads: List[LeadModel]
    hail_zones: List[HailDamageZoneModel]
    total_distance: float = Field(..., description="Straight-line distance in km.")
    estimated_time: int = Field(..., description="Minutes, including time spent at each stop.")
    priority: int
    potential_leads: int


class RouteSuggestionResponse(BaseModel):
    generated_at: datetime
    routes: List[SuggestedRouteModel]
