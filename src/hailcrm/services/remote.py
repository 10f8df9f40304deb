"""Remote CRM API contract and its Supabase-backed implementation."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

from ..db.supabase import get_supabase_client
from ..models.domain import HailDamageZone, Lead, Location, Severity
from .geospatial import haversine_km

logger = logging.getLogger(__name__)

KM_PER_MILE = 1.609344

VEHICLE_FIELDS = {
    "vehicle_year": "year",
    "vehicle_make": "make",
    "vehicle_model": "model",
    "vehicle_color": "color",
    "vehicle_vin": "vin",
    "glass_damage": "glass_damage",
}
INSURANCE_FIELDS = {
    "insurance_provider": "provider",
    "insurance_phone": "provider_phone",
    "policy_number": "policy_number",
    "claim_number": "claim_number",
}


class RemoteUnavailable(ConnectionError):
    """Raised when the remote API is not configured or cannot be reached."""


class RemoteApi(Protocol):
    def create_lead(self, payload: Mapping[str, Any]) -> Any:
        """Create a lead (and its vehicle/insurance records) and return the remote id."""

    def create_follow_up(self, payload: Mapping[str, Any]) -> Any:
        """Create a follow-up and return the remote id."""

    def list_leads(self) -> list[Lead]:
        ...

    def get_hail_zones(self, position: Location, radius_miles: float) -> list[HailDamageZone]:
        ...


def lead_from_row(row: Mapping[str, Any]) -> Optional[Lead]:
    """Build a lead snapshot from a ``leads`` row; rows without coordinates are skipped."""
    try:
        lat = float(row["latitude"])
        lng = float(row["longitude"])
    except (KeyError, TypeError, ValueError):
        return None
    status = row.get("status") or "new"
    return Lead(
        id=str(row["id"]),
        name=row.get("name") or "",
        address=row.get("address") or "",
        location=Location(lat=lat, lng=lng),
        status=status,
        canvassed=bool(row.get("canvassed")),
    )


def zone_from_row(row: Mapping[str, Any]) -> Optional[HailDamageZone]:
    try:
        center = Location(lat=float(row["latitude"]), lng=float(row["longitude"]))
        severity = Severity(str(row["severity"]).lower())
        radius = float(row.get("radius_m") or row.get("radius") or 0)
    except (KeyError, TypeError, ValueError):
        return None
    timestamp = row.get("recorded_at") or row.get("timestamp")
    if isinstance(timestamp, str):
        try:
            timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        except ValueError:
            timestamp = None
    return HailDamageZone(id=str(row["id"]), center=center, severity=severity, radius=radius, timestamp=timestamp)


def _first_id(response: Any) -> Any:
    data = getattr(response, "data", None) or []
    if not data:
        raise ValueError("Remote API returned no inserted row.")
    return data[0].get("id")


class SupabaseRemote:
    """Writes queued captures and reads map snapshots through Supabase tables."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        client = self._client or get_supabase_client()
        if client is None:
            raise RemoteUnavailable("Supabase is not configured.")
        return client

    def create_lead(self, payload: Mapping[str, Any]) -> Any:
        lead_row = {
            key: value
            for key, value in payload.items()
            if key not in VEHICLE_FIELDS and key not in INSURANCE_FIELDS
        }
        # The leads table keeps coordinates as text.
        for key in ("latitude", "longitude"):
            if lead_row.get(key) is not None:
                lead_row[key] = str(lead_row[key])
        lead_id = _first_id(self.client.table("leads").insert(lead_row).execute())

        vehicle = {column: payload[key] for key, column in VEHICLE_FIELDS.items() if payload.get(key) is not None}
        if vehicle:
            self.client.table("vehicles").insert({"lead_id": lead_id, **vehicle}).execute()

        insurance = {column: payload[key] for key, column in INSURANCE_FIELDS.items() if payload.get(key)}
        if insurance:
            self.client.table("insurance").insert({"lead_id": lead_id, **insurance}).execute()
        return lead_id

    def create_follow_up(self, payload: Mapping[str, Any]) -> Any:
        return _first_id(self.client.table("follow_ups").insert(dict(payload)).execute())

    def list_leads(self) -> list[Lead]:
        response = self.client.table("leads").select("*").execute()
        leads = [lead_from_row(row) for row in (response.data or [])]
        return [lead for lead in leads if lead is not None]

    def get_hail_zones(self, position: Location, radius_miles: float) -> list[HailDamageZone]:
        response = self.client.table("hail_zones").select("*").execute()
        radius_km = radius_miles * KM_PER_MILE
        zones: list[HailDamageZone] = []
        for row in response.data or []:
            zone = zone_from_row(row)
            if zone is None:
                logger.debug(f"Skipping malformed hail zone row: {row!r}")
                continue
            if haversine_km(position.lat, position.lng, zone.center.lat, zone.center.lng) <= radius_km:
                zones.append(zone)
        return zones
