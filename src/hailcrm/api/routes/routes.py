"""Route suggestion endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...container import OfflineServices
from ...models.domain import Location
from ...schemas.routing import RouteSuggestionRequest, RouteSuggestionResponse
from ...services.export.geojson import suggestions_to_geojson
from ...services.outputs.routing_formatter import suggested_route_to_model, suggestions_to_csv
from ...services.remote import RemoteUnavailable
from ...services.routing.models import SuggestedRoute
from ...services.routing.suggestions import generate_route_suggestions
from ..deps import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


def _suggest(payload: RouteSuggestionRequest, now: datetime) -> list[SuggestedRoute]:
    return generate_route_suggestions(
        payload.position.to_domain(),
        [lead.to_domain() for lead in payload.leads],
        [zone.to_domain() for zone in payload.zones],
        now=now,
    )


def _response(routes: list[SuggestedRoute], now: datetime) -> RouteSuggestionResponse:
    return RouteSuggestionResponse(
        generated_at=now,
        routes=[suggested_route_to_model(route) for route in routes],
    )


@router.post("/suggestions", response_model=RouteSuggestionResponse, status_code=status.HTTP_200_OK)
def suggest_routes(payload: RouteSuggestionRequest) -> RouteSuggestionResponse:
    now = datetime.now(timezone.utc)
    return _response(_suggest(payload, now), now)


@router.get("/suggestions", response_model=RouteSuggestionResponse, status_code=status.HTTP_200_OK)
def suggest_routes_from_remote(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_miles: float = Query(default=5.0, gt=0, description="Hail zone search radius"),
    services: OfflineServices = Depends(get_services),
) -> RouteSuggestionResponse:
    """Suggest routes from the current lead and hail-zone snapshot of the remote API."""
    position = Location(lat=lat, lng=lng)
    try:
        leads = services.remote.list_leads()
        zones = services.remote.get_hail_zones(position, radius_miles)
    except RemoteUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error loading route suggestion snapshot: {exc}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to load leads or hail zones: {str(exc)}",
        ) from exc

    now = datetime.now(timezone.utc)
    return _response(generate_route_suggestions(position, leads, zones, now=now), now)


@router.post("/suggestions/geojson", status_code=status.HTTP_200_OK)
def suggest_routes_geojson(payload: RouteSuggestionRequest) -> dict:
    routes = _suggest(payload, datetime.now(timezone.utc))
    return suggestions_to_geojson(routes, payload.position.to_domain())


@router.post("/suggestions/csv", status_code=status.HTTP_200_OK)
def suggest_routes_csv(payload: RouteSuggestionRequest) -> Response:
    routes = _suggest(payload, datetime.now(timezone.utc))
    return Response(
        content=suggestions_to_csv(routes),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="route_suggestions.csv"'},
    )
