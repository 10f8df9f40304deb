"""Offline route download and cache management endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...container import OfflineServices
from ...models.domain import CachedRoute
from ...schemas.cache import (
    CachedRouteModel,
    CacheOperationResponse,
    CacheStatsModel,
    RouteDownloadRequest,
)
from ..deps import get_services

router = APIRouter(prefix="/offline", tags=["offline-cache"])


def _cached_route_model(route: CachedRoute) -> CachedRouteModel:
    return CachedRouteModel(
        id=route.id,
        name=route.name,
        stops=route.stops,
        total_distance=route.total_distance,
        estimated_time=route.estimated_time,
        cached_at=route.cached_at,
    )


@router.post("/routes/{route_id}", response_model=CacheOperationResponse, status_code=status.HTTP_200_OK)
def download_route(
    route_id: str,
    payload: RouteDownloadRequest,
    services: OfflineServices = Depends(get_services),
) -> CacheOperationResponse:
    success = services.cache_manager.download_route_for_offline(route_id, payload.route, payload.leads)
    if not success:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Route {route_id} could not be saved for offline use",
        )
    return CacheOperationResponse(success=True)


@router.get("/routes", response_model=List[CachedRouteModel], status_code=status.HTTP_200_OK)
def list_offline_routes(services: OfflineServices = Depends(get_services)) -> List[CachedRouteModel]:
    return [_cached_route_model(route) for route in services.cache_manager.get_offline_routes()]


@router.delete("/routes/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_offline_route(route_id: str, services: OfflineServices = Depends(get_services)) -> Response:
    services.cache_manager.remove_offline_route(route_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/cache/clear", response_model=CacheOperationResponse, status_code=status.HTTP_200_OK)
def clear_cache(services: OfflineServices = Depends(get_services)) -> CacheOperationResponse:
    return CacheOperationResponse(success=services.cache_manager.clear_cache())


@router.get("/cache/stats", response_model=CacheStatsModel, status_code=status.HTTP_200_OK)
def cache_stats(services: OfflineServices = Depends(get_services)) -> CacheStatsModel:
    stats = services.cache_manager.get_cache_stats()
    return CacheStatsModel(
        total_size=stats.total_size,
        route_count=stats.route_count,
        lead_count=stats.lead_count,
        last_sync=stats.last_sync,
    )
