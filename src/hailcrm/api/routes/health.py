"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...container import OfflineServices
from ...schemas.offline import ConnectivityStatus
from ..deps import get_services

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/connectivity", response_model=ConnectivityStatus, status_code=status.HTTP_200_OK)
def health_connectivity(services: OfflineServices = Depends(get_services)) -> ConnectivityStatus:
    coordinator = services.coordinator
    return ConnectivityStatus(
        online=coordinator.is_online,
        syncing=coordinator.is_syncing,
        pending=coordinator.pending_count(),
        dead_lettered=services.queue.dead_letter_count(),
    )
