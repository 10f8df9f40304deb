"""Offline capture queue and sync endpoints."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...container import OfflineServices
from ...models.domain import QueuedRecord, RecordKind
from ...persistence.queue import LocalStorageError
from ...schemas.offline import (
    ConnectivityStatus,
    EnqueueResponse,
    FollowUpCaptureRequest,
    LeadPayload,
    QueuedRecordModel,
    SyncItemErrorModel,
    SyncReportModel,
)
from ...services.sync import ConnectivityEvent, SyncReport
from ..deps import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/offline", tags=["offline"])


def _record_model(record: QueuedRecord) -> QueuedRecordModel:
    return QueuedRecordModel(
        id=record.id,
        kind=record.kind,
        parent_id=record.parent_id,
        payload=record.payload,
        enqueued_at=record.enqueued_at,
        synced=record.synced,
        attempts=record.attempts,
        last_error=record.last_error,
        dead_lettered=record.dead_lettered,
    )


def report_to_model(report: SyncReport) -> SyncReportModel:
    return SyncReportModel(
        total=report.total,
        synced=report.synced,
        failed=report.failed,
        errors=[SyncItemErrorModel(kind=item.kind, id=item.id, error=item.error) for item in report.errors],
        dead_lettered=list(report.dead_lettered),
        started_at=report.started_at,
        finished_at=report.finished_at,
    )


def _enqueue(services: OfflineServices, kind: RecordKind, payload, parent_id: Optional[str] = None) -> EnqueueResponse:
    try:
        record_id = services.queue.enqueue(kind, payload, parent_id=parent_id)
    except LocalStorageError as exc:
        raise HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return EnqueueResponse(id=record_id, kind=kind)


@router.post("/leads", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
def capture_lead(payload: LeadPayload, services: OfflineServices = Depends(get_services)) -> EnqueueResponse:
    return _enqueue(services, RecordKind.LEAD, payload)


@router.post("/follow-ups", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
def capture_follow_up(
    payload: FollowUpCaptureRequest,
    services: OfflineServices = Depends(get_services),
) -> EnqueueResponse:
    return _enqueue(services, RecordKind.FOLLOW_UP, payload.follow_up, parent_id=payload.parent_id)


@router.get("/queue", response_model=List[QueuedRecordModel], status_code=status.HTTP_200_OK)
def list_pending(
    kind: Optional[RecordKind] = Query(default=None, description="Only return records of this kind"),
    services: OfflineServices = Depends(get_services),
) -> List[QueuedRecordModel]:
    kinds = [kind] if kind else [RecordKind.LEAD, RecordKind.FOLLOW_UP]
    records: list[QueuedRecord] = []
    for item in kinds:
        records.extend(services.queue.list_pending(item))
    return [_record_model(record) for record in records]


@router.delete("/queue/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_queued(record_id: str, services: OfflineServices = Depends(get_services)) -> Response:
    services.queue.remove(record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/dead-letters", response_model=List[QueuedRecordModel], status_code=status.HTTP_200_OK)
def list_dead_letters(services: OfflineServices = Depends(get_services)) -> List[QueuedRecordModel]:
    return [_record_model(record) for record in services.queue.list_dead_letters()]


@router.post("/dead-letters/{record_id}/requeue", status_code=status.HTTP_200_OK)
def requeue_dead_letter(record_id: str, services: OfflineServices = Depends(get_services)) -> dict:
    if not services.queue.requeue(record_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Record {record_id} is not in the dead-letter set",
        )
    return {"success": True, "id": record_id}


@router.post("/sync", response_model=SyncReportModel, status_code=status.HTTP_200_OK)
def sync_now(services: OfflineServices = Depends(get_services)) -> SyncReportModel:
    coordinator = services.coordinator
    if not coordinator.is_online:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cannot sync while offline")
    try:
        report = coordinator.sync_now()
    except Exception as exc:
        logger.exception(f"Error syncing offline data: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to sync offline data: {str(exc)}",
        ) from exc
    if report is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A sync pass is already running")
    return report_to_model(report)


@router.post("/connectivity/{event}", response_model=ConnectivityStatus, status_code=status.HTTP_200_OK)
def dispatch_connectivity(
    event: ConnectivityEvent,
    services: OfflineServices = Depends(get_services),
) -> ConnectivityStatus:
    """Forward the client shell's online/offline signal to the monitor.

    Only real transitions are dispatched; repeating the current state is a no-op.
    """
    if (event is ConnectivityEvent.ONLINE) != services.monitor.is_online:
        services.monitor.dispatch(event)
    coordinator = services.coordinator
    return ConnectivityStatus(
        online=coordinator.is_online,
        syncing=coordinator.is_syncing,
        pending=coordinator.pending_count(),
        dead_lettered=services.queue.dead_letter_count(),
    )
