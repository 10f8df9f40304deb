"""Offline capture, queue and sync schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import RecordKind


class LeadPayload(BaseModel):
    """Fields captured by the lead form while offline."""

    model_config = ConfigDict(extra="forbid")

    address: str = Field(..., min_length=1)
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    agent_id: Optional[int] = None
    agent_name: Optional[str] = None
    notes: Optional[str] = None

    # Vehicle details, created alongside the lead when present
    vehicle_year: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_color: Optional[str] = None
    vehicle_vin: Optional[str] = None
    glass_damage: Optional[bool] = None

    # Insurance details, created alongside the lead when present
    insurance_provider: Optional[str] = None
    insurance_phone: Optional[str] = None
    policy_number: Optional[str] = None
    claim_number: Optional[str] = None


class FollowUpPayload(BaseModel):
    """Fields captured by the follow-up form while offline."""

    model_config = ConfigDict(extra="forbid")

    lead_id: Optional[int] = None
    customer_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    agent_id: int
    agent_name: str = Field(..., min_length=1)
    stage: Literal["lead", "scheduled", "in_shop", "awaiting_pickup", "complete", "referral"]
    notes: Optional[str] = None


PAYLOAD_MODELS: dict[RecordKind, type[BaseModel]] = {
    RecordKind.LEAD: LeadPayload,
    RecordKind.FOLLOW_UP: FollowUpPayload,
}


def validate_payload(kind: RecordKind, payload: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    """Validate a raw form payload against the model for its record kind.

    Raises ``pydantic.ValidationError`` (a ``ValueError``) when the payload does
    not match, so malformed captures are rejected before they reach the queue.
    """
    model = PAYLOAD_MODELS[RecordKind(kind)]
    if isinstance(payload, model):
        validated = payload
    else:
        data = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload)
        validated = model.model_validate(data)
    return validated.model_dump(exclude_none=True)


class FollowUpCaptureRequest(BaseModel):
    parent_id: Optional[str] = Field(
        default=None,
        description="Lead the follow-up belongs to. May be an offline id from the same session.",
    )
    follow_up: FollowUpPayload


class EnqueueResponse(BaseModel):
    id: str
    kind: RecordKind


class QueuedRecordModel(BaseModel):
    id: str
    kind: RecordKind
    parent_id: Optional[str]
    payload: Dict[str, Any]
    enqueued_at: datetime
    synced: bool
    attempts: int
    last_error: Optional[str] = None
    dead_lettered: bool = False


class SyncItemErrorModel(BaseModel):
    kind: RecordKind
    id: str
    error: str


class SyncReportModel(BaseModel):
    total: int
    synced: int
    failed: int
    errors: List[SyncItemErrorModel]
    dead_lettered: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ConnectivityStatus(BaseModel):
    online: bool
    syncing: bool
    pending: int
    dead_lettered: int = 0
