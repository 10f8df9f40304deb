"""Domain models for leads, hail zones and records captured offline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecordKind(str, Enum):
    LEAD = "lead"
    FOLLOW_UP = "followup"


@dataclass(frozen=True, slots=True)
class Location:
    """WGS84 coordinate pair in degrees."""

    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class Lead:
    """Read-only snapshot of a lead as consumed by the route optimizer."""

    id: str
    name: str
    address: str
    location: Location
    status: str
    canvassed: bool = False


@dataclass(frozen=True, slots=True)
class HailDamageZone:
    """Circular region tagged with a damage severity. Radius is in meters."""

    id: str
    center: Location
    severity: Severity
    radius: float
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class QueuedRecord:
    """A create-operation captured locally and awaiting remote acknowledgment.

    Records are immutable once enqueued; the queue hands out fresh snapshots,
    so the only state that ever changes is held in storage (``synced``,
    ``attempts``, dead-letter flag).
    """

    id: str
    kind: RecordKind
    payload: dict[str, Any]
    enqueued_at: datetime
    parent_id: Optional[str] = None
    synced: bool = False
    attempts: int = 0
    last_error: Optional[str] = None
    dead_lettered: bool = False


@dataclass(slots=True)
class CachedRoute:
    """Metadata for a route explicitly downloaded for offline use."""

    id: str
    name: str
    stops: list[Any] = field(default_factory=list)
    total_distance: float = 0.0
    estimated_time: float = 0.0
    cached_at: Optional[datetime] = None
