"""Sync report models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ...models.domain import RecordKind


@dataclass(slots=True)
class SyncItemError:
    kind: RecordKind
    id: str
    error: str


@dataclass(slots=True)
class SyncReport:
    total: int = 0
    synced: int = 0
    errors: List[SyncItemError] = field(default_factory=list)
    dead_lettered: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def failed(self) -> int:
        return len(self.errors)
