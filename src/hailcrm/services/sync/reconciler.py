"""Replays queued offline captures against the remote API."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ...config import settings
from ...models.domain import QueuedRecord, RecordKind
from ...persistence.queue import LocalStorageError, OfflineQueue, is_local_id
from ..remote import RemoteApi
from .models import SyncItemError, SyncReport

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_LABELS = {RecordKind.LEAD: "lead", RecordKind.FOLLOW_UP: "follow-up"}


class SyncInProgressError(RuntimeError):
    """Raised when a sync pass is requested while another one is running."""


class ParentNotSyncedError(RuntimeError):
    """A follow-up references an offline lead that has not reached the server yet."""


class OrphanedFollowUpError(RuntimeError):
    """A follow-up references an offline lead that was dead-lettered or removed before syncing."""


def _coerce_remote_id(value: str) -> Any:
    return int(value) if value.isdigit() else value


class SyncReconciler:
    """Drains the offline queue: all pending leads first, then all follow-ups.

    Records are submitted one at a time. A failure is recorded in the report
    and the record stays queued for the next pass; it never stops the batch.
    After ``max_attempts`` failures a record is dead-lettered instead of being
    resubmitted forever.
    """

    def __init__(
        self,
        queue: OfflineQueue,
        remote: RemoteApi,
        max_attempts: Optional[int] = None,
        id_map_retention: Optional[timedelta] = None,
    ) -> None:
        self.queue = queue
        self.remote = remote
        self.max_attempts = settings.max_sync_attempts if max_attempts is None else max_attempts
        self.id_map_retention = (
            timedelta(days=settings.id_map_retention_days) if id_map_retention is None else id_map_retention
        )
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def sync(self, on_progress: Optional[ProgressCallback] = None) -> SyncReport:
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError("A sync pass is already running.")
        try:
            return self._run(on_progress)
        finally:
            self._lock.release()

    def _run(self, on_progress: Optional[ProgressCallback]) -> SyncReport:
        report = SyncReport(started_at=datetime.now(timezone.utc))

        leftovers = self.queue.purge_synced()
        if leftovers:
            logger.info(f"Removed {leftovers} acknowledged record(s) left over from an interrupted pass")
        pruned = self.queue.prune_remote_ids(self.id_map_retention)
        if pruned:
            logger.info(f"Forgot {pruned} remote id mapping(s) no queued record refers to")

        # Follow-ups may point at leads captured in the same offline session.
        snapshot = self.queue.list_pending(RecordKind.LEAD) + self.queue.list_pending(RecordKind.FOLLOW_UP)
        report.total = len(snapshot)
        logger.info(f"Starting sync pass over {report.total} queued record(s)")

        for record in snapshot:
            try:
                remote_id = self._submit(record)
            except Exception as exc:
                self._handle_failure(record, exc, report)
                continue

            if self._acknowledge(record, remote_id, report):
                report.synced += 1
                self._notify(on_progress, report.synced, report.total)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Sync pass finished: {report.synced}/{report.total} synced, {report.failed} failed, "
            f"{len(report.dead_lettered)} dead-lettered"
        )
        return report

    def _acknowledge(self, record: QueuedRecord, remote_id: Any, report: SyncReport) -> bool:
        """Record a remote acknowledgment locally; never raises out of the batch."""
        lead_remote_id = remote_id if record.kind is RecordKind.LEAD else None
        try:
            self.queue.acknowledge(record.id, lead_remote_id)
        except LocalStorageError as exc:
            message = f"created remotely but could not be recorded locally: {exc}"
            logger.error(f"Failed to sync {_LABELS[record.kind]} {record.id}: {message}")
            report.errors.append(SyncItemError(kind=record.kind, id=record.id, error=message))
            return False
        try:
            self.queue.remove(record.id)
        except sqlite3.Error as exc:
            # Already marked synced, so the next pass purges it instead of resubmitting.
            logger.warning(f"Could not remove acknowledged record {record.id}: {exc}")
        return True

    def _submit(self, record: QueuedRecord) -> Any:
        if record.kind is RecordKind.LEAD:
            return self.remote.create_lead(dict(record.payload))

        payload = dict(record.payload)
        if is_local_id(record.parent_id):
            remote_id = self.queue.resolve_remote_id(record.parent_id)
            if remote_id is None:
                parent = self.queue.get(record.parent_id)
                if parent is None or parent.dead_lettered:
                    raise OrphanedFollowUpError(
                        f"parent lead {record.parent_id} was removed or dead-lettered before syncing"
                    )
                raise ParentNotSyncedError(f"parent lead {record.parent_id} is not synced yet")
            payload["lead_id"] = _coerce_remote_id(remote_id)
        elif record.parent_id is not None:
            payload.setdefault("lead_id", _coerce_remote_id(record.parent_id))
        return self.remote.create_follow_up(payload)

    def _handle_failure(self, record: QueuedRecord, exc: Exception, report: SyncReport) -> None:
        message = str(exc) or exc.__class__.__name__
        logger.error(f"Failed to sync {_LABELS[record.kind]} {record.id}: {message}")
        report.errors.append(SyncItemError(kind=record.kind, id=record.id, error=message))

        if isinstance(exc, ParentNotSyncedError):
            # Not the record's own fault; keep its attempt budget intact.
            return
        try:
            attempts = self.queue.record_failure(record.id, message)
            if self.max_attempts and attempts >= self.max_attempts:
                self.queue.dead_letter(record.id, message)
                report.dead_lettered.append(record.id)
        except sqlite3.Error as storage_exc:
            logger.error(f"Could not record sync failure for {record.id}: {storage_exc}")

    @staticmethod
    def _notify(on_progress: Optional[ProgressCallback], synced: int, total: int) -> None:
        if on_progress is None:
            return
        try:
            on_progress(synced, total)
        except Exception:
            logger.exception("Sync progress callback failed")
