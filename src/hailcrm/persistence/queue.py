"""Durable local queue for leads and follow-ups captured while offline.

Records live in a SQLite file so they survive process restarts. A record is
only ever deleted through :meth:`OfflineQueue.remove`, which the sync
reconciler calls after the remote API acknowledged the write.
"""

from __future__ import annotations

import json
import logging
import secrets
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from ..config import settings
from ..models.domain import QueuedRecord, RecordKind
from ..schemas.offline import validate_payload

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "offline-"
_ID_PREFIXES = {
    RecordKind.LEAD: "offline",
    RecordKind.FOLLOW_UP: "offline-followup",
}
_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_MAX_ID_ATTEMPTS = 5

_SCHEMA = """
CREATE TABLE IF NOT EXISTS queued_records (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    kind TEXT NOT NULL,
    parent_id TEXT,
    payload TEXT NOT NULL,
    enqueued_at TEXT NOT NULL,
    synced INTEGER NOT NULL DEFAULT 0,
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    dead_lettered INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_queued_records_pending ON queued_records (kind, synced, dead_lettered);
CREATE TABLE IF NOT EXISTS id_map (
    local_id TEXT PRIMARY KEY,
    remote_id TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""

_COLUMNS = "id, kind, parent_id, payload, enqueued_at, synced, attempts, last_error, dead_lettered"


class LocalStorageError(RuntimeError):
    """Raised when a capture cannot be written to local storage (quota, corruption)."""


def generate_local_id(kind: RecordKind) -> str:
    """Return an id of the form ``offline-<epoch ms>-<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{_ID_PREFIXES[kind]}-{int(time.time() * 1000)}-{suffix}"


def is_local_id(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(LOCAL_ID_PREFIX)


class OfflineQueue:
    """SQLite-backed queue of create-operations awaiting remote confirmation."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path or settings.queue_db_file)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise LocalStorageError(f"Unable to open offline queue at {self.path}: {exc}") from exc

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        # One connection per operation: the queue is shared between request
        # threads and the auto-sync timer thread.
        conn = sqlite3.connect(self.path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def enqueue(
        self,
        kind: RecordKind | str,
        payload: Mapping[str, Any],
        parent_id: Optional[str] = None,
    ) -> str:
        """Validate and durably store a capture, returning its local id.

        Raises ``ValueError`` for payloads that do not match the record kind and
        :class:`LocalStorageError` when the write itself fails. Neither case is
        retried: the caller must learn that the capture was not saved.
        """
        kind = RecordKind(kind)
        data = validate_payload(kind, payload)
        if kind is RecordKind.LEAD and parent_id is not None:
            raise ValueError("Leads cannot reference a parent record.")
        if kind is RecordKind.FOLLOW_UP and parent_id is None and data.get("lead_id") is not None:
            parent_id = str(data["lead_id"])

        enqueued_at = datetime.now(timezone.utc).isoformat()
        encoded = json.dumps(data, ensure_ascii=False)
        for _ in range(_MAX_ID_ATTEMPTS):
            record_id = generate_local_id(kind)
            try:
                with self._connect() as conn:
                    conn.execute(
                        "INSERT INTO queued_records (id, kind, parent_id, payload, enqueued_at) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (record_id, kind.value, parent_id, encoded, enqueued_at),
                    )
            except sqlite3.IntegrityError:
                continue
            except sqlite3.Error as exc:
                logger.error(f"Failed to store offline {kind.value}: {exc}")
                raise LocalStorageError(f"Failed to store offline {kind.value}: {exc}") from exc
            logger.info(f"Queued offline {kind.value} {record_id}")
            return record_id
        raise LocalStorageError(f"Could not allocate a unique id for offline {kind.value}.")

    def get(self, record_id: str) -> QueuedRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM queued_records WHERE id = ?", (record_id,)
            ).fetchone()
        return self._to_record(row) if row else None

    def list_pending(self, kind: RecordKind | str) -> list[QueuedRecord]:
        """Return unsynced, live records of ``kind`` in insertion order."""
        kind = RecordKind(kind)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM queued_records "
                "WHERE kind = ? AND synced = 0 AND dead_lettered = 0 ORDER BY seq",
                (kind.value,),
            ).fetchall()
        return self._to_records(rows)

    def pending_count(self, kind: RecordKind | str | None = None) -> int:
        query = "SELECT COUNT(*) FROM queued_records WHERE synced = 0 AND dead_lettered = 0"
        params: tuple[Any, ...] = ()
        if kind is not None:
            query += " AND kind = ?"
            params = (RecordKind(kind).value,)
        with self._connect() as conn:
            return int(conn.execute(query, params).fetchone()[0])

    def mark_synced(self, record_id: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE queued_records SET synced = 1 WHERE id = ?", (record_id,))

    def acknowledge(self, record_id: str, remote_id: Any = None) -> None:
        """Mark a record synced and remember its remote id in one transaction.

        Raises :class:`LocalStorageError` when the write fails; the remote
        write has already happened at that point.
        """
        try:
            with self._connect() as conn:
                if remote_id is not None:
                    conn.execute(
                        "INSERT OR REPLACE INTO id_map (local_id, remote_id, created_at) VALUES (?, ?, ?)",
                        (record_id, str(remote_id), datetime.now(timezone.utc).isoformat()),
                    )
                conn.execute("UPDATE queued_records SET synced = 1 WHERE id = ?", (record_id,))
        except sqlite3.Error as exc:
            raise LocalStorageError(f"Failed to acknowledge queued record {record_id}: {exc}") from exc

    def remove(self, record_id: str) -> None:
        """Delete a record permanently. Unknown ids are ignored."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM queued_records WHERE id = ?", (record_id,))
        if cursor.rowcount:
            logger.info(f"Removed queued record {record_id}")

    def purge_synced(self) -> int:
        """Delete records acknowledged remotely but not yet removed (e.g. after a crash)."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM queued_records WHERE synced = 1")
        return cursor.rowcount

    def record_failure(self, record_id: str, error: str) -> int:
        """Increment the attempt counter for a failed sync and return it."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE queued_records SET attempts = attempts + 1, last_error = ? WHERE id = ?",
                (error, record_id),
            )
            row = conn.execute("SELECT attempts FROM queued_records WHERE id = ?", (record_id,)).fetchone()
        return int(row[0]) if row else 0

    def dead_letter(self, record_id: str, error: Optional[str] = None) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE queued_records SET dead_lettered = 1, last_error = COALESCE(?, last_error) WHERE id = ?",
                (error, record_id),
            )
        logger.warning(f"Moved queued record {record_id} to dead letters: {error}")

    def list_dead_letters(self) -> list[QueuedRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM queued_records WHERE dead_lettered = 1 ORDER BY seq"
            ).fetchall()
        return self._to_records(rows)

    def dead_letter_count(self) -> int:
        with self._connect() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM queued_records WHERE dead_lettered = 1").fetchone()[0])

    def requeue(self, record_id: str) -> bool:
        """Return a dead-lettered record to the pending set with a fresh attempt budget."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE queued_records SET dead_lettered = 0, attempts = 0, last_error = NULL "
                "WHERE id = ? AND dead_lettered = 1",
                (record_id,),
            )
        return cursor.rowcount > 0

    def remember_remote_id(self, local_id: str, remote_id: Any) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO id_map (local_id, remote_id, created_at) VALUES (?, ?, ?)",
                (local_id, str(remote_id), datetime.now(timezone.utc).isoformat()),
            )

    def resolve_remote_id(self, local_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT remote_id FROM id_map WHERE local_id = ?", (local_id,)).fetchone()
        return row[0] if row else None

    def prune_remote_ids(self, max_age: timedelta) -> int:
        """Forget local→remote mappings older than ``max_age`` that no queued record references."""
        cutoff = (datetime.now(timezone.utc) - max_age).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM id_map WHERE created_at < ? AND local_id NOT IN "
                "(SELECT parent_id FROM queued_records WHERE parent_id IS NOT NULL)",
                (cutoff,),
            )
        return cursor.rowcount

    def _to_records(self, rows: list[sqlite3.Row]) -> list[QueuedRecord]:
        records: list[QueuedRecord] = []
        for row in rows:
            record = self._to_record(row)
            if record is not None:
                records.append(record)
        return records

    @staticmethod
    def _to_record(row: sqlite3.Row) -> QueuedRecord | None:
        try:
            payload = json.loads(row["payload"])
        except (TypeError, json.JSONDecodeError) as exc:
            # Left in place rather than deleted: the row was never acknowledged remotely.
            logger.warning(f"Skipping queued record {row['id']} with unreadable payload: {exc}")
            return None
        return QueuedRecord(
            id=row["id"],
            kind=RecordKind(row["kind"]),
            parent_id=row["parent_id"],
            payload=payload,
            enqueued_at=datetime.fromisoformat(row["enqueued_at"]),
            synced=bool(row["synced"]),
            attempts=int(row["attempts"]),
            last_error=row["last_error"],
            dead_lettered=bool(row["dead_lettered"]),
        )
