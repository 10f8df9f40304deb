import re
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from hailcrm.models.domain import RecordKind
from hailcrm.persistence.queue import LocalStorageError, OfflineQueue


def _lead_payload(address: str, **extra) -> dict:
    return {"address": address, "name": f"Owner of {address}", **extra}


def _follow_up_payload(notes: str, **extra) -> dict:
    return {"agent_id": 7, "agent_name": "Sam", "stage": "lead", "notes": notes, **extra}


def test_enqueue_assigns_offline_ids(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")

    lead_id = queue.enqueue(RecordKind.LEAD, _lead_payload("1 Elm St"))
    follow_up_id = queue.enqueue("followup", _follow_up_payload("call back"), parent_id=lead_id)

    assert re.fullmatch(r"offline-\d{13}-[0-9a-z]{9}", lead_id)
    assert re.fullmatch(r"offline-followup-\d{13}-[0-9a-z]{9}", follow_up_id)

    record = queue.get(follow_up_id)
    assert record is not None
    assert record.kind is RecordKind.FOLLOW_UP
    assert record.parent_id == lead_id
    assert record.synced is False
    assert record.payload == _follow_up_payload("call back")


def test_pending_survives_restart_in_insertion_order(tmp_path: Path):
    path = tmp_path / "queue.sqlite3"
    queue = OfflineQueue(path)
    lead_ids = [queue.enqueue(RecordKind.LEAD, _lead_payload(f"{n} Oak Ave")) for n in range(4)]
    follow_up_id = queue.enqueue(RecordKind.FOLLOW_UP, _follow_up_payload("estimate"), parent_id=lead_ids[0])
    queue.remove(lead_ids[1])

    reopened = OfflineQueue(path)

    assert [record.id for record in reopened.list_pending(RecordKind.LEAD)] == [
        lead_ids[0],
        lead_ids[2],
        lead_ids[3],
    ]
    assert [record.id for record in reopened.list_pending(RecordKind.FOLLOW_UP)] == [follow_up_id]
    assert reopened.pending_count() == 4
    assert reopened.pending_count(RecordKind.LEAD) == 3


def test_remove_is_idempotent(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")
    record_id = queue.enqueue(RecordKind.LEAD, _lead_payload("9 Pine Rd"))

    queue.remove(record_id)
    queue.remove(record_id)
    queue.remove("offline-does-not-exist")

    assert queue.get(record_id) is None
    assert queue.list_pending(RecordKind.LEAD) == []


def test_marked_records_are_not_pending(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")
    first = queue.enqueue(RecordKind.LEAD, _lead_payload("1 First St"))
    second = queue.enqueue(RecordKind.LEAD, _lead_payload("2 Second St"))

    queue.mark_synced(first)

    assert [record.id for record in queue.list_pending(RecordKind.LEAD)] == [second]
    assert queue.get(first).synced is True
    assert queue.purge_synced() == 1
    assert queue.get(first) is None


def test_invalid_payloads_are_rejected_at_capture(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")

    with pytest.raises(ValueError):
        queue.enqueue(RecordKind.LEAD, {"name": "No address"})
    with pytest.raises(ValueError):
        queue.enqueue(RecordKind.LEAD, _lead_payload("1 Elm St", favourite_color="red"))
    with pytest.raises(ValueError):
        queue.enqueue(RecordKind.FOLLOW_UP, {"agent_id": 1, "agent_name": "Sam", "stage": "unknown"})
    with pytest.raises(ValueError):
        queue.enqueue(RecordKind.LEAD, _lead_payload("1 Elm St"), parent_id="offline-1-abc")

    assert queue.pending_count() == 0


def test_follow_up_parent_defaults_to_lead_id(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")

    record_id = queue.enqueue(RecordKind.FOLLOW_UP, _follow_up_payload("visit", lead_id=42))

    assert queue.get(record_id).parent_id == "42"


def test_payload_is_stored_without_empty_fields(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")

    record_id = queue.enqueue(RecordKind.LEAD, {"address": "5 Hail Ln", "phone": None, "latitude": 32.7})

    assert queue.get(record_id).payload == {"address": "5 Hail Ln", "latitude": 32.7}


def test_storage_failure_surfaces_to_caller(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")

    @contextmanager
    def full_disk():
        raise sqlite3.OperationalError("database or disk is full")
        yield

    monkeypatch.setattr(queue, "_connect", full_disk)

    with pytest.raises(LocalStorageError, match="disk is full"):
        queue.enqueue(RecordKind.LEAD, _lead_payload("1 Elm St"))


def test_unreadable_payload_rows_are_skipped_not_deleted(tmp_path: Path):
    path = tmp_path / "queue.sqlite3"
    queue = OfflineQueue(path)
    broken = queue.enqueue(RecordKind.LEAD, _lead_payload("1 Broken St"))
    healthy = queue.enqueue(RecordKind.LEAD, _lead_payload("2 Healthy St"))

    with sqlite3.connect(path) as conn:
        conn.execute("UPDATE queued_records SET payload = ? WHERE id = ?", ("{not json", broken))

    assert [record.id for record in queue.list_pending(RecordKind.LEAD)] == [healthy]
    with sqlite3.connect(path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM queued_records").fetchone()[0] == 2


def test_dead_letter_and_requeue(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")
    record_id = queue.enqueue(RecordKind.LEAD, _lead_payload("1 Elm St"))

    assert queue.record_failure(record_id, "boom") == 1
    assert queue.record_failure(record_id, "boom again") == 2
    queue.dead_letter(record_id, "gave up")

    assert queue.list_pending(RecordKind.LEAD) == []
    dead = queue.list_dead_letters()
    assert [record.id for record in dead] == [record_id]
    assert dead[0].attempts == 2
    assert dead[0].last_error == "gave up"
    assert queue.dead_letter_count() == 1

    assert queue.requeue(record_id) is True
    assert queue.requeue(record_id) is False
    pending = queue.list_pending(RecordKind.LEAD)
    assert [record.id for record in pending] == [record_id]
    assert pending[0].attempts == 0


def test_remote_id_map_is_durable(tmp_path: Path):
    path = tmp_path / "queue.sqlite3"
    OfflineQueue(path).remember_remote_id("offline-1-abc", 512)

    reopened = OfflineQueue(path)

    assert reopened.resolve_remote_id("offline-1-abc") == "512"
    assert reopened.resolve_remote_id("offline-2-def") is None


def test_acknowledge_marks_synced_and_maps_remote_id(tmp_path: Path):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")
    record_id = queue.enqueue(RecordKind.LEAD, _lead_payload("1 Elm St"))

    queue.acknowledge(record_id, 77)

    assert queue.get(record_id).synced is True
    assert queue.resolve_remote_id(record_id) == "77"
    assert queue.pending_count() == 0


def test_acknowledge_failure_is_a_local_storage_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    queue = OfflineQueue(tmp_path / "queue.sqlite3")
    record_id = queue.enqueue(RecordKind.LEAD, _lead_payload("1 Elm St"))

    @contextmanager
    def locked():
        raise sqlite3.OperationalError("database is locked")
        yield

    monkeypatch.setattr(queue, "_connect", locked)

    with pytest.raises(LocalStorageError, match="locked"):
        queue.acknowledge(record_id, 77)


def test_old_unreferenced_remote_ids_are_pruned(tmp_path: Path):
    path = tmp_path / "queue.sqlite3"
    queue = OfflineQueue(path)
    referenced = "offline-1-aaaaaaaaa"
    queue.enqueue(RecordKind.FOLLOW_UP, _follow_up_payload("visit"), parent_id=referenced)
    for local_id in (referenced, "offline-2-bbbbbbbbb", "offline-3-ccccccccc"):
        queue.remember_remote_id(local_id, 1)
    with sqlite3.connect(path) as conn:
        conn.execute(
            "UPDATE id_map SET created_at = ? WHERE local_id != ?",
            ((datetime.now(timezone.utc) - timedelta(days=90)).isoformat(), "offline-3-ccccccccc"),
        )

    assert queue.prune_remote_ids(timedelta(days=30)) == 1

    assert queue.resolve_remote_id(referenced) == "1"
    assert queue.resolve_remote_id("offline-2-bbbbbbbbb") is None
    assert queue.resolve_remote_id("offline-3-ccccccccc") == "1"
