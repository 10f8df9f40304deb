from pathlib import Path

from hailcrm.persistence.filesystem import FileStorage


def test_file_storage_creates_store_directory(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)

    assert storage.store_root == tmp_path.resolve() / "store"
    assert storage.store_root.is_dir()


def test_file_storage_round_trips_json(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)

    storage.write_json("offline-routes", [{"id": "r1"}])

    assert storage.path_for("offline-routes").read_text(encoding="utf-8") == '[\n  {\n    "id": "r1"\n  }\n]'
    assert storage.read_json("offline-routes") == [{"id": "r1"}]


def test_file_storage_sanitises_keys(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)

    assert storage.path_for("../escape me").parent == storage.store_root


def test_file_storage_returns_default_for_missing_or_corrupt(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    storage.path_for("broken").write_text("{oops", encoding="utf-8")

    assert storage.read_json("missing", default=[]) == []
    assert storage.read_json("broken", default={}) == {}


def test_file_storage_delete_is_idempotent(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    storage.write_json("offline-last-sync", "2026-05-01T00:00:00+00:00")

    storage.delete("offline-last-sync")
    storage.delete("offline-last-sync")

    assert not storage.path_for("offline-last-sync").exists()
