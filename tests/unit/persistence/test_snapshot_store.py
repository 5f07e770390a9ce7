"""
Unit Tests for the Snapshot Store.

Uses real files under tmp_path; only OS-level failures are simulated.
"""

import errno
import json
from datetime import datetime
from unittest.mock import patch

import pytest

from memos.core.exceptions import CorruptDataWarning, StorageError, StorageQuotaExceeded
from memos.persistence.snapshot_store import SnapshotStore
from memos.schemas.snapshot import Snapshot
from memos.schemas.sync import SyncOperation, SyncOperationType


@pytest.fixture
def populated(store, clock) -> Snapshot:
    tag = store.create_tag("Work")
    note = store.create_note(title="Groceries", content="<p>milk</p>")
    store.add_tag_to_note(note.id, tag.id)
    store.set_reminder(note.id, datetime(2024, 1, 2, 8, 30))
    store.add_attachment(note.id, "list.png", "image/png", 1024, "blob:1")
    snapshot = store.snapshot()
    snapshot.sync_queue = [
        SyncOperation(
            type=SyncOperationType.CREATE_NOTE,
            payload=note.to_wire(),
            enqueued_at=clock.now(),
        ),
    ]
    return snapshot


class TestLoad:
    def test_missing_file_is_empty(self, persistence):
        snapshot = persistence.load()
        assert snapshot.is_empty()
        assert persistence.last_warning is None

    def test_round_trip(self, persistence, populated, clock):
        saved = persistence.save(populated)
        loaded = persistence.load()

        assert loaded == saved
        assert loaded.last_saved == clock.now()
        assert loaded.model_copy(update={"last_saved": None}) == populated

    def test_file_uses_camel_case(self, persistence, populated, snapshot_path):
        persistence.save(populated)
        raw = json.loads(snapshot_path.read_text())

        assert set(raw) == {"notes", "tags", "attachments", "syncQueue", "lastSaved"}
        note = raw["notes"][0]
        assert "updatedAt" in note and "reminderNotified" in note
        assert raw["syncQueue"][0]["type"] == "CREATE_MEMO"

    def test_reads_zulu_timestamps(self, persistence, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text(json.dumps({
            "notes": [{
                "id": "memo-1700000000000-abc1234",
                "title": "Groceries",
                "createdAt": "2023-11-14T22:13:20.000Z",
                "updatedAt": "2023-11-14T22:13:20.000Z",
            }],
            "syncQueue": [{
                "id": "op-1",
                "type": "CREATE_MEMO",
                "payload": {"id": "memo-1700000000000-abc1234"},
                "enqueuedAt": "2023-11-14T22:13:20.000Z",
            }],
            "lastSaved": "2023-11-14T22:13:21.000Z",
        }))

        snapshot = persistence.load()

        assert persistence.last_warning is None
        assert snapshot.notes[0].updated_at == datetime(2023, 11, 14, 22, 13, 20)
        assert snapshot.sync_queue[0].enqueued_at.tzinfo is None
        assert snapshot.last_saved.tzinfo is None

    def test_malformed_json_yields_empty_with_warning(self, persistence, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("{not json")

        snapshot = persistence.load()

        assert snapshot.is_empty()
        assert isinstance(persistence.last_warning, CorruptDataWarning)
        assert persistence.last_warning.code == "DATA_CORRUPT"

    def test_schema_invalid_is_quarantined(self, persistence, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text(json.dumps({"notes": [{"title": "no id"}]}))

        persistence.load()

        quarantined = snapshot_path.with_name(snapshot_path.name + ".corrupt")
        assert not snapshot_path.exists()
        assert quarantined.read_text() == json.dumps({"notes": [{"title": "no id"}]})
        assert persistence.last_warning.path == str(quarantined)

    def test_quarantine_disabled_leaves_file(self, snapshot_path, clock):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("[]")
        persistence = SnapshotStore(snapshot_path, quarantine_corrupt=False, clock=clock)

        assert persistence.load().is_empty()
        assert snapshot_path.exists()

    def test_unreadable_path_yields_empty_with_warning(self, persistence, snapshot_path):
        snapshot_path.mkdir(parents=True)

        snapshot = persistence.load()

        assert snapshot.is_empty()
        assert isinstance(persistence.last_warning, CorruptDataWarning)
        assert persistence.last_warning.path == str(snapshot_path)
        assert snapshot_path.is_dir()

    def test_read_permission_error_yields_empty(self, persistence, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("{}")

        denied = PermissionError(errno.EACCES, "Permission denied")
        with patch.object(type(snapshot_path), "read_bytes", side_effect=denied):
            snapshot = persistence.load()

        assert snapshot.is_empty()
        assert persistence.last_warning is not None
        assert snapshot_path.exists()

    def test_failed_quarantine_still_yields_empty(self, persistence, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("garbage")

        busy = OSError(errno.EBUSY, "Device or resource busy")
        with patch("memos.persistence.snapshot_store.os.replace", side_effect=busy):
            snapshot = persistence.load()

        assert snapshot.is_empty()
        assert persistence.last_warning.path == str(snapshot_path)
        assert snapshot_path.read_text() == "garbage"

    def test_warning_cleared_on_next_good_load(self, persistence, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("garbage")
        persistence.load()
        persistence.save(Snapshot())

        persistence.load()
        assert persistence.last_warning is None


class TestSave:
    def test_creates_parent_directory(self, persistence, snapshot_path):
        persistence.save(Snapshot())
        assert snapshot_path.exists()

    def test_leaves_no_temp_file(self, persistence, snapshot_path):
        for _ in range(3):
            persistence.save(Snapshot())
        assert sorted(p.name for p in snapshot_path.parent.iterdir()) == [snapshot_path.name]

    def test_over_quota_raises_and_keeps_previous(self, snapshot_path, clock, populated):
        persistence = SnapshotStore(snapshot_path, max_bytes=200, clock=clock)
        persistence.save(Snapshot())
        before = snapshot_path.read_bytes()

        with pytest.raises(StorageQuotaExceeded) as exc_info:
            persistence.save(populated)

        assert exc_info.value.size > 200
        assert snapshot_path.read_bytes() == before

    def test_disk_full_maps_to_quota(self, persistence, snapshot_path):
        full = OSError(errno.ENOSPC, "No space left on device")
        with patch("memos.persistence.snapshot_store.os.replace", side_effect=full):
            with pytest.raises(StorageQuotaExceeded, match="Storage full"):
                persistence.save(Snapshot())
        assert not snapshot_path.with_name(f".{snapshot_path.name}.tmp").exists()

    def test_other_os_errors_raise_storage_error(self, persistence, snapshot_path):
        denied = OSError(errno.EACCES, "Permission denied")
        with patch("memos.persistence.snapshot_store.os.replace", side_effect=denied):
            with pytest.raises(StorageError, match="Permission denied") as exc_info:
                persistence.save(Snapshot())

        assert exc_info.value.code == "STORAGE_UNAVAILABLE"
        assert not isinstance(exc_info.value, StorageQuotaExceeded)
        assert not snapshot_path.with_name(f".{snapshot_path.name}.tmp").exists()

    def test_parent_is_a_file(self, tmp_path, clock):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        persistence = SnapshotStore(blocker / "memo_app_data.json", clock=clock)

        with pytest.raises(StorageError):
            persistence.save(Snapshot())

    def test_does_not_mutate_input(self, persistence):
        snapshot = Snapshot()
        persistence.save(snapshot)
        assert snapshot.last_saved is None


def test_clear_removes_file(persistence, snapshot_path):
    persistence.save(Snapshot())
    persistence.clear()
    persistence.clear()
    assert not snapshot_path.exists()


def test_clear_failure_raises_storage_error(persistence, snapshot_path):
    snapshot_path.mkdir(parents=True)
    with pytest.raises(StorageError, match="Could not remove"):
        persistence.clear()
