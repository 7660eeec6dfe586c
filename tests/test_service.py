"""Tests for the backup and restore entry points."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from db_snapshot.backup.catalog import DEFAULT_CATALOG, TableCatalog
from db_snapshot.backup.errors import (
    BackupNotFoundError,
    DownloadError,
    FormatError,
    HistoryError,
    OwnerNotFoundError,
    UploadError,
)
from db_snapshot.backup.models import TableDef
from db_snapshot.config.models import SnapshotSettings
from db_snapshot.service import SAFETY_BACKUP_REASON, SnapshotService
from db_snapshot.storage.base import StorageError

CATALOG = TableCatalog([
    TableDef(name="profiles"),
    TableDef(name="user_roles", depends_on=["profiles"]),
    TableDef(name="backup_history", depends_on=["profiles"], exported=False),
])


@pytest.fixture
def seeded(make_db):
    return make_db({
        "profiles": [{"id": "p1", "role": "admin"}, {"id": "p2", "role": "employee"}],
        "user_roles": [{"id": "r1", "user_id": "p1", "role": "admin"}],
    })


class TestRunBackup:
    async def test_manual_backup(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup(created_by="p2")

        assert result.backup_type == "manual"
        assert result.storage_path.startswith("manual/")
        assert seeded.tables["backup_history"][0]["created_by"] == "p2"

    async def test_auto_backup_owned_by_first_admin(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup(backup_type="auto")

        assert result.storage_path.startswith("auto/")
        assert seeded.tables["backup_history"][0]["created_by"] == "p1"

    async def test_auto_backup_without_admin(self, make_db, storage, settings) -> None:
        db = make_db({"profiles": [{"id": "p1"}]})
        service = SnapshotService(db, storage, settings, catalog=CATALOG)
        await service.run_backup(backup_type="auto")
        assert "created_by" not in db.tables["backup_history"][0]

    async def test_auto_backup_require_owner(self, make_db, storage) -> None:
        db = make_db({"profiles": [{"id": "p1"}]})
        service = SnapshotService(
            db, storage, SnapshotSettings(require_owner=True), catalog=CATALOG
        )
        with pytest.raises(OwnerNotFoundError):
            await service.run_backup(backup_type="auto")
        assert storage.objects == {}

    async def test_auto_backup_applies_retention(self, seeded, storage) -> None:
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        for i in range(3):
            path = f"auto/old_{i}.json"
            storage.objects[path] = b"{}"
            seeded.rows("backup_history").append({
                "id": f"old{i}",
                "backup_name": f"old_{i}.json",
                "backup_type": "auto",
                "storage_path": path,
                "created_at": (base + timedelta(days=i)).isoformat(),
            })

        service = SnapshotService(
            seeded, storage, SnapshotSettings(retention_keep=2), catalog=CATALOG
        )
        result = await service.run_backup(backup_type="auto")

        remaining = {r["id"] for r in seeded.tables["backup_history"]}
        assert remaining == {"old2", result.history_id}
        assert sorted(storage.objects) == sorted(["auto/old_2.json", result.storage_path])

    async def test_manual_backup_skips_retention(self, seeded, storage) -> None:
        service = SnapshotService(
            seeded, storage, SnapshotSettings(retention_keep=0), catalog=CATALOG
        )
        await service.run_backup()
        assert len(storage.objects) == 1

    async def test_retention_failure_does_not_fail_backup(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        with patch(
            "db_snapshot.service.enforce_retention",
            AsyncMock(side_effect=RuntimeError("history unavailable")),
        ):
            result = await service.run_backup(backup_type="auto")
        assert result.storage_path in storage.objects


class TestRunRestore:
    async def test_rejects_malformed_before_writing(self, db, storage, settings) -> None:
        service = SnapshotService(db, storage, settings, catalog=CATALOG)
        with pytest.raises(FormatError):
            await service.run_restore({"tables": {"profiles": [{"id": "x"}]}})
        assert db.calls == []

    async def test_restore_from_json_text(self, db, storage, settings) -> None:
        service = SnapshotService(db, storage, settings, catalog=CATALOG)
        text = json.dumps({
            "version": "2.0",
            "timestamp": "2026-01-15T10:00:00Z",
            "tables": {"profiles": [{"id": "p1", "role": "Tech Lead"}]},
        })
        report = await service.run_restore(text, mode="merge")
        assert report.written_for("profiles") == 1
        assert db.tables["profiles"] == [{"id": "p1", "role": "tech_lead"}]

    async def test_batch_size_from_settings(self, db, storage) -> None:
        service = SnapshotService(db, storage, SnapshotSettings(batch_size=2), catalog=CATALOG)
        document = {
            "version": "2.0",
            "timestamp": "t",
            "tables": {"profiles": [{"id": i} for i in range(5)]},
        }
        await service.run_restore(document)
        assert db.calls.count(("insert_many", "profiles")) == 3


class TestRoundTrip:
    async def test_export_then_restore_reproduces_counts(self, make_db, storage, settings) -> None:
        source = make_db({
            "profiles": [{"id": f"p{i}", "role": "employee"} for i in range(5)],
            "employee_ratings": [{"id": f"r{i}", "user_id": "p0"} for i in range(3)],
            "approval_logs": [{"id": f"l{i}", "rating_id": f"r{i % 3}"} for i in range(6)],
            "pages": [{"id": "home"}],
        })
        exported = await SnapshotService(source, storage, settings).export()

        target = make_db()
        report = await SnapshotService(target, storage, settings).run_restore(
            exported.document, mode="replace"
        )

        assert not report.has_errors
        assert report.warnings == ()
        for table in ("profiles", "employee_ratings", "approval_logs", "pages"):
            assert report.written_for(table) == len(source.tables[table])
        assert len(report.success) + len(report.skipped) == len(DEFAULT_CATALOG)

    async def test_stored_snapshot_restores(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()

        payload = await storage.get(result.storage_path)
        report = await service.run_restore(payload, mode="merge")

        assert report.written_for("profiles") == 2
        assert report.written_for("user_roles") == 1


def _document(profiles: list[dict]) -> dict:
    return {"version": "2.0", "timestamp": "2026-01-15T10:00:00Z", "tables": {"profiles": profiles}}


class TestSafetyBackup:
    async def test_snapshot_taken_before_restore(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)

        await service.run_restore(_document([{"id": "n1"}]), safety_backup=True)

        assert service.safety_backup is not None
        assert service.safety_backup.storage_path.startswith("auto/")
        history = seeded.tables["backup_history"]
        assert history[0]["metadata"]["reason"] == SAFETY_BACKUP_REASON
        # the stored snapshot holds the data from before the restore
        saved = json.loads(storage.objects[service.safety_backup.storage_path])
        assert [r["id"] for r in saved["tables"]["profiles"]] == ["p1", "p2"]
        assert seeded.tables["profiles"] == [{"id": "n1"}]

    async def test_no_snapshot_by_default(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        await service.run_restore(_document([{"id": "n1"}]))
        assert storage.objects == {}
        assert service.safety_backup is None

    async def test_failed_snapshot_aborts_restore(self, seeded, storage, settings) -> None:
        storage.fail_put = True
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)

        with pytest.raises(UploadError):
            await service.run_restore(_document([{"id": "n1"}]), safety_backup=True)

        assert ("delete_all", "profiles") not in seeded.calls
        assert len(seeded.tables["profiles"]) == 2

    async def test_malformed_document_takes_no_snapshot(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        with pytest.raises(FormatError):
            await service.run_restore({"tables": {}}, safety_backup=True)
        assert storage.objects == {}

    async def test_rollback_restores_pre_restore_data(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        await service.run_backup(created_by="p1")
        await service.run_restore(_document([{"id": "n1"}]), safety_backup=True)

        report = await service.rollback()

        assert report.written_for("profiles") == 2
        assert sorted(r["id"] for r in seeded.tables["profiles"]) == ["p1", "p2"]

    async def test_rollback_without_safety_backup(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        await service.run_backup(backup_type="auto")
        with pytest.raises(BackupNotFoundError, match="No safety backup"):
            await service.rollback()


class TestStoredBackups:
    async def test_restore_stored_by_history_id(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup(created_by="p1")
        seeded.tables["profiles"] = []

        report = await service.restore_stored(result.history_id, mode="merge")

        assert report.written_for("profiles") == 2
        # stored backups need no safety snapshot
        assert len(storage.objects) == 1

    async def test_restore_stored_unknown_id(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        with pytest.raises(BackupNotFoundError):
            await service.restore_stored("missing")

    async def test_restore_stored_corrupted_object(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()
        storage.objects[result.storage_path] = b"not json"

        with pytest.raises(FormatError, match="Corrupted backup file"):
            await service.restore_stored(result.history_id)
        assert ("delete_all", "profiles") not in seeded.calls

    async def test_download_returns_document_bytes(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()

        entry, data = await service.download(result.history_id)

        assert entry.backup_name == result.file_name
        assert data == storage.objects[result.storage_path]

    async def test_download_missing_object(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()
        del storage.objects[result.storage_path]

        with pytest.raises(BackupNotFoundError, match="not found in storage"):
            await service.download(result.history_id)

    async def test_download_entry_without_path(self, seeded, storage, settings) -> None:
        seeded.rows("backup_history").append(
            {"id": "h1", "backup_name": "lost.json", "backup_type": "manual"}
        )
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        with pytest.raises(BackupNotFoundError, match="lost.json"):
            await service.download("h1")

    async def test_download_storage_failure(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()
        storage.get = AsyncMock(side_effect=StorageError("bucket offline"))

        with pytest.raises(DownloadError, match="bucket offline"):
            await service.download(result.history_id)

    async def test_delete_removes_file_and_entry(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()

        deleted = await service.delete_backup(result.history_id)

        assert deleted.storage_removed
        assert deleted.storage_error is None
        assert storage.objects == {}
        assert seeded.tables["backup_history"] == []

    async def test_delete_continues_when_storage_fails(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()
        storage.fail_remove = True

        deleted = await service.delete_backup(result.history_id)

        assert not deleted.storage_removed
        assert deleted.storage_error == "storage unavailable"
        assert seeded.tables["backup_history"] == []

    async def test_delete_record_without_file(self, seeded, storage, settings) -> None:
        seeded.rows("backup_history").append(
            {"id": "h1", "backup_name": "lost.json", "backup_type": "manual"}
        )
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)

        deleted = await service.delete_backup("h1")

        assert deleted.storage_path is None
        assert storage.remove_calls == []
        assert seeded.tables["backup_history"] == []

    async def test_delete_history_failure(self, seeded, storage, settings) -> None:
        service = SnapshotService(seeded, storage, settings, catalog=CATALOG)
        result = await service.run_backup()
        seeded.fail_always("delete", "backup_history")

        with pytest.raises(HistoryError):
            await service.delete_backup(result.history_id)
