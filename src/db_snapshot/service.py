"""Backup and restore entry points.

``SnapshotService`` wires an adapter, object storage, and snapshot
settings into the operations exposed to callers:

- ``run_backup``: export every table, store the document, record it in
  backup history and, for unattended runs, enforce retention.
- ``run_restore``: validate a document and replay it table by table,
  optionally after storing a safety backup of the current data.
- ``restore_stored`` / ``rollback``: restore a backup from storage by its
  history entry, or the newest safety backup.
- ``download`` / ``delete_backup`` / ``prune``: manage stored backups.

Authorization is the caller's responsibility.

Usage:
    from db_snapshot.config import load_db_config
    from db_snapshot.factory import get_adapter, get_storage
    from db_snapshot.service import SnapshotService

    config = load_db_config()
    adapter = get_adapter()
    service = SnapshotService(adapter, get_storage(config.snapshot, adapter), config.snapshot)

    result = await service.run_backup(backup_type="auto")
    report = await service.run_restore(document, mode="merge", safety_backup=True)
    report = await service.rollback()
"""

import logging
from typing import Any

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.catalog import DEFAULT_CATALOG, TableCatalog
from db_snapshot.backup.errors import BackupNotFoundError, DownloadError, FormatError, HistoryError
from db_snapshot.backup.history import BackupHistory
from db_snapshot.backup.loader import restore_snapshot
from db_snapshot.backup.models import (
    BackupHistoryEntry,
    BackupResult,
    BackupType,
    DeleteResult,
    ExportResult,
    RestoreMode,
    RetentionResult,
    SnapshotDocument,
)
from db_snapshot.backup.report import RunReport
from db_snapshot.backup.retention import enforce_retention
from db_snapshot.backup.validator import validate_snapshot
from db_snapshot.backup.writer import export_snapshot, resolve_unattended_owner, write_snapshot
from db_snapshot.config.models import SnapshotSettings
from db_snapshot.storage.base import ObjectStorage, StorageNotFoundError

logger = logging.getLogger(__name__)

# history metadata ``reason`` of snapshots taken right before a restore
SAFETY_BACKUP_REASON = "pre-restore"


class SnapshotService:
    """Backup/restore pipeline bound to one database and one storage.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        storage: Object storage for snapshot documents.
        settings: ``[snapshot]`` settings (page size, batch size, retention).
        catalog: Table catalog (default: ``DEFAULT_CATALOG``).
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        storage: ObjectStorage,
        settings: SnapshotSettings | None = None,
        catalog: TableCatalog = DEFAULT_CATALOG,
    ) -> None:
        self.adapter = adapter
        self.storage = storage
        self.settings = settings or SnapshotSettings()
        self.catalog = catalog
        self.history = BackupHistory(adapter)
        self.safety_backup: BackupResult | None = None

    async def export(self) -> ExportResult:
        """Export every table into a document without storing it."""
        return await export_snapshot(self.adapter, self.catalog, self.settings.page_size)

    async def run_backup(
        self,
        backup_type: BackupType = "manual",
        created_by: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BackupResult:
        """Take one snapshot and store it.

        Automatic runs without an explicit owner are attributed to the
        first admin user.  After an automatic run the retention policy is
        applied; a retention failure is logged and does not fail the run.
        *metadata* adds keys to the history entry's ``metadata``.

        Raises:
            OwnerNotFoundError: If ``require_owner`` is set and no admin exists.
            UploadError: If the document could not be stored.
            HistoryError: If the history entry could not be written.
        """
        if backup_type == "auto" and created_by is None:
            created_by = await resolve_unattended_owner(
                self.adapter, require=self.settings.require_owner
            )

        result = await write_snapshot(
            self.adapter,
            self.storage,
            self.history,
            self.catalog,
            backup_type=backup_type,
            created_by=created_by,
            page_size=self.settings.page_size,
            metadata=metadata,
        )

        if backup_type == "auto":
            try:
                await self.prune(backup_type="auto")
            except Exception as e:
                logger.warning("Retention cleanup failed: %s", e)

        return result

    async def run_restore(
        self,
        document: SnapshotDocument | dict[str, Any] | str | bytes,
        mode: RestoreMode = "replace",
        safety_backup: bool = False,
        created_by: str | None = None,
    ) -> RunReport:
        """Validate *document* and restore it.

        With ``safety_backup`` the current data is first stored as an
        automatic snapshot tagged for ``rollback``; the restore does not
        start unless that snapshot was stored.

        Raises:
            FormatError: If the document is malformed; nothing is written.
            ValueError: If ``mode`` is not ``"replace"`` or ``"merge"``.
            UploadError: If the safety backup could not be stored.
            HistoryError: If the safety backup could not be recorded.
        """
        if not isinstance(document, SnapshotDocument):
            document = validate_snapshot(document)
        if mode not in ("replace", "merge"):
            raise ValueError(f"Unknown restore mode: {mode!r}")

        if safety_backup:
            self.safety_backup = await self.run_backup(
                backup_type="auto",
                created_by=created_by,
                metadata={"reason": SAFETY_BACKUP_REASON},
            )
            logger.info("Safety backup stored: %s", self.safety_backup.storage_path)

        return await self._restore(document, mode)

    async def restore_stored(self, entry_id: str, mode: RestoreMode = "replace") -> RunReport:
        """Download the snapshot recorded as *entry_id* and restore it.

        Raises:
            BackupNotFoundError: If the entry or its stored object is missing.
            DownloadError: If storage could not be read.
            FormatError: If the stored object is not a valid snapshot.
        """
        entry, data = await self.download(entry_id)
        try:
            document = validate_snapshot(data)
        except FormatError as e:
            raise FormatError(f"Corrupted backup file in storage ({entry.backup_name}): {e}") from e

        logger.info("Restoring stored backup %s (mode=%s)", entry.backup_name, mode)
        return await self._restore(document, mode)

    async def rollback(self) -> RunReport:
        """Restore the newest safety backup in replace mode.

        Raises:
            BackupNotFoundError: If no safety backup is recorded.
        """
        entry = await self.latest_safety_backup()
        if entry is None or entry.id is None:
            raise BackupNotFoundError("No safety backup available to roll back to")
        logger.info("Rolling back to %s", entry.backup_name)
        return await self.restore_stored(entry.id, mode="replace")

    async def latest_safety_backup(self) -> BackupHistoryEntry | None:
        """Newest history entry written as a pre-restore safety backup."""
        for entry in await self.history.list(backup_type="auto"):
            if entry.metadata.get("reason") == SAFETY_BACKUP_REASON:
                return entry
        return None

    async def get_entry(self, entry_id: str) -> BackupHistoryEntry:
        """Look up one history entry.

        Raises:
            BackupNotFoundError: If there is no entry with *entry_id*.
        """
        entry = await self.history.get(entry_id)
        if entry is None:
            raise BackupNotFoundError(f"Backup not found: {entry_id}")
        return entry

    async def download(self, entry_id: str) -> tuple[BackupHistoryEntry, bytes]:
        """Return the history entry and raw document bytes of a stored backup.

        Raises:
            BackupNotFoundError: If the entry or its stored object is missing.
            DownloadError: If storage could not be read.
        """
        entry = await self.get_entry(entry_id)
        if not entry.storage_path:
            raise BackupNotFoundError(f"Backup file not found in storage: {entry.backup_name}")
        try:
            data = await self.storage.get(entry.storage_path)
        except StorageNotFoundError as e:
            raise BackupNotFoundError(
                f"Backup file not found in storage: {entry.storage_path}"
            ) from e
        except Exception as e:
            raise DownloadError(f"Failed to download {entry.storage_path}: {e}") from e
        return entry, data

    async def delete_backup(self, entry_id: str) -> DeleteResult:
        """Delete a stored backup and its history entry.

        A storage failure is logged and reported in the result; the history
        entry is deleted regardless, so records without a file can always
        be removed.

        Raises:
            BackupNotFoundError: If there is no entry with *entry_id*.
            HistoryError: If the history entry could not be deleted.
        """
        entry = await self.get_entry(entry_id)
        storage_removed = False
        storage_error = None
        if entry.storage_path:
            try:
                removed = await self.storage.remove_many([entry.storage_path])
                storage_removed = entry.storage_path in removed
            except Exception as e:
                logger.error("Storage delete error for %s: %s", entry.storage_path, e)
                storage_error = str(e)

        try:
            await self.history.delete(entry_id)
        except Exception as e:
            raise HistoryError(f"Failed to delete history entry {entry_id}: {e}") from e

        logger.info("Deleted backup %s", entry.backup_name)
        return DeleteResult(
            entry_id=entry_id,
            storage_path=entry.storage_path,
            storage_removed=storage_removed,
            storage_error=storage_error,
        )

    async def prune(
        self,
        backup_type: BackupType = "auto",
        keep: int | None = None,
    ) -> RetentionResult:
        """Apply retention to *backup_type* (default keep: ``retention_keep``)."""
        return await enforce_retention(
            self.storage,
            self.history,
            backup_type=backup_type,
            keep=self.settings.retention_keep if keep is None else keep,
        )

    async def _restore(self, document: SnapshotDocument, mode: RestoreMode) -> RunReport:
        return await restore_snapshot(
            self.adapter,
            document,
            self.catalog,
            mode=mode,
            batch_size=self.settings.batch_size,
        )
