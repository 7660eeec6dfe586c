"""Snapshot export and writer.

Reads every exported catalog table into one ``SnapshotDocument``, stores
it as a JSON object, and records a backup history entry for it.

Usage:
    from db_snapshot.backup.catalog import DEFAULT_CATALOG
    from db_snapshot.backup.history import BackupHistory
    from db_snapshot.backup.writer import export_snapshot, write_snapshot

    # On-demand export (nothing stored)
    export = await export_snapshot(adapter, DEFAULT_CATALOG)

    # Stored snapshot with history entry
    result = await write_snapshot(
        adapter,
        storage,
        BackupHistory(adapter),
        DEFAULT_CATALOG,
        backup_type="manual",
        created_by="user-1",
    )
"""

import logging
from datetime import datetime, timezone
from typing import Any

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.catalog import TableCatalog
from db_snapshot.backup.errors import (
    HistoryError,
    OwnerNotFoundError,
    ReadError,
    UploadError,
)
from db_snapshot.backup.history import BackupHistory
from db_snapshot.backup.models import (
    BackupHistoryEntry,
    BackupResult,
    BackupType,
    ExportResult,
    SnapshotDocument,
)
from db_snapshot.backup.reader import MAX_PAGE_SIZE, read_all
from db_snapshot.storage.base import ObjectStorage

logger = logging.getLogger(__name__)

FORMAT_VERSION = "2.0"
CONTENT_TYPE = "application/json"


def snapshot_file_name(created_at: datetime) -> str:
    """File name derived from the document timestamp, to the second."""
    return f"backup_{created_at.strftime('%Y-%m-%dT%H-%M-%S')}.json"


def snapshot_path(backup_type: BackupType, file_name: str) -> str:
    """Storage path namespaced by backup type."""
    return f"{backup_type}/{file_name}"


async def resolve_unattended_owner(
    adapter: DatabaseClient,
    require: bool = False,
) -> str | None:
    """Return the first admin user id, used as owner of unattended runs.

    Args:
        adapter: Database adapter.
        require: Raise instead of returning ``None`` when no admin is found.

    Raises:
        OwnerNotFoundError: If ``require`` and no admin could be resolved.
    """
    try:
        rows = await adapter.select(
            "user_roles", "user_id", filters={"role": "admin"}, limit=1
        )
    except Exception as e:
        logger.warning("Could not look up admin owner: %s", e)
        rows = []

    owner = rows[0].get("user_id") if rows else None
    if owner is None and require:
        raise OwnerNotFoundError("No admin user found to own unattended backup")
    return owner


async def export_snapshot(
    adapter: DatabaseClient,
    catalog: TableCatalog,
    page_size: int = MAX_PAGE_SIZE,
    now: datetime | None = None,
) -> ExportResult:
    """Read every exported table into a snapshot document.

    A table whose read fails is stored as empty and its error is recorded;
    the export continues with the next table.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        catalog: Table catalog; ``export_order`` is the read order.
        page_size: Rows per page request.
        now: Override for the document timestamp (UTC).

    Returns:
        ``ExportResult`` with the document, counts, and per-table errors.
    """
    created_at = now or datetime.now(timezone.utc)
    tables: dict[str, list[dict]] = {}
    errors: list[str] = []
    total_records = 0

    for name in catalog.export_order:
        logger.info("Exporting %s...", name)
        try:
            rows = await read_all(adapter, name, page_size, order_by=catalog.get(name).pk)
        except ReadError as e:
            logger.error("Error exporting %s: %s", name, e.__cause__ or e)
            errors.append(str(e))
            rows = []

        tables[name] = rows
        total_records += len(rows)
        logger.info("Exported %d records from %s", len(rows), name)

    document = SnapshotDocument(
        format_version=FORMAT_VERSION,
        created_at=created_at.isoformat(),
        tables=tables,
    )

    logger.info(
        "Export complete: %d total records from %d tables",
        total_records,
        len(tables),
    )
    if errors:
        logger.warning("Export completed with errors: %s", errors)

    return ExportResult(
        document=document,
        table_count=len(tables),
        record_count=total_records,
        errors=errors,
    )


async def write_snapshot(
    adapter: DatabaseClient,
    storage: ObjectStorage,
    history: BackupHistory,
    catalog: TableCatalog,
    backup_type: BackupType = "manual",
    created_by: str | None = None,
    page_size: int = MAX_PAGE_SIZE,
    now: datetime | None = None,
    metadata: dict[str, Any] | None = None,
) -> BackupResult:
    """Export, store, and record one snapshot.

    The document is uploaded with ``fail_if_exists``; an upload failure
    leaves no history row.  If the history row cannot be written the
    uploaded object is removed again, so neither half outlives the other.

    Args:
        adapter: Database adapter.
        storage: Object storage for the document.
        history: Backup history catalog.
        catalog: Table catalog.
        backup_type: ``"auto"`` or ``"manual"``; namespaces the path.
        created_by: Owning user id, or ``None``.
        page_size: Rows per page request.
        now: Override for the snapshot timestamp (UTC).
        metadata: Extra keys for the history entry's ``metadata``.

    Returns:
        ``BackupResult`` with file name, size, and counts.

    Raises:
        UploadError: If the document could not be stored.
        HistoryError: If the history entry could not be written.
    """
    created_at = now or datetime.now(timezone.utc)
    export = await export_snapshot(adapter, catalog, page_size, now=created_at)

    file_name = snapshot_file_name(created_at)
    path = snapshot_path(backup_type, file_name)
    payload = export.document.to_json().encode("utf-8")

    logger.info("Uploading backup to storage: %s", path)
    try:
        await storage.put(path, payload, content_type=CONTENT_TYPE, fail_if_exists=True)
    except Exception as e:
        raise UploadError(f"Failed to upload backup: {e}") from e

    entry = BackupHistoryEntry(
        backup_name=file_name,
        backup_type=backup_type,
        file_size=len(payload),
        table_count=export.table_count,
        record_count=export.record_count,
        storage_path=path,
        created_by=created_by,
        metadata={
            "version": export.document.format_version,
            "timestamp": export.document.created_at,
            **(metadata or {}),
        },
    )
    try:
        stored = await history.create(entry)
    except Exception as e:
        logger.error("History insert error: %s", e)
        try:
            await storage.remove_many([path])
        except Exception as cleanup_error:
            logger.error("Failed to remove unrecorded backup %s: %s", path, cleanup_error)
        raise HistoryError(f"Failed to record backup {file_name}: {e}") from e

    logger.info("Backup %s stored (%d bytes)", file_name, len(payload))
    return BackupResult(
        file_name=file_name,
        file_size=len(payload),
        table_count=export.table_count,
        record_count=export.record_count,
        storage_path=path,
        backup_type=backup_type,
        history_id=stored.id,
        errors=export.errors,
    )
