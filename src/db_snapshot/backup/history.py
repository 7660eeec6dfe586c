"""Backup history catalog.

Thin repository over the ``backup_history`` table: one row per stored
snapshot, read back by retention to decide what to evict.

Usage:
    history = BackupHistory(adapter)
    entry = await history.create(BackupHistoryEntry(...))
    same = await history.get(entry.id)
    autos = await history.list(backup_type="auto")   # newest first
    await history.delete(autos[-1].id)
"""

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.models import BackupHistoryEntry, BackupType

HISTORY_TABLE = "backup_history"


class BackupHistory:
    """CRUD on backup history entries through a ``DatabaseClient``.

    Args:
        adapter: Database adapter.
        table: History table name (default ``"backup_history"``).
    """

    def __init__(self, adapter: DatabaseClient, table: str = HISTORY_TABLE) -> None:
        self._adapter = adapter
        self.table = table

    async def create(self, entry: BackupHistoryEntry) -> BackupHistoryEntry:
        """Insert *entry* and return the stored row (with id and timestamp)."""
        data = entry.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
        row = await self._adapter.insert(self.table, data)
        return BackupHistoryEntry.model_validate(row)

    async def get(self, entry_id: str) -> BackupHistoryEntry | None:
        """Return the entry with *entry_id*, or ``None``."""
        rows = await self._adapter.select(self.table, "*", filters={"id": entry_id}, limit=1)
        return BackupHistoryEntry.model_validate(rows[0]) if rows else None

    async def list(self, backup_type: BackupType | None = None) -> list[BackupHistoryEntry]:
        """List entries newest first, optionally filtered by type."""
        filters = {"backup_type": backup_type} if backup_type else None
        rows = await self._adapter.select(
            self.table,
            "*",
            filters=filters,
            order_by="created_at",
            descending=True,
        )
        return [BackupHistoryEntry.model_validate(r) for r in rows]

    async def delete(self, entry_id: str) -> None:
        """Delete one entry by id."""
        await self._adapter.delete(self.table, {"id": entry_id})
