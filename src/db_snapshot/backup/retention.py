"""Retention of automatic snapshots.

Eviction is two independent phases: storage objects first (one batch
removal), then history rows.  Phase 2 runs even when phase 1 fails, so
the two halves are not guaranteed to disappear together; each phase
reports its own failure in the result.
"""

import logging
from datetime import datetime, timezone

from db_snapshot.backup.history import BackupHistory
from db_snapshot.backup.models import BackupHistoryEntry, BackupType, RetentionResult
from db_snapshot.storage.base import ObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_KEEP = 7

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(entry: BackupHistoryEntry) -> datetime:
    created = entry.created_at
    if created is None:
        return _OLDEST
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created


def select_evictions(entries: list[BackupHistoryEntry], keep: int) -> list[BackupHistoryEntry]:
    """Return every entry beyond the *keep* newest, by ``created_at``.

    Listing order is ignored; entries without a timestamp count as oldest.
    """
    if keep < 0:
        raise ValueError("keep must be >= 0")
    newest_first = sorted(entries, key=_sort_key, reverse=True)
    return newest_first[keep:]


async def enforce_retention(
    storage: ObjectStorage,
    history: BackupHistory,
    backup_type: BackupType = "auto",
    keep: int = DEFAULT_KEEP,
) -> RetentionResult:
    """Trim snapshots of *backup_type* down to the *keep* most recent.

    Args:
        storage: Object storage holding the snapshot documents.
        history: Backup history catalog.
        backup_type: Only entries of this type are considered.
        keep: Number of newest entries to keep.

    Returns:
        ``RetentionResult`` describing both phases.

    Raises:
        ValueError: If ``keep`` is negative.
    """
    evicted = select_evictions(await history.list(backup_type=backup_type), keep)
    result = RetentionResult()
    if not evicted:
        return result

    logger.info("Evicting %d old %s backups", len(evicted), backup_type)

    # Phase 1: storage objects
    paths = [e.storage_path for e in evicted if e.storage_path]
    if paths:
        try:
            result.removed_paths = await storage.remove_many(paths)
        except Exception as e:
            result.storage_error = str(e)
            logger.warning("Failed to remove %d backup objects: %s", len(paths), e)

    # Phase 2: history rows, regardless of phase 1
    for entry in evicted:
        if entry.id is None:
            continue
        try:
            await history.delete(entry.id)
        except Exception as e:
            result.history_errors.append(f"{entry.id}: {e}")
            logger.warning("Failed to delete backup history row %s: %s", entry.id, e)
        else:
            result.evicted.append(entry.id)

    logger.info("Deleted %d old backups", len(result.evicted))
    return result
