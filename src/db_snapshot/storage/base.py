"""Object storage protocol and exceptions.

Snapshots are persisted as one object per run.  Objects are written by
backups, read back for download and stored-backup restore, and removed by
retention and single-backup deletion.

Usage:
    from db_snapshot.storage.base import ObjectStorage

    async def store(storage: ObjectStorage, payload: bytes) -> None:
        await storage.put(
            "manual/backup_2026-01-01T00-00-00.json",
            payload,
            content_type="application/json",
            fail_if_exists=True,
        )
"""

from typing import Protocol


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class StorageConflictError(StorageError):
    """Raised when writing to a path that already exists."""

    pass


class StorageNotFoundError(StorageError):
    """Raised when a requested object does not exist."""

    pass


class ObjectStorage(Protocol):
    """Storage interface for snapshot objects.

    All paths are relative strings (``"auto/backup_<timestamp>.json"``).
    """

    async def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        fail_if_exists: bool = True,
    ) -> None:
        """Write *data* at *path*.

        Raises:
            StorageConflictError: If *path* exists and ``fail_if_exists``.
            StorageError: On any other failure.
        """
        ...

    async def get(self, path: str) -> bytes:
        """Read the object at *path*.

        Raises:
            StorageNotFoundError: If *path* does not exist.
        """
        ...

    async def remove_many(self, paths: list[str]) -> list[str]:
        """Remove objects; missing paths are ignored.

        Returns:
            The paths that were actually removed.

        Raises:
            StorageError: If the removal request itself fails.
        """
        ...
