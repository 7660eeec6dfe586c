"""Exceptions raised by the snapshot pipeline.

Table-level errors (``ReadError``, ``ClearError``, ``WriteError``) are caught
by the exporter and loader and recorded per table.  ``FormatError`` is the
only error that aborts a restore before any table is touched.
"""


class SnapshotError(Exception):
    """Base exception for snapshot backup and restore operations."""

    pass


class FormatError(SnapshotError):
    """Raised when a snapshot document is missing required header fields."""

    pass


class TableError(SnapshotError):
    """Base for errors scoped to a single table."""

    def __init__(self, table: str, message: str) -> None:
        self.table = table
        super().__init__(f"{table}: {message}")


class ReadError(TableError):
    """Raised when a page read fails while reading a table."""

    pass


class ClearError(TableError):
    """Raised when deleting existing rows fails in replace mode."""

    pass


class WriteError(TableError):
    """Raised when a batch insert or upsert fails."""

    pass


class UploadError(SnapshotError):
    """Raised when the serialized snapshot could not be stored."""

    pass


class HistoryError(SnapshotError):
    """Raised when a backup history entry could not be written."""

    pass


class BackupNotFoundError(SnapshotError):
    """Raised when a backup history entry or its stored object does not exist."""

    pass


class DownloadError(SnapshotError):
    """Raised when a stored snapshot could not be read back from storage."""

    pass


class OwnerNotFoundError(SnapshotError):
    """Raised when an unattended run requires an owner and none exists."""

    pass


class CatalogError(SnapshotError):
    """Base for table catalog construction errors."""

    pass


class CatalogCycleError(CatalogError):
    """Raised when declared table dependencies contain a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(
            f"Dependency cycle in table catalog: {' -> '.join(cycle)}"
        )


class UnknownTableError(CatalogError):
    """Raised when a table name is not declared in the catalog."""

    pass
