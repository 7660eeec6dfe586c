"""Snapshot backup and restore pipeline.

Provides the table catalog, paginated export, snapshot storage with
backup history, retention, document validation, and the dependency-ordered
restore loader.

Usage:
    from db_snapshot.backup import DEFAULT_CATALOG, export_snapshot, restore_snapshot
    from db_snapshot.backup import validate_snapshot, enforce_retention
"""

from db_snapshot.backup.catalog import DEFAULT_CATALOG, DEFAULT_TABLES, TableCatalog
from db_snapshot.backup.errors import (
    BackupNotFoundError,
    CatalogCycleError,
    CatalogError,
    ClearError,
    DownloadError,
    FormatError,
    HistoryError,
    OwnerNotFoundError,
    ReadError,
    SnapshotError,
    UnknownTableError,
    UploadError,
    WriteError,
)
from db_snapshot.backup.history import BackupHistory
from db_snapshot.backup.loader import restore_snapshot
from db_snapshot.backup.models import (
    BackupHistoryEntry,
    BackupResult,
    DeleteResult,
    ExportResult,
    ForeignKey,
    RetentionResult,
    SnapshotDocument,
    TableDef,
)
from db_snapshot.backup.report import RunReport, RunReportBuilder
from db_snapshot.backup.retention import enforce_retention
from db_snapshot.backup.validator import inspect_snapshot, load_snapshot, validate_snapshot
from db_snapshot.backup.writer import export_snapshot, write_snapshot

__all__ = [
    # Catalog
    "TableCatalog",
    "TableDef",
    "ForeignKey",
    "DEFAULT_TABLES",
    "DEFAULT_CATALOG",
    # Models
    "SnapshotDocument",
    "BackupHistoryEntry",
    "ExportResult",
    "BackupResult",
    "DeleteResult",
    "RetentionResult",
    "RunReport",
    "RunReportBuilder",
    # Operations
    "export_snapshot",
    "write_snapshot",
    "restore_snapshot",
    "enforce_retention",
    "validate_snapshot",
    "load_snapshot",
    "inspect_snapshot",
    "BackupHistory",
    # Errors
    "SnapshotError",
    "FormatError",
    "ReadError",
    "ClearError",
    "WriteError",
    "UploadError",
    "HistoryError",
    "OwnerNotFoundError",
    "BackupNotFoundError",
    "DownloadError",
    "CatalogError",
    "CatalogCycleError",
    "UnknownTableError",
]
