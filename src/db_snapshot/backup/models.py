"""Pydantic models for snapshot documents, table definitions, and results.

Usage:
    from db_snapshot.backup.models import TableDef, ForeignKey, SnapshotDocument

    table = TableDef(
        name="approval_logs",
        depends_on=["employee_ratings"],
        integrity_ref=ForeignKey(table="employee_ratings", field="rating_id"),
    )

    document = SnapshotDocument(
        version="2.0",
        timestamp="2026-01-01T00:00:00+00:00",
        tables={"profiles": [{"id": "p1", "role": "admin"}]},
    )
    document.model_dump(by_alias=True)
    # {'version': '2.0', 'timestamp': '2026-01-01T00:00:00+00:00', 'tables': {...}}
"""

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

BackupType = Literal["auto", "manual"]
RestoreMode = Literal["replace", "merge"]

Record = dict[str, Any]


# ============================================================================
# Table definitions
# ============================================================================


class ForeignKey(BaseModel):
    """Foreign key reference to a parent table."""

    table: str          # parent table name
    field: str          # FK column in this table


class TableDef(BaseModel):
    """Definition of a table for snapshot export and restore."""

    model_config = ConfigDict(frozen=True)

    name: str                                       # table name
    pk: str = "id"                                  # primary key column
    depends_on: tuple[str, ...] = ()                # tables referenced by FK
    integrity_ref: ForeignKey | None = None         # drop row on restore if parent key not accepted
    exported: bool = True                           # included in snapshot exports

    @property
    def is_dependency_sensitive(self) -> bool:
        """Whether restored rows are filtered against accepted parent keys."""
        return self.integrity_ref is not None


# ============================================================================
# Snapshot document
# ============================================================================


class SnapshotDocument(BaseModel):
    """Portable snapshot of every exported table.

    Serialized with ``version`` / ``timestamp`` header keys; the
    ``formatVersion`` / ``createdAt`` spellings are accepted on input.
    Unknown top-level keys are kept as extras.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    format_version: str = Field(
        alias="version",
        validation_alias=AliasChoices("version", "formatVersion", "format_version"),
    )
    created_at: str = Field(
        alias="timestamp",
        validation_alias=AliasChoices("timestamp", "createdAt", "created_at"),
    )
    tables: dict[str, list[Record]] = Field(default_factory=dict)

    def records(self, table: str) -> list[Record]:
        """Return the records for *table*, or an empty list if absent."""
        return self.tables.get(table) or []

    def to_json(self) -> str:
        """Serialize to the UTF-8 JSON text stored in object storage."""
        return self.model_dump_json(by_alias=True, indent=2)


# ============================================================================
# Backup history
# ============================================================================


class BackupHistoryEntry(BaseModel):
    """Metadata row describing one stored snapshot (``backup_history``)."""

    id: str | None = None
    backup_name: str
    backup_type: BackupType
    file_size: int = 0
    table_count: int = 0
    record_count: int = 0
    storage_path: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def decode_metadata(cls, value: Any) -> Any:
        """Accept JSONB returned as text by raw-SQL drivers."""
        if value is None:
            return {}
        if isinstance(value, str):
            return json.loads(value)
        return value


# ============================================================================
# Results
# ============================================================================


class ExportResult(BaseModel):
    """Result of reading every exported table into a snapshot document."""

    document: SnapshotDocument
    table_count: int = 0
    record_count: int = 0
    errors: list[str] = Field(default_factory=list)


class BackupResult(BaseModel):
    """Result of a stored snapshot run."""

    file_name: str
    file_size: int
    table_count: int
    record_count: int
    storage_path: str
    backup_type: BackupType
    history_id: str | None = None
    errors: list[str] = Field(default_factory=list)


class RetentionResult(BaseModel):
    """Outcome of trimming old snapshots, reported per phase."""

    evicted: list[str] = Field(default_factory=list)        # history row ids
    removed_paths: list[str] = Field(default_factory=list)
    storage_error: str | None = None
    history_errors: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when both phases succeeded."""
        return self.storage_error is None and not self.history_errors


class DeleteResult(BaseModel):
    """Outcome of deleting one stored snapshot and its history entry."""

    entry_id: str
    storage_path: str | None = None
    storage_removed: bool = False
    storage_error: str | None = None
