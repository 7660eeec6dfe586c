"""Snapshot reader and validator.

Only the two header fields are load-bearing: a document without a format
version or creation timestamp is rejected before any table is touched.
Unknown tables and unknown record fields are accepted, and an absent or
empty table simply means nothing to import for it.

Usage:
    from db_snapshot.backup.validator import load_snapshot, validate_snapshot

    document = validate_snapshot(request_body)        # dict, str, or bytes
    document = load_snapshot("backups/manual/backup_2026-01-15T10-00-00.json")
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from db_snapshot.backup.catalog import TableCatalog
from db_snapshot.backup.errors import FormatError
from db_snapshot.backup.models import SnapshotDocument

logger = logging.getLogger(__name__)

_VERSION_KEYS = ("version", "formatVersion", "format_version")
_TIMESTAMP_KEYS = ("timestamp", "createdAt", "created_at")


def _first_present(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def validate_snapshot(data: dict[str, Any] | str | bytes) -> SnapshotDocument:
    """Validate a snapshot document and return it as a ``SnapshotDocument``.

    Args:
        data: Parsed JSON object, or JSON text.

    Returns:
        The validated document.  Tables whose value is not a list of
        objects are dropped (treated as absent).

    Raises:
        FormatError: If the text is not JSON, the document is not an
            object, ``tables`` is missing, or the version/timestamp header
            is missing.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise FormatError("Invalid backup data: document must be a JSON object")

    tables = data.get("tables")
    if not isinstance(tables, dict):
        raise FormatError("Invalid backup data: missing tables")

    version = _first_present(data, _VERSION_KEYS)
    timestamp = _first_present(data, _TIMESTAMP_KEYS)
    if version is None or timestamp is None:
        raise FormatError("Invalid backup file: missing version or timestamp metadata")

    clean_tables: dict[str, list[dict]] = {}
    for name, records in tables.items():
        if records is None:
            continue
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            logger.warning("Ignoring table %s: records are not a list of objects", name)
            continue
        clean_tables[name] = records

    extras = {
        k: v for k, v in data.items()
        if k not in _VERSION_KEYS + _TIMESTAMP_KEYS + ("tables",)
    }

    try:
        return SnapshotDocument(
            format_version=str(version),
            created_at=str(timestamp),
            tables=clean_tables,
            **extras,
        )
    except ValidationError as e:
        raise FormatError(f"Invalid backup data: {e}") from e


def load_snapshot(path: str | Path) -> SnapshotDocument:
    """Read and validate a snapshot document from a local file.

    Raises:
        FormatError: If the file is missing, unreadable, or invalid.
    """
    try:
        raw = Path(path).read_bytes()
    except FileNotFoundError:
        raise FormatError(f"Backup file not found: {path}") from None
    except OSError as e:
        raise FormatError(f"Cannot read backup file {path}: {e}") from e
    return validate_snapshot(raw)


def inspect_snapshot(document: SnapshotDocument, catalog: TableCatalog) -> dict[str, Any]:
    """Summarize a validated document against a catalog.

    Returns:
        Dict with ``version``, ``timestamp``, per-table ``counts`` (catalog
        order), ``record_count``, and ``warnings`` for tables the catalog
        does not know or that the document does not carry.
    """
    warnings: list[str] = []
    counts: dict[str, int] = {}

    for name in catalog.order:
        if name in document.tables:
            counts[name] = len(document.tables[name])
        elif catalog.get(name).exported:
            warnings.append(f"Table not in backup: {name}")

    for name in document.tables:
        if name not in catalog:
            warnings.append(f"Unknown table will be ignored: {name}")

    return {
        "version": document.format_version,
        "timestamp": document.created_at,
        "counts": counts,
        "record_count": sum(counts.values()),
        "warnings": warnings,
    }
