"""Referential integrity filter for dependency-sensitive tables.

A dependency-sensitive table keeps only rows whose parent key was written
earlier in the same restore run.  Dropped rows are counted, never inserted
as dangling references.

Usage:
    from db_snapshot.backup.integrity import filter_records

    result = filter_records(table_def, records, accepted_keys)
    if result.warning:
        report.add_warning(table_def.name, result.warning)
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from db_snapshot.backup.models import TableDef

logger = logging.getLogger(__name__)


@dataclass
class IntegrityResult:
    """Rows that survived the filter and how many were dropped."""

    kept: list[dict] = field(default_factory=list)
    skipped_count: int = 0
    warning: str | None = None


def filter_records(
    table_def: TableDef,
    records: list[dict],
    accepted_keys: Mapping[str, set[Any]],
) -> IntegrityResult:
    """Drop records whose parent key was not accepted in this run.

    Tables without an ``integrity_ref`` pass through unchanged.  A record
    with a null reference is dropped as well.  At most one warning is
    produced per table, regardless of how many rows were dropped.

    Args:
        table_def: Definition of the table being restored.
        records: Normalized records of that table.
        accepted_keys: Primary keys written so far, per table.

    Returns:
        ``IntegrityResult`` with the kept rows, skip count, and warning.
    """
    ref = table_def.integrity_ref
    if ref is None:
        return IntegrityResult(kept=list(records))

    parent_keys = accepted_keys.get(ref.table, set())
    kept = [
        r for r in records
        if r.get(ref.field) is not None and r.get(ref.field) in parent_keys
    ]
    skipped_count = len(records) - len(kept)

    warning = None
    if skipped_count > 0:
        warning = (
            f"Skipped {skipped_count} records with invalid {ref.field} "
            f"references to {ref.table}"
        )
        logger.warning("%s: %s", table_def.name, warning)

    return IntegrityResult(kept=kept, skipped_count=skipped_count, warning=warning)
