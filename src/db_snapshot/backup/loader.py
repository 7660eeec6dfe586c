"""Dependency-ordered batch loader.

Replays a snapshot document into a live schema, one table at a time in
catalog order.  Each table moves through clearing (replace mode only),
normalizing, integrity filtering, and batched writes, and ends in exactly
one bucket of the run report.

There is no transaction spanning batches or tables: a table that fails
part-way keeps the batches already written, and later tables still run.

Usage:
    from db_snapshot.backup.catalog import DEFAULT_CATALOG
    from db_snapshot.backup.loader import restore_snapshot

    report = await restore_snapshot(adapter, document, DEFAULT_CATALOG, mode="merge")
    for failure in report.errors:
        print(failure.table, failure.error)
"""

import logging
from typing import Any

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.catalog import TableCatalog
from db_snapshot.backup.errors import ClearError, WriteError
from db_snapshot.backup.integrity import filter_records
from db_snapshot.backup.models import RestoreMode, SnapshotDocument, TableDef
from db_snapshot.backup.normalizer import normalize_record
from db_snapshot.backup.report import RunReport, RunReportBuilder

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


def _batches(records: list[dict], size: int) -> list[list[dict]]:
    return [records[i:i + size] for i in range(0, len(records), size)]


async def restore_snapshot(
    adapter: DatabaseClient,
    document: SnapshotDocument,
    catalog: TableCatalog,
    mode: RestoreMode = "replace",
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> RunReport:
    """Restore every catalog table present in *document*.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        document: Validated snapshot document.
        catalog: Table catalog; its order is the processing order.
        mode: ``"replace"`` clears each table and inserts (a failed batch
            stops that table); ``"merge"`` upserts by primary key (a failed
            batch is logged and the next batch continues).
        batch_size: Rows per write request.

    Returns:
        ``RunReport`` with one entry per catalog table.

    Raises:
        ValueError: If ``mode`` or ``batch_size`` is invalid.
    """
    if mode not in ("replace", "merge"):
        raise ValueError(f"Unknown restore mode: {mode!r}")
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    logger.info(
        "Processing backup version %s from %s (mode=%s)",
        document.format_version,
        document.created_at,
        mode,
    )

    report = RunReportBuilder()
    # Primary keys written in this run, per table
    accepted_keys: dict[str, set[Any]] = {}

    for table_def in catalog:
        await _restore_table(
            adapter=adapter,
            table_def=table_def,
            records=document.records(table_def.name),
            mode=mode,
            batch_size=batch_size,
            accepted_keys=accepted_keys,
            report=report,
        )

    for name in document.tables:
        if name not in catalog:
            logger.debug("Ignoring table not in catalog: %s", name)

    result = report.build()
    logger.info("Restore finished: %s", result.summary())
    return result


async def _restore_table(
    adapter: DatabaseClient,
    table_def: TableDef,
    records: list[dict],
    mode: RestoreMode,
    batch_size: int,
    accepted_keys: dict[str, set[Any]],
    report: RunReportBuilder,
) -> None:
    """Drive one table to its terminal state and record it.

    Args:
        adapter: Database adapter.
        table_def: Table definition from the catalog.
        records: Records of this table from the document.
        mode: Restore mode.
        batch_size: Rows per write request.
        accepted_keys: Shared accepted-keys index (mutated in place).
        report: Shared report builder (mutated in place).
    """
    table = table_def.name

    if not records:
        report.add_skipped(table)
        return

    accepted_keys[table] = set()

    if mode == "replace":
        try:
            await _clear_table(adapter, table_def)
        except ClearError as e:
            logger.error("Error clearing %s: %s", table, e)
            report.add_error(table, str(e))
            return

    records = [normalize_record(table, r) for r in records]

    integrity = filter_records(table_def, records, accepted_keys)
    if integrity.warning:
        report.add_warning(table, integrity.warning)
    records = integrity.kept

    if not records:
        report.add_skipped(table)
        return

    written = 0
    failed_batches = 0

    batches = _batches(records, batch_size)
    for batch in batches:
        try:
            keys = await _write_batch(adapter, table_def, batch, mode)
        except WriteError as e:
            if mode == "replace":
                logger.error("Error importing %s: %s", table, e)
                report.add_error(table, str(e), records_written=written)
                return
            # Merge mode keeps going with the next batch
            logger.error("Upsert error in %s: %s", table, e)
            failed_batches += 1
            continue

        written += len(batch)
        accepted_keys[table].update(keys)

    if failed_batches and not written:
        logger.error("Every upsert batch failed for %s", table)
        report.add_error(table, f"{table}: all {len(batches)} batches failed to upsert")
        return

    if failed_batches:
        report.add_warning(
            table,
            f"{failed_batches} of {len(batches)} batches failed to upsert",
        )

    logger.info("Imported %d records into %s", written, table)
    report.add_success(table, written=written, skipped=integrity.skipped_count, mode=mode)


async def _clear_table(adapter: DatabaseClient, table_def: TableDef) -> None:
    """Delete all existing rows of a table.

    Raises:
        ClearError: If the delete fails.
    """
    try:
        await adapter.delete_all(table_def.name, pk=table_def.pk)
    except Exception as e:
        raise ClearError(table_def.name, f"Clear error: {e}") from e


async def _write_batch(
    adapter: DatabaseClient,
    table_def: TableDef,
    batch: list[dict],
    mode: RestoreMode,
) -> list[Any]:
    """Write one batch and return the primary keys it accepted.

    Raises:
        WriteError: If the insert or upsert fails.
    """
    try:
        if mode == "merge":
            keys = await adapter.upsert_many(table_def.name, batch, on_conflict=table_def.pk)
        else:
            keys = await adapter.insert_many(table_def.name, batch, pk=table_def.pk)
    except Exception as e:
        verb = "Upsert" if mode == "merge" else "Insert"
        raise WriteError(table_def.name, f"{verb} error: {e}") from e
    return list(keys or [])
