"""Shared fixtures: in-memory database and object storage fakes.

``InMemoryDatabase`` implements the ``DatabaseClient`` protocol over plain
dicts, and ``InMemoryStorage`` implements ``ObjectStorage``.  Both accept
failure hooks so tests can make individual operations fail.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from db_snapshot.backup.catalog import TableCatalog
from db_snapshot.backup.models import ForeignKey, TableDef
from db_snapshot.config.models import SnapshotSettings
from db_snapshot.storage.base import StorageConflictError, StorageError, StorageNotFoundError


class InMemoryDatabase:
    """Dict-backed ``DatabaseClient``.

    Args:
        tables: Initial rows per table.

    Attributes:
        fail: Maps ``(operation, table)`` to a predicate over the rows of
            the call; when it returns True the call raises ``RuntimeError``.
            Read and delete operations pass an empty list.
        calls: Log of ``(operation, table)`` tuples, in call order.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.fail: dict[tuple[str, str], Callable[[list[dict]], bool]] = {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self._next_id = 0

    def _check(self, op: str, table: str, rows: list[dict] | None = None) -> None:
        self.calls.append((op, table))
        predicate = self.fail.get((op, table))
        if predicate is not None and predicate(rows or []):
            raise RuntimeError(f"{op} on {table} failed")

    def fail_always(self, op: str, table: str) -> None:
        self.fail[(op, table)] = lambda rows: True

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        self._check("select", table)
        result = [
            r for r in self.rows(table)
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order_by:
            result.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""))
            if descending:
                result.reverse()
        if limit is not None:
            result = result[:limit]
        if columns != "*":
            names = [c.strip() for c in columns.split(",")]
            result = [{c: r.get(c) for c in names} for r in result]
        return [dict(r) for r in result]

    async def select_range(
        self,
        table: str,
        offset: int,
        limit: int,
        order_by: str | None = None,
    ) -> tuple[list[dict], int | None]:
        self._check("select_range", table)
        rows = self.rows(table)
        if order_by:
            rows = sorted(rows, key=lambda r: str(r.get(order_by)))
        return [dict(r) for r in rows[offset:offset + limit]], len(rows)

    async def insert(self, table: str, data: dict) -> dict:
        self._check("insert", table, [data])
        row = dict(data)
        if "id" not in row:
            self._next_id += 1
            row["id"] = f"{table}-{self._next_id}"
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.rows(table).append(row)
        return dict(row)

    async def insert_many(self, table: str, rows: list[dict], pk: str = "id") -> list[Any]:
        self._check("insert_many", table, rows)
        existing = {r.get(pk) for r in self.rows(table)}
        for row in rows:
            if row.get(pk) in existing:
                raise RuntimeError(f"duplicate key value violates unique constraint on {table}")
        self.rows(table).extend(dict(r) for r in rows)
        return [r.get(pk) for r in rows]

    async def upsert_many(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> list[Any]:
        self._check("upsert_many", table, rows)
        stored = self.rows(table)
        for row in rows:
            for i, existing in enumerate(stored):
                if existing.get(on_conflict) == row.get(on_conflict):
                    stored[i] = {**existing, **row}
                    break
            else:
                stored.append(dict(row))
        return [r.get(on_conflict) for r in rows]

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        self._check("delete", table)
        self.tables[table] = [
            r for r in self.rows(table)
            if not all(r.get(k) == v for k, v in filters.items())
        ]

    async def delete_all(self, table: str, pk: str = "id") -> None:
        self._check("delete_all", table)
        self.tables[table] = []

    async def close(self) -> None:
        self.closed = True


class InMemoryStorage:
    """Dict-backed ``ObjectStorage``."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.fail_put = False
        self.fail_remove = False
        self.remove_calls: list[list[str]] = []

    async def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        fail_if_exists: bool = True,
    ) -> None:
        if self.fail_put:
            raise StorageError("storage unavailable")
        if fail_if_exists and path in self.objects:
            raise StorageConflictError(f"Object already exists: {path}")
        self.objects[path] = data
        self.content_types[path] = content_type

    async def get(self, path: str) -> bytes:
        if path not in self.objects:
            raise StorageNotFoundError(f"Path not found: {path}")
        return self.objects[path]

    async def remove_many(self, paths: list[str]) -> list[str]:
        self.remove_calls.append(list(paths))
        if self.fail_remove:
            raise StorageError("storage unavailable")
        removed = [p for p in paths if p in self.objects]
        for p in removed:
            del self.objects[p]
        return removed


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def settings() -> SnapshotSettings:
    return SnapshotSettings()


@pytest.fixture
def ab_catalog() -> TableCatalog:
    """Parent table ``a`` and dependency-sensitive child ``b`` (``b.a_id``)."""
    return TableCatalog([
        TableDef(name="a"),
        TableDef(
            name="b",
            depends_on=["a"],
            integrity_ref=ForeignKey(table="a", field="a_id"),
        ),
    ])


@pytest.fixture
def make_db() -> Callable[..., InMemoryDatabase]:
    """Factory for databases seeded with rows."""
    return InMemoryDatabase
