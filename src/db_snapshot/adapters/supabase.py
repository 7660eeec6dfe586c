"""Supabase (PostgREST) adapter on the supabase-py async client.

PostgREST returns at most 1000 rows per response, so full-table reads go
through ``select_range``, which also reports an exact row count.  Batch
writes are single requests and therefore atomic per batch.

The client is created on first use and shared with ``SupabaseStorage``.

Usage:
    from db_snapshot.adapters.supabase import AsyncSupabaseAdapter

    adapter = AsyncSupabaseAdapter(
        url="https://xyzproject.supabase.co",
        key="eyJ...",  # service-role key, bypasses RLS
    )

    rows, total = await adapter.select_range("profiles", offset=0, limit=1000)
    await adapter.close()
"""

import asyncio
from typing import Any

from supabase import AsyncClient, acreate_client

# Sentinel used to express "every row" to PostgREST, which rejects
# unfiltered DELETE statements.
NIL_UUID = "00000000-0000-0000-0000-000000000000"


class AsyncSupabaseAdapter:
    """``DatabaseClient`` for a Supabase project.

    Args:
        url: Supabase project URL.
        key: Supabase API key (service-role key for backup/restore).
    """

    def __init__(self, url: str, key: str) -> None:
        self._url: str = url
        self._key: str = key
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get_client(self) -> AsyncClient:
        """Return the shared client, creating it once under ``_lock``."""
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        client = await self.get_client()
        query = client.table(table).select(columns)

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if order_by:
            query = query.order(order_by, desc=descending)

        if limit is not None:
            query = query.limit(limit)

        result = await query.execute()
        return result.data

    async def select_range(
        self,
        table: str,
        offset: int,
        limit: int,
        order_by: str | None = None,
    ) -> tuple[list[dict], int | None]:
        """Read one page with an exact total count."""
        client = await self.get_client()
        query = client.table(table).select("*", count="exact")
        if order_by:
            query = query.order(order_by)
        result = await query.range(offset, offset + limit - 1).execute()
        return result.data or [], result.count

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, table: str, data: dict) -> dict:
        """Insert one row (``_``-prefixed keys dropped) and return it."""
        client = await self.get_client()
        clean_data = {k: v for k, v in data.items() if not k.startswith("_")}
        result = await client.table(table).insert(clean_data).execute()
        return result.data[0]

    async def insert_many(self, table: str, rows: list[dict], pk: str = "id") -> list[Any]:
        """Insert a batch in one request (PostgREST runs it as one statement)."""
        client = await self.get_client()
        result = await client.table(table).insert(rows).execute()
        return [row[pk] for row in result.data or [] if pk in row]

    async def upsert_many(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> list[Any]:
        """Upsert a batch in one request, matching on ``on_conflict``."""
        client = await self.get_client()
        result = await client.table(table).upsert(rows, on_conflict=on_conflict).execute()
        return [row[on_conflict] for row in result.data or [] if on_conflict in row]

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows equal to every filter value."""
        client = await self.get_client()
        query = client.table(table).delete()

        for key, value in filters.items():
            query = query.eq(key, value)

        await query.execute()

    async def delete_all(self, table: str, pk: str = "id") -> None:
        """Delete every row (``pk <> nil uuid`` satisfies the filter requirement)."""
        client = await self.get_client()
        await client.table(table).delete().neq(pk, NIL_UUID).execute()

    async def close(self) -> None:
        """Close the client if one was created."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
