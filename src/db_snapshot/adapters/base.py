"""``DatabaseClient``: the async table access the snapshot pipeline needs.

Next to single-row reads and writes there are three bulk operations:
ranged reads (paging around a per-request row cap), batch writes that
report the primary keys they accepted, and a delete-all for replace-mode
restores.

Usage:
    from db_snapshot.adapters.base import DatabaseClient

    async def copy_profiles(client: DatabaseClient) -> None:
        rows, total = await client.select_range("profiles", offset=0, limit=1000)
        keys = await client.insert_many("profiles", rows, pk="id")
        await client.close()
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Table access implemented by the Postgres and Supabase adapters.

    Rows travel as plain dicts with JSON-compatible values.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        """Read rows matching equality filters.

        Args:
            table: Table name.
            columns: ``"*"`` or a comma-separated column list.
            filters: Column values that must all match.
            order_by: Sort column.
            descending: Sort descending when ``order_by`` is given.
            limit: Optional maximum number of rows.

        Returns:
            Matching rows; empty when nothing matches.

        Example:
            newest = await client.select(
                "backup_history",
                "*",
                filters={"backup_type": "auto"},
                order_by="created_at",
                descending=True,
            )
        """
        ...

    async def select_range(
        self,
        table: str,
        offset: int,
        limit: int,
        order_by: str | None = None,
    ) -> tuple[list[dict], int | None]:
        """Read one page of rows ``[offset, offset + limit)``.

        Args:
            table: Table name.
            offset: Zero-based index of the first row.
            limit: Maximum number of rows to return.
            order_by: Column giving a stable order across pages.

        Returns:
            Tuple of ``(rows, total)``.  ``total`` is the exact row count of
            the table when the backend reports it, otherwise ``None``.
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert one row and return it as stored (defaults filled in)."""
        ...

    async def insert_many(self, table: str, rows: list[dict], pk: str = "id") -> list[Any]:
        """Insert a batch of rows.

        The batch succeeds or fails as a whole where the backend allows it.

        Args:
            table: Table name.
            rows: Row dicts to insert.
            pk: Primary key column to return.

        Returns:
            Primary key values of the inserted rows.

        Raises:
            Exception: On any constraint violation or transport error.
        """
        ...

    async def upsert_many(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> list[Any]:
        """Insert or update a batch of rows, matching on ``on_conflict``.

        Returns:
            Primary key values (the ``on_conflict`` column) of written rows.
        """
        ...

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows matching all filters.

        Example:
            await client.delete("backup_history", {"id": "abc-123"})
        """
        ...

    async def delete_all(self, table: str, pk: str = "id") -> None:
        """Delete every row in table."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
