"""Paginated bulk reader.

Reads a whole table despite the per-request row ceiling of the hosted
store by requesting successive ranges until the data runs out.

Usage:
    from db_snapshot.backup.reader import read_all

    rows = await read_all(adapter, "profiles", page_size=1000)
"""

import logging

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.errors import ReadError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000


def clamp_page_size(page_size: int) -> int:
    """Clamp *page_size* into ``[1, MAX_PAGE_SIZE]``."""
    return max(1, min(page_size, MAX_PAGE_SIZE))


async def read_all(
    adapter: DatabaseClient,
    table: str,
    page_size: int = MAX_PAGE_SIZE,
    order_by: str | None = None,
) -> list[dict]:
    """Read every row of *table*, one page at a time.

    Stops on the first empty page.  When the backend reports an exact
    total, reading continues until that many rows have arrived, even if
    the store returns pages shorter than requested; otherwise a short
    page ends the read.  Pages are concatenated in arrival order.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        table: Table name.
        page_size: Rows per request; clamped to ``MAX_PAGE_SIZE``.
        order_by: Column giving a stable order across pages.

    Returns:
        All rows of the table.

    Raises:
        ReadError: If any page read fails.  Rows read so far are discarded.
    """
    page_size = clamp_page_size(page_size)
    rows: list[dict] = []
    offset = 0

    while True:
        try:
            page, total = await adapter.select_range(
                table, offset=offset, limit=page_size, order_by=order_by
            )
        except Exception as e:
            raise ReadError(table, f"page at offset {offset} failed: {e}") from e

        if not page:
            break

        rows.extend(page)
        offset += len(page)
        logger.debug("Fetched %d rows from %s (total: %d)", len(page), table, len(rows))

        if total is not None:
            if len(rows) >= total:
                break
        elif len(page) < page_size:
            break

    return rows
