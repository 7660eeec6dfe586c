"""Tests for the paginated bulk reader."""

from unittest.mock import AsyncMock

import pytest

from db_snapshot.backup.errors import ReadError
from db_snapshot.backup.reader import MAX_PAGE_SIZE, clamp_page_size, read_all


def _rows(n: int, start: int = 0) -> list[dict]:
    return [{"id": f"r{i:05d}"} for i in range(start, start + n)]


class TestClampPageSize:
    @pytest.mark.parametrize(
        "requested, expected",
        [(0, 1), (-5, 1), (1, 1), (500, 500), (1000, 1000), (5000, MAX_PAGE_SIZE)],
    )
    def test_clamp(self, requested: int, expected: int) -> None:
        assert clamp_page_size(requested) == expected


class TestReadAll:
    async def test_reads_all_pages_in_order(self, make_db) -> None:
        db = make_db({"events": _rows(2500)})
        rows = await read_all(db, "events", page_size=1000, order_by="id")
        assert len(rows) == 2500
        assert rows == _rows(2500)
        assert db.calls.count(("select_range", "events")) == 3

    async def test_exact_multiple_stops_on_total(self, make_db) -> None:
        db = make_db({"events": _rows(2000)})
        rows = await read_all(db, "events", page_size=1000)
        assert len(rows) == 2000
        # total reached after the second page, no empty third request
        assert db.calls.count(("select_range", "events")) == 2

    async def test_empty_table(self, make_db) -> None:
        db = make_db({"events": []})
        assert await read_all(db, "events") == []

    async def test_short_page_stops_without_total(self) -> None:
        adapter = AsyncMock()
        adapter.select_range = AsyncMock(side_effect=[(_rows(3), None), (_rows(2, 3), None)])
        rows = await read_all(adapter, "t", page_size=3)
        assert len(rows) == 5
        assert adapter.select_range.await_count == 2

    async def test_oversized_page_size_is_clamped(self) -> None:
        adapter = AsyncMock()
        adapter.select_range = AsyncMock(return_value=([], 0))
        await read_all(adapter, "t", page_size=50_000)
        assert adapter.select_range.await_args.kwargs["limit"] == MAX_PAGE_SIZE

    async def test_capped_pages_continue_until_total(self) -> None:
        # store returns at most 2 rows per request while reporting total 5
        adapter = AsyncMock()
        adapter.select_range = AsyncMock(side_effect=[
            (_rows(2), 5), (_rows(2, 2), 5), (_rows(1, 4), 5),
        ])
        rows = await read_all(adapter, "t", page_size=1000)
        assert rows == _rows(5)
        offsets = [c.kwargs["offset"] for c in adapter.select_range.await_args_list]
        assert offsets == [0, 2, 4]

    async def test_offsets_advance_by_page_size(self) -> None:
        adapter = AsyncMock()
        adapter.select_range = AsyncMock(
            side_effect=[(_rows(2), None), (_rows(2, 2), None), ([], None)]
        )
        await read_all(adapter, "t", page_size=2)
        offsets = [c.kwargs["offset"] for c in adapter.select_range.await_args_list]
        assert offsets == [0, 2, 4]

    async def test_failure_raises_read_error(self) -> None:
        adapter = AsyncMock()
        adapter.select_range = AsyncMock(
            side_effect=[(_rows(2), None), RuntimeError("connection reset")]
        )
        with pytest.raises(ReadError) as exc_info:
            await read_all(adapter, "events", page_size=2)
        assert exc_info.value.table == "events"
        assert "offset 2" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
