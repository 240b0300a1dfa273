"""Tests for cursor pagination."""

from types import SimpleNamespace
from typing import Any

from slack_mcp_server.pagination import (
    PaginatedData,
    PaginationStrategy,
    execute_pagination,
    next_cursor,
    next_page_cursor,
)

PAGES = {
    None: {"items": [1, 2], "response_metadata": {"next_cursor": "c2"}},
    "c2": {"items": [3, 4], "response_metadata": {"next_cursor": "c3"}},
    "c3": {"items": [5], "response_metadata": {"next_cursor": ""}},
}


def make_strategy(fetched: list[Any]) -> PaginationStrategy:
    async def fetch_page(cursor: str | None) -> dict[str, Any]:
        fetched.append(cursor)
        return PAGES[cursor]

    async def format_response(data: PaginatedData) -> dict[str, Any]:
        return {"items": data.items, "hasMore": data.has_more, "cursor": data.cursor, "pageCount": data.page_count}

    return PaginationStrategy(
        fetch_page=fetch_page,
        get_cursor=next_cursor,
        get_items=lambda r: r["items"],
        format_response=format_response,
    )


def make_input(**kwargs: Any) -> SimpleNamespace:
    defaults = {"cursor": None, "fetch_all_pages": False, "max_pages": None, "max_items": None}
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


class TestSinglePage:
    async def test_first_page_only(self) -> None:
        fetched: list[Any] = []
        result = await execute_pagination(make_input(), make_strategy(fetched))
        assert result == {"items": [1, 2], "hasMore": True, "cursor": "c2", "pageCount": 1}
        assert fetched == [None]

    async def test_resume_from_cursor(self) -> None:
        fetched: list[Any] = []
        result = await execute_pagination(make_input(cursor="c3"), make_strategy(fetched))
        assert result["items"] == [5]
        assert result["hasMore"] is False
        assert result["cursor"] is None


class TestAllPages:
    async def test_union_of_every_page(self) -> None:
        fetched: list[Any] = []
        result = await execute_pagination(make_input(fetch_all_pages=True), make_strategy(fetched))
        assert result["items"] == [1, 2, 3, 4, 5]
        assert result["hasMore"] is False
        assert result["pageCount"] == 3
        assert fetched == [None, "c2", "c3"]

    async def test_page_cap_reports_more(self) -> None:
        fetched: list[Any] = []
        result = await execute_pagination(make_input(fetch_all_pages=True, max_pages=2), make_strategy(fetched))
        assert result["items"] == [1, 2, 3, 4]
        assert result["hasMore"] is True
        assert result["cursor"] == "c3"
        assert result["pageCount"] == 2

    async def test_item_cap_trims(self) -> None:
        fetched: list[Any] = []
        result = await execute_pagination(make_input(fetch_all_pages=True, max_items=3), make_strategy(fetched))
        assert result["items"] == [1, 2, 3]
        assert result["hasMore"] is True
        assert fetched == [None, "c2"]
        assert result["cursor"] == "c2"

    async def test_item_cap_on_last_page_reports_more(self) -> None:
        async def fetch_page(cursor: str | None) -> dict[str, Any]:
            return {"items": [1, 2, 3, 4, 5], "response_metadata": {"next_cursor": ""}}

        async def format_response(data: PaginatedData) -> dict[str, Any]:
            return {"items": data.items, "hasMore": data.has_more, "cursor": data.cursor}

        strategy = PaginationStrategy(
            fetch_page=fetch_page,
            get_cursor=next_cursor,
            get_items=lambda r: r["items"],
            format_response=format_response,
        )
        result = await execute_pagination(make_input(fetch_all_pages=True, max_items=3), strategy)
        assert result == {"items": [1, 2, 3], "hasMore": True, "cursor": None}

    async def test_resuming_after_item_cap_skips_nothing(self) -> None:
        fetched: list[Any] = []
        first = await execute_pagination(make_input(fetch_all_pages=True, max_items=3), make_strategy(fetched))
        resume = make_input(cursor=first["cursor"], fetch_all_pages=True)
        rest = await execute_pagination(resume, make_strategy(fetched))
        assert set(first["items"]) | set(rest["items"]) == {1, 2, 3, 4, 5}


class TestCursors:
    def test_empty_next_cursor_is_absent(self) -> None:
        assert next_cursor({"response_metadata": {"next_cursor": ""}}) is None
        assert next_cursor({}) is None
        assert next_cursor({"response_metadata": {"next_cursor": "abc"}}) == "abc"

    def test_page_number_cursor(self) -> None:
        assert next_page_cursor({"paging": {"page": 1, "pages": 3}}) == "2"
        assert next_page_cursor({"paging": {"page": 3, "pages": 3}}) is None
        assert next_page_cursor({}) is None
