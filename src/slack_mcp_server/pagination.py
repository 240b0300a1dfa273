"""Cursor-driven pagination shared by list/history style operations."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .schemas import MAX_ITEMS, MAX_ITEMS_LIMIT, MAX_PAGES, MAX_PAGES_LIMIT

logger = logging.getLogger(__name__)

PageT = TypeVar("PageT")
ItemT = TypeVar("ItemT")


@dataclass
class PaginatedData(Generic[ItemT]):
    items: list[ItemT]
    has_more: bool
    cursor: str | None
    page_count: int


@dataclass
class PaginationStrategy(Generic[PageT, ItemT]):
    """How to fetch one page and read its cursor and items.

    ``fetch_page`` receives the cursor to resume from (``None`` for the first
    page); ``format_response`` turns the collected data into the tool payload.
    """

    fetch_page: Callable[[str | None], Awaitable[PageT]]
    get_cursor: Callable[[PageT], str | None]
    get_items: Callable[[PageT], list[ItemT]]
    format_response: Callable[[PaginatedData[ItemT]], Awaitable[dict[str, Any]]]


def next_cursor(response: Any) -> str | None:
    """Slack's ``response_metadata.next_cursor``, with empty strings treated as absent."""
    metadata = response.get("response_metadata") or {}
    return metadata.get("next_cursor") or None


def next_page_cursor(response: Any) -> str | None:
    """Page-number cursor for endpoints paginated by ``paging.page``/``paging.pages``."""
    paging = response.get("paging") or {}
    page = paging.get("page", 1)
    pages = paging.get("pages", 1)
    return str(page + 1) if page < pages else None


async def execute_pagination(input: Any, strategy: PaginationStrategy[PageT, ItemT]) -> dict[str, Any]:
    """Fetch one page, or every page up to the caps when ``fetch_all_pages`` is set.

    Args:
        input: Validated tool input; reads ``cursor``, ``fetch_all_pages``,
            ``max_pages`` and ``max_items`` when present
        strategy: Page access functions for the endpoint

    Returns:
        Whatever ``strategy.format_response`` builds from the collected data
    """
    start_cursor = getattr(input, "cursor", None)

    if not getattr(input, "fetch_all_pages", False):
        page = await strategy.fetch_page(start_cursor)
        cursor = strategy.get_cursor(page)
        return await strategy.format_response(
            PaginatedData(
                items=list(strategy.get_items(page)), has_more=cursor is not None, cursor=cursor, page_count=1
            )
        )

    max_pages = min(getattr(input, "max_pages", None) or MAX_PAGES, MAX_PAGES_LIMIT)
    max_items = min(getattr(input, "max_items", None) or MAX_ITEMS, MAX_ITEMS_LIMIT)

    items: list[ItemT] = []
    cursor = start_cursor
    page_count = 0
    while True:
        page_cursor = cursor
        page = await strategy.fetch_page(cursor)
        page_count += 1
        items.extend(strategy.get_items(page))
        cursor = strategy.get_cursor(page)
        if cursor is None or page_count >= max_pages or len(items) >= max_items:
            break

    trimmed = len(items) > max_items
    if trimmed:
        # resuming re-reads the page the item cap cut into, so nothing is skipped
        items = items[:max_items]
        cursor = page_cursor
    has_more = trimmed or cursor is not None
    if has_more:
        logger.debug(f"Pagination stopped at cap after {page_count} pages, {len(items)} items")

    return await strategy.format_response(
        PaginatedData(items=items, has_more=has_more, cursor=cursor, page_count=page_count)
    )
