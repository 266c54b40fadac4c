from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from searchdemo.models.records import CursorPage
from searchdemo.services.search.client import SearchClient
from searchdemo.services.search.responses import parse_cursor_page

logger = logging.getLogger(__name__)


def iter_cursor_pages(
    client: SearchClient, index: str, first_reply: list[Any], count: int
) -> Iterator[CursorPage]:
    """
    Lazily walk a WITHCURSOR aggregate.

    The first page is always yielded, even when empty. Each following page is
    read with the cursor handed back by the previous one; iteration stops once
    the cursor is 0. Not restartable.
    """
    page = parse_cursor_page(first_reply)
    n = 1
    while True:
        yield page
        if page.exhausted:
            break
        page = parse_cursor_page(client.cursor_read(index, page.cursor_id, count))
        n += 1
    logger.debug("Cursor exhausted after %d pages", n)


def nested_items(page: CursorPage) -> list[list[Any]]:
    """Array-shaped entries of a page; the scalar count header is not displayed."""
    return [item for item in page.items if isinstance(item, list)]
