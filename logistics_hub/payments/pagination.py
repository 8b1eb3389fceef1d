"""Page-number helpers for the cursor-paginated vendor transaction list.

The vendor only exposes ``limit`` + ``after`` cursors, so page *N* can be
fetched only once page *N-1* is known; pages are cached and the last id of
the previous page becomes the cursor for the next one.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Sequence, Union

MAX_PAGES_SHOWN = 5
ELLIPSIS = "ellipsis"
MIN_ESTIMATED_TOTAL = 30

PageMarker = Union[int, str]


def total_pages(total_count: int, page_size: int) -> int:
    return max(1, math.ceil(total_count / page_size))


def page_numbers(current: int, total: int) -> List[PageMarker]:
    if total <= MAX_PAGES_SHOWN:
        return list(range(1, total + 1))

    start = max(2, current - 1)
    end = min(total - 1, current + 1)
    if current <= 2:
        end = min(total - 1, 4)
    elif current >= total - 1:
        start = max(2, total - 3)

    pages: List[PageMarker] = [1]
    if start > 2:
        pages.append(ELLIPSIS)
    pages.extend(range(start, end + 1))
    if end < total - 1:
        pages.append(ELLIPSIS)
    pages.append(total)
    return pages


def estimate_total_count(first_page_len: int, has_more: bool) -> int:
    if has_more:
        return max(first_page_len * 3, MIN_ESTIMATED_TOTAL)
    return first_page_len


class TransactionPageCache:
    def __init__(self) -> None:
        self._pages: Dict[int, List[Mapping[str, Any]]] = {}
        self.estimated_total: int | None = None

    def __contains__(self, page: int) -> bool:
        return bool(self._pages.get(page))

    def get(self, page: int) -> List[Mapping[str, Any]] | None:
        rows = self._pages.get(page)
        return rows if rows else None

    def put(self, page: int, rows: Sequence[Mapping[str, Any]]) -> None:
        self._pages[page] = list(rows)

    def cursor_for(self, page: int) -> str | None:
        """Return the ``after`` cursor needed to fetch ``page``."""

        if page <= 1:
            return None
        previous = self._pages.get(page - 1)
        if not previous:
            return None
        last_id = previous[-1].get("id")
        return str(last_id) if last_id else None

    def clear(self) -> None:
        self._pages.clear()
        self.estimated_total = None
