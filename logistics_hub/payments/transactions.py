from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from logistics_hub.errors import VendorError
from logistics_hub.integrations.paymongo import PaymentGatewayClient, from_centavos

from .pagination import (
    PageMarker,
    TransactionPageCache,
    estimate_total_count,
    page_numbers,
    total_pages,
)

PAGE_SIZE = 10


@dataclass
class TransactionPage:
    page: int
    rows: List[Dict[str, Any]]
    total_count: int
    total_pages: int
    pages: List[PageMarker] = field(default_factory=list)
    cached: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "rows": self.rows,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "pages": self.pages,
            "cached": self.cached,
        }


def flatten_payment(item: Mapping[str, Any]) -> Dict[str, Any]:
    attributes = item.get("attributes") or {}
    source = attributes.get("source") or {}
    billing = attributes.get("billing") or {}
    return {
        "id": item.get("id"),
        "amount": str(from_centavos(attributes.get("amount"))),
        "currency": attributes.get("currency"),
        "status": attributes.get("status"),
        "description": attributes.get("description"),
        "method": source.get("type"),
        "billing_name": billing.get("name"),
        "billing_email": billing.get("email"),
        "paid_at": attributes.get("paid_at"),
        "created_at": attributes.get("created_at"),
    }


async def _fetch(
    client: PaymentGatewayClient, *, after: str | None, page_size: int
) -> tuple[List[Dict[str, Any]], bool]:
    response = await client.list_payments(limit=page_size, after=after)
    if not response.ok:
        raise VendorError(f"payment listing failed with status {response.status_code}")
    items = response.payload.get("data") or []
    rows = [flatten_payment(item) for item in items if isinstance(item, Mapping)]
    return rows, bool(response.payload.get("has_more"))


async def fetch_transaction_page(
    client: PaymentGatewayClient,
    cache: TransactionPageCache,
    page: int,
    *,
    page_size: int = PAGE_SIZE,
) -> TransactionPage:
    """Return one page of vendor payments, walking cursors through ``cache``.

    A page whose predecessor is not cached cannot be addressed by cursor, so
    the request falls back to page 1, as does a page that comes back empty.
    """

    page = max(1, page)
    cached = cache.get(page)
    from_cache = cached is not None

    if cached is None:
        cursor = cache.cursor_for(page)
        if page > 1 and cursor is None:
            page = 1
        rows, has_more = await _fetch(client, after=cursor if page > 1 else None, page_size=page_size)
        if not rows and page > 1:
            page = 1
            rows, has_more = await _fetch(client, after=None, page_size=page_size)
        if rows:
            cache.put(page, rows)
        if page == 1:
            cache.estimated_total = estimate_total_count(len(rows), has_more)
        cached = rows

    total_count = cache.estimated_total if cache.estimated_total is not None else len(cached)
    pages_total = total_pages(total_count, page_size)
    return TransactionPage(
        page=page,
        rows=list(cached),
        total_count=total_count,
        total_pages=pages_total,
        pages=page_numbers(page, pages_total),
        cached=from_cache,
    )
