from __future__ import annotations

import time
from typing import Any, Callable, Dict, Generic, Hashable, Tuple, TypeVar

from logistics_hub.payments.pagination import TransactionPageCache

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 60.0


class TTLCache(Generic[V]):
    """Small in-process cache; entries expire ``ttl_seconds`` after being set."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, *, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, V]] = {}

    def get(self, key: Hashable) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


vendor_payment_pages: TTLCache[Any] = TTLCache(ttl_seconds=30)
transaction_pages = TransactionPageCache()

_REGISTRY: Dict[str, Callable[[], None]] = {
    "vendor_payment_pages": vendor_payment_pages.clear,
    "transaction_pages": transaction_pages.clear,
}


def clear_caches() -> list[str]:
    """Empty every in-process cache and return the names cleared."""

    for clear in _REGISTRY.values():
        clear()
    return sorted(_REGISTRY)
