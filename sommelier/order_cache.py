"""
Read-through TTL cache in front of the order-history source.

Keyed by normalized email. An entry older than the TTL is treated as
absent and refetched synchronously on the call that finds it expired;
there is no background refresh. Lookups for the same email serialize on a
per-key lock so concurrent misses fetch once, while different emails
never contend. Process-lifetime only.

Usage:
    cache = OrderCache(history.fetch_orders, ttl_seconds=300)
    orders = await cache.get("Jane@Example.com")
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sommelier.schemas.order_schema import Order
from sommelier.utils import normalize_email

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60

OrderFetcher = Callable[[str], Awaitable[list[Order]]]


@dataclass(frozen=True)
class OrderCacheEntry:
    orders: list[Order]
    fetched_at: float


class OrderCache:
    def __init__(
        self,
        fetch: OrderFetcher,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, OrderCacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _is_fresh(self, entry: OrderCacheEntry) -> bool:
        return self._clock() - entry.fetched_at < self._ttl

    def peek(self, email: str) -> Optional[OrderCacheEntry]:
        """Return the fresh entry for ``email`` without fetching."""
        entry = self._entries.get(normalize_email(email))
        if entry is not None and self._is_fresh(entry):
            return entry
        return None

    async def get(self, email: str) -> list[Order]:
        key = normalize_email(email)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry):
                logger.debug("Order cache hit")
                return list(entry.orders)

            logger.debug("Order cache miss, fetching")
            orders = await self._fetch(key)
            self._entries[key] = OrderCacheEntry(orders=list(orders), fetched_at=self._clock())
            return list(orders)

    def invalidate(self, email: str) -> None:
        self._entries.pop(normalize_email(email), None)

    def clear(self) -> None:
        self._entries.clear()
