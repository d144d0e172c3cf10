"""
Catalog gateway: read-only queries over the wine catalog store.

The store is treated as a fast, reliable dependency: no retries. Every
call is still bounded by a timeout so a hung database cannot stall a
voice turn, and store failures surface as ``CatalogUnavailableError``.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional, Protocol

import asyncpg
from pydantic import ValidationError

from sommelier.errors import CatalogUnavailableError
from sommelier.schemas.wine_schema import CatalogWine

logger = logging.getLogger(__name__)


def price_order_key(wine: CatalogWine) -> tuple:
    """Ascending retail price, unpriced wines last, ties broken by id."""
    return (wine.retail_price is None, wine.retail_price or 0, wine.id)


class CatalogStore(Protocol):
    """Query interface the catalog persistence engine must provide."""

    async def fetch_active_wines(self) -> list[CatalogWine]:
        """All active wines ordered by ascending retail price."""
        ...

    async def fetch_wine(self, wine_id: int) -> Optional[CatalogWine]:
        """A single active wine, or None."""
        ...


class InMemoryCatalogStore:
    """Catalog store backed by a list. Used by tests and the console demo."""

    def __init__(self, wines: Iterable[CatalogWine] = ()) -> None:
        self._wines: dict[int, CatalogWine] = {w.id: w for w in wines}

    def add(self, wine: CatalogWine) -> None:
        self._wines[wine.id] = wine

    async def fetch_active_wines(self) -> list[CatalogWine]:
        return sorted((w for w in self._wines.values() if w.is_active), key=price_order_key)

    async def fetch_wine(self, wine_id: int) -> Optional[CatalogWine]:
        wine = self._wines.get(wine_id)
        if wine is None or not wine.is_active:
            return None
        return wine


_WINE_COLUMNS = """
    id, name, winery, region, country, grape_variety, vintage,
    wine_type, style, price_retail, image_url, stock_quantity,
    is_active, tasting_notes, food_pairings
"""


class PostgresCatalogStore:
    """Asyncpg-backed store over the ``wines`` table."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 10.0,
    ) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        if self._pool is not None:
            return
        if not self._dsn:
            raise RuntimeError("DATABASE_URL is required")
        self._pool = await asyncpg.create_pool(
            dsn=self._dsn,
            min_size=self._min_size,
            max_size=self._max_size,
            command_timeout=self._command_timeout,
        )

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Catalog pool is not initialized")
        return self._pool

    async def fetch_active_wines(self) -> list[CatalogWine]:
        rows = await self.pool.fetch(
            f"""
            select {_WINE_COLUMNS}
            from wines
            where is_active = true
            order by price_retail asc nulls last, id asc
            """
        )
        return [wine for wine in (self._to_wine(row) for row in rows) if wine is not None]

    async def fetch_wine(self, wine_id: int) -> Optional[CatalogWine]:
        row = await self.pool.fetchrow(
            f"select {_WINE_COLUMNS} from wines where id = $1 and is_active = true",
            wine_id,
        )
        return self._to_wine(row) if row is not None else None

    @staticmethod
    def _to_wine(row: Any) -> Optional[CatalogWine]:
        data = dict(row)
        data["retail_price"] = data.pop("price_retail", None)
        data["food_pairings"] = list(data.get("food_pairings") or [])
        try:
            return CatalogWine(**data)
        except ValidationError:
            # e.g. a wine_type outside red/white/rose/sparkling/dessert
            logger.warning("Skipping catalog row %s with invalid fields", data.get("id"))
            return None


class CatalogGateway:
    """Timeout-bounded, error-mapped access to a CatalogStore."""

    def __init__(self, store: CatalogStore, timeout: float = 3.0) -> None:
        self._store = store
        self._timeout = timeout

    async def active_wines(self) -> list[CatalogWine]:
        return await self._call("fetch_active_wines", self._store.fetch_active_wines())

    async def wine_by_id(self, wine_id: int) -> Optional[CatalogWine]:
        return await self._call("fetch_wine", self._store.fetch_wine(wine_id))

    async def _call(self, operation: str, coro: Any) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("Catalog %s timed out after %.1fs", operation, self._timeout)
            raise CatalogUnavailableError(
                f"catalog {operation} timed out",
                user_message="Our wine list is taking too long to respond. Please try again.",
            ) from None
        except (asyncpg.PostgresError, OSError, RuntimeError) as exc:
            logger.error("Catalog %s failed: %s", operation, exc)
            raise CatalogUnavailableError(
                f"catalog {operation} failed: {exc}",
                user_message="I can't reach our wine list right now. Please try again.",
            ) from exc
