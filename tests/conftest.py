"""Shared test fixtures and helpers."""

import asyncio
from collections import Counter
from decimal import Decimal
from typing import Optional

import pytest

from sommelier.cart.session_manager import CartSessionManager
from sommelier.cart.state_machine import CartStateMachine
from sommelier.dispatch.context import EngineServices
from sommelier.dispatch.dispatcher import ToolDispatcher
from sommelier.gateways.catalog import CatalogGateway, InMemoryCatalogStore
from sommelier.gateways.memory_commerce import InMemoryCommerceBackend
from sommelier.gateways.seed_catalog import SEED_WINES
from sommelier.resolver import WineResolver
from sommelier.schemas.tool_schema import ToolCall
from sommelier.schemas.wine_schema import CatalogWine


def make_wine(
    wine_id: int,
    name: str,
    price: Optional[str] = "20.00",
    wine_type: str = "red",
    country: str = "France",
    region: str = "",
    winery: str = "",
    stock: Optional[int] = 10,
    is_active: bool = True,
    **extra,
) -> CatalogWine:
    """Helper to create a CatalogWine with sensible defaults."""
    return CatalogWine(
        id=wine_id,
        name=name,
        winery=winery,
        region=region,
        country=country,
        wine_type=wine_type,
        retail_price=Decimal(price) if price is not None else None,
        stock_quantity=stock,
        is_active=is_active,
        **extra,
    )


class CountingCatalogStore(InMemoryCatalogStore):
    """In-memory store that records every query it serves."""

    def __init__(self, wines=()) -> None:
        super().__init__(wines)
        self.calls: Counter = Counter()

    async def fetch_active_wines(self):
        self.calls["fetch_active_wines"] += 1
        return await super().fetch_active_wines()

    async def fetch_wine(self, wine_id):
        self.calls["fetch_wine"] += 1
        return await super().fetch_wine(wine_id)


class SlowCatalogStore(InMemoryCatalogStore):
    def __init__(self, wines=(), delay: float = 1.0) -> None:
        super().__init__(wines)
        self.delay = delay

    async def fetch_active_wines(self):
        await asyncio.sleep(self.delay)
        return await super().fetch_active_wines()

    async def fetch_wine(self, wine_id):
        await asyncio.sleep(self.delay)
        return await super().fetch_wine(wine_id)


def make_services(
    store: Optional[InMemoryCatalogStore] = None,
    commerce: Optional[InMemoryCommerceBackend] = None,
    orders=None,
    catalog_timeout: float = 3.0,
) -> EngineServices:
    store = store if store is not None else CountingCatalogStore(SEED_WINES)
    return EngineServices(
        resolver=WineResolver(CatalogGateway(store, timeout=catalog_timeout)),
        carts=CartSessionManager(commerce) if commerce is not None else None,
        commerce=commerce,
        orders=orders,
        catalog_store=store,
    )


def make_call(
    name: str,
    parameters=None,
    session_id: Optional[str] = "conv-1",
    tool_call_id: str = "call-1",
    user_email: Optional[str] = None,
) -> ToolCall:
    return ToolCall(
        tool_call_id=tool_call_id,
        name=name,
        parameters=parameters if parameters is not None else {},
        session_id=session_id,
        user_email=user_email,
    )


@pytest.fixture
def catalog_store():
    return CountingCatalogStore(SEED_WINES)


@pytest.fixture
def commerce():
    return InMemoryCommerceBackend.from_catalog(SEED_WINES)


@pytest.fixture
def resolver(catalog_store):
    return WineResolver(CatalogGateway(catalog_store))


@pytest.fixture
def cart_manager(commerce):
    return CartSessionManager(commerce)


@pytest.fixture
def cart_machine():
    return CartStateMachine()


@pytest.fixture
def dispatcher(catalog_store, commerce):
    return ToolDispatcher(make_services(catalog_store, commerce), demo_mode=False)


@pytest.fixture
def demo_dispatcher(catalog_store):
    return ToolDispatcher(make_services(catalog_store), demo_mode=True)
