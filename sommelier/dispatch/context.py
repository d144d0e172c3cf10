"""Shared services handed to tool handlers, and the per-call view of them."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sommelier.cart.session_manager import CartSessionManager, CommerceBackend
from sommelier.config import AppConfig
from sommelier.gateways.catalog import (
    CatalogGateway,
    CatalogStore,
    InMemoryCatalogStore,
    PostgresCatalogStore,
)
from sommelier.gateways.commerce import ShopifyCommerceGateway
from sommelier.gateways.orders import ShopifyOrderHistory
from sommelier.gateways.seed_catalog import SEED_WINES
from sommelier.order_cache import OrderCache
from sommelier.resolver import WineResolver
from sommelier.schemas.tool_schema import ToolCall

logger = logging.getLogger(__name__)


@dataclass
class EngineServices:
    """Everything stateful the dispatcher routes to.

    ``carts`` and ``commerce`` are None in demo mode; ``orders`` is None
    when no order-history source is configured.
    """

    resolver: WineResolver
    carts: Optional[CartSessionManager] = None
    commerce: Optional[CommerceBackend] = None
    orders: Optional[OrderCache] = None
    catalog_store: Optional[CatalogStore] = None
    order_history: Optional[ShopifyOrderHistory] = None

    async def start(self) -> None:
        if isinstance(self.catalog_store, PostgresCatalogStore):
            await self.catalog_store.connect()

    async def aclose(self) -> None:
        if isinstance(self.commerce, ShopifyCommerceGateway):
            await self.commerce.aclose()
        if self.order_history is not None:
            await self.order_history.aclose()
        if isinstance(self.catalog_store, PostgresCatalogStore):
            await self.catalog_store.close()


def build_services(
    config: AppConfig,
    catalog_store: Optional[CatalogStore] = None,
    commerce: Optional[CommerceBackend] = None,
) -> EngineServices:
    """Wire gateways, resolver, cart manager and order cache from configuration."""
    if catalog_store is None:
        if config.catalog.database_url:
            catalog_store = PostgresCatalogStore(
                config.catalog.database_url, max_size=config.catalog.pool_max_size
            )
        else:
            logger.warning("DATABASE_URL not set, serving the built-in sample catalog")
            catalog_store = InMemoryCatalogStore(SEED_WINES)

    resolver = WineResolver(CatalogGateway(catalog_store, timeout=config.catalog.timeout_sec))

    if commerce is None and not config.demo_mode:
        commerce = ShopifyCommerceGateway(config.commerce)
    carts = None
    if commerce is not None:
        carts = CartSessionManager(commerce, max_sessions=config.dispatch.max_cart_sessions)

    order_history = None
    orders = None
    if config.commerce.orders_configured:
        order_history = ShopifyOrderHistory(config.commerce)
        orders = OrderCache(order_history.fetch_orders, ttl_seconds=config.cache.order_cache_ttl_sec)

    return EngineServices(
        resolver=resolver,
        carts=carts,
        commerce=commerce,
        orders=orders,
        catalog_store=catalog_store,
        order_history=order_history,
    )


@dataclass(frozen=True)
class ToolContext:
    """Per-call view: shared services plus the caller's session and identity."""

    services: EngineServices
    tool_call_id: str
    session_key: str
    user_email: Optional[str] = None

    @classmethod
    def for_call(cls, services: EngineServices, call: ToolCall, params: Any) -> "ToolContext":
        return cls(
            services=services,
            tool_call_id=call.tool_call_id,
            session_key=session_key_for(call, getattr(params, "cart_id", None)),
            user_email=call.user_email,
        )


def session_key_for(call: ToolCall, cart_hint: Optional[str] = None) -> str:
    """Conversation id if known, else the caller's cart id, else a one-off key."""
    if call.session_id:
        return f"session:{call.session_id}"
    if cart_hint:
        return f"cart:{cart_hint}"
    return f"anonymous:{call.tool_call_id}"
