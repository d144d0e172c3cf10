from sommelier.gateways.catalog import (
    CatalogGateway,
    CatalogStore,
    InMemoryCatalogStore,
    PostgresCatalogStore,
)
from sommelier.gateways.commerce import ShopifyCommerceGateway
from sommelier.gateways.memory_commerce import InMemoryCommerceBackend
from sommelier.gateways.orders import ShopifyOrderHistory

__all__ = [
    "CatalogGateway",
    "CatalogStore",
    "InMemoryCatalogStore",
    "InMemoryCommerceBackend",
    "PostgresCatalogStore",
    "ShopifyCommerceGateway",
    "ShopifyOrderHistory",
]
