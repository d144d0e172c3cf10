from sommelier.schemas.cart_schema import (
    CartLine,
    CartSnapshot,
    CartTotals,
    CommerceProduct,
    Money,
    ProductVariant,
)
from sommelier.schemas.order_schema import Order, OrderLineItem
from sommelier.schemas.tool_schema import ToolCall, ToolResponse, ToolResult
from sommelier.schemas.wine_schema import CatalogWine, WineType

__all__ = [
    "CatalogWine", "WineType",
    "CartLine", "CartSnapshot", "CartTotals", "CommerceProduct", "Money", "ProductVariant",
    "Order", "OrderLineItem",
    "ToolCall", "ToolResponse", "ToolResult",
]
