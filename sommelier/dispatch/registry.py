"""
Tool registry: the single table of everything the dialogue engine may call.

Each entry binds a tool name to its parameter model, its handler, the
apology spoken when it fails upstream, and (for commerce tools) the
demo-mode twin used when no store is configured. Handlers are imported
lazily inside ``_auto_register`` so tool modules can import this one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    params_model: type[BaseModel]
    handler: Handler
    description: str
    failure_message: str
    requires_commerce: bool = False
    demo_handler: Optional[Handler] = None

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.params_model.model_json_schema(),
            "requires_commerce": self.requires_commerce,
        }


_TOOL_REGISTRY: dict[str, ToolSpec] = {}


def register_tool(spec: ToolSpec) -> None:
    _TOOL_REGISTRY[spec.name] = spec
    logger.debug("Tool registered: %s", spec.name)


def get_tool(name: str) -> Optional[ToolSpec]:
    """Look up a tool by name. Unknown names return None."""
    return _TOOL_REGISTRY.get(name)


def get_registered_tools() -> list[ToolSpec]:
    return list(_TOOL_REGISTRY.values())


def _auto_register() -> None:
    """Register the built-in tools. Called once at import time."""
    from sommelier.dispatch import cart_tools, catalog_tools, order_tools
    from sommelier.schemas import tool_schema as p

    register_tool(ToolSpec(
        name="search_wines",
        params_model=p.SearchWinesParams,
        handler=catalog_tools.search_wines,
        description="Search the wine catalog by country, region, type, style, grape and price.",
        failure_message="Failed to search wines. Please try again.",
    ))
    register_tool(ToolSpec(
        name="get_wine",
        params_model=p.GetWineParams,
        handler=catalog_tools.get_wine,
        description="Get full details for one wine by catalog id or name.",
        failure_message="Failed to get wine details. Please try again.",
    ))
    register_tool(ToolSpec(
        name="add_to_cart",
        params_model=p.AddToCartParams,
        handler=cart_tools.add_to_cart,
        description="Add bottles of a wine to the shopper's cart.",
        failure_message="Failed to add wine to cart. Please try again.",
        requires_commerce=True,
        demo_handler=cart_tools.demo_add_to_cart,
    ))
    register_tool(ToolSpec(
        name="get_cart",
        params_model=p.GetCartParams,
        handler=cart_tools.get_cart,
        description="Read back what is in the shopper's cart.",
        failure_message="Failed to get cart. Please try again.",
        requires_commerce=True,
        demo_handler=cart_tools.demo_get_cart,
    ))
    register_tool(ToolSpec(
        name="checkout",
        params_model=p.CheckoutParams,
        handler=cart_tools.checkout,
        description="Hand the shopper a checkout link for their cart.",
        failure_message="Failed to prepare checkout. Please try again.",
        requires_commerce=True,
        demo_handler=cart_tools.demo_checkout,
    ))
    register_tool(ToolSpec(
        name="update_cart_item",
        params_model=p.UpdateCartItemParams,
        handler=cart_tools.update_cart_item,
        description="Change the quantity of a wine already in the cart. Zero removes it.",
        failure_message="Failed to update your cart. Please try again.",
        requires_commerce=True,
        demo_handler=cart_tools.demo_cart_change,
    ))
    register_tool(ToolSpec(
        name="remove_from_cart",
        params_model=p.RemoveFromCartParams,
        handler=cart_tools.remove_from_cart,
        description="Take a wine out of the cart.",
        failure_message="Failed to remove that wine from your cart. Please try again.",
        requires_commerce=True,
        demo_handler=cart_tools.demo_cart_change,
    ))
    register_tool(ToolSpec(
        name="clear_cart",
        params_model=p.ClearCartParams,
        handler=cart_tools.clear_cart,
        description="Empty the cart and start over.",
        failure_message="Failed to clear your cart. Please try again.",
        requires_commerce=True,
        demo_handler=cart_tools.demo_cart_change,
    ))
    register_tool(ToolSpec(
        name="get_order_history",
        params_model=p.GetOrderHistoryParams,
        handler=order_tools.get_order_history,
        description="Look up the signed-in shopper's previous orders.",
        failure_message="Failed to look up your orders. Please try again.",
    ))


_auto_register()
