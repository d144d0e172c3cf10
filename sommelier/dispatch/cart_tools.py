"""
Cart tools: add_to_cart, get_cart, checkout, update_cart_item,
remove_from_cart, clear_cart.

The add_to_cart flow:
    resolve the wine in the catalog (id first, in stock only)
    -> find the purchasable product in the commerce backend
    -> prefer an exact title match, require the first variant on sale
    -> add through the session's cart (created or recovered as needed)

Each tool has a demo-mode twin used when no commerce backend is
configured. Demo twins never touch the network.
"""

from typing import Optional

from sommelier.cart.session_manager import CartSessionManager, CommerceBackend
from sommelier.dispatch.context import ToolContext
from sommelier.dispatch.messages import (
    CHECKOUT_PROMPT,
    DEMO_NOTICE,
    build_added_message,
    build_cart_message,
    build_checkout_message,
)
from sommelier.errors import CartEmptyError, WineNotFoundError
from sommelier.logging_context import get_call_logger
from sommelier.schemas.cart_schema import CommerceProduct
from sommelier.schemas.tool_schema import (
    AddToCartParams,
    CheckoutParams,
    ClearCartParams,
    GetCartParams,
    RemoveFromCartParams,
    ToolResult,
    UpdateCartItemParams,
)
from sommelier.schemas.wine_schema import CatalogWine
from sommelier.utils import pluralize

logger = get_call_logger(__name__)

EMPTY_CART_PAYLOAD = {"items": [], "total_items": 0, "total_amount": "£0.00"}


def _carts(ctx: ToolContext) -> CartSessionManager:
    if ctx.services.carts is None:
        raise RuntimeError("cart tools called without a commerce backend")
    return ctx.services.carts


def _commerce(ctx: ToolContext) -> CommerceBackend:
    if ctx.services.commerce is None:
        raise RuntimeError("cart tools called without a commerce backend")
    return ctx.services.commerce


def pick_product(products: list[CommerceProduct], wine: CatalogWine) -> Optional[CommerceProduct]:
    """Exact (case-insensitive) title match first, else the first result."""
    if not products:
        return None
    wanted = wine.name.strip().lower()
    exact = next((p for p in products if p.title.strip().lower() == wanted), None)
    return exact or products[0]


# --------------------------------------------------------------------- #
# Live tools
# --------------------------------------------------------------------- #


async def add_to_cart(ctx: ToolContext, params: AddToCartParams) -> ToolResult:
    """Add bottles of a wine to the session's cart."""
    resolution = await ctx.services.resolver.resolve(
        by_id=params.wine_id, by_name=params.wine_name, in_stock_only=True
    )
    wine = resolution.wine
    if wine is None:
        raise WineNotFoundError(
            f"no active in-stock wine for {params.reference!r}",
            user_message=f'Could not find wine "{params.reference}" in our catalog.',
        )

    query = f"{wine.name} {wine.winery}".strip()
    products = await _commerce(ctx).search_products(query, first=5)
    product = pick_product(products, wine)
    if product is None:
        logger.info("Wine %s has no commerce product for %r", wine.id, query)
        return ToolResult(
            success=False,
            message=f"{wine.name} is not yet available in our shop. Please contact us to order.",
            data={"wine_found": wine.summary()},
            error_code="not_purchasable",
        )

    variant = product.first_variant
    if variant is None or not variant.available_for_sale:
        return ToolResult(
            success=False,
            message=f"{wine.name} is currently out of stock.",
            data={"wine_found": wine.summary()},
            error_code="out_of_stock",
        )

    cart = await _carts(ctx).add_line(
        ctx.session_key, variant.id, params.quantity, cart_hint=params.cart_id
    )
    payload = cart.to_payload()
    payload.pop("items")
    return ToolResult(
        success=True,
        message=build_added_message(params.quantity, wine.name, cart),
        data={
            "cart": payload,
            "added_item": {
                "wine_id": wine.id,
                "wine_name": wine.name,
                "winery": wine.winery,
                "quantity": params.quantity,
                "price": variant.price.formatted(),
                "product_id": product.id,
                "variant_id": variant.id,
            },
            "next_steps": (
                f"Your cart has {pluralize(cart.total_quantity, 'item')} totaling "
                f"{cart.total.formatted()}. {CHECKOUT_PROMPT}"
            ),
        },
    )


async def get_cart(ctx: ToolContext, params: GetCartParams) -> ToolResult:
    """Read the cart without creating one."""
    cart = await _carts(ctx).read_cart(ctx.session_key, cart_hint=params.cart_id)
    return ToolResult(
        success=True,
        message=build_cart_message(cart),
        data={"cart": cart.to_payload() if cart else dict(EMPTY_CART_PAYLOAD)},
    )


async def checkout(ctx: ToolContext, params: CheckoutParams) -> ToolResult:
    cart = await _carts(ctx).read_cart(ctx.session_key, cart_hint=params.cart_id)
    if cart is None or cart.is_empty:
        raise CartEmptyError(
            "checkout requested with no items",
            user_message="Your cart is empty. Add some wines first before checking out.",
        )
    return ToolResult(
        success=True,
        message=build_checkout_message(cart),
        data={
            "checkout": {
                "url": cart.checkout_url,
                "total_items": cart.total_quantity,
                "total_amount": cart.total.formatted(),
                "items": cart.to_payload()["items"],
            },
            "action": "show_checkout_button",
        },
    )


async def update_cart_item(ctx: ToolContext, params: UpdateCartItemParams) -> ToolResult:
    cart = await _carts(ctx).update_quantity(
        ctx.session_key,
        params.quantity,
        line_id=params.line_id,
        title=params.wine_name,
        cart_hint=params.cart_id,
    )
    label = params.wine_name or "that wine"
    if params.quantity == 0:
        lead = f"I've removed {label} from your cart."
    else:
        lead = f"Updated {label} to {pluralize(params.quantity, 'bottle')}."
    return ToolResult(
        success=True,
        message=f"{lead} {build_cart_message(cart)}",
        data={"cart": cart.to_payload()},
    )


async def remove_from_cart(ctx: ToolContext, params: RemoveFromCartParams) -> ToolResult:
    cart = await _carts(ctx).remove_line(
        ctx.session_key, line_id=params.line_id, title=params.wine_name, cart_hint=params.cart_id
    )
    label = params.wine_name or "that wine"
    return ToolResult(
        success=True,
        message=f"I've removed {label} from your cart. {build_cart_message(cart)}",
        data={"cart": cart.to_payload()},
    )


async def clear_cart(ctx: ToolContext, params: ClearCartParams) -> ToolResult:
    await _carts(ctx).clear(ctx.session_key, cart_hint=params.cart_id)
    return ToolResult(
        success=True,
        message="I've cleared your cart. We can start fresh whenever you like.",
        data={"cart": dict(EMPTY_CART_PAYLOAD)},
    )


# --------------------------------------------------------------------- #
# Demo-mode twins
# --------------------------------------------------------------------- #


def _demo(message: str, **data) -> ToolResult:
    return ToolResult(
        success=True,
        message=message,
        data={
            "demo_mode": True,
            "action_needed": "Configure Shopify store credentials to enable real checkout.",
            **data,
        },
    )


async def demo_add_to_cart(ctx: ToolContext, params: AddToCartParams) -> ToolResult:
    return _demo(
        f'Would add {pluralize(params.quantity, "bottle")} of "{params.reference}" '
        f"to your cart. {DEMO_NOTICE}"
    )


async def demo_get_cart(ctx: ToolContext, params: GetCartParams) -> ToolResult:
    return _demo(
        f"Your shopping cart is in demo mode. {DEMO_NOTICE}", cart=dict(EMPTY_CART_PAYLOAD)
    )


async def demo_checkout(ctx: ToolContext, params: CheckoutParams) -> ToolResult:
    return _demo(
        "Checkout is not available in demo mode, so no real order will be placed. "
        "Contact us to place an order."
    )


async def demo_cart_change(ctx: ToolContext, params) -> ToolResult:
    return _demo(f"Your cart is in demo mode. {DEMO_NOTICE}", cart=dict(EMPTY_CART_PAYLOAD))
