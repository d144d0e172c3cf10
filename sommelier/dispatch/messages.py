"""Spoken-response construction. Every string here is read aloud verbatim."""

from typing import Optional

from sommelier.schemas.cart_schema import CartSnapshot
from sommelier.schemas.order_schema import Order
from sommelier.schemas.wine_schema import CatalogWine
from sommelier.utils import pluralize

DEMO_NOTICE = "Shopify checkout is not yet configured, so no real order will be placed."
CHECKOUT_PROMPT = 'Say "checkout" when you\'re ready to complete your purchase.'


def describe_wine(wine: CatalogWine) -> str:
    desc = wine.name
    if wine.winery and wine.winery.lower() not in wine.name.lower():
        desc += f" by {wine.winery}"
    if wine.region:
        desc += f" from {wine.region}"
    if wine.display_price:
        desc += f" at {wine.display_price}"
    return desc


def build_search_message(wines: list[CatalogWine]) -> str:
    if not wines:
        return "No wines found matching those criteria. Try a broader search."
    listing = "; ".join(describe_wine(w) for w in wines)
    return f"I found {pluralize(len(wines), 'wine')}: {listing}."


def build_wine_detail_message(wine: CatalogWine) -> str:
    parts = [describe_wine(wine) + (f", vintage {wine.vintage}" if wine.vintage else "") + "."]
    if wine.grape_variety:
        parts.append(f"Made from {wine.grape_variety}.")
    if wine.tasting_notes:
        parts.append(f"Tasting notes: {wine.tasting_notes}")
    if wine.food_pairings:
        parts.append(f"Pairs well with {', '.join(wine.food_pairings)}.")
    if not wine.in_stock:
        parts.append("It's currently out of stock.")
    return " ".join(parts)


def build_added_message(quantity: int, wine_name: str, cart: CartSnapshot) -> str:
    return (
        f"Added {pluralize(quantity, 'bottle')} of {wine_name} to your cart. "
        f"Your cart has {pluralize(cart.total_quantity, 'item')} totaling "
        f"{cart.total.formatted()}. {CHECKOUT_PROMPT}"
    )


def build_cart_message(cart: Optional[CartSnapshot]) -> str:
    if cart is None or cart.is_empty:
        return "Your cart is empty. Tell me what wines you would like to add."
    return (
        f"Your cart contains {pluralize(cart.total_quantity, 'item')}: "
        f"{cart.item_summary()}. Total: {cart.total.formatted()}."
    )


def build_checkout_message(cart: CartSnapshot) -> str:
    return (
        f"Perfect! Your order of {pluralize(cart.total_quantity, 'item')} totaling "
        f"{cart.total.formatted()} is ready. I'm sending the checkout link to your screen now. "
        "Tap the checkout button to complete your purchase."
    )


def build_order_history_message(orders: list[Order]) -> str:
    if not orders:
        return "I don't see any previous orders for you yet."
    latest = orders[0]
    when = f" placed on {latest.created_at:%d %B %Y}" if latest.created_at else ""
    return (
        f"You have {pluralize(len(orders), 'previous order')}. "
        f"The most recent is {latest.order_number}{when}, totaling {latest.total.formatted()}."
    )
