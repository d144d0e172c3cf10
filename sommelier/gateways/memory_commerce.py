"""
In-process commerce backend for the console demo and tests.

Behaves like the Storefront cart API as far as the session manager can
tell: every operation returns a full CartSnapshot, unknown cart ids read
back as None, and mutations on them raise CartNotFoundError. Unknown
merchandise is refused with CommerceRequestError and leaves the cart alone.
"""

import itertools
import logging
from collections import Counter
from decimal import Decimal
from typing import Iterable, Optional

from sommelier.errors import CartNotFoundError, CommerceRequestError
from sommelier.schemas.cart_schema import (
    CartLine,
    CartSnapshot,
    CommerceProduct,
    Money,
    ProductVariant,
)
from sommelier.schemas.wine_schema import CatalogWine

logger = logging.getLogger(__name__)


def product_for_wine(wine: CatalogWine) -> CommerceProduct:
    """One single-variant product per catalog wine, on sale while in stock."""
    price = Money(amount=wine.retail_price or Decimal("0"))
    return CommerceProduct(
        id=f"gid://shopify/Product/{wine.id}",
        title=wine.name,
        handle=wine.name.lower().replace(" ", "-"),
        variants=[
            ProductVariant(
                id=f"gid://shopify/ProductVariant/{wine.id}",
                title="750ml",
                price=price,
                available_for_sale=wine.in_stock,
            )
        ],
    )


class InMemoryCommerceBackend:
    def __init__(self, products: Iterable[CommerceProduct] = ()) -> None:
        self.products: list[CommerceProduct] = list(products)
        self.calls: Counter = Counter()
        self._carts: dict[str, dict[str, CartLine]] = {}
        self._ids = itertools.count(1)

    @classmethod
    def from_catalog(cls, wines: Iterable[CatalogWine]) -> "InMemoryCommerceBackend":
        return cls(product_for_wine(w) for w in wines if w.is_active)

    @property
    def cart_count(self) -> int:
        return len(self._carts)

    def expire_cart(self, cart_id: str) -> None:
        """Forget a cart, as the real backend does after its retention window."""
        self._carts.pop(cart_id, None)

    # ------------------------------------------------------------------ #
    # CommerceBackend
    # ------------------------------------------------------------------ #

    async def create_cart(self) -> CartSnapshot:
        self.calls["create_cart"] += 1
        cart_id = f"gid://shopify/Cart/mem-{next(self._ids)}"
        self._carts[cart_id] = {}
        logger.debug("Created in-memory cart %s", cart_id)
        return self._snapshot(cart_id)

    async def get_cart(self, cart_id: str) -> Optional[CartSnapshot]:
        self.calls["get_cart"] += 1
        if cart_id not in self._carts:
            return None
        return self._snapshot(cart_id)

    async def add_line(self, cart_id: str, merchandise_id: str, quantity: int) -> CartSnapshot:
        self.calls["add_line"] += 1
        lines = self._lines(cart_id)
        existing = next(
            (line for line in lines.values() if line.merchandise_id == merchandise_id), None
        )
        if existing is not None:
            lines[existing.id] = existing.model_copy(
                update={"quantity": existing.quantity + quantity}
            )
        else:
            variant, product = self._variant(merchandise_id)
            if variant is None:
                raise CommerceRequestError(
                    f"cartLinesAdd rejected: The merchandise with id {merchandise_id} does not exist."
                )
            line_id = f"gid://shopify/CartLine/mem-{next(self._ids)}"
            lines[line_id] = CartLine(
                id=line_id,
                merchandise_id=merchandise_id,
                quantity=quantity,
                unit_price=variant.price,
                product_title=product.title,
            )
        return self._snapshot(cart_id)

    async def update_line(self, cart_id: str, line_id: str, quantity: int) -> CartSnapshot:
        self.calls["update_line"] += 1
        lines = self._lines(cart_id)
        if line_id in lines:
            lines[line_id] = lines[line_id].model_copy(update={"quantity": quantity})
        return self._snapshot(cart_id)

    async def remove_line(self, cart_id: str, line_id: str) -> CartSnapshot:
        self.calls["remove_line"] += 1
        self._lines(cart_id).pop(line_id, None)
        return self._snapshot(cart_id)

    async def search_products(
        self, query: str, first: Optional[int] = None
    ) -> list[CommerceProduct]:
        self.calls["search_products"] += 1
        words = [w for w in query.lower().split() if w]
        matches = [
            p for p in self.products
            if words and any(w in p.title.lower() for w in words)
        ]
        return matches[: first or len(matches)]

    # ------------------------------------------------------------------ #

    def _lines(self, cart_id: str) -> dict[str, CartLine]:
        if cart_id not in self._carts:
            raise CartNotFoundError(cart_id)
        return self._carts[cart_id]

    def _variant(self, merchandise_id: str):
        for product in self.products:
            for variant in product.variants:
                if variant.id == merchandise_id:
                    return variant, product
        return None, None

    def _snapshot(self, cart_id: str) -> CartSnapshot:
        lines = list(self._carts[cart_id].values())
        total = sum((line.unit_price.amount * line.quantity for line in lines), Decimal("0.00"))
        return CartSnapshot(
            id=cart_id,
            checkout_url=f"https://shop.example/cart/c/{cart_id.rsplit('/', 1)[-1]}",
            total_quantity=sum(line.quantity for line in lines),
            total=Money(amount=total),
            lines=lines,
        )
