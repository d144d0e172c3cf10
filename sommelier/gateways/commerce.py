"""
Commerce gateway: thin client over the Shopify Storefront cart API.

Every cart operation returns a full CartSnapshot. Failures are mapped into
the engine's taxonomy: an unknown or expired cart id becomes
CartNotFoundError, anything else upstream becomes an UpstreamError.
"""

import logging
from typing import Any, Optional

import httpx

from sommelier.config import CommerceConfig
from sommelier.errors import CartNotFoundError, CommerceRequestError, CommerceUnavailableError
from sommelier.gateways.shopify import GraphQLError, ShopifyGraphQLClient
from sommelier.schemas.cart_schema import (
    CartLine,
    CartSnapshot,
    CommerceProduct,
    Money,
    ProductVariant,
)

logger = logging.getLogger(__name__)

MAX_CART_LINES = 50

_CART_FIELDS = f"""
  id
  checkoutUrl
  totalQuantity
  cost {{
    totalAmount {{ amount currencyCode }}
  }}
  lines(first: {MAX_CART_LINES}) {{
    edges {{
      node {{
        id
        quantity
        merchandise {{
          ... on ProductVariant {{
            id
            title
            product {{ id title handle featuredImage {{ url }} }}
            price {{ amount currencyCode }}
          }}
        }}
      }}
    }}
  }}
"""

CART_CREATE = f"""
mutation CartCreate {{
  cartCreate {{
    cart {{ {_CART_FIELDS} }}
    userErrors {{ field message code }}
  }}
}}
"""

CART_QUERY = f"""
query GetCart($cartId: ID!) {{
  cart(id: $cartId) {{ {_CART_FIELDS} }}
}}
"""

CART_LINES_ADD = f"""
mutation AddToCart($cartId: ID!, $lines: [CartLineInput!]!) {{
  cartLinesAdd(cartId: $cartId, lines: $lines) {{
    cart {{ {_CART_FIELDS} }}
    userErrors {{ field message code }}
  }}
}}
"""

CART_LINES_UPDATE = f"""
mutation UpdateCartLine($cartId: ID!, $lines: [CartLineUpdateInput!]!) {{
  cartLinesUpdate(cartId: $cartId, lines: $lines) {{
    cart {{ {_CART_FIELDS} }}
    userErrors {{ field message code }}
  }}
}}
"""

CART_LINES_REMOVE = f"""
mutation RemoveCartLine($cartId: ID!, $lineIds: [ID!]!) {{
  cartLinesRemove(cartId: $cartId, lineIds: $lineIds) {{
    cart {{ {_CART_FIELDS} }}
    userErrors {{ field message code }}
  }}
}}
"""

PRODUCT_SEARCH = """
query SearchProducts($query: String!, $first: Int!) {
  products(first: $first, query: $query) {
    edges {
      node {
        id
        title
        handle
        variants(first: 1) {
          edges {
            node { id title price { amount currencyCode } availableForSale }
          }
        }
      }
    }
  }
}
"""

_MISSING_HINTS = (
    "does not exist", "not found", "invalid global id", "invalid id", "invalid value",
)


def _looks_missing(message: str) -> bool:
    lowered = message.lower()
    return any(hint in lowered for hint in _MISSING_HINTS)


def _user_error_names_cart(error: dict[str, Any]) -> bool:
    """A mutation userError is about the cart only when its field is ``cartId``."""
    fields = [str(f) for f in (error.get("field") or [])]
    if fields:
        return "cartId" in fields
    message = str(error.get("message", "")).lower()
    return "the specified cart" in message and _looks_missing(message)


def _graphql_error_names_cart(message: str, path: list[str], cart_id: str) -> bool:
    """A top-level error is about the cart when it names the cart variable, id or field."""
    if not _looks_missing(message):
        return False
    return "cartId" in message or cart_id in message or "cartId" in path or path[:1] == ["cart"]


def _money(raw: Optional[dict[str, Any]]) -> Money:
    raw = raw or {}
    return Money(amount=raw.get("amount") or "0", currency_code=raw.get("currencyCode") or "GBP")


def parse_cart(raw: dict[str, Any]) -> CartSnapshot:
    """Convert a Storefront ``Cart`` object into a CartSnapshot."""
    lines = []
    for edge in (raw.get("lines") or {}).get("edges", []):
        node = edge.get("node") or {}
        merchandise = node.get("merchandise") or {}
        product = merchandise.get("product") or {}
        lines.append(
            CartLine(
                id=node["id"],
                merchandise_id=merchandise.get("id", ""),
                quantity=node.get("quantity", 1),
                unit_price=_money(merchandise.get("price")),
                product_title=product.get("title") or merchandise.get("title", ""),
                product_image_url=(product.get("featuredImage") or {}).get("url"),
            )
        )
    return CartSnapshot(
        id=raw["id"],
        checkout_url=raw.get("checkoutUrl") or "",
        total_quantity=raw.get("totalQuantity") or 0,
        total=_money((raw.get("cost") or {}).get("totalAmount")),
        lines=lines,
    )


def parse_product(raw: dict[str, Any]) -> CommerceProduct:
    variants = [
        ProductVariant(
            id=edge["node"]["id"],
            title=edge["node"].get("title", ""),
            price=_money(edge["node"].get("price")),
            available_for_sale=bool(edge["node"].get("availableForSale")),
        )
        for edge in (raw.get("variants") or {}).get("edges", [])
    ]
    return CommerceProduct(
        id=raw["id"], title=raw.get("title", ""), handle=raw.get("handle", ""), variants=variants
    )


class ShopifyCommerceGateway:
    """Storefront API cart/product client."""

    def __init__(self, config: CommerceConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._graphql = ShopifyGraphQLClient(
            endpoint=f"https://{config.store_domain}/api/{config.storefront_api_version}/graphql.json",
            headers={"X-Shopify-Storefront-Access-Token": config.storefront_token},
            timeout=config.timeout_sec,
            error_cls=CommerceUnavailableError,
            client=client,
        )

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    async def create_cart(self) -> CartSnapshot:
        data = await self._execute(CART_CREATE)
        cart = self._mutation_cart(data, "cartCreate", cart_id=None)
        logger.info("Created cart %s", cart.id)
        return cart

    async def get_cart(self, cart_id: str) -> Optional[CartSnapshot]:
        """Read a cart. Returns None when the backend does not recognise the id."""
        try:
            data = await self._execute(CART_QUERY, {"cartId": cart_id}, cart_id=cart_id)
        except CartNotFoundError:
            return None
        raw = data.get("cart")
        return parse_cart(raw) if raw else None

    async def add_line(self, cart_id: str, merchandise_id: str, quantity: int) -> CartSnapshot:
        data = await self._execute(
            CART_LINES_ADD,
            {"cartId": cart_id, "lines": [{"merchandiseId": merchandise_id, "quantity": quantity}]},
            cart_id=cart_id,
        )
        return self._mutation_cart(data, "cartLinesAdd", cart_id)

    async def update_line(self, cart_id: str, line_id: str, quantity: int) -> CartSnapshot:
        data = await self._execute(
            CART_LINES_UPDATE,
            {"cartId": cart_id, "lines": [{"id": line_id, "quantity": quantity}]},
            cart_id=cart_id,
        )
        return self._mutation_cart(data, "cartLinesUpdate", cart_id)

    async def remove_line(self, cart_id: str, line_id: str) -> CartSnapshot:
        data = await self._execute(
            CART_LINES_REMOVE, {"cartId": cart_id, "lineIds": [line_id]}, cart_id=cart_id
        )
        return self._mutation_cart(data, "cartLinesRemove", cart_id)

    async def search_products(self, query: str, first: Optional[int] = None) -> list[CommerceProduct]:
        data = await self._execute(
            PRODUCT_SEARCH, {"query": query, "first": first or self._config.product_search_limit}
        )
        edges = (data.get("products") or {}).get("edges", [])
        return [parse_product(edge["node"]) for edge in edges]

    async def aclose(self) -> None:
        await self._graphql.aclose()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _execute(
        self, query: str, variables: Optional[dict[str, Any]] = None, cart_id: Optional[str] = None
    ) -> dict[str, Any]:
        try:
            return await self._graphql.execute(query, variables)
        except GraphQLError as exc:
            if cart_id and any(
                _graphql_error_names_cart(message, path, cart_id)
                for message, path in zip(exc.messages, exc.paths)
            ):
                raise CartNotFoundError(cart_id, str(exc)) from exc
            if any(_looks_missing(message) for message in exc.messages):
                raise CommerceRequestError(f"Storefront API rejected request: {exc}") from exc
            raise CommerceUnavailableError(f"Storefront API error: {exc}") from exc

    @staticmethod
    def _mutation_cart(
        data: dict[str, Any], mutation: str, cart_id: Optional[str]
    ) -> CartSnapshot:
        """Extract the cart from a mutation payload. ``cart_id`` is None for cartCreate."""
        payload = data.get(mutation) or {}
        user_errors = payload.get("userErrors") or []
        for error in user_errors:
            if cart_id and _user_error_names_cart(error):
                raise CartNotFoundError(cart_id, str(error.get("message", "")))
        if user_errors:
            messages = "; ".join(str(e.get("message", "")) for e in user_errors)
            raise CommerceRequestError(f"{mutation} rejected: {messages}")
        raw = payload.get("cart")
        if not raw:
            if cart_id is None:
                raise CommerceRequestError(f"{mutation} returned no cart")
            raise CartNotFoundError(cart_id, f"{mutation} returned no cart")
        return parse_cart(raw)
