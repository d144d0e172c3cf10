"""Order-history source: Shopify Admin API orders looked up by customer email."""

import logging
from typing import Any, Optional

import httpx

from sommelier.config import CommerceConfig
from sommelier.errors import OrdersUnavailableError
from sommelier.gateways.shopify import GraphQLError, ShopifyGraphQLClient
from sommelier.schemas.cart_schema import Money
from sommelier.schemas.order_schema import Order, OrderLineItem

logger = logging.getLogger(__name__)

MAX_ORDERS = 20

ORDERS_BY_EMAIL = f"""
query GetOrdersByEmail($query: String!) {{
  orders(first: {MAX_ORDERS}, query: $query, sortKey: CREATED_AT, reverse: true) {{
    edges {{
      node {{
        id
        name
        createdAt
        totalPriceSet {{ shopMoney {{ amount currencyCode }} }}
        displayFulfillmentStatus
        displayFinancialStatus
        lineItems(first: 50) {{
          edges {{
            node {{
              title
              quantity
              originalTotalSet {{ shopMoney {{ amount currencyCode }} }}
            }}
          }}
        }}
      }}
    }}
  }}
}}
"""


def _shop_money(raw: Optional[dict[str, Any]]) -> Money:
    money = (raw or {}).get("shopMoney") or {}
    return Money(amount=money.get("amount") or "0", currency_code=money.get("currencyCode") or "GBP")


def parse_order(raw: dict[str, Any]) -> Order:
    items = [
        OrderLineItem(
            title=edge["node"].get("title", ""),
            quantity=edge["node"].get("quantity", 0),
            total=_shop_money(edge["node"].get("originalTotalSet")),
        )
        for edge in (raw.get("lineItems") or {}).get("edges", [])
    ]
    return Order(
        id=raw["id"],
        order_number=raw.get("name", ""),
        created_at=raw.get("createdAt"),
        total=_shop_money(raw.get("totalPriceSet")),
        fulfillment_status=raw.get("displayFulfillmentStatus") or "",
        financial_status=raw.get("displayFinancialStatus") or "",
        items=items,
    )


class ShopifyOrderHistory:
    """Fetches a customer's recent orders, newest first."""

    def __init__(self, config: CommerceConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self._graphql = ShopifyGraphQLClient(
            endpoint=f"https://{config.store_domain}/admin/api/{config.admin_api_version}/graphql.json",
            headers={"X-Shopify-Access-Token": config.admin_token},
            timeout=config.timeout_sec,
            error_cls=OrdersUnavailableError,
            client=client,
        )

    async def fetch_orders(self, email: str) -> list[Order]:
        try:
            data = await self._graphql.execute(ORDERS_BY_EMAIL, {"query": f'email:"{email}"'})
        except GraphQLError as exc:
            raise OrdersUnavailableError(f"Admin API error: {exc}") from exc
        edges = (data.get("orders") or {}).get("edges", [])
        orders = [parse_order(edge["node"]) for edge in edges]
        logger.info("Fetched %d orders from order history", len(orders))
        return orders

    async def aclose(self) -> None:
        await self._graphql.aclose()
