"""End-to-end tests for the tool dispatcher over in-memory backends."""

import json

import pytest

from sommelier.dispatch.dispatcher import ToolDispatcher
from sommelier.dispatch.registry import get_registered_tools, get_tool
from sommelier.errors import CommerceUnavailableError
from sommelier.gateways.catalog import InMemoryCatalogStore
from sommelier.gateways.memory_commerce import InMemoryCommerceBackend
from sommelier.gateways.seed_catalog import SEED_WINES
from sommelier.order_cache import OrderCache
from sommelier.schemas.order_schema import Order
from tests.conftest import SlowCatalogStore, make_call, make_services, make_wine


def content_of(response) -> dict:
    return json.loads(response.content())


class BrokenCommerce(InMemoryCommerceBackend):
    async def search_products(self, query, first=None):
        raise CommerceUnavailableError("HTTP 502 from https://shop.example/api/graphql.json")


class ExplodingCommerce(InMemoryCommerceBackend):
    async def search_products(self, query, first=None):
        raise KeyError("variants")


class TestRegistry:
    def test_all_tools_registered(self):
        names = {spec.name for spec in get_registered_tools()}
        assert names == {
            "search_wines", "get_wine", "add_to_cart", "get_cart", "checkout",
            "update_cart_item", "remove_from_cart", "clear_cart", "get_order_history",
        }

    def test_commerce_tools_have_demo_twins(self):
        for spec in get_registered_tools():
            if spec.requires_commerce:
                assert spec.demo_handler is not None, spec.name

    def test_describe_exposes_parameter_schema(self):
        described = get_tool("add_to_cart").describe()
        assert "wine_name" in described["parameters"]["properties"]


class TestUnknownTool:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher):
        response = await dispatcher.handle(make_call("pair_with_cheese", tool_call_id="abc"))
        assert response.success is False
        assert response.message == "Unknown tool: pair_with_cheese"
        assert response.tool_call_id == "abc"
        assert response.to_wire()["type"] == "tool_error"


class TestValidation:
    @pytest.mark.asyncio
    async def test_add_without_identifier_makes_no_upstream_call(
        self, dispatcher, catalog_store, commerce
    ):
        response = await dispatcher.handle(make_call("add_to_cart", {"quantity": 2}))
        assert response.success is False
        assert "wine_name or wine_id" in response.message
        assert sum(catalog_store.calls.values()) == 0
        assert sum(commerce.calls.values()) == 0
        assert response.to_wire()["type"] == "tool_response"

    @pytest.mark.asyncio
    async def test_get_wine_without_identifier(self, dispatcher, catalog_store):
        response = await dispatcher.handle(make_call("get_wine", {"wine_name": "  "}))
        assert response.success is False
        assert response.error_code == "validation_error"
        assert sum(catalog_store.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_quantity_out_of_range(self, dispatcher, commerce):
        response = await dispatcher.handle(
            make_call("add_to_cart", {"wine_name": "Barolo", "quantity": 500})
        )
        assert response.success is False
        assert response.message.startswith("quantity:")
        assert sum(commerce.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_parameters_as_json_string(self, dispatcher):
        response = await dispatcher.handle(
            make_call("search_wines", json.dumps({"wine_type": "white"}))
        )
        assert response.success is True
        assert [w["wine_type"] for w in content_of(response)["wines"]] == ["white"]

    @pytest.mark.asyncio
    async def test_malformed_json_parameters(self, dispatcher):
        response = await dispatcher.handle(make_call("search_wines", "{not json"))
        assert response.success is False
        assert response.error_code == "validation_error"

    @pytest.mark.asyncio
    async def test_inverted_price_range(self, dispatcher):
        response = await dispatcher.handle(
            make_call("search_wines", {"min_price": 100, "max_price": 20})
        )
        assert response.success is False
        assert response.message == "The minimum price can't be higher than the maximum price."


class TestCatalogTools:
    @pytest.mark.asyncio
    async def test_search_scenario(self):
        store = InMemoryCatalogStore([
            make_wine(1, "Cheap Red", price="45.00", wine_type="red"),
            make_wine(2, "Dear Red", price="150.00", wine_type="red"),
            make_wine(3, "Crisp White", price="30.00", wine_type="white"),
        ])
        dispatcher = ToolDispatcher(make_services(store))
        response = await dispatcher.handle(
            make_call("search_wines", {"wine_type": "red", "max_price": 100})
        )
        body = content_of(response)
        assert body["count"] == 1
        assert body["wines"][0]["id"] == 1
        assert "Cheap Red" in body["message"]

    @pytest.mark.asyncio
    async def test_search_with_no_results(self, dispatcher):
        response = await dispatcher.handle(make_call("search_wines", {"country": "Narnia"}))
        assert response.success is True
        assert response.message.startswith("No wines found")

    @pytest.mark.asyncio
    async def test_get_wine_by_id(self, dispatcher):
        response = await dispatcher.handle(make_call("get_wine", {"wine_id": 2}))
        body = content_of(response)
        assert body["wine"]["name"] == "Château Margaux"
        assert body["match"] == "found"

    @pytest.mark.asyncio
    async def test_get_wine_not_found_names_the_search(self, dispatcher):
        response = await dispatcher.handle(make_call("get_wine", {"wine_name": "Petrus"}))
        assert response.success is False
        assert "Petrus" in response.message
        assert response.error_code == "wine_not_found"

    @pytest.mark.asyncio
    async def test_catalog_timeout_is_failure(self):
        store = SlowCatalogStore(SEED_WINES, delay=0.5)
        dispatcher = ToolDispatcher(make_services(store, catalog_timeout=0.05))
        response = await dispatcher.handle(make_call("search_wines", {}))
        assert response.success is False
        assert response.message == "Failed to search wines. Please try again."
        assert response.error_code == "catalog_unavailable"

    @pytest.mark.asyncio
    async def test_handler_timeout_is_failure(self):
        store = SlowCatalogStore(SEED_WINES, delay=0.5)
        dispatcher = ToolDispatcher(make_services(store), tool_timeout=0.05)
        response = await dispatcher.handle(make_call("get_wine", {"wine_id": 1}))
        assert response.success is False
        assert response.error_code == "upstream_timeout"


class TestAddToCart:
    @pytest.mark.asyncio
    async def test_add_then_get_cart(self, dispatcher):
        added = await dispatcher.handle(
            make_call("add_to_cart", {"wine_name": "Barolo Cannubi", "quantity": 2})
        )
        assert added.success is True
        assert added.message.startswith("Added 2 bottles of Barolo Cannubi to your cart.")
        body = content_of(added)
        assert body["cart"]["total_items"] == 2
        assert body["cart"]["total_amount"] == "£90.00"
        assert body["added_item"]["wine_id"] == 1

        cart = await dispatcher.handle(make_call("get_cart"))
        assert content_of(cart)["cart"]["total_items"] == 2

    @pytest.mark.asyncio
    async def test_ambiguous_name_adds_cheapest(self, dispatcher):
        response = await dispatcher.handle(make_call("add_to_cart", {"wine_name": "Barolo"}))
        assert content_of(response)["added_item"]["wine_name"] == "Barolo Cannubi"

    @pytest.mark.asyncio
    async def test_nonexistent_wine(self, dispatcher, commerce):
        response = await dispatcher.handle(
            make_call("add_to_cart", {"wine_name": "Nonexistent Vintage"})
        )
        assert response.success is False
        assert "Could not find wine" in response.message
        assert commerce.calls["create_cart"] == 0

    @pytest.mark.asyncio
    async def test_out_of_stock_wine_is_not_found(self, dispatcher):
        response = await dispatcher.handle(make_call("add_to_cart", {"wine_name": "Nyetimber"}))
        assert response.success is False
        assert "Could not find wine" in response.message

    @pytest.mark.asyncio
    async def test_wine_without_product_is_not_purchasable(self, catalog_store):
        commerce = InMemoryCommerceBackend()
        dispatcher = ToolDispatcher(make_services(catalog_store, commerce))
        response = await dispatcher.handle(make_call("add_to_cart", {"wine_id": 3}))
        body = content_of(response)
        assert body["success"] is False
        assert "not yet available in our shop" in body["message"]
        assert body["wine_found"]["id"] == 3
        assert response.to_wire()["type"] == "tool_response"

    @pytest.mark.asyncio
    async def test_unavailable_variant_is_out_of_stock(self, catalog_store):
        commerce = InMemoryCommerceBackend.from_catalog(SEED_WINES)
        commerce.products[0].variants[0].available_for_sale = False
        dispatcher = ToolDispatcher(make_services(catalog_store, commerce))
        response = await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        assert response.success is False
        assert response.error_code == "out_of_stock"

    @pytest.mark.asyncio
    async def test_rejected_cart_hint_gets_new_cart(self, dispatcher):
        response = await dispatcher.handle(
            make_call(
                "add_to_cart",
                {"wine_name": "Sancerre", "cart_id": "gid://shopify/Cart/expired"},
                session_id=None,
            )
        )
        body = content_of(response)
        assert body["success"] is True
        assert body["cart"]["id"] != "gid://shopify/Cart/expired"
        assert body["cart"]["total_items"] == 1

    @pytest.mark.asyncio
    async def test_expired_session_cart_is_recovered(self, dispatcher, commerce):
        first = content_of(await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1})))
        commerce.expire_cart(first["cart"]["id"])
        second = content_of(await dispatcher.handle(make_call("add_to_cart", {"wine_id": 3})))
        assert second["success"] is True
        assert second["cart"]["id"] != first["cart"]["id"]

    @pytest.mark.asyncio
    async def test_upstream_error_is_not_leaked(self, catalog_store):
        dispatcher = ToolDispatcher(make_services(catalog_store, BrokenCommerce()))
        response = await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        assert response.success is False
        assert response.message == "Failed to add wine to cart. Please try again."
        assert "502" not in response.content()
        assert response.to_wire()["type"] == "tool_error"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, catalog_store):
        dispatcher = ToolDispatcher(make_services(catalog_store, ExplodingCommerce()))
        response = await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        assert response.success is False
        assert response.error_code == "internal_error"
        assert "variants" not in response.message


class TestCartTools:
    @pytest.mark.asyncio
    async def test_empty_cart_is_success(self, dispatcher, commerce):
        response = await dispatcher.handle(make_call("get_cart"))
        assert response.success is True
        assert response.message.startswith("Your cart is empty")
        assert commerce.calls["create_cart"] == 0

    @pytest.mark.asyncio
    async def test_checkout_empty_cart_fails(self, dispatcher):
        response = await dispatcher.handle(make_call("checkout"))
        assert response.success is False
        assert response.message == "Your cart is empty. Add some wines first before checking out."

    @pytest.mark.asyncio
    async def test_checkout_returns_link(self, dispatcher):
        await dispatcher.handle(make_call("add_to_cart", {"wine_id": 4, "quantity": 2}))
        response = await dispatcher.handle(make_call("checkout"))
        body = content_of(response)
        assert body["action"] == "show_checkout_button"
        assert body["checkout"]["url"].startswith("https://")
        assert body["checkout"]["total_amount"] == "£43.00"

    @pytest.mark.asyncio
    async def test_update_and_remove(self, dispatcher):
        await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        await dispatcher.handle(make_call("add_to_cart", {"wine_id": 3}))

        updated = await dispatcher.handle(
            make_call("update_cart_item", {"wine_name": "Sancerre", "quantity": 3})
        )
        assert content_of(updated)["cart"]["total_items"] == 4

        removed = await dispatcher.handle(make_call("remove_from_cart", {"wine_name": "Barolo"}))
        assert content_of(removed)["cart"]["total_items"] == 3

    @pytest.mark.asyncio
    async def test_remove_missing_line(self, dispatcher):
        await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        response = await dispatcher.handle(make_call("remove_from_cart", {"wine_name": "Tokaji"}))
        assert response.success is False
        assert response.message == "I couldn't find Tokaji in your cart."

    @pytest.mark.asyncio
    async def test_clear_cart(self, dispatcher, commerce):
        await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        await dispatcher.handle(make_call("clear_cart"))
        response = await dispatcher.handle(make_call("get_cart"))
        assert content_of(response)["cart"]["total_items"] == 0

    @pytest.mark.asyncio
    async def test_cleared_cart_id_is_not_adopted_again(self, dispatcher, commerce):
        added = await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        old_id = content_of(added)["cart"]["id"]
        await dispatcher.handle(make_call("clear_cart"))

        response = await dispatcher.handle(make_call("get_cart", {"cart_id": old_id}))
        assert content_of(response)["cart"]["total_items"] == 0

        added = await dispatcher.handle(
            make_call("add_to_cart", {"wine_id": 3, "cart_id": old_id})
        )
        cart = content_of(added)["cart"]
        assert cart["id"] != old_id
        assert cart["total_items"] == 1

    @pytest.mark.asyncio
    async def test_clear_by_cart_id_without_session(self, dispatcher):
        added = await dispatcher.handle(
            make_call("add_to_cart", {"wine_id": 1}, session_id=None, tool_call_id="c1")
        )
        old_id = content_of(added)["cart"]["id"]
        cleared = await dispatcher.handle(
            make_call("clear_cart", {"cart_id": old_id}, session_id=None, tool_call_id="c2")
        )
        assert cleared.success is True

        response = await dispatcher.handle(
            make_call("get_cart", {"cart_id": old_id}, session_id=None, tool_call_id="c3")
        )
        assert content_of(response)["cart"]["total_items"] == 0

    @pytest.mark.asyncio
    async def test_anonymous_reads_leave_no_sessions(self, dispatcher):
        for n in range(20):
            await dispatcher.handle(make_call("get_cart", session_id=None, tool_call_id=f"c{n}"))
        carts = dispatcher.services.carts
        assert carts.session_count == 0
        assert carts.lock_count == 0

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, dispatcher):
        await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}, session_id="a"))
        response = await dispatcher.handle(make_call("get_cart", session_id="b"))
        assert content_of(response)["cart"]["total_items"] == 0


class TestDemoMode:
    @pytest.mark.asyncio
    async def test_add_to_cart_in_demo_mode(self, demo_dispatcher):
        response = await demo_dispatcher.handle(
            make_call("add_to_cart", {"wine_name": "Barolo", "quantity": 2})
        )
        body = content_of(response)
        assert body["success"] is True
        assert body["demo_mode"] is True
        assert body["message"].startswith('Would add 2 bottles of "Barolo"')

    @pytest.mark.asyncio
    async def test_demo_mode_skips_commerce_even_when_present(self, catalog_store, commerce):
        dispatcher = ToolDispatcher(make_services(catalog_store, commerce), demo_mode=True)
        await dispatcher.handle(make_call("add_to_cart", {"wine_id": 1}))
        await dispatcher.handle(make_call("checkout"))
        assert sum(commerce.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_catalog_tools_still_work(self, demo_dispatcher):
        response = await demo_dispatcher.handle(make_call("get_wine", {"wine_id": 1}))
        assert response.success is True
        assert "demo_mode" not in content_of(response)

    @pytest.mark.asyncio
    async def test_demo_validation_still_applies(self, demo_dispatcher):
        response = await demo_dispatcher.handle(make_call("add_to_cart", {}))
        assert response.success is False


class TestOrderHistory:
    @staticmethod
    def _dispatcher(catalog_store, fetched: list):
        async def fetch(email):
            fetched.append(email)
            return [Order(id="gid://shopify/Order/1", order_number="#1001")]

        return ToolDispatcher(make_services(catalog_store, orders=OrderCache(fetch)))

    @pytest.mark.asyncio
    async def test_uses_caller_email(self, catalog_store):
        fetched = []
        dispatcher = self._dispatcher(catalog_store, fetched)
        response = await dispatcher.handle(
            make_call("get_order_history", user_email="Jane@Example.com")
        )
        body = content_of(response)
        assert body["count"] == 1
        assert body["orders"][0]["order_number"] == "#1001"
        assert fetched == ["jane@example.com"]

    @pytest.mark.asyncio
    async def test_second_lookup_is_cached(self, catalog_store):
        fetched = []
        dispatcher = self._dispatcher(catalog_store, fetched)
        for _ in range(2):
            await dispatcher.handle(make_call("get_order_history", {"email": "a@example.com"}))
        assert len(fetched) == 1

    @pytest.mark.asyncio
    async def test_missing_email(self, catalog_store):
        dispatcher = self._dispatcher(catalog_store, [])
        response = await dispatcher.handle(make_call("get_order_history"))
        assert response.success is False
        assert response.error_code == "validation_error"

    @pytest.mark.asyncio
    async def test_not_configured(self, dispatcher):
        response = await dispatcher.handle(
            make_call("get_order_history", {"email": "a@example.com"})
        )
        assert response.success is False
        assert response.error_code == "orders_unavailable"
        assert response.message == "Failed to look up your orders. Please try again."
