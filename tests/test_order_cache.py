"""Tests for the read-through order cache."""

import asyncio

import pytest

from sommelier.errors import OrdersUnavailableError
from sommelier.order_cache import OrderCache
from sommelier.schemas.order_schema import Order


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeOrderSource:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.fail = fail

    async def fetch(self, email: str) -> list[Order]:
        self.calls.append(email)
        await asyncio.sleep(0)
        if self.fail:
            raise OrdersUnavailableError("admin api down")
        return [Order(id=f"gid://shopify/Order/{len(self.calls)}", order_number="#1001")]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeOrderSource()


@pytest.fixture
def cache(source, clock):
    return OrderCache(source.fetch, ttl_seconds=300, clock=clock)


class TestTtl:
    @pytest.mark.asyncio
    async def test_second_get_within_ttl_is_cached(self, cache, source, clock):
        await cache.get("jane@example.com")
        clock.now += 299
        await cache.get("jane@example.com")
        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_get_after_ttl_refetches(self, cache, source, clock):
        await cache.get("jane@example.com")
        clock.now += 300
        orders = await cache.get("jane@example.com")
        assert len(source.calls) == 2
        assert orders[0].id == "gid://shopify/Order/2"

    @pytest.mark.asyncio
    async def test_peek_ignores_expired_entries(self, cache, clock):
        await cache.get("jane@example.com")
        assert cache.peek("jane@example.com") is not None
        clock.now += 301
        assert cache.peek("jane@example.com") is None

    def test_non_positive_ttl_rejected(self, source):
        with pytest.raises(ValueError, match="ttl_seconds"):
            OrderCache(source.fetch, ttl_seconds=0)


class TestKeys:
    @pytest.mark.asyncio
    async def test_email_normalized(self, cache, source):
        await cache.get("  Jane@Example.COM ")
        await cache.get("jane@example.com")
        assert source.calls == ["jane@example.com"]

    @pytest.mark.asyncio
    async def test_different_emails_fetch_separately(self, cache, source):
        await asyncio.gather(cache.get("a@example.com"), cache.get("b@example.com"))
        assert sorted(source.calls) == ["a@example.com", "b@example.com"]

    @pytest.mark.asyncio
    async def test_concurrent_misses_fetch_once(self, cache, source):
        await asyncio.gather(*(cache.get("jane@example.com") for _ in range(5)))
        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, cache, source):
        await cache.get("jane@example.com")
        cache.invalidate("JANE@example.com")
        await cache.get("jane@example.com")
        assert len(source.calls) == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_errors_are_not_cached(self, clock):
        source = FakeOrderSource(fail=True)
        cache = OrderCache(source.fetch, ttl_seconds=300, clock=clock)
        with pytest.raises(OrdersUnavailableError):
            await cache.get("jane@example.com")
        source.fail = False
        orders = await cache.get("jane@example.com")
        assert len(orders) == 1
        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_clear_drops_every_entry(self, cache, source):
        await cache.get("a@example.com")
        await cache.get("b@example.com")
        cache.clear()
        assert cache.peek("a@example.com") is None
        await cache.get("a@example.com")
        assert len(source.calls) == 3
