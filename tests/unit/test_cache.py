"""Tests for the semantic result cache."""

import pytest

from sqlagent.cache import SemanticCache, make_cache_key
from sqlagent.models.ask import SqlResult


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return SemanticCache(ttl_seconds=60, clock=clock)


def result(sql="SELECT 1"):
    return SqlResult(sql=[sql], dialect="sqlite")


class TestMakeCacheKey:
    def test_table_order_does_not_matter(self):
        first = make_cache_key("sqlite", "shop", "top sales", ["orders", "Products"])
        assert first == make_cache_key("sqlite", "shop", "top sales", ["Products", "orders"])
        assert first != make_cache_key("sqlite", "shop", "top sales", ["orders"])

    def test_is_lowercase_sha256(self):
        key = make_cache_key(None, "shop", "q", [])
        assert len(key) == 64
        assert key == key.lower()

    def test_components_change_the_key(self):
        base = make_cache_key("sqlite", "shop", "q", ["orders"])
        assert base != make_cache_key("postgresql", "shop", "q", ["orders"])
        assert base != make_cache_key("sqlite", "other", "q", ["orders"])
        assert base != make_cache_key("sqlite", "shop", "q2", ["orders"])


class TestSemanticCache:
    @pytest.mark.asyncio
    async def test_miss(self, cache):
        assert await cache.get("absent") is None

    @pytest.mark.asyncio
    async def test_hit_until_expiry(self, cache, clock):
        await cache.set("k", result())

        clock.now += 59
        assert (await cache.get("k")).sql == ["SELECT 1"]

        clock.now += 1
        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_per_entry_ttl(self, cache, clock):
        await cache.set("k", result(), ttl_seconds=5)
        clock.now += 6
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_values_are_copied(self, cache):
        original = result()
        await cache.set("k", original)
        original.warnings.append("mutated after set")

        cached = await cache.get("k")
        cached.warnings.append("mutated after get")

        assert (await cache.get("k")).warnings == []

    @pytest.mark.asyncio
    async def test_clear(self, cache):
        await cache.set("a", result())
        await cache.set("b", result())
        assert len(cache) == 2

        await cache.clear()
        assert len(cache) == 0
