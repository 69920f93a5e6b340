"""
Tests for the origin cache orchestrator.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeProvider, make_collections, make_products
from instantcache.core.exceptions import CatalogUpstreamError
from instantcache.services.catalog_service import CatalogService
from instantcache.services.cache_keys import INSTANT_CATALOG_KEY


def _service(store, provider, clock, redis_client=None):
    return CatalogService(store, provider, r=redis_client, ttl_ms=120_000, clock=clock)


@pytest.mark.asyncio
async def test_ttl_window_hit_then_miss(store, provider, clock, redis_client):
    service = _service(store, provider, clock, redis_client)

    first = await service.get_catalog_snapshot(False)
    assert first.source == "fresh"
    assert len(first.snapshot.products) == 3
    assert len(first.snapshot.collections) == 2
    assert provider.calls == {"products": 1, "collections": 1}

    clock.advance(60_000)
    second = await service.get_catalog_snapshot(False)
    assert second.source == "cache"
    assert provider.calls == {"products": 1, "collections": 1}
    assert second.snapshot.model_dump() == first.snapshot.model_dump()

    clock.advance(65_000)
    third = await service.get_catalog_snapshot(False)
    assert third.source == "fresh"
    assert provider.calls == {"products": 2, "collections": 2}


@pytest.mark.asyncio
async def test_force_refresh_skips_fresh_entry(store, provider, clock):
    service = _service(store, provider, clock)

    await service.get_catalog_snapshot(False)
    result = await service.get_catalog_snapshot(True)

    assert result.source == "fresh"
    assert provider.calls["products"] == 2


@pytest.mark.asyncio
async def test_upstream_fetches_run_concurrently(store, clock):
    started = []
    release = asyncio.Event()

    class GatedProvider(FakeProvider):
        async def fetch_products(self):
            started.append("products")
            await release.wait()
            return make_products(1)

        async def fetch_collections(self, limit=50):
            started.append("collections")
            await release.wait()
            return make_collections(1)

    service = _service(store, GatedProvider(), clock)
    pending = asyncio.ensure_future(service.get_catalog_snapshot(False))

    for _ in range(10):
        await asyncio.sleep(0)
    # Both requests are in flight before either has completed
    assert sorted(started) == ["collections", "products"]

    release.set()
    result = await pending
    assert result.source == "fresh"


@pytest.mark.asyncio
async def test_products_failure_keeps_collections(store, clock):
    provider = FakeProvider(products_error=CatalogUpstreamError("shopify down"))
    service = _service(store, provider, clock)

    result = await service.get_catalog_snapshot(False)

    assert result.snapshot.products == []
    assert len(result.snapshot.collections) == 2
    assert result.source == "fresh"


@pytest.mark.asyncio
async def test_collections_failure_keeps_products(store, clock):
    provider = FakeProvider(collections_error=CatalogUpstreamError("storefront down"))
    service = _service(store, provider, clock)

    result = await service.get_catalog_snapshot(False)

    assert len(result.snapshot.products) == 3
    assert result.snapshot.collections == []


@pytest.mark.asyncio
async def test_partial_fetch_is_not_cached(store, clock):
    provider = FakeProvider(products_error=CatalogUpstreamError("shopify down"))
    service = _service(store, provider, clock)

    await service.get_catalog_snapshot(False)

    assert await store.get(INSTANT_CATALOG_KEY) is None


@pytest.mark.asyncio
async def test_partial_fetch_keeps_last_complete_entry(store, provider, clock):
    service = _service(store, provider, clock)
    await service.get_catalog_snapshot(False)

    clock.advance(130_000)
    provider.products_error = CatalogUpstreamError("shopify down")
    partial = await service.get_catalog_snapshot(False)
    assert partial.source == "fresh"
    assert partial.snapshot.products == []
    entry = await store.get(INSTANT_CATALOG_KEY)
    assert len(entry.data["products"]) == 3

    clock.advance(10_000)
    provider.products_error = None
    recovered = await service.get_catalog_snapshot(False)
    assert recovered.source == "fresh"
    assert len(recovered.snapshot.products) == 3

    cached = await service.get_catalog_snapshot(False)
    assert cached.source == "cache"
    assert len(cached.snapshot.products) == 3
    assert provider.calls["products"] == 3


@pytest.mark.asyncio
async def test_malformed_upstream_record_does_not_fail_snapshot(store, clock):
    products = make_products(2)
    products[1]["variants"] = [{"id": 123}]
    service = _service(store, FakeProvider(products=products), clock)

    result = await service.get_catalog_snapshot(False)

    assert result.source == "fresh"
    assert [p.id for p in result.snapshot.products] == [products[0]["id"]]
    assert len(result.snapshot.collections) == 2


@pytest.mark.asyncio
async def test_total_failure_returns_empty_snapshot(store, clock):
    provider = FakeProvider(
        products_error=CatalogUpstreamError("down"),
        collections_error=CatalogUpstreamError("down"),
    )
    service = _service(store, provider, clock)

    result = await service.get_catalog_snapshot(False)

    assert result.source == "empty"
    assert result.snapshot.products == []
    assert result.snapshot.collections == []
    assert await store.get(INSTANT_CATALOG_KEY) is None


@pytest.mark.asyncio
async def test_total_failure_serves_expired_entry(store, provider, clock):
    service = _service(store, provider, clock)
    await service.get_catalog_snapshot(False)

    provider.products_error = CatalogUpstreamError("down")
    provider.collections_error = CatalogUpstreamError("down")
    clock.advance(300_000)

    result = await service.get_catalog_snapshot(False)

    assert result.source == "fallback"
    assert len(result.snapshot.products) == 3
    # The good entry is not overwritten by an empty one
    entry = await store.get(INSTANT_CATALOG_KEY)
    assert len(entry.data["products"]) == 3


@pytest.mark.asyncio
async def test_persistence_failure_still_returns_fresh_data(store, provider, clock):
    store.upsert = AsyncMock(side_effect=ConnectionError("redis gone"))
    service = _service(store, provider, clock)

    result = await service.get_catalog_snapshot(False)

    assert result.source == "fresh"
    assert len(result.snapshot.products) == 3


@pytest.mark.asyncio
async def test_read_failure_falls_through_to_upstream(store, provider, clock):
    store.get = AsyncMock(side_effect=ConnectionError("redis gone"))
    service = _service(store, provider, clock)

    result = await service.get_catalog_snapshot(False)

    assert result.source == "fresh"
    assert provider.calls["products"] == 1


@pytest.mark.asyncio
async def test_invalidation_forces_upstream(store, provider, clock):
    service = _service(store, provider, clock)
    await service.get_catalog_snapshot(False)

    deleted = await store.delete_by_pattern("product")

    assert deleted == 1
    assert await store.get(INSTANT_CATALOG_KEY) is None
    result = await service.get_catalog_snapshot(False)
    assert result.source == "fresh"
    assert provider.calls["products"] == 2


@pytest.mark.asyncio
async def test_large_upstream_is_truncated_before_persisting(store, clock):
    provider = FakeProvider(products=make_products(500), collections=make_collections(50, per_collection=30))
    service = _service(store, provider, clock)

    await service.get_catalog_snapshot(False)
    entry = await store.get(INSTANT_CATALOG_KEY)

    assert len(entry.data["products"]) == 100
    assert len(entry.data["collections"]) == 20
    assert max(len(c["products"]) for c in entry.data["collections"]) == 12


@pytest.mark.asyncio
async def test_hit_and_miss_are_counted(store, provider, clock, redis_client):
    service = _service(store, provider, clock, redis_client)

    await service.get_catalog_snapshot(False)
    await service.get_catalog_snapshot(False)

    assert await redis_client.hget("cache_stats:hits", "instant_catalog") == "1"
    assert await redis_client.hget("cache_stats:misses", "instant_catalog") == "1"
