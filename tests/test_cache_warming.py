"""
Tests for catalog warming and the warming scheduler job.
"""

from unittest.mock import AsyncMock

import pytest

from conftest import FakeProvider
from instantcache.core.exceptions import CatalogUpstreamError
from instantcache.services.cache_warming import refresh_after_invalidation, warm_catalog_cache
from instantcache.services.catalog_service import CatalogService
from instantcache.services.edge_cache import EdgeCatalogCache
from instantcache.tasks.scheduler import WARM_CATALOG_JOB_ID, create_scheduler, schedule_jobs


@pytest.mark.asyncio
async def test_warming_refreshes_origin_and_primes_edge(store, provider, clock):
    service = CatalogService(store, provider, clock=clock)
    origin = AsyncMock()
    edge = EdgeCatalogCache(origin)

    source = await warm_catalog_cache(service, edge)

    assert source == "fresh"
    result = await edge.get_instant_catalog()
    assert len(result["products"]) == 3
    origin.assert_not_called()


@pytest.mark.asyncio
async def test_warming_does_not_prime_edge_with_empty_catalog(store, clock):
    provider = FakeProvider(
        products_error=CatalogUpstreamError("down"),
        collections_error=CatalogUpstreamError("down"),
    )
    service = CatalogService(store, provider, clock=clock)
    edge = EdgeCatalogCache(AsyncMock())

    assert await warm_catalog_cache(service, edge) == "empty"
    assert edge.state().data is None


@pytest.mark.asyncio
async def test_warming_never_raises():
    service = AsyncMock()
    service.get_catalog_snapshot.side_effect = RuntimeError("boom")

    assert await warm_catalog_cache(service) is None


@pytest.mark.asyncio
async def test_refresh_after_invalidation_forces_upstream_fetch(store, provider, clock):
    service = CatalogService(store, provider, clock=clock)
    await service.get_catalog_snapshot(False)

    source = await refresh_after_invalidation(service, delay_seconds=0)

    assert source == "fresh"
    assert provider.calls["products"] == 2


def test_schedule_jobs_registers_warming_job(store, provider):
    scheduler = create_scheduler()
    service = CatalogService(store, provider)

    schedule_jobs(scheduler, service, interval_minutes=2)

    job = scheduler.get_job(WARM_CATALOG_JOB_ID)
    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.trigger.interval.total_seconds() == 120
