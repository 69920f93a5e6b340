"""
Pytest configuration and fixtures for the cache test suite.
"""

import asyncio
import os

import pytest

# Set test environment variables before importing the app
os.environ["SHOPIFY_STORE_URL"] = "https://test-store.myshopify.com"
os.environ["SHOPIFY_ADMIN_API_ACCESS_TOKEN"] = "shpat_test_admin_token"
os.environ["SHOPIFY_STOREFRONT_ACCESS_TOKEN"] = "test_storefront_token"
os.environ["SHOPIFY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["SHOPIFY_MAX_RETRIES"] = "0"
os.environ["TARGET_COLLECTIONS"] = '["tailgate-beer", "cocktail-kits"]'
os.environ["WARM_ON_STARTUP"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["WEBHOOK_REFRESH_DELAY_SECONDS"] = "0"
os.environ["ENVIRONMENT"] = "test"

import fakeredis
from fastapi.testclient import TestClient

from instantcache.repos.cache_entries import CacheEntryStore


def make_products(n, prefix="p"):
    return [
        {
            "id": f"gid://shopify/Product/{prefix}{i}",
            "title": f"Product {i}",
            "price": "12.99",
            "image": f"https://cdn.shopify.com/{prefix}{i}.jpg",
            "handle": f"product-{i}",
            "description": "Cold and crisp",
            "vendor": "Lone Star",
            "tags": ["beer"],
            "variants": [
                {"id": f"gid://shopify/ProductVariant/{prefix}{i}-{v}", "title": f"Pack {v}", "price": 12.99, "available": True}
                for v in range(3)
            ],
        }
        for i in range(n)
    ]


def make_collections(n, per_collection=3):
    return [
        {
            "id": f"gid://shopify/Collection/{i}",
            "title": f"Collection {i}",
            "handle": f"collection-{i}",
            "description": "",
            "products": make_products(per_collection, prefix=f"c{i}-"),
        }
        for i in range(n)
    ]


class FakeProvider:
    """Catalog provider double with call counters, optional latency and failures."""

    def __init__(self, products=None, collections=None, products_error=None,
                 collections_error=None, delay=0.0):
        self.products = products if products is not None else make_products(3)
        self.collections = collections if collections is not None else make_collections(2)
        self.products_error = products_error
        self.collections_error = collections_error
        self.delay = delay
        self.calls = {"products": 0, "collections": 0}
        self.collection_limits = []

    async def fetch_products(self):
        self.calls["products"] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.products_error:
            raise self.products_error
        return self.products

    async def fetch_collections(self, limit=50):
        self.calls["collections"] += 1
        self.collection_limits.append(limit)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.collections_error:
            raise self.collections_error
        return self.collections

    async def close(self):
        pass


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start=0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def redis_client():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def store(redis_client):
    return CacheEntryStore(redis_client, retention_seconds=3600)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app_client(redis_client, provider):
    """FastAPI test client wired to fake Redis and a fake catalog provider."""
    from instantcache.main import create_app

    with TestClient(create_app(redis_client=redis_client, provider=provider)) as client:
        yield client
