import base64
import hashlib
import hmac
import logging
import redis.asyncio as aioredis
from fastapi import Header, HTTPException, Request, status
from redis.asyncio import Redis
from typing import Optional
from instantcache.config import settings
from instantcache.repos.cache_entries import CacheEntryStore
from instantcache.services.catalog_service import CatalogService
from instantcache.services.edge_cache import EdgeCatalogCache
from instantcache.services.shopify_client import ShopifyClient

logger = logging.getLogger(__name__)


def create_redis_client(url: str) -> Redis:
    # redis.asyncio client (async)
    return aioredis.from_url(url, encoding="utf-8", decode_responses=True)

def get_redis(request: Request) -> Redis:
    return request.app.state.redis

def get_store(request: Request) -> CacheEntryStore:
    return request.app.state.store

def get_shopify_client(request: Request) -> ShopifyClient:
    return request.app.state.shopify

def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service

def get_edge_cache(request: Request) -> EdgeCatalogCache:
    return request.app.state.edge_cache


def compute_shopify_hmac(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")

async def verify_shopify_webhook(
    request: Request,
    x_shopify_hmac_sha256: Optional[str] = Header(None),
) -> None:
    """Reject webhook calls whose X-Shopify-Hmac-Sha256 does not match the raw body."""
    if not settings.SHOPIFY_WEBHOOK_SECRET:
        if settings.ENVIRONMENT == "production":
            logger.error("SHOPIFY_WEBHOOK_SECRET is not configured")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook secret not configured")
        logger.warning("Skipping webhook verification: no secret configured")
        return

    if not x_shopify_hmac_sha256:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature")

    body = await request.body()
    expected = compute_shopify_hmac(settings.SHOPIFY_WEBHOOK_SECRET, body)
    if not hmac.compare_digest(expected, x_shopify_hmac_sha256):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")
