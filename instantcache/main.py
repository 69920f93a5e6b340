# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from typing import Any, Dict, Optional
import logging
import asyncio
import sys
from instantcache.config import settings
from instantcache.deps import create_redis_client
from instantcache.logging_config import setup_logging
from instantcache.middleware.error_handler import ErrorHandlerMiddleware
from instantcache.repos.cache_entries import CacheEntryStore
from instantcache.routers.health import router as health_router
from instantcache.routers.catalog_route import catalog
from instantcache.routers.cache_route import cache
from instantcache.routers.webhooks_route import shopify as shopify_webhooks
from instantcache.services.catalog_service import CatalogProvider, CatalogService
from instantcache.services.edge_cache import EdgeCatalogCache
from instantcache.services.origin_client import OriginClient
from instantcache.services.shopify_client import ShopifyClient
from instantcache.services.cache_warming import warm_catalog_cache
from instantcache.tasks.scheduler import create_scheduler, schedule_jobs


log_level = "DEBUG" if settings.DEBUG else "INFO"
log_file = "logs/app.log" if settings.ENVIRONMENT == "production" else None
setup_logging(log_level=log_level, log_file=log_file)

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, r: Redis, provider: CatalogProvider) -> None:
    """Wire the store, origin orchestrator and edge cache onto app.state."""
    app.state.redis = r
    app.state.shopify = provider
    app.state.store = CacheEntryStore(r, retention_seconds=settings.ORIGIN_RETENTION_SECONDS)
    app.state.catalog_service = CatalogService(
        app.state.store,
        provider,
        r=r,
        ttl_ms=settings.ORIGIN_TTL_MS,
        collections_limit=settings.COLLECTIONS_FETCH_LIMIT,
    )

    if settings.EDGE_USE_REMOTE_ORIGIN:
        app.state.origin_client = OriginClient(settings.ORIGIN_BASE_URL, timeout=settings.ORIGIN_TIMEOUT)
        fetcher = app.state.origin_client.fetch_instant_catalog
        collections_fetcher = app.state.origin_client.fetch_collections
    else:
        catalog_service = app.state.catalog_service

        async def fetcher(force_refresh: bool) -> Dict[str, Any]:
            result = await catalog_service.get_catalog_snapshot(force_refresh=force_refresh)
            return {"success": True, "source": result.source, "data": result.snapshot.model_dump()}

        async def collections_fetcher():
            return await provider.fetch_collections(settings.COLLECTIONS_FETCH_LIMIT)

    app.state.edge_cache = EdgeCatalogCache(
        fetcher,
        collections_fetcher,
        ttl_seconds=settings.CLIENT_TTL_SECONDS,
        collections_ttl_seconds=settings.COLLECTIONS_TTL_SECONDS,
        timeout_ms=settings.CLIENT_TIMEOUT_MS,
    )
    app.state.background_tasks = set()
    app.state.refresh_delay_seconds = settings.WEBHOOK_REFRESH_DELAY_SECONDS


def create_app(redis_client: Optional[Redis] = None, provider: Optional[CatalogProvider] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        redis_client: Pre-built Redis client; connects to REDIS_URL when omitted
        provider: Catalog provider; a ShopifyClient when omitted
    """
    app = FastAPI(
        title="Instant Catalog Cache API",
        description="Two-tier cache in front of the Shopify product catalog",
        version="1.0.0"
    )

    @app.on_event("startup")
    async def startup():
        try:
            logger.info("Starting application...")

            r = redis_client
            if r is None:
                try:
                    r = create_redis_client(settings.REDIS_URL)
                    await r.ping()
                    logger.info("Redis connection established")
                except Exception as e:
                    logger.error(f"Failed to connect to Redis: {str(e)}")
                    sys.exit(1)

            build_services(app, r, provider if provider is not None else ShopifyClient())

            if settings.SCHEDULER_ENABLED:
                try:
                    app.state.scheduler = create_scheduler()
                    schedule_jobs(
                        app.state.scheduler,
                        app.state.catalog_service,
                        app.state.edge_cache,
                        interval_minutes=settings.WARM_INTERVAL_MINUTES,
                    )
                    app.state.scheduler.start()
                    logger.info("Scheduler started")
                except Exception as e:
                    logger.error(f"Failed to start scheduler: {str(e)}")

            if settings.WARM_ON_STARTUP:
                task = asyncio.create_task(warm_catalog_cache(app.state.catalog_service, app.state.edge_cache))
                app.state.background_tasks.add(task)
                task.add_done_callback(app.state.background_tasks.discard)
                logger.info("Catalog warming started")

            logger.info("Application startup completed successfully")

        except Exception as e:
            logger.critical(f"Critical startup failure: {str(e)}")
            sys.exit(1)

    @app.on_event("shutdown")
    async def shutdown():
        logger.info("Starting application shutdown...")

        try:
            if hasattr(app.state, 'scheduler'):
                app.state.scheduler.shutdown(wait=False)
                logger.info("Scheduler shutdown completed")
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {str(e)}")

        try:
            for task in list(getattr(app.state, 'background_tasks', ())):
                task.cancel()
            if hasattr(app.state, 'edge_cache'):
                await app.state.edge_cache.aclose()
        except Exception as e:
            logger.error(f"Error stopping background work: {str(e)}")

        for name in ('shopify', 'origin_client'):
            try:
                if hasattr(app.state, name):
                    await getattr(app.state, name).close()
            except Exception as e:
                logger.error(f"Error closing {name} client: {str(e)}")

        try:
            if hasattr(app.state, 'redis'):
                await app.state.redis.close()
                logger.info("Redis connection closed")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {str(e)}")

        logger.info("Application shutdown completed")

    # Error handling middleware (should be first)
    app.add_middleware(ErrorHandlerMiddleware)

    # Storefront pages call the cache endpoints directly from the browser
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    # Routers
    app.include_router(health_router)
    app.include_router(catalog.router)
    app.include_router(cache.router)
    app.include_router(shopify_webhooks.router)

    return app


app = create_app()
