# tasks/scheduler.py
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from instantcache.services.catalog_service import CatalogService
from instantcache.services.edge_cache import EdgeCatalogCache
from instantcache.services.cache_warming import warm_catalog_cache

logger = logging.getLogger(__name__)

WARM_CATALOG_JOB_ID = "warm_catalog"

def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler()

def schedule_jobs(scheduler: AsyncIOScheduler, catalog_service: CatalogService,
                  edge_cache: Optional[EdgeCatalogCache] = None, interval_minutes: int = 2) -> None:
    # Keep the origin snapshot warm so storefront reads stay on the cache path
    scheduler.add_job(
        warm_catalog,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[catalog_service, edge_cache],
        id=WARM_CATALOG_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled catalog warming every {interval_minutes} minute(s)")

async def warm_catalog(catalog_service: CatalogService, edge_cache: Optional[EdgeCatalogCache] = None):
    logger.debug("Warming catalog cache")
    await warm_catalog_cache(catalog_service, edge_cache, force_refresh=True)
