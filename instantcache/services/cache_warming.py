import asyncio
import logging
from typing import Optional
from instantcache.services.catalog_service import CatalogService
from instantcache.services.edge_cache import EdgeCatalogCache

logger = logging.getLogger(__name__)

async def warm_catalog_cache(catalog_service: CatalogService, edge_cache: Optional[EdgeCatalogCache] = None,
                             force_refresh: bool = True) -> Optional[str]:
    """Refresh the origin snapshot (and the in-process edge copy). Never raises."""
    try:
        result = await catalog_service.get_catalog_snapshot(force_refresh=force_refresh)
        logger.info(
            f"Catalog cache warmed ({result.source}): "
            f"{len(result.snapshot.products)} products, {len(result.snapshot.collections)} collections"
        )
        if edge_cache is not None and result.source in ("fresh", "cache"):
            edge_cache.prime(result.snapshot.model_dump())
        return result.source
    except Exception as e:
        logger.error(f"Catalog cache warming failed: {str(e)}")
        return None

async def refresh_after_invalidation(catalog_service: CatalogService, edge_cache: Optional[EdgeCatalogCache] = None,
                                     delay_seconds: float = 1.0) -> Optional[str]:
    """Background refresh scheduled by catalog webhooks, after the sweep has landed."""
    await asyncio.sleep(delay_seconds)
    return await warm_catalog_cache(catalog_service, edge_cache, force_refresh=True)
