import asyncio
import logging
from typing import Any, Dict, Iterable, Optional
from redis.asyncio import Redis
from instantcache.repos.cache_entries import CacheEntryStore
from instantcache.services.cache_keys import CATALOG_INVALIDATION_PATTERNS, ENTRY_PREFIX, INSTANT_CATALOG_KEY
from instantcache.services.cache_stats import get_stats
from instantcache.services.edge_cache import EdgeCatalogCache

logger = logging.getLogger(__name__)

# ---------------------------
# Invalidate by pattern
# ---------------------------
async def invalidate_pattern(store: CacheEntryStore, pattern: str) -> Dict[str, Any]:
    if not pattern or not isinstance(pattern, str) or not pattern.strip():
        logger.warning(f"Invalid invalidation pattern provided: {pattern!r}")
        raise ValueError("Invalid pattern")

    try:
        deleted = await store.delete_by_pattern(pattern.strip())
        logger.info(f"Cache cleared for pattern '{pattern}': {deleted} entries")
        return {"pattern": pattern.strip(), "deleted": deleted}
    except Exception as e:
        logger.error(f"Failed to invalidate cache for pattern {pattern}: {str(e)}")
        raise

# ---------------------------
# Catalog change (webhook driven)
# ---------------------------
async def invalidate_catalog(
    store: CacheEntryStore,
    edge_cache: Optional[EdgeCatalogCache] = None,
    patterns: Iterable[str] = CATALOG_INVALIDATION_PATTERNS,
) -> Dict[str, Any]:
    """Drop the instant snapshot plus every product/collection/shopify entry."""
    patterns = list(patterns)
    results = await asyncio.gather(
        store.delete(INSTANT_CATALOG_KEY),
        *(store.delete_by_pattern(p) for p in patterns),
    )
    if edge_cache is not None:
        edge_cache.reset()

    deleted = dict(zip([INSTANT_CATALOG_KEY] + patterns, results))
    logger.info(f"Catalog cache invalidated: {deleted}")
    return {"deleted": deleted, "total": sum(results)}

# ---------------------------
# Cache Stats
# ---------------------------
async def get_cache_stats(r: Redis, edge_cache: Optional[EdgeCatalogCache] = None) -> Dict[str, Any]:
    try:
        entry_count = 0
        async for _ in r.scan_iter(match=f"{ENTRY_PREFIX}*", count=500):
            entry_count += 1

        stats = await get_stats(r)
        edge = {}
        if edge_cache is not None:
            state = edge_cache.state()
            edge = {
                "has_data": state.data is not None,
                "inflight": state.inflight is not None,
            }

        return {
            "persisted_entries": entry_count,
            "edge": edge,
            **stats,
        }

    except Exception as e:
        logger.error(f"Failed to get cache stats: {str(e)}")
        return {
            "persisted_entries": 0,
            "edge": {},
            "hits": {},
            "misses": {},
            "totals": {"hits": 0, "misses": 0, "hit_ratio": 0.0},
            "error": "Failed to retrieve cache stats"
        }
