from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis
from instantcache.deps import get_edge_cache, get_redis, get_store
from instantcache.repos.cache_entries import CacheEntryStore
from instantcache.schemas.catalog_schema import InvalidationResult
from instantcache.services import cache_service
from instantcache.services.edge_cache import EdgeCatalogCache

router = APIRouter(prefix="/cache", tags=["cache"])

@router.delete("", response_model=InvalidationResult)
async def invalidate(pattern: str = Query(..., min_length=1, max_length=200), store: CacheEntryStore = Depends(get_store)):
    return await cache_service.invalidate_pattern(store, pattern)

@router.get("/stats")
async def cache_stats(r: Redis = Depends(get_redis), edge_cache: EdgeCatalogCache = Depends(get_edge_cache)):
    return await cache_service.get_cache_stats(r, edge_cache)
