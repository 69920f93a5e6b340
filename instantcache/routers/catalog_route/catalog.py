from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging
from instantcache.deps import get_catalog_service, get_edge_cache, get_shopify_client
from instantcache.core.exceptions import CatalogUpstreamError
from instantcache.schemas.catalog_schema import InstantCacheRequest, InstantCacheResponse
from instantcache.services.catalog_service import CatalogService
from instantcache.services.edge_cache import EdgeCatalogCache
from instantcache.services.shopify_client import ShopifyClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])

WARNINGS = {
    "fallback": "Using cached data - fresh data unavailable",
    "empty": "No products available - cache empty and Shopify unavailable",
}

# Origin cache: persisted snapshot, refreshed from Shopify when stale
@router.post("/instant-product-cache", response_model=InstantCacheResponse, response_model_exclude_none=True)
async def instant_product_cache(
    payload: Optional[InstantCacheRequest] = None,
    catalog_service: CatalogService = Depends(get_catalog_service),
):
    """
    Serve the catalog snapshot from the origin cache.

    Args:
        payload: Optional body; `forceRefresh` skips the cached entry

    Returns:
        The snapshot tagged with its source (cache, fresh, fallback, empty)
    """
    force_refresh = bool(payload and payload.forceRefresh)
    result = await catalog_service.get_catalog_snapshot(force_refresh=force_refresh)
    return InstantCacheResponse(
        source=result.source,
        data=result.snapshot,
        timestamp=result.timestamp,
        warning=WARNINGS.get(result.source),
    )

# Raw collections straight from Shopify; feeds the edge collections cache
@router.get("/get-all-collections")
async def get_all_collections(shopify: ShopifyClient = Depends(get_shopify_client)):
    try:
        collections = await shopify.fetch_collections()
    except CatalogUpstreamError as e:
        logger.error(f"Failed to fetch collections: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"success": True, "collections": collections, "totalCollections": len(collections)}

# Edge cache: in-process, single-flight, timeout bounded; never fails
@router.get("/catalog/instant")
async def instant_catalog(
    force_refresh: bool = Query(False),
    timeout_ms: Optional[int] = Query(None, ge=0, le=60000),
    edge_cache: EdgeCatalogCache = Depends(get_edge_cache),
):
    return await edge_cache.get_instant_catalog(force_refresh=force_refresh, timeout_ms=timeout_ms)

@router.get("/collections")
async def list_collections(
    force_refresh: bool = Query(False),
    edge_cache: EdgeCatalogCache = Depends(get_edge_cache),
):
    try:
        collections = await edge_cache.get_collections(force_refresh=force_refresh)
    except CatalogUpstreamError as e:
        logger.error(f"Collections listing unavailable: {str(e)}")
        raise HTTPException(status_code=502, detail="Collections unavailable")
    return {"collections": collections, "total": len(collections)}
