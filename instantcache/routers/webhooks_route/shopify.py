from fastapi import APIRouter, Depends, Header, Request
from typing import Optional
import asyncio
import logging
from instantcache.deps import verify_shopify_webhook
from instantcache.services import cache_service
from instantcache.services.cache_warming import refresh_after_invalidation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

CATALOG_TOPIC_PREFIXES = ("products/", "collections/", "inventory_levels/")

# Shopify catalog change -> sweep cached catalog entries and refresh in background
@router.post("/shopify", dependencies=[Depends(verify_shopify_webhook)])
async def shopify_webhook(request: Request, x_shopify_topic: Optional[str] = Header(None)):
    topic = x_shopify_topic or ""
    if not topic.startswith(CATALOG_TOPIC_PREFIXES):
        logger.info(f"Ignoring webhook topic: {topic or '<none>'}")
        return {"received": True, "handled": False, "topic": topic}

    state = request.app.state
    store = state.store

    result = await cache_service.invalidate_catalog(store, getattr(state, "edge_cache", None))

    task = asyncio.create_task(
        refresh_after_invalidation(state.catalog_service, getattr(state, "edge_cache", None),
                                   delay_seconds=state.refresh_delay_seconds)
    )
    state.background_tasks.add(task)
    task.add_done_callback(state.background_tasks.discard)

    logger.info(f"Webhook {topic}: catalog cache invalidated and refresh scheduled")
    return {"received": True, "handled": True, "topic": topic, "invalidated": result["total"]}
