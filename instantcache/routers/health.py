from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone
from instantcache.deps import get_edge_cache, get_redis
from instantcache.services.edge_cache import EdgeCatalogCache
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"], prefix="/api/v1")

@router.get("/health", summary="Health Check", description="Check Redis connectivity and the edge cache state")
async def health_check(r: Redis = Depends(get_redis), edge_cache: EdgeCatalogCache = Depends(get_edge_cache)):
    redis_status = "disconnected"
    redis_error = None

    try:
        await r.ping()
        redis_status = "connected"
    except (ConnectionError, RedisConnectionError) as e:
        logger.warning(f"Redis connection failed: {str(e)}")
        redis_error = "Connection failed"
    except Exception as e:
        logger.error(f"Redis health check error: {str(e)}")
        redis_error = "Health check failed"

    edge_state = edge_cache.state()
    has_edge_data = edge_state.data is not None

    # Redis down but the edge still holds a catalog: listings keep working
    if redis_status == "connected":
        overall_status = "healthy"
    elif has_edge_data:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    response = {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "redis": {
                "status": redis_status,
                "error": redis_error
            },
            "edge_cache": {
                "has_data": has_edge_data,
                "inflight": edge_state.inflight is not None
            }
        }
    }

    if overall_status == "unhealthy":
        raise HTTPException(status_code=503, detail=response)

    return response
