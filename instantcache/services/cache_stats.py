# services/cache_stats.py
import logging
from typing import Dict, Any
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

HITS_HASH = "cache_stats:hits"
MISSES_HASH = "cache_stats:misses"

async def hit(r: Redis, namespace: str) -> None:
    await _incr(r, HITS_HASH, namespace)

async def miss(r: Redis, namespace: str) -> None:
    await _incr(r, MISSES_HASH, namespace)

async def _incr(r: Redis, hash_name: str, namespace: str) -> None:
    # Best-effort counters
    try:
        await r.hincrby(hash_name, namespace, 1)
    except Exception as e:
        logger.warning(f"Failed to record cache stat {hash_name}/{namespace}: {str(e)}")

async def get_stats(r: Redis) -> Dict[str, Any]:
    hits = await r.hgetall(HITS_HASH) or {}
    misses = await r.hgetall(MISSES_HASH) or {}
    hits = {k: int(v) for k, v in hits.items()}
    misses = {k: int(v) for k, v in misses.items()}
    total_hits = sum(hits.values())
    total_misses = sum(misses.values())
    totals = {
        "hits": total_hits,
        "misses": total_misses,
        "hit_ratio": round((total_hits / max(1, total_hits + total_misses)) * 100, 2)
    }
    return {"hits": hits, "misses": misses, "totals": totals}
