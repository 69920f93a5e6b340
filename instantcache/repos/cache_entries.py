import json
import time
import logging
from typing import Any, Dict, Optional
from pydantic import ValidationError
from redis.asyncio import Redis
from instantcache.schemas.catalog_schema import CacheEntry
from instantcache.services.cache_keys import ENTRY_PREFIX, entry_key, strip_entry_prefix

logger = logging.getLogger(__name__)

# ---------------------------
# Helpers
# ---------------------------

def now_ms() -> int:
    return int(time.time() * 1000)

def _validate_key(key: str) -> None:
    if not key or not isinstance(key, str):
        raise ValueError("Invalid cache key")

# ---------------------------
# Store
# ---------------------------

class CacheEntryStore:
    """
    Persisted key/value entries with absolute expiry timestamps.

    Entries are kept in Redis for `retention_seconds`, which is longer than
    the logical TTL, so an expired entry can still be served as a fallback
    while the catalog provider is down. Freshness is always decided by
    comparing `expires_at` against the caller's clock.
    """

    def __init__(self, r: Redis, retention_seconds: int = 24 * 60 * 60):
        self.redis = r
        self.retention_seconds = retention_seconds

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for `key` whether or not it has expired."""
        _validate_key(key)
        raw = await self.redis.get(entry_key(key))
        if not raw:
            return None
        try:
            return CacheEntry(**json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValidationError):
            logger.warning(f"Dropping corrupted cache entry: {key}")
            await self.redis.delete(entry_key(key))
            return None

    async def get_fresh(self, key: str, now: Optional[int] = None) -> Optional[CacheEntry]:
        entry = await self.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(now if now is not None else now_ms()):
            return None
        return entry

    async def upsert(self, key: str, data: Dict[str, Any], expires_at: int, now: Optional[int] = None) -> CacheEntry:
        """Write `data` under `key`; a single SET makes this an atomic last-writer-wins upsert."""
        _validate_key(key)
        created_at = now if now is not None else now_ms()
        entry = CacheEntry(key=key, data=data, created_at=created_at, expires_at=expires_at)
        # Physical retention never shorter than the logical TTL
        ttl_seconds = max(1, -(-(expires_at - created_at) // 1000))
        await self.redis.set(
            entry_key(key),
            entry.model_dump_json(),
            ex=max(self.retention_seconds, ttl_seconds),
        )
        logger.debug(f"Cache entry upserted: {key} (expires_at={expires_at})")
        return entry

    async def delete(self, key: str) -> int:
        _validate_key(key)
        return int(await self.redis.delete(entry_key(key)))

    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete every entry whose key contains `pattern` (case-insensitive)."""
        if not pattern or not isinstance(pattern, str):
            raise ValueError("Invalid pattern")

        needle = pattern.lower()
        cursor = 0
        deleted_count = 0
        while True:
            cursor, keys = await self.redis.scan(cursor=cursor, match=f"{ENTRY_PREFIX}*", count=500)
            matched = [k for k in keys if needle in strip_entry_prefix(k).lower()]
            if matched:
                async with self.redis.pipeline() as pipe:
                    for k in matched:
                        pipe.delete(k)
                    results = await pipe.execute()
                deleted_count += sum(int(n) for n in results)
            if cursor == 0:
                break

        logger.debug(f"Deleted {deleted_count} cache entries matching pattern: {pattern}")
        return deleted_count
