# services/catalog_service.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol
from redis.asyncio import Redis
from instantcache.repos.cache_entries import CacheEntryStore, now_ms
from instantcache.schemas.catalog_schema import CatalogResult, CatalogSnapshot, CacheEntry
from instantcache.services.cache_keys import INSTANT_CATALOG_KEY
from instantcache.services.cache_stats import hit, miss
from instantcache.services.normalize import build_snapshot

logger = logging.getLogger(__name__)

ORIGIN_TTL_MS = 2 * 60 * 1000     # 2 minutes
COLLECTIONS_FETCH_LIMIT = 50
STATS_NAMESPACE = "instant_catalog"


class CatalogProvider(Protocol):
    async def fetch_products(self) -> List[Dict[str, Any]]: ...
    async def fetch_collections(self, limit: int) -> List[Dict[str, Any]]: ...


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


class CatalogService:
    """
    Origin cache in front of the catalog provider.

    Serves the global catalog snapshot from the persisted store while it is
    fresh; otherwise fetches products and collections concurrently, projects
    them into the listing payload and writes it back with an absolute expiry.
    Upstream and persistence failures degrade the result, they never raise.
    """

    def __init__(
        self,
        store: CacheEntryStore,
        provider: CatalogProvider,
        r: Optional[Redis] = None,
        ttl_ms: int = ORIGIN_TTL_MS,
        collections_limit: int = COLLECTIONS_FETCH_LIMIT,
        key: str = INSTANT_CATALOG_KEY,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.provider = provider
        self.redis = r
        self.ttl_ms = ttl_ms
        self.collections_limit = collections_limit
        self.key = key
        self.clock = clock

    async def get_catalog_snapshot(self, force_refresh: bool = False) -> CatalogResult:
        now = self.clock()

        if not force_refresh:
            cached = await self._read_entry(now, fresh_only=True)
            if cached is not None:
                await self._stat(hit)
                logger.debug("Serving catalog snapshot from cache")
                return CatalogResult(
                    snapshot=CatalogSnapshot(**cached.data),
                    source="cache",
                    timestamp=_iso(cached.created_at),
                )
        else:
            logger.info("Force refresh requested - skipping cache")

        await self._stat(miss)
        products, collections, complete = await self._fetch_upstream()

        if not products and not collections:
            return await self._fallback(now)

        snapshot = build_snapshot(products, collections)
        written_at = self.clock()
        if not complete:
            # Partial results are served but never replace the cached entry
            logger.warning("Partial catalog fetch - returning snapshot without caching it")
            return CatalogResult(snapshot=snapshot, source="fresh", timestamp=_iso(written_at))

        try:
            await self.store.upsert(
                self.key,
                snapshot.model_dump(),
                expires_at=written_at + self.ttl_ms,
                now=written_at,
            )
            logger.info(
                f"Catalog cache updated: {len(snapshot.products)} products, "
                f"{len(snapshot.collections)} collections"
            )
        except Exception as e:
            logger.error(f"Failed to persist catalog snapshot: {str(e)}")

        return CatalogResult(snapshot=snapshot, source="fresh", timestamp=_iso(written_at))

    async def _fetch_upstream(self):
        # Both requests start before either is awaited
        products_result, collections_result = await asyncio.gather(
            self.provider.fetch_products(),
            self.provider.fetch_collections(self.collections_limit),
            return_exceptions=True,
        )

        products: List[Dict[str, Any]] = []
        collections: List[Dict[str, Any]] = []
        complete = True

        if isinstance(products_result, BaseException):
            logger.warning(f"Product fetch failed: {str(products_result)}")
            complete = False
        else:
            products = list(products_result or [])

        if isinstance(collections_result, BaseException):
            logger.warning(f"Collections fetch failed: {str(collections_result)}")
            complete = False
        else:
            collections = list(collections_result or [])

        return products, collections, complete

    async def _fallback(self, now: int) -> CatalogResult:
        """Both upstream calls came back empty: serve any previous entry, expired or not."""
        previous = await self._read_entry(now, fresh_only=False)
        if previous is not None:
            logger.warning("Upstream unavailable - serving previous catalog snapshot")
            return CatalogResult(
                snapshot=CatalogSnapshot(**previous.data),
                source="fallback",
                timestamp=_iso(previous.created_at),
            )

        logger.warning("Upstream unavailable and no cached catalog - returning empty snapshot")
        return CatalogResult(
            snapshot=CatalogSnapshot(cached_at=_iso(now)),
            source="empty",
            timestamp=_iso(now),
        )

    async def _read_entry(self, now: int, fresh_only: bool) -> Optional[CacheEntry]:
        try:
            if fresh_only:
                return await self.store.get_fresh(self.key, now)
            return await self.store.get(self.key)
        except Exception as e:
            logger.error(f"Failed to read catalog cache entry: {str(e)}")
            return None

    async def _stat(self, recorder) -> None:
        if self.redis is not None:
            await recorder(self.redis, STATS_NAMESPACE)
