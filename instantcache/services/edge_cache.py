# services/edge_cache.py
"""
Process-local catalog cache for latency-sensitive consumers.

- Fresh data (younger than the TTL) is served without any network call
- One fetch per key is in flight at a time; concurrent callers share it
- Callers wait at most `timeout_ms` and then get the last good data (or an
  empty catalog); the fetch keeps running and fills the cache when it lands

Built once at startup and injected; `reset()` drops all state.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from instantcache.services.cache_keys import EDGE_COLLECTIONS_KEY, EDGE_INSTANT_KEY
from instantcache.services.normalize import empty_payload, unwrap_catalog_payload

logger = logging.getLogger(__name__)

CLIENT_TTL_SECONDS = 2 * 60
COLLECTIONS_TTL_SECONDS = 10 * 60
DEFAULT_TIMEOUT_MS = 400

InstantFetcher = Callable[[bool], Awaitable[Any]]
CollectionsFetcher = Callable[[], Awaitable[Any]]


@dataclass
class ClientCacheState:
    data: Optional[Any] = None
    fetched_at: float = 0.0
    inflight: Optional[asyncio.Task] = None


class EdgeCatalogCache:
    def __init__(
        self,
        fetcher: InstantFetcher,
        collections_fetcher: Optional[CollectionsFetcher] = None,
        ttl_seconds: float = CLIENT_TTL_SECONDS,
        collections_ttl_seconds: float = COLLECTIONS_TTL_SECONDS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._collections_fetcher = collections_fetcher
        self.ttl_seconds = ttl_seconds
        self.collections_ttl_seconds = collections_ttl_seconds
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._slots: Dict[str, ClientCacheState] = {}

    def _slot(self, key: str) -> ClientCacheState:
        if key not in self._slots:
            self._slots[key] = ClientCacheState()
        return self._slots[key]

    def _is_fresh(self, slot: ClientCacheState, ttl: float) -> bool:
        return slot.data is not None and self._clock() - slot.fetched_at < ttl

    def state(self, key: str = EDGE_INSTANT_KEY) -> ClientCacheState:
        return self._slot(key)

    # ---------------------------
    # Instant catalog
    # ---------------------------
    async def get_instant_catalog(self, force_refresh: bool = False, timeout_ms: Optional[int] = None) -> Dict[str, List[Any]]:
        """Never raises; worst case is an empty catalog."""
        slot = self._slot(EDGE_INSTANT_KEY)

        if not force_refresh and self._is_fresh(slot, self.ttl_seconds):
            return slot.data

        # Check and claim the in-flight slot without yielding to the loop
        task = slot.inflight
        if task is None or force_refresh:
            task = self._start_fetch(slot, force_refresh)
        else:
            logger.debug("Joining in-flight catalog fetch")

        timeout = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done and not task.cancelled() and task.exception() is None:
            return task.result()

        if not done:
            logger.info(f"Catalog fetch exceeded {timeout * 1000:.0f}ms - serving last known data")
        return slot.data if slot.data is not None else empty_payload()

    def _start_fetch(self, slot: ClientCacheState, force_refresh: bool) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._fetch_instant(force_refresh))
        slot.inflight = task
        # Registered before any waiter, so the cache is written before they resume
        task.add_done_callback(lambda t: self._on_instant_settled(slot, t))
        return task

    async def _fetch_instant(self, force_refresh: bool) -> Dict[str, List[Any]]:
        raw = await self._fetcher(force_refresh)
        return unwrap_catalog_payload(raw)

    def _on_instant_settled(self, slot: ClientCacheState, task: asyncio.Task) -> None:
        if slot.inflight is task:
            slot.inflight = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Background catalog fetch failed: {str(exc)}")
            return
        slot.data = task.result()
        slot.fetched_at = self._clock()

    # ---------------------------
    # Collections listing
    # ---------------------------
    async def get_collections(self, force_refresh: bool = False) -> List[Any]:
        """Longer-lived collections cache; upstream errors propagate to the caller."""
        if self._collections_fetcher is None:
            raise RuntimeError("No collections fetcher configured")

        slot = self._slot(EDGE_COLLECTIONS_KEY)
        if not force_refresh and self._is_fresh(slot, self.collections_ttl_seconds):
            return slot.data

        raw = await self._collections_fetcher()
        collections = (raw.get("collections") or []) if isinstance(raw, dict) else list(raw or [])
        slot.data = collections
        slot.fetched_at = self._clock()
        return collections

    # ---------------------------
    # Lifecycle
    # ---------------------------
    def prime(self, raw: Any) -> None:
        """Seed the instant slot with a payload obtained out of band (warming)."""
        slot = self._slot(EDGE_INSTANT_KEY)
        slot.data = unwrap_catalog_payload(raw)
        slot.fetched_at = self._clock()

    def reset(self) -> None:
        """Forget all cached data; in-flight fetches finish into the discarded slots."""
        self._slots = {}

    async def aclose(self) -> None:
        pending = [s.inflight for s in self._slots.values() if s.inflight is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._slots = {}
