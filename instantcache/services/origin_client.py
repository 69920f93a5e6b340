"""
HTTP client for the origin cache endpoints.

Used as the fetcher of an EdgeCatalogCache running in a separate process
from the origin service. Errors are raised as CatalogUpstreamError; the edge
cache decides whether to absorb them (instant catalog) or propagate them
(collections listing).
"""

import logging
from typing import Any, Dict, Optional

import httpx

from instantcache.core.exceptions import CatalogUpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


class OriginClient:
    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogUpstreamError(
                f"Origin error: {e.response.status_code}",
                status_code=e.response.status_code,
                details={"path": path},
            )
        except httpx.TimeoutException:
            raise UpstreamTimeoutError(f"Request to origin {path} timed out")
        except httpx.RequestError as e:
            raise CatalogUpstreamError(
                f"Origin request failed: {str(e)}",
                details={"error_type": type(e).__name__},
            )
        except ValueError as e:
            raise CatalogUpstreamError(f"Invalid JSON from origin: {str(e)}")

    async def fetch_instant_catalog(self, force_refresh: bool = False) -> Dict[str, Any]:
        body = await self._request("POST", "/instant-product-cache", json={"forceRefresh": force_refresh})
        if isinstance(body, dict) and body.get("success") is False:
            raise CatalogUpstreamError(body.get("error") or "Origin reported failure")
        return body

    async def fetch_collections(self) -> Dict[str, Any]:
        return await self._request("GET", "/get-all-collections")

    async def close(self) -> None:
        await self.client.aclose()
