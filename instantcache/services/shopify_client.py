"""
Shopify catalog provider.

Two read-only calls feed the origin cache:
- fetch_products(): Admin GraphQL API, first 250 products
- fetch_collections(limit): Storefront GraphQL API, one query per target
  collection handle, `limit` products each

Both return plain dicts in the listing shape the normalizer expects. Errors
are raised as CatalogUpstreamError subclasses; callers decide whether to
tolerate them.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from instantcache.config import settings
from instantcache.core.exceptions import (
    CatalogUpstreamError,
    UpstreamRateLimitError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/placeholder.svg"

# Tag fragments that indicate a storefront category
CATEGORY_TAG_HINTS = ("spirits", "beer", "wine", "cocktail", "party", "supplies")

PRODUCTS_QUERY = """
query {
  products(first: 250) {
    edges {
      node {
        id
        title
        handle
        description
        productType
        vendor
        tags
        images(first: 5) { edges { node { url altText } } }
        variants(first: 10) { edges { node { id title price availableForSale } } }
      }
    }
  }
}
"""

COLLECTION_QUERY = """
query getCollectionByHandle($handle: String!, $first: Int!) {
  collectionByHandle(handle: $handle) {
    id
    title
    handle
    description
    products(first: $first) {
      edges {
        node {
          id
          title
          handle
          description
          images(first: 1) { edges { node { url altText } } }
          variants(first: 10) {
            edges { node { id title price { amount currencyCode } availableForSale } }
          }
        }
      }
    }
  }
}
"""


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _first_node(connection: Optional[dict]) -> Optional[dict]:
    edges = (connection or {}).get("edges") or []
    return edges[0].get("node") if edges else None


def _product_category(node: dict) -> str:
    category = node.get("productType") or "Uncategorized"
    for tag in node.get("tags") or []:
        if any(hint in tag.lower() for hint in CATEGORY_TAG_HINTS):
            return tag
    return category


def transform_admin_product(node: dict) -> Dict[str, Any]:
    """Admin API product node -> listing dict (price kept as the upstream string)."""
    variant = _first_node(node.get("variants"))
    image = _first_node(node.get("images"))
    image_edges = (node.get("images") or {}).get("edges") or []
    return {
        "id": node["id"],
        "title": node.get("title") or "",
        "handle": node.get("handle") or "",
        "description": node.get("description") or "",
        "price": variant["price"] if variant else "0",
        "image": image["url"] if image else PLACEHOLDER_IMAGE,
        "images": [e["node"]["url"] for e in image_edges[1:]],
        "vendor": node.get("vendor") or "",
        "category": _product_category(node),
        "productType": node.get("productType") or "",
        "tags": node.get("tags") or [],
        "variants": [
            {
                "id": e["node"]["id"],
                "title": e["node"].get("title") or "Default Title",
                "price": _to_float(e["node"].get("price")),
                "available": bool(e["node"].get("availableForSale")),
            }
            for e in (node.get("variants") or {}).get("edges") or []
        ],
    }


def transform_storefront_product(node: dict) -> Dict[str, Any]:
    """Storefront API product node -> listing dict (price as float)."""
    variant = _first_node(node.get("variants"))
    image = _first_node(node.get("images"))
    return {
        "id": node["id"],
        "title": node.get("title") or "",
        "price": _to_float(((variant or {}).get("price") or {}).get("amount")),
        "image": image["url"] if image else PLACEHOLDER_IMAGE,
        "description": node.get("description") or "",
        "handle": node.get("handle") or "",
        "variants": [
            {
                "id": e["node"]["id"],
                "title": e["node"].get("title") or "Default Title",
                "price": _to_float((e["node"].get("price") or {}).get("amount")),
                "available": bool(e["node"].get("availableForSale")),
            }
            for e in (node.get("variants") or {}).get("edges") or []
        ],
    }


class ShopifyClient:
    """
    Async GraphQL client for the Shopify Admin and Storefront APIs.

    Usage:
        client = ShopifyClient()
        try:
            products = await client.fetch_products()
        finally:
            await client.close()
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.store = settings.SHOPIFY_STORE_URL
        self.admin_url = f"https://{self.store}/admin/api/{settings.SHOPIFY_ADMIN_API_VERSION}/graphql.json"
        self.storefront_url = f"https://{self.store}/api/{settings.SHOPIFY_STOREFRONT_API_VERSION}/graphql.json"
        self.target_collections = list(settings.TARGET_COLLECTIONS)
        self.client = client or httpx.AsyncClient(timeout=settings.SHOPIFY_TIMEOUT)

    @retry(
        retry=retry_if_exception_type((UpstreamTimeoutError, UpstreamRateLimitError)),
        stop=stop_after_attempt(settings.SHOPIFY_MAX_RETRIES + 1),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        reraise=True,
    )
    async def _graphql(self, url: str, headers: Dict[str, str], query: str,
                       variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a GraphQL query and return its `data` object."""
        try:
            response = await self.client.post(
                url,
                headers={"Content-Type": "application/json", **headers},
                json={"query": query, "variables": variables or {}},
            )
            response.raise_for_status()
            body = response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                raise UpstreamRateLimitError(
                    "Shopify rate limit exceeded",
                    status_code=429,
                )
            raise CatalogUpstreamError(
                f"Shopify API error: {e.response.status_code}",
                status_code=e.response.status_code,
                details={"response": e.response.text[:500]},
            )

        except httpx.TimeoutException:
            raise UpstreamTimeoutError(f"Request to {url} timed out after {settings.SHOPIFY_TIMEOUT}s")

        except httpx.RequestError as e:
            raise CatalogUpstreamError(
                f"Request failed: {str(e)}",
                details={"error_type": type(e).__name__},
            )

        except ValueError as e:
            raise CatalogUpstreamError(f"Invalid JSON from Shopify: {str(e)}")

        if body.get("errors"):
            raise CatalogUpstreamError("Shopify GraphQL errors", details={"errors": body["errors"]})
        return body.get("data") or {}

    async def fetch_products(self) -> List[Dict[str, Any]]:
        if not settings.SHOPIFY_ADMIN_API_ACCESS_TOKEN:
            raise CatalogUpstreamError("SHOPIFY_ADMIN_API_ACCESS_TOKEN is not set")

        data = await self._graphql(
            self.admin_url,
            {"X-Shopify-Access-Token": settings.SHOPIFY_ADMIN_API_ACCESS_TOKEN},
            PRODUCTS_QUERY,
        )
        if not data.get("products"):
            raise CatalogUpstreamError("No products data in response")

        products = [transform_admin_product(e["node"]) for e in data["products"].get("edges") or []]
        logger.info(f"Fetched {len(products)} products from Shopify")
        return products

    async def _fetch_collection(self, handle: str, limit: int) -> Optional[Dict[str, Any]]:
        data = await self._graphql(
            self.storefront_url,
            {"X-Shopify-Storefront-Access-Token": settings.SHOPIFY_STOREFRONT_ACCESS_TOKEN},
            COLLECTION_QUERY,
            {"handle": handle, "first": limit},
        )
        collection = data.get("collectionByHandle")
        if not collection:
            logger.info(f"Collection not found: {handle}")
            return None
        return {
            "id": collection["id"],
            "title": collection.get("title") or "",
            "handle": collection.get("handle") or handle,
            "description": collection.get("description") or "",
            "products": [
                transform_storefront_product(e["node"])
                for e in (collection.get("products") or {}).get("edges") or []
            ],
        }

    async def fetch_collections(self, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Fetch every target collection with up to `limit` products each.

        A failing handle is skipped; the call only fails when no collection
        could be loaded and at least one request errored.
        """
        if not settings.SHOPIFY_STOREFRONT_ACCESS_TOKEN:
            raise CatalogUpstreamError("SHOPIFY_STOREFRONT_ACCESS_TOKEN is not set")

        results = await asyncio.gather(
            *(self._fetch_collection(handle, limit) for handle in self.target_collections),
            return_exceptions=True,
        )

        collections = []
        errors = []
        for handle, result in zip(self.target_collections, results):
            if isinstance(result, Exception):
                logger.warning(f"Error fetching collection {handle}: {str(result)}")
                errors.append(result)
            elif result:
                collections.append(result)

        if not collections and errors:
            raise CatalogUpstreamError(
                "All collection requests failed",
                details={"errors": [str(e) for e in errors]},
            )

        logger.info(f"Fetched {len(collections)} collections from Shopify")
        return collections

    async def close(self) -> None:
        await self.client.aclose()
