# services/normalize.py
"""
Projection of upstream catalog records into the compact listing payload.

The snapshot is a deliberately lossy view: listing fields only, one resized
image per product, at most one variant, and bounded list sizes so the whole
payload stays small enough for a sub-second transfer.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from instantcache.schemas.catalog_schema import CatalogSnapshot, Collection, Product

logger = logging.getLogger(__name__)

MAX_PRODUCTS = 100
MAX_COLLECTIONS = 20
MAX_COLLECTION_PRODUCTS = 12
MAX_VARIANTS = 1

IMAGE_RESIZE_PARAMS = "width=300&height=300"


def optimize_image_url(url: Optional[str]) -> str:
    if not url:
        return ""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{IMAGE_RESIZE_PARAMS}"


def _validated(model, records: List[Dict[str, Any]], limit: int, project) -> List[Any]:
    """Project and validate records one by one, keeping at most `limit` valid ones."""
    valid = []
    for raw in records:
        if len(valid) >= limit:
            break
        try:
            valid.append(model(**project(raw)))
        except (ValidationError, TypeError, AttributeError) as e:
            record_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning(f"Skipping malformed {model.__name__.lower()} record {record_id!r}: {str(e)}")
    return valid


def project_product(raw: Dict[str, Any], with_description: bool = False) -> Dict[str, Any]:
    product = {
        "id": str(raw.get("id", "")),
        "title": raw.get("title") or "",
        "price": raw.get("price") if raw.get("price") is not None else 0,
        "image": optimize_image_url(raw.get("image")),
        "handle": raw.get("handle") or "",
        "variants": list(raw.get("variants") or [])[:MAX_VARIANTS],
    }
    if with_description:
        product["description"] = raw.get("description") or ""
    return product


def _project_collection_product(raw: Dict[str, Any]) -> Dict[str, Any]:
    return project_product(raw, with_description=True)


def project_collection(raw: Dict[str, Any]) -> Dict[str, Any]:
    products = list(raw.get("products") or [])
    return {
        "id": str(raw.get("id", "")),
        "title": raw.get("title") or "",
        "handle": raw.get("handle") or "",
        "description": raw.get("description") or "",
        "products_count": len(products),
        "products": _validated(Product, products, MAX_COLLECTION_PRODUCTS, _project_collection_product),
    }


def build_snapshot(products: List[Dict[str, Any]], collections: List[Dict[str, Any]],
                   categories: Optional[List[Any]] = None) -> CatalogSnapshot:
    return CatalogSnapshot(
        products=_validated(Product, products, MAX_PRODUCTS, project_product),
        collections=_validated(Collection, collections, MAX_COLLECTIONS, project_collection),
        categories=list(categories or []),
        cached_at=datetime.now(timezone.utc).isoformat(),
        total_products=len(products),
        total_collections=len(collections),
    )


def empty_payload() -> Dict[str, List[Any]]:
    return {"products": [], "collections": [], "categories": []}


def unwrap_catalog_payload(raw: Any) -> Dict[str, List[Any]]:
    """
    Single adapter for origin responses.

    Accepts `{"success": true, "data": {...}}`, `{"data": {...}}` or the bare
    snapshot and returns `{"products", "collections", "categories"}` with
    each list validated against the listing schema. Raises ValueError when
    the payload is not a catalog at all.
    """
    candidate = raw
    if isinstance(candidate, dict) and isinstance(candidate.get("data"), dict):
        candidate = candidate["data"]
    if not isinstance(candidate, dict):
        raise ValueError(f"Unexpected catalog payload type: {type(raw).__name__}")

    try:
        snapshot = CatalogSnapshot(
            products=candidate.get("products") or [],
            collections=candidate.get("collections") or [],
            categories=candidate.get("categories") or [],
        )
    except ValidationError as e:
        raise ValueError(f"Invalid catalog payload: {e.error_count()} validation errors") from e

    dumped = snapshot.model_dump(exclude_none=True)
    return {
        "products": dumped["products"],
        "collections": dumped["collections"],
        "categories": dumped["categories"],
    }
