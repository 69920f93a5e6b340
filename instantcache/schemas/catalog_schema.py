from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional, Union

CatalogSource = Literal["cache", "fresh", "fallback", "empty"]

class Variant(BaseModel):
    id: str = ""
    title: str = "Default Title"
    price: float = 0.0
    available: bool = False

class Product(BaseModel):
    # Listing projection only; upstream extras are dropped
    id: str
    title: str = ""
    price: Union[float, str] = 0
    image: str = ""
    handle: str = ""
    description: Optional[str] = None
    variants: List[Variant] = Field(default_factory=list)

class Collection(BaseModel):
    id: str
    title: str = ""
    handle: str = ""
    description: str = ""
    products_count: int = 0
    products: List[Product] = Field(default_factory=list)

class CatalogSnapshot(BaseModel):
    products: List[Product] = Field(default_factory=list)
    collections: List[Collection] = Field(default_factory=list)
    categories: List[Any] = Field(default_factory=list)
    cached_at: Optional[str] = None
    total_products: int = 0
    total_collections: int = 0

class CatalogResult(BaseModel):
    snapshot: CatalogSnapshot
    source: CatalogSource
    timestamp: Optional[str] = None

class InstantCacheRequest(BaseModel):
    forceRefresh: bool = False

class InstantCacheResponse(BaseModel):
    success: bool = True
    source: CatalogSource
    data: CatalogSnapshot
    timestamp: Optional[str] = None
    warning: Optional[str] = None

class InvalidationResult(BaseModel):
    pattern: str
    deleted: int = Field(ge=0)

class CacheEntry(BaseModel):
    key: str
    data: Dict[str, Any]
    created_at: int
    expires_at: int

    def is_fresh(self, now_ms: int) -> bool:
        return now_ms < self.expires_at
