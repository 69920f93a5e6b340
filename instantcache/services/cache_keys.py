# services/cache_keys.py

# All persisted entries live under this prefix so pattern sweeps never
# touch unrelated Redis keys.
ENTRY_PREFIX = "cache:"

# Single global catalog snapshot; not partitioned per user or locale
INSTANT_CATALOG_KEY = "instant_products_v3"

# Edge (in-process) cache slots
EDGE_INSTANT_KEY = "instant"
EDGE_COLLECTIONS_KEY = "collections"

# Patterns swept when Shopify reports a catalog change
CATALOG_INVALIDATION_PATTERNS = ("product", "collection", "shopify")

def entry_key(key: str) -> str:
    return f"{ENTRY_PREFIX}{key}"

def strip_entry_prefix(redis_key: str) -> str:
    return redis_key[len(ENTRY_PREFIX):] if redis_key.startswith(ENTRY_PREFIX) else redis_key
