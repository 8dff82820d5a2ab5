"""Response cache: TTL store, key derivation, named partitions."""

from gateway.cache.keys import ANONYMOUS_IDENTITY, derive_cache_key, normalize_path
from gateway.cache.registry import AUTH, GENERAL, PRODUCTS, CacheRegistry
from gateway.cache.store import CacheEntry, CacheStats, CacheStore

__all__ = [
    "ANONYMOUS_IDENTITY",
    "AUTH",
    "GENERAL",
    "PRODUCTS",
    "CacheEntry",
    "CacheRegistry",
    "CacheStats",
    "CacheStore",
    "derive_cache_key",
    "normalize_path",
]
