"""
Caching Package.

Tag-based cache layer kept coherent with the news store.

Modules:
- stores: InMemoryCacheStore, RedisCacheStore
- manager: CacheManager (remember / invalidate / warm-up)
- warmup: default hot-key plan
- observers: SQLAlchemy session hooks feeding invalidation
"""

from caching.exceptions import CacheError, CacheSerializationError, CacheUnavailable
from caching.manager import (
    TABLE_TAGS,
    CacheManager,
    WarmUpReport,
    WarmUpTask,
    api_response_key,
)
from caching.observers import CacheInvalidationObserver, register_cache_invalidation
from caching.stores import CacheStore, InMemoryCacheStore, RedisCacheStore, create_store
from caching.warmup import build_default_warmup_plan


__all__ = [
    "CacheError",
    "CacheUnavailable",
    "CacheSerializationError",
    "CacheManager",
    "WarmUpReport",
    "WarmUpTask",
    "TABLE_TAGS",
    "api_response_key",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "create_store",
    "CacheInvalidationObserver",
    "register_cache_invalidation",
    "build_default_warmup_plan",
]
