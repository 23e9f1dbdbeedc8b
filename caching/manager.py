"""
Cache Manager.

============================================================
RESPONSIBILITY
============================================================
Compute-if-absent memoization with tag-scoped invalidation on top
of any CacheStore.

- remember*: return the cached value or call the producer and store;
  aremember* does the same for coroutine producers
- invalidate_tags / invalidate_table_cache: flush every key ever
  stored under a tag (tag -> keys index kept in store sets)
- warm_up: refresh a fixed set of hot keys, reporting per key
- clear_all: unconditional flush

============================================================
FAILURE SEMANTICS
============================================================
Caching is an optimization. A store outage (CacheUnavailable)
turns remember* into a passthrough to the producer and turns
invalidation into a logged no-op. Producer exceptions propagate.
warm_up reports a key whose value could not be written as failed.

============================================================
KNOWN LIMITATION
============================================================
No single-flight: concurrent callers missing the same key may all
invoke the producer, and the last write wins.

============================================================
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from caching.exceptions import CacheError
from caching.stores import CacheStore
from news_ingestion.config import CacheConfig


# =============================================================
# TAGS
# =============================================================

TAG_ARTICLES = "articles"
TAG_SOURCES = "sources"
TAG_CATEGORIES = "categories"
TAG_AUTHORS = "authors"
TAG_API_RESPONSES = "api_responses"
TAG_STATS = "stats"

ENTITY_TAGS = (TAG_ARTICLES, TAG_SOURCES, TAG_CATEGORIES, TAG_AUTHORS)

TABLE_TAGS: Dict[str, str] = {
    "articles": TAG_ARTICLES,
    "sources": TAG_SOURCES,
    "categories": TAG_CATEGORIES,
    "authors": TAG_AUTHORS,
    "article_author": TAG_ARTICLES,
    "api_responses": TAG_API_RESPONSES,
    "stats": TAG_STATS,
}

_TAG_INDEX_PREFIX = "tag:"
_MISSING = object()
_UNAVAILABLE = object()

Producer = Callable[[], Any]
AsyncProducer = Callable[[], Awaitable[Any]]


def api_response_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Cache key for an API response: api:<endpoint>:<md5 of sorted params>."""
    encoded = json.dumps(params or {}, sort_keys=True, default=str)
    return f"api:{endpoint}:{hashlib.md5(encoded.encode('utf-8')).hexdigest()}"


def resource_tag(key: str) -> Optional[str]:
    """Entity tag named by the leading segment of a key, skipping "api"."""
    segments = key.split(":")
    if segments and segments[0] == "api":
        segments = segments[1:]
    if segments and segments[0] in ENTITY_TAGS:
        return segments[0]
    return None


# =============================================================
# WARM-UP TYPES
# =============================================================

@dataclass(frozen=True)
class WarmUpTask:
    """One hot key to pre-populate."""
    name: str
    key: str
    producer: Producer
    ttl: int
    tags: Sequence[str] = ()


@dataclass
class WarmUpReport:
    """Per-key warm-up outcomes."""
    outcomes: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def mark_cached(self, name: str) -> None:
        self.outcomes[name] = "cached"

    def mark_failed(self, name: str, error: BaseException) -> None:
        self.outcomes[name] = "failed"
        self.errors[name] = str(error)

    @property
    def succeeded(self) -> List[str]:
        return [name for name, status in self.outcomes.items() if status == "cached"]

    @property
    def failed(self) -> List[str]:
        return [name for name, status in self.outcomes.items() if status == "failed"]

    def to_dict(self) -> Dict[str, str]:
        """Flat name -> "cached" | "error: <message>" mapping."""
        return {
            name: status if status == "cached" else f"error: {self.errors.get(name, '')}"
            for name, status in self.outcomes.items()
        }


# =============================================================
# CACHE MANAGER
# =============================================================

class CacheManager:
    """
    Tag-aware cache front for a CacheStore.

    ============================================================
    KEY LAYOUT
    ============================================================
    api:<endpoint>:<md5>   API responses (tags: api_responses + resource)
    stats:<name>           statistics (tag: stats)
    tag:<tag>              set of keys stored under <tag>

    ============================================================
    """

    def __init__(
        self,
        store: CacheStore,
        config: Optional[CacheConfig] = None,
        warmup_tasks: Optional[Sequence[WarmUpTask]] = None,
    ) -> None:
        """
        Initialize the manager.

        Args:
            store: Backing store
            config: TTL defaults
            warmup_tasks: Hot keys refreshed by warm_up()
        """
        self._store = store
        self._config = config or CacheConfig()
        self._warmup_tasks: List[WarmUpTask] = list(warmup_tasks or [])
        self._hits = 0
        self._misses = 0
        self._logger = logging.getLogger("cache_manager")

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def config(self) -> CacheConfig:
        return self._config

    # =========================================================
    # REMEMBER
    # =========================================================

    def remember(
        self,
        key: str,
        ttl: Optional[int],
        producer: Producer,
        tags: Iterable[str] = (),
        force_refresh: bool = False,
    ) -> Any:
        """
        Return the cached value for key, computing it on a miss.

        Args:
            key: Cache key
            ttl: Seconds to keep the value (None: no expiry)
            producer: Zero-argument callable computing the value
            tags: Tags the key is indexed under
            force_refresh: Skip the read and recompute

        Returns:
            Cached or freshly produced value
        """
        if not force_refresh:
            cached = self._lookup(key)
            if cached is _UNAVAILABLE:
                return producer()
            if cached is not _MISSING:
                return cached

        started = time.perf_counter()
        value = producer()
        self._record_miss(key, started)
        self._write(key, value, ttl, tags)
        return value

    async def aremember(
        self,
        key: str,
        ttl: Optional[int],
        producer: AsyncProducer,
        tags: Iterable[str] = (),
        force_refresh: bool = False,
    ) -> Any:
        """
        remember() for coroutine producers.

        Store calls stay synchronous; only the producer is awaited.
        """
        if not force_refresh:
            cached = self._lookup(key)
            if cached is _UNAVAILABLE:
                return await producer()
            if cached is not _MISSING:
                return cached

        started = time.perf_counter()
        value = await producer()
        self._record_miss(key, started)
        self._write(key, value, ttl, tags)
        return value

    def remember_api_response(self, key: str, ttl: Optional[int], producer: Producer) -> Any:
        """Remember an API response under the api_responses tag (and its resource tag)."""
        ttl, tags = self._api_response_policy(key, ttl)
        return self.remember(key, ttl, producer, tags)

    async def aremember_api_response(self, key: str, ttl: Optional[int], producer: AsyncProducer) -> Any:
        ttl, tags = self._api_response_policy(key, ttl)
        return await self.aremember(key, ttl, producer, tags)

    def remember_stats(self, key: str, producer: Producer, ttl: Optional[int] = None) -> Any:
        """Remember a statistic under stats:<key> with the short stats TTL."""
        ttl = self._config.stats_ttl if ttl is None else ttl
        return self.remember(f"stats:{key}", ttl, producer, [TAG_STATS])

    def remember_model(self, table: str, key: str, producer: Producer, ttl: Optional[int] = None) -> Any:
        """Remember serialized rows of one table under that table's tag."""
        ttl = self._config.model_ttl if ttl is None else ttl
        return self.remember(key, ttl, producer, [TABLE_TAGS.get(table, table)])

    def _api_response_policy(self, key: str, ttl: Optional[int]) -> Tuple[int, List[str]]:
        ttl = self._config.api_response_ttl if ttl is None else ttl
        tags = [TAG_API_RESPONSES]
        resource = resource_tag(key)
        if resource:
            tags.append(resource)
        return ttl, tags

    def _lookup(self, key: str) -> Any:
        """Cached value, _MISSING on a miss, _UNAVAILABLE if the read failed."""
        try:
            cached = self._store.get(key, _MISSING)
        except CacheError as e:
            self._logger.warning(f"Cache read failed for {key}, calling producer directly: {e}")
            return _UNAVAILABLE
        if cached is not _MISSING:
            self._hits += 1
            self._logger.debug(f"Cache hit: {key}")
        return cached

    def _record_miss(self, key: str, started: float) -> None:
        self._misses += 1
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        self._logger.info(f"Cache miss: {key} (producer duration_ms={duration_ms})")

    def _write(self, key: str, value: Any, ttl: Optional[int], tags: Iterable[str]) -> Optional[CacheError]:
        """Store value and index it under tags. Returns the store error, if any."""
        try:
            # Index first so an invalidation racing this write still finds the key
            for tag in set(tags):
                self._store.add_to_set(self._tag_key(tag), [key], ttl)
            self._store.set(key, value, ttl)
        except CacheError as e:
            self._logger.warning(f"Cache write failed for {key}: {e}")
            return e
        return None

    # =========================================================
    # INVALIDATION
    # =========================================================

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """
        Flush every key stored under any of the given tags.

        Returns:
            Number of keys removed (0 if the store is unavailable)
        """
        tags = sorted(set(tags))
        if not tags:
            return 0
        try:
            keys: Set[str] = set()
            for tag in tags:
                keys |= self._store.set_members(self._tag_key(tag))
            self._store.delete(list(keys) + [self._tag_key(tag) for tag in tags])
        except CacheError as e:
            self._logger.error(f"Cache invalidation failed for tags {tags}: {e}")
            return 0
        self._logger.info(f"Invalidated {len(keys)} cache keys for tags {tags}")
        return len(keys)

    def invalidate_table_cache(self, table: str) -> int:
        """Resolve a table name to its tag and flush it."""
        tag = TABLE_TAGS.get(table)
        if tag is None:
            self._logger.warning(f"No cache tag mapped for table '{table}'")
            return 0
        return self.invalidate_tags([tag])

    def clear_all(self) -> bool:
        """Flush every entry regardless of tag."""
        try:
            self._store.flush()
        except CacheError as e:
            self._logger.error(f"Cache clear failed: {e}")
            return False
        self._logger.warning("All cache entries cleared")
        return True

    # =========================================================
    # WARM-UP
    # =========================================================

    def register_warmup(self, task: WarmUpTask) -> None:
        self._warmup_tasks.append(task)

    def warm_up(self, tasks: Optional[Sequence[WarmUpTask]] = None) -> WarmUpReport:
        """
        Refresh each hot key, recording a per-key outcome.

        A failing producer or a failed store write marks only its own
        key failed.

        Args:
            tasks: Tasks to run (default: the registered plan)

        Returns:
            WarmUpReport
        """
        report = WarmUpReport()
        for task in (self._warmup_tasks if tasks is None else tasks):
            try:
                started = time.perf_counter()
                value = task.producer()
            except Exception as e:
                self._logger.warning(f"Warm-up failed for {task.name}: {e}")
                report.mark_failed(task.name, e)
                continue
            self._record_miss(task.key, started)

            write_error = self._write(task.key, value, task.ttl, task.tags)
            if write_error is not None:
                report.mark_failed(task.name, write_error)
            else:
                report.mark_cached(task.name)
        self._logger.info(
            f"Cache warm-up complete: {len(report.succeeded)} cached, {len(report.failed)} failed"
        )
        return report

    # =========================================================
    # STATISTICS
    # =========================================================

    def get_stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        stats: Dict[str, Any] = {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 2) if total else 0.0,
        }
        try:
            stats["store"] = self._store.stats()
        except CacheError as e:
            stats["store"] = {"error": str(e)}
        return stats

    @staticmethod
    def _tag_key(tag: str) -> str:
        return f"{_TAG_INDEX_PREFIX}{tag}"
