"""
Cache Stores.

============================================================
PURPOSE
============================================================
Key/value backends for CacheManager.

A store only needs TTL'd values and plain sets; tag semantics are
built on top by CacheManager as a tag -> keys index kept in sets.
A set outlives the longest-lived member added to it, so index sets
expire once every key they list has.

Values must be JSON-native (dict, list, str, int, float, bool, None).
The Redis store rejects anything else with CacheSerializationError
rather than returning a different type on the next read.

- InMemoryCacheStore: process-local, thread-safe
- RedisCacheStore: redis-py, JSON payloads under a key prefix

============================================================
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

import redis

from caching.exceptions import CacheSerializationError, CacheUnavailable


logger = logging.getLogger("cache_store")


class CacheStore(ABC):
    """Interface consumed by CacheManager."""

    name = "abstract"

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or default if absent or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value; ttl in seconds, None for no expiry."""
        pass

    @abstractmethod
    def delete(self, keys: Iterable[str]) -> int:
        """Delete keys; return how many existed."""
        pass

    @abstractmethod
    def add_to_set(self, key: str, members: Iterable[str], ttl: Optional[int] = None) -> None:
        """Add members; the set expires no earlier than ttl from now (None: never)."""
        pass

    @abstractmethod
    def set_members(self, key: str) -> Set[str]:
        pass

    @abstractmethod
    def flush(self) -> None:
        """Remove every entry this store owns."""
        pass

    @abstractmethod
    def ping(self) -> bool:
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        pass


# =============================================================
# IN-MEMORY STORE
# =============================================================

class InMemoryCacheStore(CacheStore):
    """
    Process-local store.

    Values are kept by reference. Expiry is checked lazily on read
    against an injectable monotonic clock.
    """

    name = "memory"

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._values: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._sets: Dict[str, Set[str]] = {}
        self._set_expiry: Dict[str, float] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._values.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._values[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._values[key] = (value, expires_at)

    def delete(self, keys: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._values.pop(key, None) is not None:
                    removed += 1
                if self._sets.pop(key, None) is not None:
                    removed += 1
                self._set_expiry.pop(key, None)
        return removed

    def add_to_set(self, key: str, members: Iterable[str], ttl: Optional[int] = None) -> None:
        with self._lock:
            self._expire_set(key)
            existed = key in self._sets
            self._sets.setdefault(key, set()).update(members)
            if not ttl:
                self._set_expiry.pop(key, None)
                return
            expires_at = self._clock() + ttl
            current = self._set_expiry.get(key)
            # An existing set without expiry holds a member that never expires
            if not existed or (current is not None and current < expires_at):
                self._set_expiry[key] = expires_at

    def set_members(self, key: str) -> Set[str]:
        with self._lock:
            self._expire_set(key)
            return set(self._sets.get(key, ()))

    def _expire_set(self, key: str) -> None:
        expires_at = self._set_expiry.get(key)
        if expires_at is not None and self._clock() >= expires_at:
            self._sets.pop(key, None)
            del self._set_expiry[key]

    def flush(self) -> None:
        with self._lock:
            self._values.clear()
            self._sets.clear()
            self._set_expiry.clear()

    def ping(self) -> bool:
        return True

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "backend": self.name,
                "keys": len(self._values),
                "tag_sets": len(self._sets),
            }


# =============================================================
# REDIS STORE
# =============================================================

class RedisCacheStore(CacheStore):
    """
    Redis-backed store.

    Every key lives under the configured prefix so flush() only
    touches this application's entries. Values are JSON encoded and
    must be JSON-native. Set members are returned as str whether or
    not the client decodes responses.
    """

    name = "redis"

    def __init__(self, client: "redis.Redis", prefix: str = "news_cache:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "news_cache:", **kwargs: Any) -> "RedisCacheStore":
        client = redis.Redis.from_url(url, decode_responses=True, **kwargs)
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except redis.RedisError as e:
            raise CacheUnavailable(
                message=f"Redis {operation} failed: {e}",
                operation=operation,
                original_error=e,
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._call("get", self._client.get, self._key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return default

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(
                message=f"Value for {key} is not JSON serializable: {e}",
                operation="set",
                original_error=e,
            ) from e
        self._call("set", self._client.set, self._key(key), payload, ex=ttl or None)

    def delete(self, keys: Iterable[str]) -> int:
        prefixed = [self._key(key) for key in keys]
        if not prefixed:
            return 0
        return int(self._call("delete", self._client.delete, *prefixed))

    def add_to_set(self, key: str, members: Iterable[str], ttl: Optional[int] = None) -> None:
        members = list(members)
        if not members:
            return
        name = self._key(key)

        def _add() -> None:
            # TTL: -2 missing, -1 no expiry, else seconds left
            remaining = self._client.ttl(name)
            self._client.sadd(name, *members)
            if not ttl:
                if remaining >= 0:
                    self._client.persist(name)
            elif remaining == -2 or 0 <= remaining < ttl:
                self._client.expire(name, ttl)

        self._call("sadd", _add)

    def set_members(self, key: str) -> Set[str]:
        members = self._call("smembers", self._client.smembers, self._key(key))
        return {
            member.decode("utf-8") if isinstance(member, bytes) else member
            for member in members
        }

    def flush(self) -> None:
        def _flush() -> None:
            batch = []
            for key in self._client.scan_iter(match=f"{self._prefix}*", count=500):
                batch.append(key)
                if len(batch) >= 500:
                    self._client.delete(*batch)
                    batch = []
            if batch:
                self._client.delete(*batch)

        self._call("flush", _flush)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def stats(self) -> Dict[str, Any]:
        info = self._call("info", self._client.info)
        return {
            "backend": self.name,
            "prefix": self._prefix,
            "redis_version": info.get("redis_version"),
            "used_memory_human": info.get("used_memory_human"),
            "connected_clients": info.get("connected_clients"),
            "keyspace_hits": info.get("keyspace_hits"),
            "keyspace_misses": info.get("keyspace_misses"),
        }


def create_store(redis_url: Optional[str], prefix: str = "news_cache:") -> CacheStore:
    """Redis store when a URL is configured, otherwise in-memory."""
    if redis_url:
        return RedisCacheStore.from_url(redis_url, prefix=prefix)
    logger.info("REDIS_URL not set, using in-memory cache store")
    return InMemoryCacheStore()
