"""
Tests for CacheManager.

============================================================
PURPOSE
============================================================
1. Compute-if-absent memoization and TTL expiry
2. Tag invalidation
3. Store outage passthrough
4. Warm-up reporting
5. Key helpers

============================================================
"""

import pytest

from caching.exceptions import CacheUnavailable
from caching.manager import (
    TAG_API_RESPONSES,
    CacheManager,
    WarmUpTask,
    api_response_key,
    resource_tag,
)
from caching.stores import InMemoryCacheStore
from news_ingestion.config import CacheConfig


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingProducer:
    def __init__(self, value="value") -> None:
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


class BrokenStore(InMemoryCacheStore):
    """Store whose every operation reports an outage."""

    def _fail(self, *args, **kwargs):
        raise CacheUnavailable("connection refused", operation="test")

    get = set = delete = add_to_set = set_members = flush = stats = _fail


class WriteRejectingStore(InMemoryCacheStore):
    """Store that serves reads but refuses writes."""

    def set(self, key, value, ttl=None):
        raise CacheUnavailable("read-only replica", operation="set")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return CacheManager(InMemoryCacheStore(clock=clock), CacheConfig())


# ============================================================
# REMEMBER
# ============================================================

class TestRemember:
    """Tests for compute-if-absent behaviour."""

    def test_miss_then_hit(self, manager):
        producer = CountingProducer([1, 2, 3])

        first = manager.remember("k", 60, producer)
        second = manager.remember("k", 60, producer)

        assert first == second == [1, 2, 3]
        assert producer.calls == 1
        assert manager.get_stats()["hits"] == 1
        assert manager.get_stats()["misses"] == 1
        assert manager.get_stats()["hit_rate"] == 50.0

    def test_falsy_values_are_cached(self, manager):
        producer = CountingProducer(0)

        manager.remember("zero", 60, producer)
        manager.remember("zero", 60, producer)

        assert producer.calls == 1

    def test_value_expires_after_ttl(self, manager, clock):
        producer = CountingProducer()

        manager.remember("k", 30, producer)
        clock.advance(29)
        manager.remember("k", 30, producer)
        assert producer.calls == 1

        clock.advance(1)
        manager.remember("k", 30, producer)
        assert producer.calls == 2

    def test_force_refresh_recomputes(self, manager):
        producer = CountingProducer()

        manager.remember("k", 60, producer)
        manager.remember("k", 60, producer, force_refresh=True)

        assert producer.calls == 2

    def test_producer_errors_propagate_and_nothing_is_cached(self, manager):
        def failing():
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError):
            manager.remember("k", 60, failing)

        assert manager.store.get("k") is None

    def test_stats_helper_uses_prefix_and_stats_ttl(self, manager, clock):
        producer = CountingProducer(42)

        assert manager.remember_stats("total_articles", producer) == 42
        assert manager.store.get("stats:total_articles") == 42

        clock.advance(300)
        manager.remember_stats("total_articles", producer)
        assert producer.calls == 2


# ============================================================
# INVALIDATION
# ============================================================

class TestInvalidation:
    """Tests for tag-scoped invalidation."""

    def test_invalidating_tag_forces_producer_again(self, manager):
        producer = CountingProducer()
        manager.remember("k", 60, producer, tags=["articles"])

        removed = manager.invalidate_tags(["articles"])
        manager.remember("k", 60, producer, tags=["articles"])

        assert removed == 1
        assert producer.calls == 2

    def test_other_tags_are_untouched(self, manager):
        articles = CountingProducer()
        sources = CountingProducer()
        manager.remember("a", 60, articles, tags=["articles"])
        manager.remember("s", 60, sources, tags=["sources"])

        manager.invalidate_tags(["articles"])
        manager.remember("a", 60, articles, tags=["articles"])
        manager.remember("s", 60, sources, tags=["sources"])

        assert articles.calls == 2
        assert sources.calls == 1

    def test_api_responses_carry_resource_tag(self, manager):
        producer = CountingProducer()
        key = api_response_key("articles", {"page": 1})
        manager.remember_api_response(key, None, producer)

        manager.invalidate_table_cache("articles")
        manager.remember_api_response(key, None, producer)

        assert producer.calls == 2

    def test_api_responses_tag_flushes_all_responses(self, manager):
        manager.remember_api_response(api_response_key("articles"), None, CountingProducer())
        manager.remember_api_response(api_response_key("sources"), None, CountingProducer())

        assert manager.invalidate_tags([TAG_API_RESPONSES]) == 2

    def test_join_table_maps_to_articles(self, manager):
        manager.remember_model("articles", "articles:recent", CountingProducer())

        assert manager.invalidate_table_cache("article_author") == 1

    def test_unknown_table_is_a_noop(self, manager):
        assert manager.invalidate_table_cache("users") == 0

    def test_clear_all(self, manager):
        producer = CountingProducer()
        manager.remember("a", 60, producer, tags=["articles"])
        manager.remember("b", 60, producer)

        assert manager.clear_all() is True
        manager.remember("a", 60, producer)
        manager.remember("b", 60, producer)

        assert producer.calls == 4

    def test_tag_index_expires_with_its_keys(self, manager, clock):
        manager.remember("articles:recent", 60, CountingProducer(), tags=["articles"])
        manager.remember("articles:all", 600, CountingProducer(), tags=["articles"])

        clock.advance(60)
        assert manager.store.set_members("tag:articles") == {"articles:recent", "articles:all"}
        clock.advance(540)
        assert manager.store.set_members("tag:articles") == set()


# ============================================================
# ASYNC PRODUCERS
# ============================================================

class TestAsyncRemember:
    """Tests for coroutine producers."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, manager):
        calls = []

        async def fetch():
            calls.append(1)
            return {"results": [1, 2]}

        first = await manager.aremember_api_response("api:guardian:search:abc", None, fetch)
        second = await manager.aremember_api_response("api:guardian:search:abc", None, fetch)

        assert first == second == {"results": [1, 2]}
        assert len(calls) == 1
        assert "api:guardian:search:abc" in manager.store.set_members(f"tag:{TAG_API_RESPONSES}")

    @pytest.mark.asyncio
    async def test_errors_propagate_and_nothing_is_cached(self, manager):
        async def failing():
            raise RuntimeError("provider down")

        with pytest.raises(RuntimeError):
            await manager.aremember("k", 60, failing)

        assert manager.store.get("k") is None

    @pytest.mark.asyncio
    async def test_store_outage_passes_through(self):
        manager = CacheManager(BrokenStore())

        async def fetch():
            return "fresh"

        assert await manager.aremember("k", 60, fetch) == "fresh"


# ============================================================
# OUTAGE
# ============================================================

class TestStoreOutage:
    """Tests for degraded operation when the store is down."""

    def test_remember_passes_through_to_producer(self):
        manager = CacheManager(BrokenStore())
        producer = CountingProducer("fresh")

        assert manager.remember("k", 60, producer) == "fresh"
        assert manager.remember("k", 60, producer) == "fresh"
        assert producer.calls == 2

    def test_invalidation_and_clear_report_failure_without_raising(self):
        manager = CacheManager(BrokenStore())

        assert manager.invalidate_tags(["articles"]) == 0
        assert manager.clear_all() is False

    def test_stats_report_store_error(self):
        stats = CacheManager(BrokenStore()).get_stats()

        assert "error" in stats["store"]


# ============================================================
# WARM-UP
# ============================================================

class TestWarmUp:
    """Tests for warm-up reporting."""

    def test_failing_key_does_not_affect_others(self, manager):
        def failing():
            raise RuntimeError("query failed")

        tasks = [
            WarmUpTask(name="first", key="stats:first", producer=CountingProducer(1), ttl=60),
            WarmUpTask(name="broken", key="stats:broken", producer=failing, ttl=60),
            WarmUpTask(name="last", key="stats:last", producer=CountingProducer(3), ttl=60),
        ]

        report = manager.warm_up(tasks)

        assert report.to_dict() == {
            "first": "cached",
            "broken": "error: query failed",
            "last": "cached",
        }
        assert report.failed == ["broken"]
        assert manager.store.get("stats:last") == 3

    def test_warm_up_refreshes_existing_values(self, manager):
        producer = CountingProducer()
        manager.remember("k", 60, producer)
        manager.register_warmup(WarmUpTask(name="k", key="k", producer=producer, ttl=60))

        manager.warm_up()

        assert producer.calls == 2

    def test_failed_store_write_is_reported(self):
        manager = CacheManager(WriteRejectingStore())
        tasks = [WarmUpTask(name="articles", key="articles", producer=CountingProducer([]), ttl=60)]

        report = manager.warm_up(tasks)

        assert report.failed == ["articles"]
        assert report.to_dict()["articles"].startswith("error: ")
        assert "read-only replica" in report.errors["articles"]


# ============================================================
# KEYS
# ============================================================

class TestKeys:
    """Tests for key helpers."""

    def test_api_key_ignores_param_order(self):
        first = api_response_key("articles", {"page": 1, "per_page": 20})
        second = api_response_key("articles", {"per_page": 20, "page": 1})

        assert first == second
        assert first.startswith("api:articles:")

    def test_api_key_differs_by_params(self):
        assert api_response_key("articles", {"page": 1}) != api_response_key("articles", {"page": 2})

    @pytest.mark.parametrize("key,expected", [
        ("api:articles:abc", "articles"),
        ("api:sources:abc", "sources"),
        ("articles:recent", "articles"),
        ("stats:total_articles", None),
        ("api:weather:abc", None),
    ])
    def test_resource_tag(self, key, expected):
        assert resource_tag(key) == expected
