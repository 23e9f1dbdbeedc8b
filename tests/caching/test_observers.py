"""
Tests for commit-driven cache invalidation.
"""

import pytest

from caching.manager import CacheManager
from caching.observers import register_cache_invalidation
from caching.stores import InMemoryCacheStore
from storage.repositories import CategoryRepository, SourceRepository


class CountingProducer:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.calls


@pytest.fixture
def manager():
    return CacheManager(InMemoryCacheStore())


@pytest.fixture
def observer(session_factory, manager):
    observer = register_cache_invalidation(session_factory, manager)
    yield observer
    observer.remove()


class TestCacheInvalidationObserver:
    """Tests for session event hooks."""

    def test_commit_invalidates_entity_articles_and_stats(self, session_factory, manager, observer):
        sources = CountingProducer()
        articles = CountingProducer()
        stats = CountingProducer()
        authors = CountingProducer()
        manager.remember("sources:all", 60, sources, tags=["sources"])
        manager.remember("articles:recent", 60, articles, tags=["articles"])
        manager.remember_stats("total_sources", stats)
        manager.remember("authors:all", 60, authors, tags=["authors"])

        with session_factory() as session:
            SourceRepository(session).find_or_create_publisher_source("Reuters", "news_api")
            session.commit()

        manager.remember("sources:all", 60, sources, tags=["sources"])
        manager.remember("articles:recent", 60, articles, tags=["articles"])
        manager.remember_stats("total_sources", stats)
        manager.remember("authors:all", 60, authors, tags=["authors"])

        assert sources.calls == 2
        assert articles.calls == 2
        assert stats.calls == 2
        assert authors.calls == 1

    def test_rollback_does_not_invalidate(self, session_factory, manager, observer):
        producer = CountingProducer()
        manager.remember("categories:all", 60, producer, tags=["categories"])

        with session_factory() as session:
            CategoryRepository(session).find_or_create("Health")
            session.rollback()

        manager.remember("categories:all", 60, producer, tags=["categories"])

        assert producer.calls == 1

    def test_commit_without_changes_does_not_invalidate(self, session_factory, manager, observer):
        producer = CountingProducer()
        manager.remember("articles:recent", 60, producer, tags=["articles"])

        with session_factory() as session:
            SourceRepository(session).count()
            session.commit()

        manager.remember("articles:recent", 60, producer, tags=["articles"])

        assert producer.calls == 1

    def test_removed_observer_stops_invalidating(self, session_factory, manager):
        observer = register_cache_invalidation(session_factory, manager)
        observer.remove()
        producer = CountingProducer()
        manager.remember("categories:all", 60, producer, tags=["categories"])

        with session_factory() as session:
            CategoryRepository(session).find_or_create("Health")
            session.commit()

        manager.remember("categories:all", 60, producer, tags=["categories"])

        assert producer.calls == 1
