"""
Tests for AggregationPipeline.

============================================================
PURPOSE
============================================================
1. Deduplication by url within and across runs
2. Provider failure isolation
3. Source resolution policy
4. Per-draft persistence failures
5. Sequential and parallel fetch

============================================================
"""

import logging
from typing import List, Optional

import httpx
import pytest

from caching.manager import CacheManager
from caching.stores import InMemoryCacheStore
from news_ingestion.config import PipelineConfig
from news_ingestion.exceptions import Unavailable
from news_ingestion.pipeline import AggregationPipeline
from news_ingestion.types import IngestionStatus, ProviderFetchResult
from storage.repositories import (
    ArticleRepository,
    CategoryRepository,
    DuplicateRecordError,
    SourceRepository,
)
from tests.helpers import make_draft, make_provider_config, mock_http_client


class FakeCollector:
    """Collector stand-in returning a fixed fetch result."""

    def __init__(self, provider: str, drafts=None, error=None, raises=None, calls: Optional[List] = None):
        self.provider = provider
        self._drafts = drafts or []
        self._error = error
        self._raises = raises
        self._calls = calls if calls is not None else []
        self.closed = False

    async def fetch_articles(self, category_hint=None, page=1):
        self._calls.append(("fetch", self.provider, category_hint, page))
        if self._raises is not None:
            raise self._raises
        if self._error is not None:
            return ProviderFetchResult.failed(self.provider, self._error)
        return ProviderFetchResult.ok(self.provider, self._drafts)

    async def search_articles(self, query, page=1):
        self._calls.append(("search", self.provider, query, page))
        return ProviderFetchResult.ok(self.provider, self._drafts)

    async def close(self):
        self.closed = True


def make_pipeline(session_factory, collectors, parallel: bool = True) -> AggregationPipeline:
    return AggregationPipeline(
        PipelineConfig(parallel_fetch=parallel),
        session_factory,
        collectors=collectors,
    )


def count_articles(session_factory) -> int:
    with session_factory() as session:
        return ArticleRepository(session).count()


def drafts_for(provider: str, count: int, prefix: str = None):
    prefix = prefix or provider
    return [make_draft(f"https://{prefix}.test/{i}", provider=provider) for i in range(count)]


# ============================================================
# DEDUPLICATION
# ============================================================

class TestDeduplication:
    """Tests for url-based deduplication."""

    @pytest.mark.asyncio
    async def test_duplicate_url_within_one_response_stored_once(self, session_factory):
        drafts = [make_draft("https://guardian.test/same"), make_draft("https://guardian.test/same")]
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", drafts)])

        report = await pipeline.run_report()

        assert report.total_stored == 1
        assert report.providers[0].records_skipped == 1
        assert count_articles(session_factory) == 1

    @pytest.mark.asyncio
    async def test_second_run_with_same_payload_stores_nothing(self, session_factory):
        drafts = drafts_for("guardian", 4)
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", drafts)])

        first = await pipeline.run_ingestion()
        second = await pipeline.run_ingestion()

        assert first == 4
        assert second == 0
        assert count_articles(session_factory) == 4

    @pytest.mark.asyncio
    async def test_same_url_from_two_providers_stored_once(self, session_factory):
        collectors = [
            FakeCollector("guardian", [make_draft("https://shared.test/story", provider="guardian")]),
            FakeCollector("ny_times", [make_draft(
                "https://shared.test/story", provider="ny_times", source_name="New York Times",
            )]),
        ]
        pipeline = make_pipeline(session_factory, collectors)

        assert await pipeline.run_ingestion() == 1

    @pytest.mark.asyncio
    async def test_unique_violation_on_insert_counts_as_duplicate(self, session_factory, monkeypatch):
        # Both copies pass the existence check, as when two runs race
        monkeypatch.setattr(ArticleRepository, "exists_by_url", lambda self, url: False)
        drafts = [
            make_draft("https://guardian.test/same"),
            make_draft("https://guardian.test/same"),
            make_draft("https://guardian.test/other"),
        ]
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", drafts)])

        report = await pipeline.run_report()

        result = report.providers[0]
        assert result.records_stored == 2
        assert result.records_skipped == 1
        assert result.records_failed == 0
        assert result.errors == []
        assert count_articles(session_factory) == 2


# ============================================================
# FAILURE ISOLATION
# ============================================================

class TestFailureIsolation:
    """Tests that one provider's failure never affects the others."""

    @pytest.mark.asyncio
    async def test_unavailable_provider_does_not_block_others(self, session_factory, caplog):
        collectors = [
            FakeCollector("news_api", error=Unavailable("down", status_code=503, provider="news_api")),
            FakeCollector("guardian", drafts_for("guardian", 5)),
            FakeCollector("ny_times", drafts_for("ny_times", 3)),
        ]
        pipeline = make_pipeline(session_factory, collectors)

        with caplog.at_level(logging.ERROR, logger="aggregation_pipeline"):
            total = await pipeline.run_ingestion()

        assert total == 8
        errors = [
            r for r in caplog.records
            if r.name == "aggregation_pipeline" and r.levelno == logging.ERROR
        ]
        assert len(errors) == 1
        assert "news_api" in errors[0].getMessage()

    @pytest.mark.asyncio
    async def test_failed_provider_reported_with_kind(self, session_factory):
        collectors = [
            FakeCollector("news_api", error=Unavailable("down", status_code=503, provider="news_api")),
            FakeCollector("guardian", drafts_for("guardian", 2)),
        ]
        pipeline = make_pipeline(session_factory, collectors)

        report = await pipeline.run_report()

        failed = {r.provider: r for r in report.providers}
        assert report.failed_providers == ["news_api"]
        assert failed["news_api"].error_kind == "unavailable"
        assert failed["guardian"].status == IngestionStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_stray_exception_becomes_failed_result(self, session_factory):
        collectors = [
            FakeCollector("news_api", raises=RuntimeError("boom")),
            FakeCollector("guardian", drafts_for("guardian", 2)),
        ]
        pipeline = make_pipeline(session_factory, collectors)

        report = await pipeline.run_report()

        assert report.total_stored == 2
        assert report.failed_providers == ["news_api"]
        assert report.providers[0].error_kind == "provider_error"

    @pytest.mark.asyncio
    async def test_all_providers_failing_returns_zero(self, session_factory):
        collectors = [
            FakeCollector(name, error=Unavailable("down", provider=name))
            for name in ("news_api", "guardian", "ny_times")
        ]
        pipeline = make_pipeline(session_factory, collectors)

        assert await pipeline.run_ingestion() == 0

    @pytest.mark.asyncio
    async def test_misconfigured_and_disabled_providers(self, session_factory):
        config = PipelineConfig(providers=(
            make_provider_config("news_api", api_key=None),
            make_provider_config("guardian", enabled=False),
        ))
        pipeline = AggregationPipeline(config, session_factory)

        report = await pipeline.run_report()

        by_provider = {r.provider: r for r in report.providers}
        assert by_provider["guardian"].status == IngestionStatus.SKIPPED
        assert by_provider["news_api"].status == IngestionStatus.FAILED
        assert by_provider["news_api"].error_kind == "configuration"
        assert pipeline.provider_names == []
        assert pipeline.get_health_status()["misconfigured"] == {"news_api": ["api_key"]}


# ============================================================
# SOURCE RESOLUTION
# ============================================================

class TestSourceResolution:
    """Tests for publisher-first source resolution."""

    @pytest.mark.asyncio
    async def test_publisher_name_creates_publisher_source(self, session_factory):
        draft = make_draft(
            "https://reuters.test/a", provider="news_api",
            source_name="Reuters", publisher_name="Reuters",
        )
        pipeline = make_pipeline(session_factory, [FakeCollector("news_api", [draft])])

        await pipeline.run_ingestion()

        with session_factory() as session:
            article = ArticleRepository(session).get_by_url("https://reuters.test/a")
            assert article.source.name == "Reuters"
            assert article.source.api_identifier is None
            assert article.source.provider_identifier == "news_api"

    @pytest.mark.asyncio
    async def test_provider_source_used_without_publisher(self, session_factory):
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", drafts_for("guardian", 2))])

        await pipeline.run_ingestion()

        with session_factory() as session:
            sources = SourceRepository(session)
            assert sources.count() == 1
            assert sources.get_by_api_identifier("guardian").name == "The Guardian"

    @pytest.mark.asyncio
    async def test_provider_claims_publisher_row_with_same_name(self, session_factory):
        via_news_api = make_draft(
            "https://guardian.test/via-newsapi", provider="news_api",
            source_name="The Guardian", publisher_name="The Guardian",
        )
        collectors = [
            FakeCollector("news_api", [via_news_api]),
            FakeCollector("guardian", [make_draft("https://guardian.test/direct")]),
        ]
        pipeline = make_pipeline(session_factory, collectors, parallel=False)

        assert await pipeline.run_ingestion() == 2

        with session_factory() as session:
            sources = SourceRepository(session)
            assert sources.count() == 1
            assert sources.get_by_name("The Guardian").api_identifier == "guardian"

    @pytest.mark.asyncio
    async def test_relations_are_resolved(self, session_factory):
        draft = make_draft("https://guardian.test/rel", author_name="Sam Jones", category_name="Sport")
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", [draft])])

        await pipeline.run_ingestion()

        with session_factory() as session:
            article = ArticleRepository(session).get_by_url("https://guardian.test/rel")
            assert article.category.name == "Sport"
            assert [a.name for a in article.authors] == ["Sam Jones"]
            assert article.title == "Story at https://guardian.test/rel"


# ============================================================
# PERSISTENCE FAILURES
# ============================================================

class TestPersistenceFailures:
    """Tests for per-draft persistence failures."""

    @pytest.mark.asyncio
    async def test_bad_draft_is_recorded_and_others_stored(self, session_factory, caplog):
        drafts = [
            make_draft("https://guardian.test/1"),
            make_draft("https://guardian.test/bad", title=None),
            make_draft("https://guardian.test/2"),
        ]
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", drafts)])

        with caplog.at_level(logging.ERROR, logger="aggregation_pipeline"):
            report = await pipeline.run_report()

        result = report.providers[0]
        assert result.records_stored == 2
        assert result.records_failed == 1
        assert result.status == IngestionStatus.PARTIAL
        assert "https://guardian.test/bad" in result.errors[0]
        assert count_articles(session_factory) == 2
        assert any("Failed to persist article" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_only_failures_marks_provider_failed(self, session_factory):
        drafts = [make_draft("https://guardian.test/bad", title=None)]
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", drafts)])

        report = await pipeline.run_report()

        assert report.providers[0].status == IngestionStatus.FAILED
        assert report.total_stored == 0

    @pytest.mark.asyncio
    async def test_lookup_row_collision_is_a_failure_not_a_duplicate(self, session_factory, monkeypatch):
        original = CategoryRepository.find_or_create

        def colliding(self, name):
            if name == "Contested":
                raise DuplicateRecordError("CategoryRepository", "name", name)
            return original(self, name)

        monkeypatch.setattr(CategoryRepository, "find_or_create", colliding)
        drafts = [
            make_draft("https://guardian.test/1"),
            make_draft("https://guardian.test/contested", category_name="Contested"),
            make_draft("https://guardian.test/2"),
        ]
        pipeline = make_pipeline(session_factory, [FakeCollector("guardian", drafts)])

        report = await pipeline.run_report()

        result = report.providers[0]
        assert result.records_stored == 2
        assert result.records_skipped == 0
        assert result.records_failed == 1
        assert result.status == IngestionStatus.PARTIAL
        assert "https://guardian.test/contested" in result.errors[0]


# ============================================================
# FETCH MODES
# ============================================================

class TestFetchModes:
    """Tests for parallel and sequential fetching."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [True, False])
    async def test_results_reported_in_configuration_order(self, session_factory, parallel):
        calls: List = []
        collectors = [
            FakeCollector("news_api", drafts_for("news_api", 1), calls=calls),
            FakeCollector("guardian", drafts_for("guardian", 1), calls=calls),
            FakeCollector("ny_times", drafts_for("ny_times", 1), calls=calls),
        ]
        pipeline = make_pipeline(session_factory, collectors, parallel=parallel)

        report = await pipeline.run_report("science")

        assert [r.provider for r in report.providers] == ["news_api", "guardian", "ny_times"]
        assert [c[1] for c in calls] == ["news_api", "guardian", "ny_times"]
        assert all(c[2] == "science" for c in calls)

    @pytest.mark.asyncio
    async def test_sequential_mode_isolates_exceptions(self, session_factory):
        collectors = [
            FakeCollector("news_api", raises=ValueError("bad")),
            FakeCollector("guardian", drafts_for("guardian", 3)),
        ]
        pipeline = make_pipeline(session_factory, collectors, parallel=False)

        assert await pipeline.run_ingestion() == 3


class TestSearchAndLifecycle:
    """Tests for search and close."""

    @pytest.mark.asyncio
    async def test_search_returns_results_without_persisting(self, session_factory):
        calls: List = []
        collectors = [FakeCollector("guardian", drafts_for("guardian", 2), calls=calls)]
        pipeline = make_pipeline(session_factory, collectors)

        results = await pipeline.search("election", page=2)

        assert len(results["guardian"].drafts) == 2
        assert calls == [("search", "guardian", "election", 2)]
        assert count_articles(session_factory) == 0

    @pytest.mark.asyncio
    async def test_context_manager_closes_collectors(self, session_factory):
        collector = FakeCollector("guardian")

        async with make_pipeline(session_factory, [collector]):
            pass

        assert collector.closed

    @pytest.mark.asyncio
    async def test_repeated_search_uses_cached_provider_responses(self, session_factory, sleep_recorder):
        requests: List[httpx.Request] = []

        def respond(request):
            requests.append(request)
            return httpx.Response(200, json={"response": {"results": [
                {"webUrl": "https://guardian.test/a", "webTitle": "A"},
            ]}})

        config = PipelineConfig(providers=(make_provider_config("guardian"),))
        async with AggregationPipeline(
            config,
            session_factory,
            http_client=mock_http_client(respond),
            sleep=sleep_recorder,
            cache_manager=CacheManager(InMemoryCacheStore()),
        ) as pipeline:
            first = await pipeline.search("election")
            second = await pipeline.search("election")

        assert len(requests) == 1
        assert [d.url for d in second["guardian"].drafts] == [d.url for d in first["guardian"].drafts]
