"""
News Ingestion - Aggregation Pipeline.

============================================================
RESPONSIBILITY
============================================================
Orchestrates fetch -> normalize -> dedupe -> persist across all
configured providers.

- One collector per enabled provider
- Provider failures are recorded and never abort the run
- Draft persistence failures are recorded and never abort the
  provider
- Returns the number of newly persisted articles

============================================================
WORKFLOW
============================================================
1. Fetch + normalize every provider (concurrently when
   parallel_fetch is set; collectors share no mutable state)
2. For each provider, in configuration order, persist drafts one
   at a time:
   a. skip if the url already exists
   b. resolve source (publisher name from the payload first,
      provider-level source otherwise), author, category
   c. insert and commit; a unique violation on url is a duplicate
3. Report per-provider counts

Each article is committed on its own, so a run cut short keeps
everything persisted so far.

============================================================
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from caching.manager import CacheManager
from news_ingestion.client import SleepFunc
from news_ingestion.collectors import COLLECTOR_REGISTRY, BaseNewsCollector
from news_ingestion.config import PipelineConfig, ProviderConfig
from news_ingestion.exceptions import ConfigurationError, PersistError, ProviderError
from news_ingestion.types import (
    CanonicalArticle,
    IngestionReport,
    IngestionStatus,
    ProviderFetchResult,
    ProviderRunResult,
)
from storage.models.news import Source
from storage.repositories import (
    ArticleRepository,
    AuthorRepository,
    CategoryRepository,
    DuplicateRecordError,
    RepositoryException,
    SourceRepository,
)


class AggregationPipeline:
    """
    Multi-provider ingestion pipeline.

    ============================================================
    PROVIDER STATES
    ============================================================
    - active: collector built, fetched every run
    - disabled: enabled=False in config, reported as SKIPPED
    - misconfigured: ConfigurationError at construction, reported
      as FAILED every run without any request

    ============================================================
    """

    def __init__(
        self,
        config: PipelineConfig,
        session_factory: Callable[[], Session],
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
        collectors: Optional[Sequence[BaseNewsCollector]] = None,
        cache_manager: Optional[CacheManager] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration with the provider list
            session_factory: Factory creating database sessions
            http_client: AsyncClient shared by all collectors
            sleep: Awaitable sleep used by provider retries
            collectors: Pre-built collectors (replaces config.providers)
            cache_manager: Shared by collectors for provider responses
        """
        self._config = config
        self._session_factory = session_factory
        self._logger = logging.getLogger("aggregation_pipeline")

        self._collectors: List[BaseNewsCollector] = []
        self._disabled: List[str] = []
        self._config_errors: Dict[str, ConfigurationError] = {}

        if collectors is not None:
            self._collectors = list(collectors)
        else:
            for provider_config in config.providers:
                self._initialize_collector(provider_config, http_client, sleep, cache_manager)

    def _initialize_collector(
        self,
        provider_config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient],
        sleep: Optional[SleepFunc],
        cache_manager: Optional[CacheManager],
    ) -> None:
        identifier = provider_config.identifier
        if not provider_config.enabled:
            self._disabled.append(identifier)
            self._logger.info(f"Provider {identifier} is disabled, skipping")
            return

        collector_class = COLLECTOR_REGISTRY.get(identifier)
        if collector_class is None:
            self._config_errors[identifier] = ConfigurationError(
                message=f"Unknown provider '{identifier}'",
                provider=identifier,
            )
            self._logger.warning(f"Unknown provider: {identifier}")
            return

        try:
            collector = collector_class(
                provider_config,
                http_client=http_client,
                sleep=sleep,
                cache_manager=cache_manager,
            )
        except ConfigurationError as e:
            self._config_errors[identifier] = e
            self._logger.warning(f"Provider {identifier} disabled by configuration: {e}")
            return

        self._collectors.append(collector)
        self._logger.info(f"Initialized collector: {identifier}")

    @property
    def collectors(self) -> List[BaseNewsCollector]:
        return list(self._collectors)

    @property
    def provider_names(self) -> List[str]:
        return [collector.provider for collector in self._collectors]

    # =========================================================
    # RUN
    # =========================================================

    async def run_ingestion(self, category_hint: Optional[str] = None) -> int:
        """
        Run one ingestion pass across all providers.

        Args:
            category_hint: Optional category to fetch

        Returns:
            Number of newly persisted articles (0 is not an error)
        """
        report = await self.run_report(category_hint)
        return report.total_stored

    async def run_report(self, category_hint: Optional[str] = None) -> IngestionReport:
        """
        Run one ingestion pass and return the full report.

        Args:
            category_hint: Optional category to fetch

        Returns:
            IngestionReport with one entry per configured provider
        """
        report = IngestionReport(
            category_hint=category_hint,
            started_at=datetime.now(timezone.utc),
        )
        self._logger.info(
            f"Starting ingestion run {report.run_id} "
            f"(category={category_hint or 'general'}, providers={len(self._collectors)})"
        )

        for identifier in self._disabled:
            report.providers.append(ProviderRunResult(provider=identifier, status=IngestionStatus.SKIPPED))

        for identifier, error in self._config_errors.items():
            result = ProviderRunResult(provider=identifier)
            result.mark_failed(str(error), error.kind)
            report.providers.append(result)
            self._log_provider_failure(identifier, error)

        fetch_results = await self._fetch_all(category_hint)

        for fetch_result in fetch_results:
            result = ProviderRunResult(provider=fetch_result.provider)
            if not fetch_result.is_ok:
                result.mark_failed(str(fetch_result.error), fetch_result.error.kind)
                self._log_provider_failure(fetch_result.provider, fetch_result.error)
            else:
                result.records_fetched = len(fetch_result.drafts)
                self._persist_drafts(fetch_result.drafts, result)
            report.providers.append(result)

        report.mark_complete(datetime.now(timezone.utc))
        self._logger.info(
            f"Ingestion run {report.run_id} completed in {report.duration_seconds:.2f}s. "
            f"Stored: {report.total_stored}, failed providers: {report.failed_providers}"
        )
        return report

    async def search(self, query: str, page: int = 1) -> Dict[str, ProviderFetchResult]:
        """
        Search every active provider without persisting anything.

        Returns:
            Provider identifier -> fetch result
        """
        results = await asyncio.gather(
            *(collector.search_articles(query, page) for collector in self._collectors),
            return_exceptions=True,
        )
        return {
            collector.provider: self._as_fetch_result(collector, result)
            for collector, result in zip(self._collectors, results)
        }

    # =========================================================
    # FETCH
    # =========================================================

    async def _fetch_all(self, category_hint: Optional[str]) -> List[ProviderFetchResult]:
        page = self._config.page
        if self._config.parallel_fetch:
            results = await asyncio.gather(
                *(collector.fetch_articles(category_hint, page) for collector in self._collectors),
                return_exceptions=True,
            )
        else:
            results = []
            for collector in self._collectors:
                try:
                    results.append(await collector.fetch_articles(category_hint, page))
                except Exception as e:
                    results.append(e)

        return [
            self._as_fetch_result(collector, result)
            for collector, result in zip(self._collectors, results)
        ]

    def _as_fetch_result(self, collector: BaseNewsCollector, result) -> ProviderFetchResult:
        """Convert a stray exception from a collector into a failed result."""
        if isinstance(result, ProviderFetchResult):
            return result
        if isinstance(result, ProviderError):
            return ProviderFetchResult.failed(collector.provider, result)
        error = ProviderError(
            message=f"Unexpected error: {result}",
            provider=collector.provider,
            original_error=result if isinstance(result, Exception) else None,
        )
        return ProviderFetchResult.failed(collector.provider, error)

    def _log_provider_failure(self, provider: str, error: ProviderError) -> None:
        self._logger.error(
            f"Provider {provider} failed ({error.kind}): {error}",
            extra={"provider_error": error.to_dict()},
        )

    # =========================================================
    # PERSIST
    # =========================================================

    def _persist_drafts(self, drafts: Sequence[CanonicalArticle], result: ProviderRunResult) -> None:
        """Persist drafts one by one, committing each new article."""
        with self._session_factory() as session:
            sources = SourceRepository(session)
            categories = CategoryRepository(session)
            authors = AuthorRepository(session)
            articles = ArticleRepository(session)

            for draft in drafts:
                try:
                    if articles.exists_by_url(draft.url):
                        result.records_skipped += 1
                        continue

                    articles.create(
                        title=draft.title,
                        url=draft.url,
                        published_at=draft.published_at,
                        source=self._resolve_source(sources, draft),
                        category=categories.find_or_create(draft.category_name),
                        authors=[authors.find_or_create(draft.author_name)],
                        description=draft.description,
                        content=draft.body,
                        image_url=draft.image_url,
                    )
                    articles.commit()
                    result.records_stored += 1

                except DuplicateRecordError as e:
                    articles.rollback()
                    if e.constraint_field == "url":
                        result.records_skipped += 1
                        self._logger.debug(f"Duplicate url on insert, skipped: {draft.url}")
                    else:
                        # a lookup row collided, not the article itself
                        self._record_persist_failure(result, draft, e)

                except (RepositoryException, SQLAlchemyError) as e:
                    session.rollback()
                    self._record_persist_failure(result, draft, e)

        if result.records_failed and not result.records_stored:
            result.status = IngestionStatus.FAILED

        self._logger.info(
            f"Provider {result.provider}: fetched={result.records_fetched} "
            f"stored={result.records_stored} duplicates={result.records_skipped} "
            f"failed={result.records_failed}"
        )

    def _record_persist_failure(
        self,
        result: ProviderRunResult,
        draft: CanonicalArticle,
        e: Exception,
    ) -> None:
        error = PersistError(
            message=str(e),
            provider=draft.provider,
            url=draft.url,
            original_error=e,
        )
        result.records_failed += 1
        result.add_error(str(error))
        self._logger.error(f"Failed to persist article: {error}")

    @staticmethod
    def _resolve_source(sources: SourceRepository, draft: CanonicalArticle) -> Source:
        if draft.publisher_name:
            return sources.find_or_create_publisher_source(draft.publisher_name, draft.provider)
        return sources.find_or_create_provider_source(draft.provider, draft.source_name)

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def close(self) -> None:
        for collector in self._collectors:
            await collector.close()

    async def __aenter__(self) -> "AggregationPipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def get_health_status(self) -> Dict[str, object]:
        return {
            "active": self.provider_names,
            "disabled": list(self._disabled),
            "misconfigured": {k: v.details.get("missing", []) for k, v in self._config_errors.items()},
        }
