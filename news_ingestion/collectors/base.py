"""
News Ingestion - Base Collector.

============================================================
PURPOSE
============================================================
Abstract base class for per-provider news collectors.

A collector pairs one ProviderClient with one normalizer and turns
a fetch request into a ProviderFetchResult. It never raises for
provider failures: typed errors come back inside the result so the
pipeline can match on ok/failed explicitly.

============================================================
DESIGN PRINCIPLES
============================================================
- No persistence - fetch and normalize only
- Raw provider responses are cached when a CacheManager is given;
  failures are never cached
- Provider-specific request shaping lives in subclasses
- No shared mutable state between collectors

============================================================
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import httpx

from caching.manager import CacheManager, api_response_key
from news_ingestion.client import ProviderClient, SleepFunc
from news_ingestion.config import ProviderConfig
from news_ingestion.exceptions import NetworkError, ProviderError
from news_ingestion.normalizers.base import BaseNormalizer
from news_ingestion.types import ProviderFetchResult


# (endpoint path, query parameters)
FetchRequest = Tuple[str, Dict[str, Any]]


class BaseNewsCollector(ABC):
    """
    Abstract base class for news collectors.

    ============================================================
    LIFECYCLE
    ============================================================
    1. Initialize with a provider config (validated immediately)
    2. Call fetch_articles() or search_articles()
    3. Inspect the returned ProviderFetchResult
    4. close() when done

    ============================================================
    """

    normalizer_class = BaseNormalizer

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
        cache_manager: Optional[CacheManager] = None,
    ) -> None:
        """
        Initialize the collector.

        Args:
            config: Provider configuration
            http_client: Shared AsyncClient
            sleep: Awaitable sleep used between retries
            cache_manager: Caches raw responses per endpoint and params

        Raises:
            ConfigurationError: If the configuration is incomplete
        """
        self._config = config
        self._client = ProviderClient(config, http_client=http_client, sleep=sleep)
        self._normalizer = self.normalizer_class()
        self._cache_manager = cache_manager
        self._logger = logging.getLogger(f"collector.{config.identifier}")

    @property
    def provider(self) -> str:
        return self._config.identifier

    @property
    def provider_name(self) -> str:
        return self._config.name

    @property
    def is_enabled(self) -> bool:
        return self._config.enabled

    @property
    def client(self) -> ProviderClient:
        return self._client

    # =========================================================
    # ABSTRACT METHODS - Must be implemented by subclasses
    # =========================================================

    @abstractmethod
    def build_fetch_request(self, category_hint: Optional[str], page: int) -> FetchRequest:
        """
        Build the endpoint and parameters for a latest-articles fetch.

        Args:
            category_hint: Category requested by the caller, if any
            page: 1-based page number

        Returns:
            (endpoint path, query parameters)
        """
        pass

    @abstractmethod
    def build_search_request(self, query: str, page: int) -> FetchRequest:
        """Build the endpoint and parameters for a keyword search."""
        pass

    # =========================================================
    # FETCH WORKFLOW
    # =========================================================

    async def fetch_articles(
        self,
        category_hint: Optional[str] = None,
        page: int = 1,
    ) -> ProviderFetchResult:
        """
        Fetch and normalize the latest articles.

        Args:
            category_hint: Optional category to restrict the fetch to
            page: 1-based page number

        Returns:
            ProviderFetchResult with drafts, or with the typed error
        """
        endpoint, params = self.build_fetch_request(category_hint, page)
        return await self._run(endpoint, params, category_hint)

    async def search_articles(self, query: str, page: int = 1) -> ProviderFetchResult:
        """
        Search the provider by keyword and normalize the results.

        Args:
            query: Search terms
            page: 1-based page number

        Returns:
            ProviderFetchResult with drafts, or with the typed error
        """
        endpoint, params = self.build_search_request(query, page)
        return await self._run(endpoint, params, None)

    async def _run(
        self,
        endpoint: str,
        params: Dict[str, Any],
        category_hint: Optional[str],
    ) -> ProviderFetchResult:
        started = time.perf_counter()
        try:
            response = await self._fetch_response(endpoint, params)
        except ProviderError as e:
            return ProviderFetchResult.failed(self.provider, e, self._elapsed_ms(started))
        except httpx.HTTPError as e:
            error = NetworkError(
                message=f"Request error: {e}",
                provider=self.provider,
                endpoint=endpoint,
                original_error=e,
            )
            return ProviderFetchResult.failed(self.provider, error, self._elapsed_ms(started))

        drafts = self._normalizer.normalize(
            response,
            category_hint=category_hint,
            ingested_at=datetime.now(timezone.utc),
        )
        duration_ms = self._elapsed_ms(started)
        self._logger.info(
            f"Normalized {len(drafts)} articles from {self.provider} {endpoint} "
            f"(duration_ms={duration_ms})"
        )
        return ProviderFetchResult.ok(self.provider, drafts, duration_ms)

    async def _fetch_response(self, endpoint: str, params: Dict[str, Any]) -> Any:
        if self._cache_manager is None:
            return await self._client.fetch(endpoint, params)
        key = api_response_key(f"{self.provider}:{endpoint}", params)
        return await self._cache_manager.aremember_api_response(
            key, None, lambda: self._client.fetch(endpoint, params)
        )

    # =========================================================
    # UTILITY METHODS
    # =========================================================

    def base_params(self, exclude: Tuple[str, ...] = ()) -> Dict[str, Any]:
        """Copy of the configured default parameters minus the excluded keys."""
        return {k: v for k, v in self._config.default_params.items() if k not in exclude}

    @staticmethod
    def is_general(category_hint: Optional[str]) -> bool:
        return not category_hint or category_hint.strip().lower() == "general"

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    async def close(self) -> None:
        await self._client.close()

    def get_health_status(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "name": self.provider_name,
            "enabled": self.is_enabled,
        }
