"""
News Ingestion - Provider Client.

============================================================
RESPONSIBILITY
============================================================
Performs one HTTP GET against one provider endpoint.

- Attaches the provider API key
- Retries connection failures and 5xx with linear backoff
- Honors Retry-After on HTTP 429 on a separate retry budget
- Classifies failures into typed ProviderError subclasses
- Logs every outcome with attempt count and duration

============================================================
RETRY POLICY
============================================================
- Connection failure: backoff_base * attempt, up to max_attempts,
  then NetworkError
- HTTP 5xx: same budget as connection failures, then Unavailable
- HTTP 429: sleep Retry-After (or the fallback) and retry; does not
  consume max_attempts; after max_rate_limit_retries -> RateLimited
- HTTP 401/403: AuthError immediately
- Other 4xx: RequestRejected immediately

============================================================
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from news_ingestion.config import ProviderConfig
from news_ingestion.exceptions import (
    AuthError,
    InvalidResponse,
    NetworkError,
    RateLimited,
    RequestRejected,
    Unavailable,
)


SleepFunc = Callable[[float], Awaitable[None]]


class ProviderClient:
    """
    HTTP client bound to a single provider configuration.

    The configuration is validated on construction; an incomplete
    configuration raises ConfigurationError before any request is made.
    """

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Provider configuration
            http_client: Shared AsyncClient (created lazily if omitted)
            sleep: Awaitable sleep used between retries

        Raises:
            ConfigurationError: If the configuration is incomplete
        """
        config.validate()
        self._config = config
        self._http_client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep or asyncio.sleep
        self._logger = logging.getLogger(f"provider_client.{config.identifier}")

    @property
    def provider(self) -> str:
        return self._config.identifier

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def build_url(self, endpoint: str) -> str:
        """Join the configured base URL and an endpoint path."""
        return f"{self._config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    # =========================================================
    # REQUEST
    # =========================================================

    async def fetch(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET an endpoint and return the decoded JSON document.

        Args:
            endpoint: Endpoint path relative to the base URL
            params: Query parameters (the API key is added here)

        Returns:
            Decoded JSON response body

        Raises:
            AuthError, RateLimited, Unavailable, NetworkError,
            RequestRejected, InvalidResponse
        """
        url = self.build_url(endpoint)
        query = dict(params or {})
        query[self._config.api_key_param] = self._config.api_key

        client = self._get_client()
        started = time.perf_counter()
        failures = 0
        rate_limit_retries = 0
        requests_made = 0

        while True:
            requests_made += 1
            try:
                response = await client.get(url, params=query, timeout=self._config.timeout_seconds)
            except httpx.TransportError as e:
                failures += 1
                self._logger.warning(
                    f"Connection failed for {self.provider} {endpoint} "
                    f"(attempt {failures}/{self._config.max_attempts}): {e}"
                )
                if failures >= self._config.max_attempts:
                    duration_ms = self._elapsed_ms(started)
                    self._logger.error(
                        f"Giving up on {self.provider} {endpoint} after {failures} attempts "
                        f"in {duration_ms}ms"
                    )
                    raise NetworkError(
                        message=f"Connection failed after {failures} attempts: {e}",
                        provider=self.provider,
                        endpoint=endpoint,
                        attempts=failures,
                        duration_ms=duration_ms,
                        original_error=e,
                    ) from e
                await self._sleep(self._config.backoff_base_seconds * failures)
                continue

            status = response.status_code

            if 200 <= status < 300:
                duration_ms = self._elapsed_ms(started)
                try:
                    payload = response.json()
                except ValueError as e:
                    self._logger.error(
                        f"Undecodable response from {self.provider} {endpoint} "
                        f"(status={status}, duration_ms={duration_ms})"
                    )
                    raise InvalidResponse(
                        message=f"Response body is not JSON: {e}",
                        provider=self.provider,
                        endpoint=endpoint,
                        attempts=requests_made,
                        duration_ms=duration_ms,
                        original_error=e,
                    ) from e
                self._logger.info(
                    f"Request to {self.provider} {endpoint} succeeded "
                    f"(status={status}, attempts={requests_made}, duration_ms={duration_ms})"
                )
                return payload

            if status == 429:
                retry_after = self._parse_retry_after(response.headers.get("Retry-After"))
                if rate_limit_retries >= self._config.max_rate_limit_retries:
                    duration_ms = self._elapsed_ms(started)
                    self._logger.error(
                        f"Rate limit persisted for {self.provider} {endpoint} "
                        f"(attempts={requests_made}, duration_ms={duration_ms})"
                    )
                    raise RateLimited(
                        message=f"Rate limited after {rate_limit_retries} waits",
                        retry_after_seconds=retry_after,
                        provider=self.provider,
                        endpoint=endpoint,
                        attempts=requests_made,
                        duration_ms=duration_ms,
                    )
                rate_limit_retries += 1
                self._logger.warning(
                    f"Rate limited by {self.provider} {endpoint}, waiting {retry_after:.1f}s "
                    f"({rate_limit_retries}/{self._config.max_rate_limit_retries})"
                )
                await self._sleep(retry_after)
                continue

            if status in (401, 403):
                duration_ms = self._elapsed_ms(started)
                self._logger.error(
                    f"Credential rejected by {self.provider} {endpoint} "
                    f"(status={status}, attempts={requests_made}, duration_ms={duration_ms})"
                )
                raise AuthError(
                    message=f"Invalid or missing API key (HTTP {status})",
                    provider=self.provider,
                    endpoint=endpoint,
                    attempts=requests_made,
                    duration_ms=duration_ms,
                    details={"status_code": status},
                )

            if status >= 500:
                failures += 1
                self._logger.warning(
                    f"{self.provider} {endpoint} returned {status} "
                    f"(attempt {failures}/{self._config.max_attempts})"
                )
                if failures >= self._config.max_attempts:
                    duration_ms = self._elapsed_ms(started)
                    self._logger.error(
                        f"{self.provider} {endpoint} unavailable after {failures} attempts "
                        f"(status={status}, duration_ms={duration_ms})"
                    )
                    raise Unavailable(
                        message=f"Provider unavailable (HTTP {status})",
                        status_code=status,
                        provider=self.provider,
                        endpoint=endpoint,
                        attempts=failures,
                        duration_ms=duration_ms,
                        details={"response_body": response.text[:200]},
                    )
                await self._sleep(self._config.backoff_base_seconds * failures)
                continue

            duration_ms = self._elapsed_ms(started)
            self._logger.error(
                f"{self.provider} {endpoint} rejected request "
                f"(status={status}, attempts={requests_made}, duration_ms={duration_ms})"
            )
            raise RequestRejected(
                message=f"Request rejected (HTTP {status})",
                status_code=status,
                provider=self.provider,
                endpoint=endpoint,
                attempts=requests_made,
                duration_ms=duration_ms,
                details={"response_body": response.text[:200]},
            )

    # =========================================================
    # HELPERS
    # =========================================================

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
        return self._http_client

    def _parse_retry_after(self, value: Optional[str]) -> float:
        """Seconds to wait from a Retry-After header (delta or HTTP date)."""
        fallback = self._config.rate_limit_fallback_seconds
        if not value:
            return fallback

        try:
            seconds = float(value)
        except ValueError:
            try:
                retry_at = parsedate_to_datetime(value)
            except (TypeError, ValueError):
                return fallback
            if retry_at.tzinfo is None:
                retry_at = retry_at.replace(tzinfo=timezone.utc)
            seconds = (retry_at - datetime.now(timezone.utc)).total_seconds()

        return min(max(seconds, 0.0), self._config.max_retry_after_seconds)

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
