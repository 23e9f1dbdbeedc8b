"""
News Ingestion - Background Fetch Job.

Wraps one AggregationPipeline run with the job-level try budget and
timeout. This budget is independent of ProviderClient's own retries:
a try fails only when the whole run raises or exceeds the timeout.
A timed-out run is abandoned; articles it already committed stay.
"""

import asyncio
import logging
from typing import Optional

from news_ingestion.config import JobConfig
from news_ingestion.exceptions import JobFailedError
from news_ingestion.pipeline import AggregationPipeline


class FetchArticlesJob:
    """Dispatchable "run ingestion" job."""

    def __init__(
        self,
        pipeline: AggregationPipeline,
        category_hint: Optional[str] = None,
        config: Optional[JobConfig] = None,
    ) -> None:
        self._pipeline = pipeline
        self._category_hint = category_hint
        self._config = config or JobConfig()
        self._logger = logging.getLogger("ingestion_job")

    @property
    def tries(self) -> int:
        return self._config.tries

    @property
    def timeout_seconds(self) -> float:
        return self._config.timeout_seconds

    async def handle(self) -> int:
        """
        Run the ingestion with up to `tries` attempts.

        Returns:
            Number of newly persisted articles

        Raises:
            JobFailedError: When every try failed or timed out
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self._config.tries + 1):
            try:
                total = await asyncio.wait_for(
                    self._pipeline.run_ingestion(self._category_hint),
                    timeout=self._config.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                last_error = e
                self._logger.warning(
                    f"Ingestion attempt {attempt}/{self._config.tries} timed out "
                    f"after {self._config.timeout_seconds}s"
                )
                continue
            except Exception as e:
                last_error = e
                self._logger.warning(f"Ingestion attempt {attempt}/{self._config.tries} failed: {e}")
                continue

            self._logger.info(
                f"Fetched {total} new articles (category={self._category_hint or 'general'})"
            )
            return total

        self.failed(last_error)
        raise JobFailedError(
            f"Ingestion failed after {self._config.tries} tries",
            tries=self._config.tries,
            last_error=last_error,
        ) from last_error

    def failed(self, error: Optional[BaseException]) -> None:
        """Terminal failure hook, logged once."""
        self._logger.error(
            f"Fetch articles job failed permanently "
            f"(category={self._category_hint or 'general'}): {error!r}"
        )
