"""Test helpers shared across test packages."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

import httpx

from news_ingestion.config import ProviderConfig
from news_ingestion.types import CanonicalArticle


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "news_api": {
        "name": "News API",
        "base_url": "https://newsapi.test/v2",
        "endpoints": {"top_headlines": "top-headlines", "everything": "everything"},
        "default_params": {"country": "us", "pageSize": 50, "language": "en"},
        "api_key_param": "apiKey",
    },
    "guardian": {
        "name": "The Guardian",
        "base_url": "https://guardian.test",
        "endpoints": {"search": "search"},
        "default_params": {"page-size": 50, "order-by": "newest"},
    },
    "ny_times": {
        "name": "New York Times",
        "base_url": "https://nyt.test/svc",
        "endpoints": {
            "top_stories": "topstories/v2/{section}.json",
            "search": "search/v2/articlesearch.json",
        },
        "default_params": {"sort": "newest"},
    },
}


def make_provider_config(identifier: str = "news_api", **overrides: Any) -> ProviderConfig:
    """Fully populated config for one provider; override any field."""
    values = dict(PROVIDER_DEFAULTS[identifier])
    values.update({"identifier": identifier, "api_key": "test-key"})
    values.update(overrides)
    return ProviderConfig(**values)


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_draft(url: str, provider: str = "guardian", **overrides: Any) -> CanonicalArticle:
    values: Dict[str, Any] = {
        "title": f"Story at {url}",
        "url": url,
        "published_at": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        "source_name": "The Guardian",
        "provider": provider,
        "author_name": "Jane Doe",
        "category_name": "World",
    }
    values.update(overrides)
    return CanonicalArticle(**values)
