"""
News Ingestion - Collectors Package.

One collector per provider. Each collector shapes provider requests,
calls ProviderClient, runs the provider normalizer and returns a
ProviderFetchResult.

Collectors:
- news_api: newsapi.org top headlines / everything
- guardian: Guardian content API search
- ny_times: NYT Top Stories / Article Search
"""

from typing import Dict, Type

from news_ingestion.collectors.base import BaseNewsCollector
from news_ingestion.collectors.guardian import GuardianCollector
from news_ingestion.collectors.news_api import NewsApiCollector
from news_ingestion.collectors.ny_times import NYTimesCollector
from news_ingestion.types import NewsProvider


COLLECTOR_REGISTRY: Dict[str, Type[BaseNewsCollector]] = {
    NewsProvider.NEWS_API.value: NewsApiCollector,
    NewsProvider.GUARDIAN.value: GuardianCollector,
    NewsProvider.NY_TIMES.value: NYTimesCollector,
}


__all__ = [
    "BaseNewsCollector",
    "NewsApiCollector",
    "GuardianCollector",
    "NYTimesCollector",
    "COLLECTOR_REGISTRY",
]
