"""
News Ingestion - Normalizers Package.

One normalizer per provider. Each converts a decoded provider
response into CanonicalArticle drafts using ordered fallback chains.

Normalizers:
- news_api: NewsAPI (broad aggregator, publisher named per article)
- guardian: The Guardian content API
- ny_times: New York Times Top Stories / Article Search
"""

from news_ingestion.normalizers.base import (
    BaseNormalizer,
    FieldRule,
    lookup,
    parse_timestamp,
    resolve,
    rule,
    strip_by_prefix,
)
from news_ingestion.normalizers.guardian import GuardianNormalizer
from news_ingestion.normalizers.news_api import NewsApiNormalizer
from news_ingestion.normalizers.ny_times import NYTimesNormalizer


__all__ = [
    "BaseNormalizer",
    "FieldRule",
    "lookup",
    "parse_timestamp",
    "resolve",
    "rule",
    "strip_by_prefix",
    "NewsApiNormalizer",
    "GuardianNormalizer",
    "NYTimesNormalizer",
]
