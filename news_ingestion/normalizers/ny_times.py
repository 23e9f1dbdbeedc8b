"""
News Ingestion - New York Times Normalizer.

Handles both Top Stories (results[]) and Article Search
(response.docs[]) payloads, which name the same data differently.
"""

from typing import Any, List, Optional

from news_ingestion.normalizers.base import (
    BaseNormalizer,
    as_text,
    parse_timestamp,
    rule,
    strip_by_prefix,
)
from news_ingestion.types import NewsProvider


NYT_MEDIA_BASE = "https://www.nytimes.com/"


def absolute_media_url(value: Any) -> Optional[str]:
    """Article Search returns multimedia paths relative to nytimes.com."""
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    if value.startswith(("http://", "https://")):
        return value
    return NYT_MEDIA_BASE + value.lstrip("/")


class NYTimesNormalizer(BaseNormalizer):
    """Normalizer for NYT Top Stories and Article Search responses."""

    provider = NewsProvider.NY_TIMES.value
    provider_name = NewsProvider.NY_TIMES.display_name

    title_chain = (
        rule("title", transform=as_text),
        rule("headline", "main", transform=as_text),
    )
    description_chain = (
        rule("abstract", transform=as_text),
        rule("snippet", transform=as_text),
    )
    body_chain = (
        rule("lead_paragraph", transform=as_text),
    )
    url_chain = (
        rule("url", transform=as_text),
        rule("web_url", transform=as_text),
    )
    image_chain = (
        rule("multimedia", 0, "url", transform=absolute_media_url),
        rule("multimedia", "default", "url", transform=absolute_media_url),
    )
    published_chain = (
        rule("published_date", transform=parse_timestamp),
        rule("pub_date", transform=parse_timestamp),
    )
    author_chain = (
        rule("byline", "original", transform=strip_by_prefix),
        rule("byline", transform=strip_by_prefix),
    )
    category_chain = (
        rule("section", transform=as_text),
        rule("section_name", transform=as_text),
        rule("news_desk", transform=as_text),
    )

    def extract_items(self, response: Any) -> List[Any]:
        if not isinstance(response, dict):
            return []
        results = response.get("results")
        if isinstance(results, list):
            return results
        docs = (response.get("response") or {}).get("docs")
        return docs if isinstance(docs, list) else []
