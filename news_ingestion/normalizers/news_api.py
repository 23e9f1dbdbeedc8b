"""
News Ingestion - NewsAPI Normalizer.

NewsAPI is a broad aggregator: every article names the real publisher
in source.name, and no article carries a section. The category comes
from the category requested by the current fetch.
"""

from typing import Any, Dict, List, Optional

from news_ingestion.normalizers.base import (
    BaseNormalizer,
    as_text,
    parse_timestamp,
    rule,
    strip_by_prefix,
)
from news_ingestion.types import DEFAULT_CATEGORY, NewsProvider


# NewsAPI keeps placeholder entries for articles pulled by the publisher
REMOVED_MARKER = "[Removed]"


class NewsApiNormalizer(BaseNormalizer):
    """Normalizer for NewsAPI top-headlines/everything responses."""

    provider = NewsProvider.NEWS_API.value
    provider_name = NewsProvider.NEWS_API.display_name

    title_chain = (
        rule("title", transform=as_text),
    )
    description_chain = (
        rule("description", transform=as_text),
    )
    body_chain = (
        rule("content", transform=as_text),
    )
    url_chain = (
        rule("url", transform=as_text),
    )
    image_chain = (
        rule("urlToImage", transform=as_text),
    )
    published_chain = (
        rule("publishedAt", transform=parse_timestamp),
    )
    author_chain = (
        rule("author", transform=strip_by_prefix),
    )
    publisher_chain = (
        rule("source", "name", transform=as_text),
    )

    def extract_items(self, response: Any) -> List[Any]:
        if not isinstance(response, dict):
            return []
        articles = response.get("articles")
        if not isinstance(articles, list):
            return []
        return [
            item for item in articles
            if not (isinstance(item, dict) and item.get("title") == REMOVED_MARKER)
        ]

    def resolve_category(self, item: Dict[str, Any], category_hint: Optional[str]) -> str:
        if category_hint and category_hint.strip():
            return category_hint.strip().title()
        return DEFAULT_CATEGORY
