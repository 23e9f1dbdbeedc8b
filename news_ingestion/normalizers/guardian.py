"""
News Ingestion - Guardian Normalizer.

Guardian content API search results. Article text lives under
"fields" and is only present when requested via show-fields.
"""

from typing import Any, List

from news_ingestion.normalizers.base import (
    BaseNormalizer,
    as_text,
    parse_timestamp,
    rule,
    strip_by_prefix,
)
from news_ingestion.types import NewsProvider


class GuardianNormalizer(BaseNormalizer):
    """Normalizer for Guardian /search responses."""

    provider = NewsProvider.GUARDIAN.value
    provider_name = NewsProvider.GUARDIAN.display_name

    title_chain = (
        rule("webTitle", transform=as_text),
        rule("fields", "headline", transform=as_text),
    )
    description_chain = (
        rule("fields", "trailText", transform=as_text),
    )
    body_chain = (
        rule("fields", "body", transform=as_text),
    )
    url_chain = (
        rule("webUrl", transform=as_text),
    )
    image_chain = (
        rule("fields", "thumbnail", transform=as_text),
    )
    published_chain = (
        rule("webPublicationDate", transform=parse_timestamp),
    )
    author_chain = (
        rule("fields", "byline", transform=strip_by_prefix),
    )
    category_chain = (
        rule("sectionName", transform=as_text),
        rule("section_name", transform=as_text),
    )

    def extract_items(self, response: Any) -> List[Any]:
        if not isinstance(response, dict):
            return []
        results = response.get("response", {}).get("results")
        return results if isinstance(results, list) else []
