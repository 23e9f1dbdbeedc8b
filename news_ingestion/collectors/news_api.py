"""
News Ingestion - NewsAPI Collector.

Latest articles come from /top-headlines (optionally filtered by
category); searches go to /everything, which rejects the country
parameter.
"""

from typing import Optional

from news_ingestion.collectors.base import BaseNewsCollector, FetchRequest
from news_ingestion.normalizers.news_api import NewsApiNormalizer


class NewsApiCollector(BaseNewsCollector):
    """Collector for newsapi.org."""

    normalizer_class = NewsApiNormalizer

    def build_fetch_request(self, category_hint: Optional[str], page: int) -> FetchRequest:
        params = self.base_params()
        params["page"] = page
        if not self.is_general(category_hint):
            params["category"] = category_hint.strip().lower()
        return self._config.endpoints["top_headlines"], params

    def build_search_request(self, query: str, page: int) -> FetchRequest:
        params = self.base_params(exclude=("country",))
        params.update({"q": query, "page": page, "sortBy": "publishedAt"})
        return self._config.endpoints["everything"], params
