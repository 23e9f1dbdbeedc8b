"""
News Ingestion - Guardian Collector.

Both latest articles and searches use /search; a category hint maps
to the Guardian "section" filter.
"""

from typing import Optional

from news_ingestion.collectors.base import BaseNewsCollector, FetchRequest
from news_ingestion.normalizers.guardian import GuardianNormalizer


class GuardianCollector(BaseNewsCollector):
    """Collector for the Guardian content API."""

    normalizer_class = GuardianNormalizer

    def build_fetch_request(self, category_hint: Optional[str], page: int) -> FetchRequest:
        params = self.base_params()
        params["page"] = page
        if not self.is_general(category_hint):
            params["section"] = category_hint.strip().lower()
        return self._config.endpoints["search"], params

    def build_search_request(self, query: str, page: int) -> FetchRequest:
        params = self.base_params()
        params.update({"q": query, "page": page})
        return self._config.endpoints["search"], params
