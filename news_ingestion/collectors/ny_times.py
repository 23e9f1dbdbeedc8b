"""
News Ingestion - New York Times Collector.

Latest articles come from Top Stories, one section per request
("home" when no category is given). Top Stories is not paginated.
Searches use Article Search, whose pages are 0-based.
"""

from typing import Optional

from news_ingestion.collectors.base import BaseNewsCollector, FetchRequest
from news_ingestion.normalizers.ny_times import NYTimesNormalizer


DEFAULT_SECTION = "home"


class NYTimesCollector(BaseNewsCollector):
    """Collector for the New York Times APIs."""

    normalizer_class = NYTimesNormalizer

    def build_fetch_request(self, category_hint: Optional[str], page: int) -> FetchRequest:
        section = DEFAULT_SECTION if self.is_general(category_hint) else category_hint.strip().lower()
        endpoint = self._config.endpoints["top_stories"].format(section=section)
        return endpoint, {}

    def build_search_request(self, query: str, page: int) -> FetchRequest:
        params = self.base_params()
        params.update({"q": query, "page": max(page - 1, 0)})
        return self._config.endpoints["search"], params
