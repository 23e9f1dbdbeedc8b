"""
Default Cache Warm-Up Plan.

Hot keys pre-populated at startup or on demand:
- stats: total_articles, total_sources, total_categories, total_authors
- api responses: first page of articles (20 per page), enabled sources
- models: the ten most recent articles

Producers open their own session and return JSON-ready data.
"""

from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session, sessionmaker

from caching.manager import (
    TAG_API_RESPONSES,
    TAG_ARTICLES,
    TAG_SOURCES,
    TAG_STATS,
    WarmUpTask,
    api_response_key,
)
from news_ingestion.config import CacheConfig
from storage.database import get_db_session
from storage.models.news import Article, Source
from storage.repositories.news import (
    ArticleRepository,
    AuthorRepository,
    CategoryRepository,
    SourceRepository,
)


ARTICLES_PER_PAGE = 20
RECENT_ARTICLES = 10


def article_to_dict(article: Article) -> Dict[str, Any]:
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "description": article.description,
        "url": article.url,
        "image_url": article.image_url,
        "published_at": article.published_at.isoformat() if article.published_at else None,
        "source": article.source.name if article.source else None,
        "category": article.category.name if article.category else None,
        "authors": [author.name for author in article.authors],
    }


def source_to_dict(source: Source) -> Dict[str, Any]:
    return {
        "id": source.id,
        "name": source.name,
        "slug": source.slug,
        "api_identifier": source.api_identifier,
        "enabled": source.enabled,
    }


def _with_session(session_factory: sessionmaker, work: Callable[[Session], Any]) -> Callable[[], Any]:
    def producer() -> Any:
        with get_db_session(session_factory) as session:
            return work(session)
    return producer


def build_default_warmup_plan(
    session_factory: sessionmaker,
    config: CacheConfig,
) -> List[WarmUpTask]:
    """
    Build the default warm-up tasks.

    Args:
        session_factory: Factory for read sessions
        config: Cache TTL settings

    Returns:
        Warm-up tasks in execution order
    """
    counters = {
        "total_articles": ArticleRepository,
        "total_sources": SourceRepository,
        "total_categories": CategoryRepository,
        "total_authors": AuthorRepository,
    }

    tasks = [
        WarmUpTask(
            name=name,
            key=f"stats:{name}",
            producer=_with_session(session_factory, lambda s, repo=repo: repo(s).count()),
            ttl=config.stats_ttl,
            tags=(TAG_STATS,),
        )
        for name, repo in counters.items()
    ]

    tasks.append(WarmUpTask(
        name="articles",
        key=api_response_key("articles", {"page": 1, "per_page": ARTICLES_PER_PAGE}),
        producer=_with_session(
            session_factory,
            lambda s: [
                article_to_dict(a)
                for a in ArticleRepository(s).get_paginated(page=1, per_page=ARTICLES_PER_PAGE)
            ],
        ),
        ttl=config.api_response_ttl,
        tags=(TAG_API_RESPONSES, TAG_ARTICLES),
    ))

    tasks.append(WarmUpTask(
        name="sources",
        key=api_response_key("sources", {}),
        producer=_with_session(
            session_factory,
            lambda s: [source_to_dict(src) for src in SourceRepository(s).list_enabled()],
        ),
        ttl=config.api_response_ttl,
        tags=(TAG_API_RESPONSES, TAG_SOURCES),
    ))

    tasks.append(WarmUpTask(
        name="recent_articles",
        key="articles:recent",
        producer=_with_session(
            session_factory,
            lambda s: [
                article_to_dict(a)
                for a in ArticleRepository(s).get_paginated(page=1, per_page=RECENT_ARTICLES)
            ],
        ),
        ttl=config.model_ttl,
        tags=(TAG_ARTICLES,),
    ))

    return tasks
