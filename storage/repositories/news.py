"""
News Repositories.

============================================================
PURPOSE
============================================================
Data access for sources, categories, authors and articles.

- find-or-create by identifying key for the lookup entities
- existence-by-url and create for articles
- read helpers used by cache warm-up (counts, pages, listings)

Repositories flush; callers commit.

============================================================
"""

import hashlib
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storage.models.base import slugify
from storage.models.news import Article, Author, Category, Source
from storage.repositories.base import BaseRepository


class SourceRepository(BaseRepository[Source]):
    """Repository for provider-level and publisher-level sources."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Source, "SourceRepository")

    def get_by_api_identifier(self, api_identifier: str) -> Optional[Source]:
        stmt = select(Source).where(Source.api_identifier == api_identifier)
        return self._execute_scalar(stmt)

    def get_by_name(self, name: str) -> Optional[Source]:
        stmt = select(Source).where(Source.name == name)
        return self._execute_scalar(stmt)

    def find_or_create_provider_source(self, identifier: str, name: str) -> Source:
        """
        Resolve the service-level source for a configured provider.

        Looks up by api_identifier first. A row with the same name and
        no api_identifier (first seen as a publisher) is claimed for the
        provider rather than duplicated.

        Args:
            identifier: Provider identifier (e.g. "guardian")
            name: Provider display name (e.g. "The Guardian")

        Returns:
            The provider source
        """
        source = self.get_by_api_identifier(identifier)
        if source is not None:
            return source

        source = self.get_by_name(name)
        if source is not None:
            if source.api_identifier is None:
                source.api_identifier = identifier
                self._session.flush()
                self._logger.info(f"Claimed source '{name}' for provider {identifier}")
            return source

        source = Source(
            name=name,
            slug=slugify(name),
            api_identifier=identifier,
            provider_identifier=identifier,
            enabled=True,
        )
        self._add(source, {"field": "api_identifier", "value": identifier})
        self._logger.info(f"Created provider source '{name}' ({identifier})")
        return source

    def find_or_create_publisher_source(self, name: str, provider_identifier: str) -> Source:
        """
        Resolve a publisher-level source named in a provider payload.

        Args:
            name: Publisher name (e.g. "Reuters")
            provider_identifier: Provider that reported the publisher

        Returns:
            The publisher source (an existing provider source if the
            names match)
        """
        source = self.get_by_name(name)
        if source is not None:
            return source

        source = Source(
            name=name,
            slug=slugify(name),
            api_identifier=None,
            provider_identifier=provider_identifier,
            enabled=True,
        )
        self._add(source, {"field": "name", "value": name})
        self._logger.debug(f"Created publisher source '{name}' via {provider_identifier}")
        return source

    def list_enabled(self) -> List[Source]:
        stmt = select(Source).where(Source.enabled.is_(True)).order_by(Source.name)
        return self._execute_query(stmt)

    def count(self) -> int:
        return self._count()


class CategoryRepository(BaseRepository[Category]):
    """Repository for article categories."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Category, "CategoryRepository")

    def find_or_create(self, name: str) -> Category:
        stmt = select(Category).where(Category.name == name)
        category = self._execute_scalar(stmt)
        if category is None:
            category = self._add(
                Category(name=name, slug=slugify(name)),
                {"field": "name", "value": name},
            )
        return category

    def count(self) -> int:
        return self._count()


class AuthorRepository(BaseRepository[Author]):
    """Repository for article authors."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Author, "AuthorRepository")

    def find_or_create(self, name: str) -> Author:
        stmt = select(Author).where(Author.name == name)
        author = self._execute_scalar(stmt)
        if author is None:
            author = self._add(Author(name=name), {"field": "name", "value": name})
        return author

    def count(self) -> int:
        return self._count()


class ArticleRepository(BaseRepository[Article]):
    """
    Repository for canonical articles.

    exists_by_url() is the fast-path dedup check; the unique
    constraint on articles.url is the authoritative guard and
    surfaces from create() as DuplicateRecordError.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, Article, "ArticleRepository")

    def exists_by_url(self, url: str) -> bool:
        stmt = select(Article.id).where(Article.url == url).limit(1)
        return self._execute_scalar(stmt) is not None

    def get_by_url(self, url: str) -> Optional[Article]:
        stmt = select(Article).where(Article.url == url)
        return self._execute_scalar(stmt)

    def create(
        self,
        title: str,
        url: str,
        published_at: datetime,
        source: Source,
        category: Optional[Category] = None,
        authors: Iterable[Author] = (),
        description: Optional[str] = None,
        content: Optional[str] = None,
        image_url: Optional[str] = None,
        fetched_at: Optional[datetime] = None,
    ) -> Article:
        """
        Insert a new article with its resolved relations.

        Args:
            title: Article title
            url: Canonical URL (unique)
            published_at: Publication time
            source: Resolved source
            category: Resolved category
            authors: Resolved authors
            description: Summary text
            content: Body text
            image_url: Lead image URL
            fetched_at: Ingestion time (default: now)

        Returns:
            The flushed Article

        Raises:
            DuplicateRecordError: If the url already exists
            RepositoryException: On other database errors
        """
        article = Article(
            title=title,
            slug=self.make_slug(title, url),
            description=description,
            content=content,
            url=url,
            image_url=image_url,
            published_at=published_at,
            fetched_at=fetched_at or datetime.now(timezone.utc),
            source=source,
            category=category,
            authors=list(authors),
        )
        return self._add(article, {"field": "url", "value": url})

    def get_paginated(self, page: int = 1, per_page: int = 20) -> List[Article]:
        """Newest-first page of articles with relations eagerly loaded."""
        page = max(page, 1)
        stmt = (
            select(Article)
            .options(
                selectinload(Article.source),
                selectinload(Article.category),
                selectinload(Article.authors),
            )
            .order_by(Article.published_at.desc(), Article.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return self._execute_query(stmt)

    def count(self) -> int:
        return self._count()

    def commit(self) -> None:
        self._commit()

    def rollback(self) -> None:
        self._rollback()

    @staticmethod
    def make_slug(title: str, url: str) -> str:
        """Title slug suffixed with a short URL hash so equal titles stay distinct."""
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]
        return f"{slugify(title, max_length=180)}-{digest}"
