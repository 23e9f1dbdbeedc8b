"""
News Domain Models.

============================================================
TABLES
============================================================
- sources: provider-level and publisher-level sources
- categories: article categories (find-or-create by name)
- authors: article authors (find-or-create by name)
- articles: canonical articles; url is the dedup key
- article_author: many-to-many between articles and authors

============================================================
SOURCE RESOLUTION
============================================================
A provider-level source carries api_identifier (one per
configured provider). A publisher-level source is created from a
publisher name embedded in the provider payload; its
api_identifier is NULL and provider_identifier records which
provider first reported it.

============================================================
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.models.base import Base, TimestampMixin


article_author = Table(
    "article_author",
    Base.metadata,
    Column("article_id", ForeignKey("articles.id", ondelete="CASCADE"), nullable=False),
    Column("author_id", ForeignKey("authors.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("article_id", "author_id", name="uq_article_author"),
)


class Source(Base, TimestampMixin):
    """A news source: a configured provider or a publisher it reports."""

    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    api_identifier: Mapped[Optional[str]] = mapped_column(
        String(100), unique=True, nullable=True,
        comment="Configured provider identifier; NULL for publisher sources"
    )
    provider_identifier: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, index=True,
        comment="Provider that created this source"
    )
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    articles: Mapped[List["Article"]] = relationship(back_populates="source")

    def __repr__(self) -> str:
        return f"<Source(id={self.id}, name='{self.name}', api_identifier={self.api_identifier})>"


class Category(Base, TimestampMixin):
    """Article category."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    articles: Mapped[List["Article"]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}')>"


class Author(Base, TimestampMixin):
    """Article author."""

    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    articles: Mapped[List["Article"]] = relationship(
        secondary=article_author, back_populates="authors"
    )

    def __repr__(self) -> str:
        return f"<Author(id={self.id}, name='{self.name}')>"


class Article(Base, TimestampMixin):
    """Canonical article. The url unique constraint is the dedup guard."""

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    published_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    fetched_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    source_id: Mapped[int] = mapped_column(
        ForeignKey("sources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    source: Mapped[Source] = relationship(back_populates="articles")
    category: Mapped[Optional[Category]] = relationship(back_populates="articles")
    authors: Mapped[List[Author]] = relationship(
        secondary=article_author, back_populates="articles"
    )

    def __repr__(self) -> str:
        return f"<Article(id={self.id}, url='{self.url}')>"
