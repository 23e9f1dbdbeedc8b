"""
Storage Models Package.

ORM models for the news store.

============================================================
MODEL ORGANIZATION
============================================================
- base.py: Base, TimestampMixin, slugify
- news.py: Source, Category, Author, Article, article_author

============================================================
"""

from storage.models.base import Base, TimestampMixin, slugify
from storage.models.news import Article, Author, Category, Source, article_author


__all__ = [
    "Base",
    "TimestampMixin",
    "slugify",
    "Source",
    "Category",
    "Author",
    "Article",
    "article_author",
]
