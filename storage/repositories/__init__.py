"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The repository layer is the only gateway to persistent storage.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. One repository per entity kind
2. Session Injection: sessions are injected, not created internally
3. Explicit Methods: clear method names, no generic 'execute'
4. Exception Handling: all DB errors wrapped in repository exceptions

============================================================
"""

from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    RepositoryException,
    TransactionError,
)
from storage.repositories.news import (
    ArticleRepository,
    AuthorRepository,
    CategoryRepository,
    SourceRepository,
)


__all__ = [
    "BaseRepository",
    "SourceRepository",
    "CategoryRepository",
    "AuthorRepository",
    "ArticleRepository",
    "RepositoryException",
    "DuplicateRecordError",
    "IntegrityError",
    "DatabaseConnectionError",
    "QueryError",
    "TransactionError",
]
