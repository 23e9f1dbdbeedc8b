"""
Cache Invalidation Observers.

Turns committed mutations of sources, categories, authors and
articles into tag invalidations. Articles embed denormalized
references to the other three kinds, so every mutation also flushes
"articles" and "stats".

Tags are collected after each flush and only acted on after commit;
a rollback discards them.
"""

import logging
from typing import Dict, Set, Type

from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker

from caching.manager import (
    TAG_ARTICLES,
    TAG_AUTHORS,
    TAG_CATEGORIES,
    TAG_SOURCES,
    TAG_STATS,
    CacheManager,
)
from storage.models.news import Article, Author, Category, Source


logger = logging.getLogger("cache_observer")

MODEL_TAGS: Dict[Type, str] = {
    Source: TAG_SOURCES,
    Category: TAG_CATEGORIES,
    Author: TAG_AUTHORS,
    Article: TAG_ARTICLES,
}

_PENDING_KEY = "cache_invalidation_tags"


class CacheInvalidationObserver:
    """Session event listeners bound to one session factory."""

    def __init__(self, session_factory: sessionmaker, cache_manager: CacheManager) -> None:
        self._session_factory = session_factory
        self._cache_manager = cache_manager
        self._registered = False

    def register(self) -> "CacheInvalidationObserver":
        if not self._registered:
            event.listen(self._session_factory, "after_flush", self._after_flush)
            event.listen(self._session_factory, "after_commit", self._after_commit)
            event.listen(self._session_factory, "after_rollback", self._after_rollback)
            self._registered = True
        return self

    def remove(self) -> None:
        if self._registered:
            event.remove(self._session_factory, "after_flush", self._after_flush)
            event.remove(self._session_factory, "after_commit", self._after_commit)
            event.remove(self._session_factory, "after_rollback", self._after_rollback)
            self._registered = False

    def _after_flush(self, session: Session, flush_context) -> None:
        pending: Set[str] = session.info.setdefault(_PENDING_KEY, set())
        for obj in list(session.new) + list(session.dirty) + list(session.deleted):
            tag = MODEL_TAGS.get(type(obj))
            if tag is not None:
                pending.add(tag)

    def _after_commit(self, session: Session) -> None:
        pending = session.info.pop(_PENDING_KEY, None)
        if not pending:
            return
        tags = set(pending) | {TAG_ARTICLES, TAG_STATS}
        logger.debug(f"Committed changes to {sorted(pending)}, invalidating {sorted(tags)}")
        self._cache_manager.invalidate_tags(tags)

    def _after_rollback(self, session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)


def register_cache_invalidation(
    session_factory: sessionmaker,
    cache_manager: CacheManager,
) -> CacheInvalidationObserver:
    """
    Install invalidation hooks on every session the factory creates.

    Returns:
        The observer; call remove() to uninstall
    """
    return CacheInvalidationObserver(session_factory, cache_manager).register()
