"""
News Ingestion - Base Normalizer.

============================================================
PURPOSE
============================================================
Converts a decoded provider response into CanonicalArticle drafts.

Each canonical attribute is resolved through a fixed, ordered chain
of FieldRule(path, transform) pairs. The first rule whose path is
present and non-empty wins; if none match, the attribute's default
applies. Normalization never raises: malformed items degrade to
defaults, and items without a URL are dropped.

============================================================
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from news_ingestion.types import (
    DEFAULT_AUTHOR,
    DEFAULT_CATEGORY,
    DEFAULT_TITLE,
    CanonicalArticle,
)


PathElement = Union[str, int]
Transform = Callable[[Any], Any]

_MISSING = object()
_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


@dataclass(frozen=True)
class FieldRule:
    """One step of a fallback chain: a path into the item and an optional transform."""
    path: Tuple[PathElement, ...]
    transform: Optional[Transform] = None


def rule(*path: PathElement, transform: Optional[Transform] = None) -> FieldRule:
    return FieldRule(path=tuple(path), transform=transform)


def lookup(item: Any, path: Sequence[PathElement]) -> Any:
    """Walk a path of dict keys / list indexes; return _MISSING on any miss."""
    current = item
    for element in path:
        if isinstance(element, int):
            if not isinstance(current, list) or not -len(current) <= element < len(current):
                return _MISSING
            current = current[element]
        else:
            if not isinstance(current, dict) or element not in current:
                return _MISSING
            current = current[element]
    return current


def _is_present(value: Any) -> bool:
    if value is _MISSING or value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def resolve(item: Dict[str, Any], chain: Sequence[FieldRule], default: Any = None) -> Any:
    """
    Evaluate a fallback chain against an item.

    A transform that raises or yields an empty value counts as a miss,
    and evaluation moves on to the next rule.
    """
    for field_rule in chain:
        value = lookup(item, field_rule.path)
        if not _is_present(value):
            continue
        if field_rule.transform is not None:
            try:
                value = field_rule.transform(value)
            except (TypeError, ValueError, AttributeError, OverflowError):
                continue
            if not _is_present(value):
                continue
        if isinstance(value, str):
            value = value.strip()
        return value
    return default


# =============================================================
# SHARED TRANSFORMS
# =============================================================

def strip_by_prefix(value: Any) -> Optional[str]:
    """Drop a leading "By " from a byline string."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if value.startswith("By "):
        return value[3:].strip()
    return value


def as_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse ISO 8601 or RFC 2822 timestamps into aware UTC datetimes.

    Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _COMPACT_OFFSET.sub(r"\1:\2", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = parsedate_to_datetime(value)
            except (TypeError, ValueError):
                return None
            if parsed is None:
                return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # offsets near datetime.min/max fall outside the representable range
        return None


# =============================================================
# BASE NORMALIZER
# =============================================================

class BaseNormalizer(ABC):
    """
    Abstract base class for provider normalizers.

    Subclasses declare one fallback chain per canonical attribute and
    say where the item list lives in the response document.
    """

    provider: str = ""
    provider_name: str = ""

    title_chain: Tuple[FieldRule, ...] = ()
    description_chain: Tuple[FieldRule, ...] = ()
    body_chain: Tuple[FieldRule, ...] = ()
    url_chain: Tuple[FieldRule, ...] = ()
    image_chain: Tuple[FieldRule, ...] = ()
    published_chain: Tuple[FieldRule, ...] = ()
    author_chain: Tuple[FieldRule, ...] = ()
    category_chain: Tuple[FieldRule, ...] = ()
    publisher_chain: Tuple[FieldRule, ...] = ()

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"normalizer.{self.provider}")

    @abstractmethod
    def extract_items(self, response: Any) -> List[Any]:
        """Return the raw item list from a decoded response."""
        pass

    def normalize(
        self,
        response: Any,
        category_hint: Optional[str] = None,
        ingested_at: Optional[datetime] = None,
    ) -> List[CanonicalArticle]:
        """
        Convert a decoded provider response into canonical drafts.

        Args:
            response: Decoded JSON document
            category_hint: Category requested by the current fetch
            ingested_at: Fallback publication time (default: now)

        Returns:
            Drafts in response order
        """
        ingested_at = ingested_at or datetime.now(timezone.utc)
        try:
            items = self.extract_items(response)
        except (TypeError, KeyError, AttributeError):
            items = []

        drafts: List[CanonicalArticle] = []
        dropped = 0
        for item in items:
            if not isinstance(item, dict):
                dropped += 1
                continue
            draft = self.normalize_item(item, category_hint, ingested_at)
            if draft is None:
                dropped += 1
                continue
            drafts.append(draft)

        if dropped:
            self._logger.debug(f"Dropped {dropped} {self.provider} items without a usable URL")
        return drafts

    def normalize_item(
        self,
        item: Dict[str, Any],
        category_hint: Optional[str],
        ingested_at: datetime,
    ) -> Optional[CanonicalArticle]:
        url = resolve(item, self.url_chain)
        if not isinstance(url, str) or not url:
            return None

        published_at = resolve(item, self.published_chain)
        if not isinstance(published_at, datetime):
            published_at = ingested_at

        publisher = resolve(item, self.publisher_chain)

        return CanonicalArticle(
            title=resolve(item, self.title_chain, DEFAULT_TITLE),
            url=url,
            published_at=published_at,
            source_name=publisher or self.provider_name,
            provider=self.provider,
            author_name=resolve(item, self.author_chain, DEFAULT_AUTHOR),
            category_name=self.resolve_category(item, category_hint),
            description=resolve(item, self.description_chain),
            body=resolve(item, self.body_chain),
            image_url=resolve(item, self.image_chain),
            publisher_name=publisher,
        )

    def resolve_category(self, item: Dict[str, Any], category_hint: Optional[str]) -> str:
        return resolve(item, self.category_chain, DEFAULT_CATEGORY)
