"""
News Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the news ingestion layer.

- Provider identifiers
- Canonical article draft
- Per-provider fetch and run results
- Run-level ingestion report

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable drafts, mutable result accumulators
- No I/O
- Serializable for logging

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from news_ingestion.exceptions import ProviderError


# =============================================================
# ENUMS
# =============================================================

class NewsProvider(str, Enum):
    """Identifiers for the configured news providers."""
    NEWS_API = "news_api"
    GUARDIAN = "guardian"
    NY_TIMES = "ny_times"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    NewsProvider.NEWS_API: "News API",
    NewsProvider.GUARDIAN: "The Guardian",
    NewsProvider.NY_TIMES: "New York Times",
}


class IngestionStatus(str, Enum):
    """Status of one provider within an ingestion run."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


# =============================================================
# CANONICAL ARTICLE
# =============================================================

DEFAULT_TITLE = "Untitled"
DEFAULT_AUTHOR = "Unknown"
DEFAULT_CATEGORY = "General"


@dataclass(frozen=True)
class CanonicalArticle:
    """
    Provider-independent article draft.

    url is the deduplication key. publisher_name is set only when the
    provider payload names the real publication; source_name is what the
    article is attributed to.
    """
    title: str
    url: str
    published_at: datetime
    source_name: str
    provider: str
    author_name: str = DEFAULT_AUTHOR
    category_name: str = DEFAULT_CATEGORY
    description: Optional[str] = None
    body: Optional[str] = None
    image_url: Optional[str] = None
    publisher_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "published_at": self.published_at.isoformat(),
            "source_name": self.source_name,
            "provider": self.provider,
            "author_name": self.author_name,
            "category_name": self.category_name,
            "description": self.description,
            "body": self.body,
            "image_url": self.image_url,
            "publisher_name": self.publisher_name,
        }


# =============================================================
# RESULT TYPES
# =============================================================

@dataclass
class ProviderFetchResult:
    """
    Outcome of fetch+normalize for one provider.

    Exactly one of drafts/error is meaningful: ok results carry drafts,
    failed results carry the typed error.
    """
    provider: str
    drafts: List[CanonicalArticle] = field(default_factory=list)
    error: Optional[ProviderError] = None
    duration_ms: float = 0.0

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, provider: str, drafts: List[CanonicalArticle], duration_ms: float = 0.0) -> "ProviderFetchResult":
        return cls(provider=provider, drafts=list(drafts), duration_ms=duration_ms)

    @classmethod
    def failed(cls, provider: str, error: ProviderError, duration_ms: float = 0.0) -> "ProviderFetchResult":
        return cls(provider=provider, error=error, duration_ms=duration_ms)


@dataclass
class ProviderRunResult:
    """Persistence outcome for one provider within a run."""
    provider: str
    status: IngestionStatus = IngestionStatus.SUCCESS
    records_fetched: int = 0
    records_stored: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    errors: List[str] = field(default_factory=list)
    error_kind: Optional[str] = None

    def add_error(self, error: str) -> None:
        self.errors.append(error)
        if self.status == IngestionStatus.SUCCESS:
            self.status = IngestionStatus.PARTIAL

    def mark_failed(self, error: str, kind: Optional[str] = None) -> None:
        self.status = IngestionStatus.FAILED
        self.error_kind = kind
        self.errors.append(error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status.value,
            "records_fetched": self.records_fetched,
            "records_stored": self.records_stored,
            "records_skipped": self.records_skipped,
            "records_failed": self.records_failed,
            "error_kind": self.error_kind,
            "errors": self.errors[:5],
        }


@dataclass
class IngestionReport:
    """Result of one pipeline run across all providers."""
    run_id: UUID = field(default_factory=uuid4)
    category_hint: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    providers: List[ProviderRunResult] = field(default_factory=list)

    @property
    def total_stored(self) -> int:
        return sum(result.records_stored for result in self.providers)

    @property
    def failed_providers(self) -> List[str]:
        return [r.provider for r in self.providers if r.status == IngestionStatus.FAILED]

    def mark_complete(self, completed_at: datetime) -> None:
        self.completed_at = completed_at
        if self.started_at:
            self.duration_seconds = (completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "category_hint": self.category_hint,
            "duration_seconds": self.duration_seconds,
            "total_stored": self.total_stored,
            "failed_providers": self.failed_providers,
            "providers": [r.to_dict() for r in self.providers],
        }
