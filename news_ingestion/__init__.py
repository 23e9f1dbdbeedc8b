"""
News Ingestion Package.

Fetches articles from multiple news APIs, normalizes them into one
canonical shape and persists new ones.

Modules:
- config: provider / pipeline / cache / job configuration
- client: ProviderClient (retry, backoff, error classification)
- normalizers/: per-provider field-fallback normalization
- collectors/: per-provider request shaping
- pipeline: AggregationPipeline
- jobs: FetchArticlesJob
- cli: command-line entry point
"""

from news_ingestion.client import ProviderClient
from news_ingestion.config import (
    CacheConfig,
    JobConfig,
    PipelineConfig,
    ProviderConfig,
    load_cache_config,
    load_job_config,
    load_pipeline_config,
    load_provider_configs,
)
from news_ingestion.exceptions import (
    AuthError,
    ConfigurationError,
    InvalidResponse,
    JobFailedError,
    NetworkError,
    PersistError,
    ProviderError,
    RateLimited,
    RequestRejected,
    Unavailable,
)
from news_ingestion.types import (
    CanonicalArticle,
    IngestionReport,
    IngestionStatus,
    NewsProvider,
    ProviderFetchResult,
    ProviderRunResult,
)


__all__ = [
    "ProviderClient",
    "CacheConfig",
    "JobConfig",
    "PipelineConfig",
    "ProviderConfig",
    "load_cache_config",
    "load_job_config",
    "load_pipeline_config",
    "load_provider_configs",
    "AuthError",
    "ConfigurationError",
    "InvalidResponse",
    "JobFailedError",
    "NetworkError",
    "PersistError",
    "ProviderError",
    "RateLimited",
    "RequestRejected",
    "Unavailable",
    "CanonicalArticle",
    "IngestionReport",
    "IngestionStatus",
    "NewsProvider",
    "ProviderFetchResult",
    "ProviderRunResult",
]
