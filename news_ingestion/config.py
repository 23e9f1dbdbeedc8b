"""
News Ingestion Configuration - Provider, pipeline, cache and job settings.

API keys and endpoints are loaded from environment variables.
Configuration objects are passed explicitly into constructors; nothing in
the pipeline reads the environment on its own.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from news_ingestion.exceptions import ConfigurationError
from news_ingestion.types import NewsProvider


load_dotenv()


REQUIRED_ENDPOINTS: Dict[str, Tuple[str, ...]] = {
    NewsProvider.NEWS_API.value: ("top_headlines", "everything"),
    NewsProvider.GUARDIAN.value: ("search",),
    NewsProvider.NY_TIMES.value: ("top_stories", "search"),
}


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for one news provider."""
    identifier: str
    name: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    endpoints: Dict[str, str] = field(default_factory=dict)
    default_params: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    api_key_param: str = "api-key"

    # Transport
    timeout_seconds: float = 30.0
    max_attempts: int = 3
    backoff_base_seconds: float = 0.1
    rate_limit_fallback_seconds: float = 1.0
    max_rate_limit_retries: int = 3
    max_retry_after_seconds: float = 60.0

    def missing_fields(self) -> List[str]:
        """Names of required settings that are absent or empty."""
        missing = []
        if not self.api_key:
            missing.append("api_key")
        if not self.base_url:
            missing.append("base_url")
        for endpoint in REQUIRED_ENDPOINTS.get(self.identifier, ()):
            if not self.endpoints.get(endpoint):
                missing.append(f"endpoints.{endpoint}")
        return missing

    def validate(self) -> None:
        """
        Raise ConfigurationError if the provider cannot be used.

        Raises:
            ConfigurationError: naming every missing setting
        """
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                message=f"Provider '{self.identifier}' is missing: {', '.join(missing)}",
                provider=self.identifier,
                details={"missing": missing},
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "base_url": self.base_url,
            "endpoints": dict(self.endpoints),
            "enabled": self.enabled,
            "has_api_key": bool(self.api_key),
        }


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for the aggregation pipeline."""
    providers: Tuple[ProviderConfig, ...] = ()
    parallel_fetch: bool = True
    page: int = 1


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for the cache layer."""
    redis_url: Optional[str] = None
    key_prefix: str = "news_cache:"
    api_response_ttl: int = 1800  # 30 minutes
    stats_ttl: int = 300  # 5 minutes
    model_ttl: int = 3600  # 1 hour


@dataclass(frozen=True)
class JobConfig:
    """Configuration for the background ingestion job."""
    tries: int = 3
    timeout_seconds: float = 300.0


# =============================================================
# ENVIRONMENT LOADERS
# =============================================================

def _env_bool(env: Mapping[str, str], name: str, default: bool = True) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_provider_configs(env: Optional[Mapping[str, str]] = None) -> Tuple[ProviderConfig, ...]:
    """
    Build the three provider configurations from environment variables.

    Args:
        env: Mapping to read from (default: os.environ)

    Returns:
        Provider configurations in processing order
    """
    env = os.environ if env is None else env

    news_api = ProviderConfig(
        identifier=NewsProvider.NEWS_API.value,
        name=NewsProvider.NEWS_API.display_name,
        api_key=env.get("NEWSAPI_API_KEY"),
        base_url=env.get("NEWSAPI_BASE_URL", "https://newsapi.org/v2"),
        endpoints={
            "top_headlines": "top-headlines",
            "everything": "everything",
        },
        default_params={
            "country": "us",
            "pageSize": 50,
            "language": "en",
        },
        enabled=_env_bool(env, "NEWSAPI_ENABLED"),
        api_key_param="apiKey",
    )

    guardian = ProviderConfig(
        identifier=NewsProvider.GUARDIAN.value,
        name=NewsProvider.GUARDIAN.display_name,
        api_key=env.get("GUARDIAN_API_KEY"),
        base_url=env.get("GUARDIAN_BASE_URL", "https://content.guardianapis.com"),
        endpoints={
            "search": "search",
        },
        default_params={
            "page-size": 50,
            "order-by": "newest",
            "show-fields": "headline,trailText,body,thumbnail,byline",
        },
        enabled=_env_bool(env, "GUARDIAN_ENABLED"),
        api_key_param="api-key",
    )

    ny_times = ProviderConfig(
        identifier=NewsProvider.NY_TIMES.value,
        name=NewsProvider.NY_TIMES.display_name,
        api_key=env.get("NYT_API_KEY"),
        base_url=env.get("NYTIMES_BASE_URL", "https://api.nytimes.com/svc"),
        endpoints={
            "top_stories": "topstories/v2/{section}.json",
            "search": "search/v2/articlesearch.json",
        },
        default_params={
            "sort": "newest",
        },
        enabled=_env_bool(env, "NYT_ENABLED"),
        api_key_param="api-key",
    )

    return (news_api, guardian, ny_times)


def load_pipeline_config(env: Optional[Mapping[str, str]] = None) -> PipelineConfig:
    env = os.environ if env is None else env
    return PipelineConfig(
        providers=load_provider_configs(env),
        parallel_fetch=_env_bool(env, "NEWS_PARALLEL_FETCH"),
    )


def load_cache_config(env: Optional[Mapping[str, str]] = None) -> CacheConfig:
    env = os.environ if env is None else env
    return CacheConfig(
        redis_url=env.get("REDIS_URL") or None,
        key_prefix=env.get("NEWS_CACHE_PREFIX", "news_cache:"),
        api_response_ttl=_env_int(env, "NEWS_CACHE_TTL", 1800),
        stats_ttl=_env_int(env, "NEWS_STATS_CACHE_TTL", 300),
    )


def load_job_config(env: Optional[Mapping[str, str]] = None) -> JobConfig:
    env = os.environ if env is None else env
    return JobConfig(
        tries=_env_int(env, "NEWS_JOB_TRIES", 3),
        timeout_seconds=float(_env_int(env, "NEWS_JOB_TIMEOUT", 300)),
    )
