"""
News Ingestion - Exception Hierarchy.

============================================================
PURPOSE
============================================================
Typed failures for the fetch, normalize and persist stages.

- Fetch-layer errors are recoverable at provider granularity:
  the pipeline logs them and moves on to the next provider.
- PersistError is recoverable at draft granularity.
- JobFailedError is the only terminal failure.

============================================================
"""

from datetime import datetime
from typing import Any, Dict, Optional


class ProviderError(Exception):
    """Base exception for all provider fetch errors."""

    kind = "provider_error"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        endpoint: Optional[str] = None,
        attempts: int = 0,
        duration_ms: float = 0.0,
        original_error: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.endpoint = endpoint
        self.attempts = attempts
        self.duration_ms = duration_ms
        self.original_error = original_error
        self.details = details or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "provider": self.provider,
            "endpoint": self.endpoint,
            "attempts": self.attempts,
            "duration_ms": self.duration_ms,
            "original_error": str(self.original_error) if self.original_error else None,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.provider:
            parts.append(f"[provider={self.provider}]")
        if self.endpoint:
            parts.append(f"[endpoint={self.endpoint}]")
        if self.attempts:
            parts.append(f"[attempts={self.attempts}]")
        return " ".join(parts)


class AuthError(ProviderError):
    """Invalid or missing credential (HTTP 401/403). Never retried."""

    kind = "auth"


class RateLimited(ProviderError):
    """Provider kept answering HTTP 429 after the rate-limit retries."""

    kind = "rate_limited"

    def __init__(
        self,
        message: str,
        retry_after_seconds: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class Unavailable(ProviderError):
    """Provider answered 5xx on every attempt."""

    kind = "unavailable"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class NetworkError(ProviderError):
    """Connection-level failure after the attempt budget was spent."""

    kind = "network"


class ConfigurationError(ProviderError):
    """Provider configuration is missing or incomplete."""

    kind = "configuration"


class RequestRejected(ProviderError):
    """Provider rejected the request with a 4xx other than 401/403/429."""

    kind = "rejected"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class InvalidResponse(ProviderError):
    """Provider answered 2xx with a body that is not a JSON document."""

    kind = "invalid_response"


class PersistError(Exception):
    """A single canonical draft could not be saved."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        url: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.url = url
        self.original_error = original_error

    def __str__(self) -> str:
        return f"PersistError: {self.message} [provider={self.provider}] [url={self.url}]"


class JobFailedError(Exception):
    """Ingestion job exhausted its tries."""

    def __init__(self, message: str, tries: int, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.tries = tries
        self.last_error = last_error
