"""
Cache Exceptions.

Raised by cache stores only. CacheManager absorbs every CacheError
and degrades to calling the producer directly.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class CacheError(Exception):
    """Base exception for cache store errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.original_error = original_error
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "operation": self.operation,
            "original_error": str(self.original_error) if self.original_error else None,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.operation:
            parts.append(f"[operation={self.operation}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class CacheUnavailable(CacheError):
    """The cache backend could not be reached or failed the operation."""
    pass


class CacheSerializationError(CacheError):
    """The value cannot be encoded for the backend."""
    pass
