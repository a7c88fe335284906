"""
Structured error types for spine-delayed.

Every failure the delayed scheduler can raise carries a category, an explicit
retry flag, structured context, and the chained underlying exception. Callers
that enqueue jobs see validation errors synchronously; the worker loop sees
store errors and treats them as fatal for the current cycle.

Manifesto:
    - **Typed Error Hierarchy:** Validation, timestamp and store failures are
      distinct types, never a bare ``Exception``
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry the store operation, queue and job class
    - **Error Chaining:** The ``redis`` exception is preserved as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        DelayedError                           │
        │  (category, retryable, context, cause)                        │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ValidationError        InvalidTimestampError                 │
        │  (VALIDATION)           (VALIDATION)                          │
        │                                                               │
        │  StoreUnavailableError  ConfigError                           │
        │  (STORAGE, retryable)   (CONFIG)                              │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ValidationError("Jobs must be given a class.", field="job_class")
    >>> error.retryable
    False
    >>> error.to_dict()["category"]
    'VALIDATION'

    >>> try:
    ...     raise ConnectionError("Connection refused")
    ... except ConnectionError as e:
    ...     error = StoreUnavailableError("LPOP failed", cause=e)
    >>> error.retryable
    True

Guardrails:
    ❌ DON'T: Catch ``redis.RedisError`` outside ``spine_delayed.store``
    ✅ DO: Let ``StoreUnavailableError`` propagate to the worker loop

    ❌ DON'T: Treat "nothing matched" on removal as an error
    ✅ DO: Return a zero count

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    spine-delayed

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    STORAGE = "STORAGE"           # Redis connection, timeout, script errors
    VALIDATION = "VALIDATION"     # Empty queue/class, bad timestamps
    CONFIG = "CONFIG"             # Invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set end up in :meth:`to_dict`, so log lines stay
    small. Anything without a dedicated field goes into ``metadata``.

    Attributes:
        operation: Store operation that failed (``"enqueue_at"``, ``"lpop"``)
        queue: Destination queue of the job involved
        job_class: Job class of the job involved
        timestamp: Schedule timestamp involved
        worker_id: Worker that observed the error
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    queue: str | None = None
    job_class: str | None = None
    timestamp: int | None = None
    worker_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "queue", "job_class", "timestamp", "worker_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value

        if self.metadata:
            result.update(self.metadata)

        return result


class DelayedError(Exception):
    """
    Base exception for all spine-delayed errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers can
    override either per instance.

    Examples:
        >>> error = DelayedError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(queue="jobs").context.queue
        'jobs'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DelayedError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreUnavailableError("Failed").with_context(
                operation="zadd",
                timestamp=1700000000,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = str(self.cause)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(DelayedError):
    """
    Job rejected before any mutation.

    Raised when a job is enqueued without a class or without a queue.
    Never retryable - the caller must fix the job.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

        if field:
            self.context.metadata["field"] = field


class InvalidTimestampError(DelayedError):
    """The supplied timestamp value could not be converted to an integer."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.value = value
        self.context.metadata["value"] = repr(value)


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreUnavailableError(DelayedError):
    """
    A backing-store operation failed.

    Wraps the ``redis`` client exception. The worker loop does not retry the
    failed query; the current cycle fails and recovery happens through an
    explicit reconnect.
    """

    default_category = ErrorCategory.STORAGE
    default_retryable = True


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(DelayedError):
    """Invalid configuration value."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


__all__ = [
    "ConfigError",
    "DelayedError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidTimestampError",
    "StoreUnavailableError",
    "ValidationError",
]
