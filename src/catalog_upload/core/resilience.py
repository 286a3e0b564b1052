"""Failure classification, retry backoff and error history for uploads.

- Every exception raised during an upload maps to exactly one FailureKind
- Retry logic with exponential backoff for retryable kinds
- Error logging with a bounded in-memory history
"""

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import aiohttp
import structlog

from catalog_upload.core.errors import (
    FAILURE_CLASSES,
    CatalogUploadError,
    FailureKind,
    UploadFailure,
)

logger = structlog.get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for automatic upload retries.

    ``max_retries`` of 0 means a failed attempt is terminal until the caller
    re-runs the batch.
    """

    max_retries: int = 0
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True


@dataclass
class ErrorRecord:
    """Record of an error occurrence."""

    timestamp: datetime
    kind: Optional[FailureKind]
    error_type: str
    message: str
    component: str
    details: dict = field(default_factory=dict)
    retry_count: int = 0

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value if self.kind else None,
            "error_type": self.error_type,
            "message": self.message,
            "component": self.component,
            "details": self.details,
            "retry_count": self.retry_count,
        }


def classify_status(status: int) -> Optional[FailureKind]:
    """Map an HTTP status from the asset store to a failure kind.

    Returns None for success statuses.
    """
    if status < 400:
        return None
    if status < 500:
        return FailureKind.INVALID_REQUEST
    return FailureKind.SERVER


def classify_exception(error: BaseException) -> FailureKind:
    """Categorize an exception raised while uploading.

    Args:
        error: The exception to categorize.

    Returns:
        The single FailureKind the error belongs to.
    """
    if isinstance(error, UploadFailure):
        return error.kind
    if isinstance(error, asyncio.CancelledError):
        return FailureKind.ABORTED
    if isinstance(error, aiohttp.ClientResponseError):
        return classify_status(error.status) or FailureKind.UNCLASSIFIED
    if isinstance(
        error,
        (
            aiohttp.ClientConnectionError,
            aiohttp.ClientPayloadError,
            asyncio.TimeoutError,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return FailureKind.NETWORK
    return FailureKind.UNCLASSIFIED


def as_upload_failure(
    error: BaseException,
    index: Optional[int] = None,
) -> UploadFailure:
    """Wrap any exception into the matching UploadFailure subclass.

    The original exception is preserved on ``cause``.
    """
    if isinstance(error, UploadFailure):
        if error.index is None and index is not None:
            error.index = index
            error.details["index"] = index
        return error

    kind = classify_exception(error)
    failure_cls = FAILURE_CLASSES[kind]
    message = str(error) or type(error).__name__
    status = getattr(error, "status", None)
    if not isinstance(status, int):
        status = None
    return failure_cls(message, index=index, status=status, cause=error)


class ErrorLogger:
    """Centralized error logging and tracking."""

    def __init__(self, max_history: int = 1000):
        """Initialize error logger.

        Args:
            max_history: Maximum number of errors to keep in history.
        """
        self._history: list[ErrorRecord] = []
        self._max_history = max_history
        self._counts: dict[str, int] = {}

    def log_error(
        self,
        error: BaseException,
        component: str,
        details: Optional[dict] = None,
        retry_count: int = 0,
    ) -> ErrorRecord:
        """Log an error occurrence.

        Args:
            error: The exception that occurred.
            component: Component where error occurred.
            details: Additional error details.
            retry_count: Number of retries attempted.

        Returns:
            ErrorRecord for the logged error.
        """
        kind = None
        if isinstance(error, UploadFailure) or not isinstance(error, CatalogUploadError):
            kind = classify_exception(error)

        merged = dict(getattr(error, "details", {}) or {})
        merged.update(details or {})

        record = ErrorRecord(
            timestamp=datetime.now(timezone.utc),
            kind=kind,
            error_type=type(error).__name__,
            message=str(error),
            component=component,
            details=merged,
            retry_count=retry_count,
        )

        key = kind.value if kind else record.error_type
        self._counts[key] = self._counts.get(key, 0) + 1

        self._history.append(record)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        logger.error(
            "error_occurred",
            kind=key,
            error_type=record.error_type,
            message=record.message,
            component=component,
            retry_count=retry_count,
        )

        return record

    def get_error_counts(self) -> dict[str, int]:
        """Get error counts keyed by failure kind (or exception name)."""
        return dict(self._counts)

    def get_recent_errors(
        self,
        limit: int = 100,
        kind: Optional[FailureKind] = None,
    ) -> list[ErrorRecord]:
        """Get recent errors, optionally filtered by failure kind."""
        errors = self._history
        if kind:
            errors = [e for e in errors if e.kind == kind]
        return errors[-limit:]

    def clear_history(self) -> None:
        """Clear error history."""
        self._history.clear()
        self._counts.clear()


_error_logger = ErrorLogger()


def get_error_logger() -> ErrorLogger:
    """Get the global error logger instance."""
    return _error_logger


class RetryHandler:
    """Handles retry logic with exponential backoff."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        error_logger: Optional[ErrorLogger] = None,
    ):
        self.config = config or RetryConfig()
        self.error_logger = error_logger or get_error_logger()

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self.config.base_delay * (self.config.exponential_base ** attempt)
        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            # +/-25%
            jitter = delay * 0.25 * (2 * random.random() - 1)
            delay += jitter

        return max(0, delay)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Determine if an operation should be retried.

        Only NetworkError and ServerError are retryable; a rejected or
        expired credential always needs a fresh authorization from the caller.
        """
        if attempt >= self.config.max_retries:
            return False
        if isinstance(error, UploadFailure):
            return error.retryable
        return False

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        component: str = "unknown",
        **kwargs,
    ) -> Any:
        """Execute an async function with retry logic.

        Args:
            func: Async function to execute. Called afresh on every attempt.
            *args: Positional arguments for func.
            component: Component name for logging.
            **kwargs: Keyword arguments for func.

        Returns:
            Result of the function.

        Raises:
            The last exception if all retries fail.
        """
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                self.error_logger.log_error(e, component, retry_count=attempt)

                if not self.should_retry(e, attempt):
                    raise

                delay = self.calculate_delay(attempt)
                logger.info(
                    "retrying_operation",
                    component=component,
                    attempt=attempt + 1,
                    max_retries=self.config.max_retries,
                    delay=delay,
                )
                await asyncio.sleep(delay)
                attempt += 1
