"""Custom exception classes for the catalog upload pipeline."""

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """Closed set of upload failure kinds attached to an upload attempt."""

    AUTH = "auth"
    ABORTED = "aborted"
    INVALID_REQUEST = "invalid_request"
    NETWORK = "network"
    SERVER = "server"
    UNCLASSIFIED = "unclassified"


class CatalogUploadError(Exception):
    """Base exception for all catalog upload errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class UploadFailure(CatalogUploadError):
    """Terminal failure of a single asset upload.

    Subclasses fix ``kind``; callers match on ``kind`` rather than on the
    concrete class when they need exhaustive handling.
    """

    kind: FailureKind = FailureKind.UNCLASSIFIED
    retryable: bool = False

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
        **kwargs,
    ):
        super().__init__(message, error_code=self.kind.value.upper(), **kwargs)
        self.index = index
        self.status = status
        self.cause = cause
        self.details.update({
            "kind": self.kind.value,
            "index": index,
            "status": status,
            "retryable": self.retryable,
        })


class AuthFailure(UploadFailure):
    """Authorization provider refused or returned an unusable credential."""

    kind = FailureKind.AUTH

    def __init__(
        self,
        message: str,
        missing_fields: Optional[list] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.missing_fields = missing_fields or []
        self.details["missing_fields"] = self.missing_fields


class Aborted(UploadFailure):
    """Upload was cancelled before completion."""

    kind = FailureKind.ABORTED


class InvalidRequest(UploadFailure):
    """Store rejected the request shape or credential."""

    kind = FailureKind.INVALID_REQUEST


class NetworkError(UploadFailure):
    """Transport failure while talking to the store."""

    kind = FailureKind.NETWORK
    retryable = True


class ServerError(UploadFailure):
    """Store-side failure."""

    kind = FailureKind.SERVER
    retryable = True


class Unclassified(UploadFailure):
    """Anything else; the raw cause is kept on ``cause``."""

    kind = FailureKind.UNCLASSIFIED


FAILURE_CLASSES: dict[FailureKind, type[UploadFailure]] = {
    FailureKind.AUTH: AuthFailure,
    FailureKind.ABORTED: Aborted,
    FailureKind.INVALID_REQUEST: InvalidRequest,
    FailureKind.NETWORK: NetworkError,
    FailureKind.SERVER: ServerError,
    FailureKind.UNCLASSIFIED: Unclassified,
}


class ValidationFailure(CatalogUploadError):
    """Local, pre-network validation error."""

    def __init__(
        self,
        message: str,
        field_errors: Optional[list] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="VALIDATION", **kwargs)
        self.field_errors = field_errors or []
        self.details.update({
            "fields": [e.field_name for e in self.field_errors],
        })

    @property
    def fields(self) -> list[str]:
        return [e.field_name for e in self.field_errors]


class SubmissionRejected(CatalogUploadError):
    """Submit was called while the gate could not accept it."""

    def __init__(self, message: str, state: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="SUBMISSION_REJECTED", **kwargs)
        self.state = state
        self.details.update({"state": state})


class SubmissionInProgress(SubmissionRejected):
    """A submission for this draft is already in flight."""


class SubmissionClosed(SubmissionRejected):
    """The draft was already submitted."""


class RecordStoreFailure(CatalogUploadError):
    """Record store refused the product payload or was unreachable."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="RECORD_STORE", **kwargs)
        self.status = status
        self.details.update({"status": status})


class ReferenceDataError(CatalogUploadError):
    """Reference data (categories, collections) could not be loaded."""

    def __init__(
        self,
        message: str,
        source_url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="REFERENCE_DATA", **kwargs)
        self.source_url = source_url
        self.details.update({"source_url": source_url})
