"""Core utilities shared by the upload, product and submission packages."""

from catalog_upload.core.logging import (
    get_logger,
    configure_logging,
    bind_upload_context,
    clear_upload_context,
)
from catalog_upload.core.errors import (
    CatalogUploadError,
    FailureKind,
    AuthFailure,
    UploadFailure,
    Aborted,
    InvalidRequest,
    NetworkError,
    ServerError,
    Unclassified,
    ValidationFailure,
    SubmissionRejected,
    SubmissionInProgress,
    SubmissionClosed,
    RecordStoreFailure,
    ReferenceDataError,
)
from catalog_upload.core.resilience import (
    RetryConfig,
    RetryHandler,
    ErrorLogger,
    ErrorRecord,
    as_upload_failure,
    classify_exception,
    classify_status,
    get_error_logger,
)
from catalog_upload.core.config import DraftPolicy, UploaderSettings

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "bind_upload_context",
    "clear_upload_context",
    # Errors
    "CatalogUploadError",
    "FailureKind",
    "AuthFailure",
    "UploadFailure",
    "Aborted",
    "InvalidRequest",
    "NetworkError",
    "ServerError",
    "Unclassified",
    "ValidationFailure",
    "SubmissionRejected",
    "SubmissionInProgress",
    "SubmissionClosed",
    "RecordStoreFailure",
    "ReferenceDataError",
    # Resilience
    "RetryConfig",
    "RetryHandler",
    "ErrorLogger",
    "ErrorRecord",
    "as_upload_failure",
    "classify_exception",
    "classify_status",
    "get_error_logger",
    # Config
    "DraftPolicy",
    "UploaderSettings",
]
