"""Concurrent product image upload and transactional product submission."""

from catalog_upload.core import (
    DraftPolicy,
    UploaderSettings,
    configure_logging,
    get_logger,
)
from catalog_upload.product import ProductFlag, ProductForm, ReferenceCatalog
from catalog_upload.session import ProductUploadSession
from catalog_upload.submission import GateState, SubmissionGate
from catalog_upload.upload import BatchUploadCoordinator, SelectedFile

__version__ = "0.1.0"

__all__ = [
    "DraftPolicy",
    "UploaderSettings",
    "configure_logging",
    "get_logger",
    "ProductFlag",
    "ProductForm",
    "ReferenceCatalog",
    "ProductUploadSession",
    "GateState",
    "SubmissionGate",
    "BatchUploadCoordinator",
    "SelectedFile",
]
