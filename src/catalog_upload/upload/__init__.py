"""Asset upload: authorization, single-asset transfer and batch coordination."""

from catalog_upload.upload.models import (
    AttemptState,
    BatchState,
    SelectedFile,
    Asset,
    AuthorizationCredential,
    AttemptSnapshot,
    UploadAttempt,
    AddAssetsResult,
    BatchOutcome,
)
from catalog_upload.upload.auth_client import AuthorizationClient
from catalog_upload.upload.uploader import AssetUploader
from catalog_upload.upload.coordinator import BatchUploadCoordinator

__all__ = [
    # Models
    "AttemptState",
    "BatchState",
    "SelectedFile",
    "Asset",
    "AuthorizationCredential",
    "AttemptSnapshot",
    "UploadAttempt",
    "AddAssetsResult",
    "BatchOutcome",
    # Clients
    "AuthorizationClient",
    "AssetUploader",
    # Coordination
    "BatchUploadCoordinator",
]
