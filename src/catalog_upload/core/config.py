"""Runtime configuration for the catalog upload pipeline.

Values default from ``CATALOG_UPLOAD_*`` environment variables so the same
settings object can be built in tests (explicit kwargs) and in deployments
(environment).
"""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from catalog_upload.core.resilience import RetryConfig

ENV_PREFIX = "CATALOG_UPLOAD_"


class DraftPolicy(str, Enum):
    """What happens to the local draft after a successful submission."""

    RESET = "reset"
    PRESERVE = "preserve"


class UploaderSettings(BaseModel):
    """Configuration for authorization, upload and record endpoints."""

    auth_url: str = Field(
        default="http://localhost:3000/api/imagekit-auth",
        description="Authorization provider endpoint issuing upload credentials",
    )
    upload_url: str = Field(
        default="https://upload.imagekit.io/api/v1/files/upload",
        description="Asset store upload endpoint",
    )
    record_url: str = Field(
        default="http://localhost:3000/api/products",
        description="Record store endpoint accepting product payloads",
    )
    categories_url: str = Field(
        default="http://localhost:3000/api/categories",
        description="Reference data endpoint for categories",
    )
    collections_url: str = Field(
        default="http://localhost:3000/api/collections",
        description="Reference data endpoint for collections",
    )
    destination_folder: str = Field(default="/products", description="Asset store folder")
    use_unique_file_name: bool = Field(
        default=True, description="Ask the store to make file names unique"
    )
    accepted_media_type: str = Field(default="image/webp", description="Only accepted asset type")
    timeout_seconds: int = Field(default=30, description="Per-request timeout")
    chunk_size: int = Field(default=64 * 1024, gt=0, description="Upload stream chunk size")
    max_retries: int = Field(default=0, ge=0, description="Automatic retries per asset")
    retry_base_delay: float = Field(default=1.0, ge=0, description="First backoff delay")
    draft_policy: DraftPolicy = Field(
        default=DraftPolicy.PRESERVE,
        description="Reset or keep the draft after a successful submission",
    )

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "UploaderSettings":
        """Build settings from ``CATALOG_UPLOAD_<FIELD>`` variables.

        Explicit keyword overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        values.update(overrides)
        return cls(**values)

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )
