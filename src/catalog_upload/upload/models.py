"""Data models for asset uploads.

- Assets selected by the user and the credentials that authorize them
- Per-index upload attempt state and the snapshots published to observers
- Aggregate batch outcome
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_upload.core.errors import UploadFailure


class AttemptState(str, Enum):
    """State of one asset's upload attempt."""
    PENDING = "pending"
    AUTHORIZING = "authorizing"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptState.SUCCEEDED, AttemptState.FAILED)


class BatchState(str, Enum):
    """Aggregate state of the whole batch."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SelectedFile(BaseModel):
    """A file as handed over by the file picker, before it gets an index."""
    file_name: str = Field(..., min_length=1, description="Original file name")
    content: bytes = Field(..., description="File content")
    media_type: str = Field(..., description="Declared media type")


class Asset(BaseModel):
    """A selected binary asset with its stable batch position."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Stable position in the batch")
    file_name: str = Field(..., min_length=1, description="Original file name")
    content: bytes = Field(..., description="File content")
    media_type: str = Field(..., description="Media type")

    @property
    def size(self) -> int:
        return len(self.content)


class AuthorizationCredential(BaseModel):
    """Single-use, time-bounded upload grant.

    ``expire`` is a unix timestamp in seconds.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    signature: str = Field(..., min_length=1)
    expire: int = Field(..., gt=0)
    token: str = Field(..., min_length=1)
    public_key: str = Field(..., min_length=1, alias="publicKey")

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expire


@dataclass(frozen=True)
class AttemptSnapshot:
    """Immutable view of one attempt, published to subscribers."""
    index: int
    file_name: str
    state: AttemptState
    progress: int
    url: Optional[str] = None
    failure: Optional[UploadFailure] = None
    attempts: int = 0


@dataclass
class UploadAttempt:
    """Mutable per-index attempt record owned by the batch coordinator."""
    index: int
    file_name: str
    state: AttemptState = AttemptState.PENDING
    progress: int = 0
    url: Optional[str] = None
    failure: Optional[UploadFailure] = None
    attempts: int = 0

    def snapshot(self) -> AttemptSnapshot:
        return AttemptSnapshot(
            index=self.index,
            file_name=self.file_name,
            state=self.state,
            progress=self.progress,
            url=self.url,
            failure=self.failure,
            attempts=self.attempts,
        )


@dataclass
class AddAssetsResult:
    """Outcome of adding picked files to the batch."""
    added: list[Asset] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


@dataclass
class BatchOutcome:
    """Result of one run of the batch.

    ``urls`` holds every index that has succeeded so far (including ones
    skipped because they succeeded on an earlier run); ``failures`` holds the
    failure attached to every index that did not.
    """
    state: BatchState
    urls: dict[int, str] = field(default_factory=dict)
    failures: dict[int, UploadFailure] = field(default_factory=dict)
    uploaded: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == BatchState.SUCCEEDED

    @property
    def result(self) -> Optional[dict[int, str]]:
        """Index to URL mapping, only when every attempt succeeded."""
        if not self.succeeded:
            return None
        return dict(self.urls)

    def ordered_urls(self) -> list[str]:
        return [self.urls[i] for i in sorted(self.urls)]
