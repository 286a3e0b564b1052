"""Single-asset upload to the asset store.

- Refuses expired or already-spent credentials before sending any byte
- Streams the asset body in chunks and reports byte-derived progress
- Classifies every failure into one UploadFailure subclass
"""

from typing import AsyncIterator, Callable, Optional

import aiohttp

from catalog_upload.core import get_logger
from catalog_upload.core.config import UploaderSettings
from catalog_upload.core.errors import (
    FailureKind,
    InvalidRequest,
    ServerError,
    Unclassified,
    UploadFailure,
)
from catalog_upload.core.resilience import as_upload_failure, classify_status
from catalog_upload.upload.models import Asset, AuthorizationCredential

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


class AssetUploader:
    """Performs one authorized upload of one asset.

    The uploader never retries; retry policy belongs to the batch coordinator.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        settings: Optional[UploaderSettings] = None,
    ):
        """Initialize asset uploader.

        Args:
            session: Shared aiohttp session (owned by the caller)
            settings: Endpoint, folder and chunking configuration
        """
        self.session = session
        self.settings = settings or UploaderSettings()
        self._spent_tokens: set[str] = set()

    async def upload(
        self,
        asset: Asset,
        credential: AuthorizationCredential,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Upload an asset and return its stable URL.

        Args:
            asset: Asset to upload
            credential: Fresh, unexpired credential for this attempt only
            on_progress: Called with a non-decreasing percentage (0-100)

        Returns:
            URL reported by the asset store

        Raises:
            InvalidRequest: Bad asset, expired or reused credential, 4xx response
            NetworkError: Transport failure
            ServerError: 5xx response
            Unclassified: Anything else, including a response without ``url``
        """
        self._check_request(asset, credential)
        self._spent_tokens.add(credential.token)

        progress = _ProgressReporter(on_progress)
        form = self._build_form(asset, credential, progress)

        try:
            async with self.session.post(
                self.settings.upload_url,
                data=form,
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            ) as response:
                kind = classify_status(response.status)
                if kind is not None:
                    message = await self._error_message(response)
                    failure_cls = InvalidRequest if kind == FailureKind.INVALID_REQUEST else ServerError
                    raise failure_cls(
                        f"Asset store returned HTTP {response.status}: {message}",
                        index=asset.index,
                        status=response.status,
                    )
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise Unclassified(
                        "Asset store returned a malformed body",
                        index=asset.index,
                        status=response.status,
                        cause=e,
                    ) from e
        except UploadFailure:
            raise
        except Exception as e:
            failure = as_upload_failure(e, index=asset.index)
            raise failure from e

        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise Unclassified(
                "Asset store response has no url",
                index=asset.index,
                status=response.status,
            )

        progress.report(100)
        logger.info(
            "asset_uploaded",
            index=asset.index,
            file_name=asset.file_name,
            size=asset.size,
        )
        return url

    def _check_request(self, asset: Asset, credential: AuthorizationCredential) -> None:
        if asset.media_type != self.settings.accepted_media_type:
            raise InvalidRequest(
                f"Media type {asset.media_type} is not accepted",
                index=asset.index,
            )
        if asset.size == 0:
            raise InvalidRequest("Asset is empty", index=asset.index)
        if credential.is_expired():
            raise InvalidRequest(
                "Credential expired; re-authorization required",
                index=asset.index,
            )
        if credential.token in self._spent_tokens:
            raise InvalidRequest(
                "Credential was already used for another upload",
                index=asset.index,
            )

    def _build_form(
        self,
        asset: Asset,
        credential: AuthorizationCredential,
        progress: "_ProgressReporter",
    ) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("fileName", asset.file_name)
        form.add_field("folder", self.settings.destination_folder)
        form.add_field(
            "useUniqueFileName",
            "true" if self.settings.use_unique_file_name else "false",
        )
        form.add_field("signature", credential.signature)
        form.add_field("expire", str(credential.expire))
        form.add_field("token", credential.token)
        form.add_field("publicKey", credential.public_key)
        form.add_field(
            "file",
            self._stream(asset, progress),
            filename=asset.file_name,
            content_type=asset.media_type,
        )
        return form

    async def _stream(self, asset: Asset, progress: "_ProgressReporter") -> AsyncIterator[bytes]:
        total = asset.size
        sent = 0
        chunk_size = self.settings.chunk_size
        for start in range(0, total, chunk_size):
            chunk = asset.content[start:start + chunk_size]
            yield chunk
            sent += len(chunk)
            progress.report(sent * 100 // total)

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            return response.reason or ""
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason or ""


class _ProgressReporter:
    """Forwards only strictly increasing percentages to the callback."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self._last = -1

    def report(self, percent: int) -> None:
        percent = max(0, min(100, percent))
        if percent <= self._last:
            return
        self._last = percent
        if self._callback is not None:
            self._callback(percent)
