"""Concurrent batch upload coordination.

- One asyncio task per asset; a failing asset never cancels its siblings
- Per-index attempt store, written only by the task that owns the index
- Succeeded URLs are memoised so re-running the batch only retries the rest
- Observers receive an AttemptSnapshot on every state or progress change
"""

import asyncio
import uuid
from typing import Callable, Iterable, Optional, Protocol

from catalog_upload.core import bind_upload_context, get_logger
from catalog_upload.core.config import UploaderSettings
from catalog_upload.core.errors import Aborted, UploadFailure
from catalog_upload.core.resilience import (
    ErrorLogger,
    RetryConfig,
    RetryHandler,
    as_upload_failure,
    get_error_logger,
)
from catalog_upload.upload.models import (
    AddAssetsResult,
    Asset,
    AttemptSnapshot,
    AttemptState,
    AuthorizationCredential,
    BatchOutcome,
    BatchState,
    SelectedFile,
    UploadAttempt,
)

logger = get_logger(__name__)

AttemptListener = Callable[[AttemptSnapshot], None]


class Authorizer(Protocol):
    async def authorize(self) -> AuthorizationCredential: ...


class Uploader(Protocol):
    async def upload(
        self,
        asset: Asset,
        credential: AuthorizationCredential,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> str: ...


class BatchUploadCoordinator:
    """Fans out one upload per asset and aggregates the outcome.

    The coordinator exclusively owns every UploadAttempt. Callers read state
    through ``snapshot()``, ``progress()``, ``result()`` or a subscription.
    """

    def __init__(
        self,
        authorizer: Authorizer,
        uploader: Uploader,
        settings: Optional[UploaderSettings] = None,
        retry_config: Optional[RetryConfig] = None,
        error_logger: Optional[ErrorLogger] = None,
    ):
        """Initialize the coordinator.

        Args:
            authorizer: Issues a fresh credential per attempt
            uploader: Performs one authorized upload
            settings: Accepted media type and retry defaults
            retry_config: Overrides the retry policy derived from settings
            error_logger: Error history sink (global logger by default)
        """
        self.settings = settings or UploaderSettings()
        self.authorizer = authorizer
        self.uploader = uploader
        self.error_logger = error_logger or get_error_logger()
        self.retry_handler = RetryHandler(
            retry_config or self.settings.retry_config(),
            error_logger=self.error_logger,
        )
        self.batch_id = str(uuid.uuid4())

        self._assets: dict[int, Asset] = {}
        self._attempts: dict[int, UploadAttempt] = {}
        self._urls: dict[int, str] = {}
        self._tasks: dict[int, asyncio.Task] = {}
        self._listeners: list[AttemptListener] = []
        self._next_index = 0
        self._run_task: Optional[asyncio.Task] = None
        self._state = BatchState.IDLE

    # ==================== Asset selection ====================

    def add_assets(self, files: Iterable[SelectedFile]) -> AddAssetsResult:
        """Add picked files to the batch.

        Files whose media type is not accepted are reported in ``rejected``
        and never stored.
        """
        result = AddAssetsResult()
        for picked in files:
            if picked.media_type != self.settings.accepted_media_type:
                result.rejected.append(picked.file_name)
                continue
            asset = Asset(
                index=self._next_index,
                file_name=picked.file_name,
                content=picked.content,
                media_type=picked.media_type,
            )
            self._next_index += 1
            self._assets[asset.index] = asset
            self._attempts[asset.index] = UploadAttempt(
                index=asset.index,
                file_name=asset.file_name,
            )
            result.added.append(asset)
            self._notify(self._attempts[asset.index])

        if result.rejected:
            logger.warning(
                "assets_rejected",
                batch_id=self.batch_id,
                rejected=result.rejected,
                accepted_media_type=self.settings.accepted_media_type,
            )
        if result.added:
            self._refresh_state()
        return result

    def remove_asset(self, index: int) -> bool:
        """Drop an asset, its attempt and any URL it produced.

        An in-flight upload for the index is cancelled; siblings keep running.

        Returns:
            True if the index existed.
        """
        if index not in self._assets:
            return False

        task = self._tasks.pop(index, None)
        if task is not None and not task.done():
            task.cancel()

        del self._assets[index]
        del self._attempts[index]
        self._urls.pop(index, None)

        logger.info("asset_removed", batch_id=self.batch_id, index=index)
        self._refresh_state()
        return True

    def cancel(self, index: int) -> bool:
        """Cancel an in-flight upload, leaving the index failed as Aborted.

        Returns:
            True if a running upload was cancelled.
        """
        task = self._tasks.get(index)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def reset(self) -> None:
        """Clear every asset (full form reset)."""
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()
        self._assets.clear()
        self._attempts.clear()
        self._urls.clear()
        self._state = BatchState.IDLE
        logger.info("batch_reset", batch_id=self.batch_id)

    # ==================== Observation ====================

    def subscribe(self, listener: AttemptListener) -> Callable[[], None]:
        """Register a listener for attempt changes.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def assets(self) -> list[Asset]:
        return [self._assets[i] for i in sorted(self._assets)]

    @property
    def is_running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    def has_assets(self) -> bool:
        return bool(self._assets)

    def snapshot(self) -> list[AttemptSnapshot]:
        return [self._attempts[i].snapshot() for i in sorted(self._attempts)]

    def progress(self) -> dict[int, int]:
        return {i: self._attempts[i].progress for i in sorted(self._attempts)}

    def result(self) -> Optional[dict[int, str]]:
        """Index to URL mapping once every asset has succeeded, else None."""
        if not self._assets or any(i not in self._urls for i in self._assets):
            return None
        return {i: self._urls[i] for i in sorted(self._assets)}

    def ordered_urls(self) -> Optional[list[str]]:
        mapping = self.result()
        if mapping is None:
            return None
        return list(mapping.values())

    # ==================== Running ====================

    async def run_batch(self) -> BatchOutcome:
        """Upload every asset that has not succeeded yet.

        Calling again while a run is in progress joins that run instead of
        starting a second one. Cancelling a caller never cancels the run.

        Returns:
            BatchOutcome; every present index is terminal when it returns.
        """
        if self._run_task is not None and not self._run_task.done():
            return await asyncio.shield(self._run_task)

        self._run_task = asyncio.ensure_future(self._run())
        return await asyncio.shield(self._run_task)

    async def _run(self) -> BatchOutcome:
        to_upload = [i for i in sorted(self._assets) if i not in self._urls]
        skipped = [i for i in sorted(self._assets) if i in self._urls]

        if not self._assets:
            return BatchOutcome(state=BatchState.IDLE)

        self._state = BatchState.RUNNING
        logger.info(
            "batch_started",
            batch_id=self.batch_id,
            uploading=to_upload,
            skipped=skipped,
        )

        for index in to_upload:
            attempt = self._attempts[index]
            attempt.state = AttemptState.PENDING
            attempt.progress = 0
            attempt.failure = None
            self._notify(attempt)

        for index in to_upload:
            self._tasks[index] = asyncio.create_task(
                self._run_attempt(self._assets[index]),
                name=f"upload-{self.batch_id}-{index}",
            )

        running = [self._tasks[i] for i in to_upload]
        try:
            await asyncio.gather(*running, return_exceptions=True)
        except asyncio.CancelledError:
            self._state = self._build_outcome(uploaded=to_upload, skipped=skipped).state
            logger.warning("batch_cancelled", batch_id=self.batch_id)
            raise

        outcome = self._build_outcome(uploaded=to_upload, skipped=skipped)
        self._state = outcome.state
        logger.info(
            "batch_finished",
            batch_id=self.batch_id,
            state=outcome.state.value,
            succeeded=sorted(outcome.urls),
            failed=sorted(outcome.failures),
        )
        return outcome

    async def _run_attempt(self, asset: Asset) -> None:
        index = asset.index
        bind_upload_context(batch_id=self.batch_id, index=index, file_name=asset.file_name)
        try:
            url = await self.retry_handler.execute_with_retry(
                self._authorize_and_upload,
                asset,
                component="asset_uploader",
            )
        except asyncio.CancelledError:
            self._record_failure(index, Aborted("Upload cancelled", index=index))
            raise
        except Exception as e:
            self._record_failure(index, as_upload_failure(e, index=index))
        else:
            self._record_success(index, url)
        finally:
            if self._tasks.get(index) is asyncio.current_task():
                del self._tasks[index]

    async def _authorize_and_upload(self, asset: Asset) -> str:
        attempt = self._attempts.get(asset.index)
        if attempt is None:
            raise Aborted("Asset was removed", index=asset.index)

        attempt.attempts += 1
        attempt.state = AttemptState.AUTHORIZING
        self._notify(attempt)

        credential = await self.authorizer.authorize()

        attempt.state = AttemptState.UPLOADING
        self._notify(attempt)

        return await self.uploader.upload(
            asset,
            credential,
            on_progress=lambda percent: self._record_progress(asset.index, percent),
        )

    # ==================== Index-scoped writes ====================

    def _record_progress(self, index: int, percent: int) -> None:
        attempt = self._attempts.get(index)
        if attempt is None or attempt.state != AttemptState.UPLOADING:
            return
        if percent <= attempt.progress:
            return
        attempt.progress = min(percent, 100)
        self._notify(attempt)

    def _record_success(self, index: int, url: str) -> None:
        attempt = self._attempts.get(index)
        if attempt is None:
            # removed while the store was answering; the URL is discarded
            return
        self._urls[index] = url
        attempt.state = AttemptState.SUCCEEDED
        attempt.progress = 100
        attempt.url = url
        attempt.failure = None
        logger.info("upload_attempt_succeeded", index=index, attempts=attempt.attempts)
        self._notify(attempt)

    def _record_failure(self, index: int, failure: UploadFailure) -> None:
        attempt = self._attempts.get(index)
        if attempt is None:
            return
        attempt.state = AttemptState.FAILED
        attempt.failure = failure
        attempt.url = None
        if self.is_running:
            # siblings keep running; the verdict is already known
            self._state = BatchState.FAILED
        logger.warning(
            "upload_attempt_failed",
            index=index,
            kind=failure.kind.value,
            error=failure.message,
            attempts=attempt.attempts,
        )
        self._notify(attempt)

    def _build_outcome(self, uploaded: list[int], skipped: list[int]) -> BatchOutcome:
        failures = {
            i: a.failure
            for i, a in self._attempts.items()
            if a.state == AttemptState.FAILED and a.failure is not None
        }
        urls = {i: self._urls[i] for i in sorted(self._assets) if i in self._urls}
        if not self._assets:
            state = BatchState.IDLE
        elif len(urls) == len(self._assets):
            state = BatchState.SUCCEEDED
        else:
            state = BatchState.FAILED
        return BatchOutcome(
            state=state,
            urls=urls,
            failures=failures,
            uploaded=[i for i in uploaded if i in self._assets],
            skipped=[i for i in skipped if i in self._assets],
        )

    def _refresh_state(self) -> None:
        if self.is_running:
            return
        if not self._assets:
            self._state = BatchState.IDLE
        elif all(i in self._urls for i in self._assets):
            self._state = BatchState.SUCCEEDED
        elif any(a.state == AttemptState.FAILED for a in self._attempts.values()):
            self._state = BatchState.FAILED
        else:
            self._state = BatchState.IDLE

    def _notify(self, attempt: UploadAttempt) -> None:
        snapshot = attempt.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("attempt_listener_failed", index=snapshot.index)
