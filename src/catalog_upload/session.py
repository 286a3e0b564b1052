"""Wiring of every collaborator around one shared aiohttp session."""

from typing import Optional

import aiohttp

from catalog_upload.core import get_logger
from catalog_upload.core.config import UploaderSettings
from catalog_upload.product.form import ProductForm
from catalog_upload.product.reference import HttpReferenceSource, ReferenceCatalog
from catalog_upload.submission.gate import SubmissionGate
from catalog_upload.submission.record_store import RecordStoreClient
from catalog_upload.upload.auth_client import AuthorizationClient
from catalog_upload.upload.coordinator import BatchUploadCoordinator
from catalog_upload.upload.uploader import AssetUploader

logger = get_logger(__name__)


class ProductUploadSession:
    """Async context manager exposing a ready-to-use form, batch and gate.

    Example::

        async with ProductUploadSession(UploaderSettings.from_env()) as s:
            s.coordinator.add_assets(files)
            s.form.name = "Linen Shirt"
            ...
            record_id = await s.gate.submit()
    """

    def __init__(
        self,
        settings: Optional[UploaderSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings or UploaderSettings.from_env()
        self._session = session
        self._owns_session = session is None

        self.catalog: Optional[ReferenceCatalog] = None
        self.form: Optional[ProductForm] = None
        self.coordinator: Optional[BatchUploadCoordinator] = None
        self.gate: Optional[SubmissionGate] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("ProductUploadSession is not open")
        return self._session

    async def open(self) -> "ProductUploadSession":
        if self._session is None:
            self._session = aiohttp.ClientSession()

        self.catalog = await ReferenceCatalog.load(
            HttpReferenceSource(self.session, self.settings)
        )
        self.form = ProductForm(self.catalog)
        self.coordinator = BatchUploadCoordinator(
            AuthorizationClient(self.session, self.settings),
            AssetUploader(self.session, self.settings),
            settings=self.settings,
        )
        self.gate = SubmissionGate(
            self.form,
            self.coordinator,
            RecordStoreClient(self.session, self.settings),
            draft_policy=self.settings.draft_policy,
        )
        logger.info("upload_session_opened", batch_id=self.coordinator.batch_id)
        return self

    async def close(self) -> None:
        if self.coordinator is not None:
            self.coordinator.reset()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "ProductUploadSession":
        try:
            return await self.open()
        except BaseException:
            await self.close()
            raise

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
