"""
Pytest configuration and shared fixtures for the catalog upload tests.
"""
import asyncio
import itertools
import time
from contextlib import asynccontextmanager
from typing import Optional, Union

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from hypothesis import settings, Verbosity

from catalog_upload.core.config import UploaderSettings
from catalog_upload.core.errors import AuthFailure
from catalog_upload.core.resilience import ErrorLogger, RetryConfig
from catalog_upload.product.form import ProductForm
from catalog_upload.product.models import ProductDraft, ReferenceItem
from catalog_upload.product.reference import ReferenceCatalog
from catalog_upload.upload.coordinator import BatchUploadCoordinator
from catalog_upload.upload.models import Asset, AuthorizationCredential, SelectedFile

settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    verbosity=Verbosity.quiet,
)

settings.load_profile("default")


WEBP = "image/webp"
WEBP_BYTES = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 24


def webp(name: str, content: bytes = WEBP_BYTES) -> SelectedFile:
    return SelectedFile(file_name=name, content=content, media_type=WEBP)


def make_credential(token: Optional[str] = None, expire_in: int = 600) -> AuthorizationCredential:
    return AuthorizationCredential(
        signature="sig-123",
        expire=int(time.time()) + expire_in,
        token=token or "token-1",
        public_key="public_test_key",
    )


@asynccontextmanager
async def serve(app: web.Application):
    """Run an aiohttp application on a local port for the duration of a test."""
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


class FakeAuthorizer:
    """Issues unique credentials; scripted failures are consumed first."""

    def __init__(self, failures: Optional[list] = None):
        self.calls = 0
        self.failures = list(failures or [])
        self._tokens = itertools.count(1)

    async def authorize(self) -> AuthorizationCredential:
        self.calls += 1
        await asyncio.sleep(0)
        if self.failures:
            raise self.failures.pop(0)
        return make_credential(token=f"token-{next(self._tokens)}")


Outcome = Union[str, BaseException]


class FakeUploader:
    """Scripted uploader keyed by file name.

    ``script[name]`` is a list of outcomes consumed one per call; a string is
    returned as the URL, an exception is raised. Names without a script
    succeed with ``https://cdn.test/<name>``. ``blockers[name]`` holds the
    upload until the event is set.
    """

    def __init__(self, script: Optional[dict[str, list[Outcome]]] = None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.blockers: dict[str, asyncio.Event] = {}
        self.started: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, str]] = []

    def block(self, name: str) -> asyncio.Event:
        self.blockers[name] = asyncio.Event()
        self.started[name] = asyncio.Event()
        return self.blockers[name]

    async def upload(self, asset: Asset, credential: AuthorizationCredential, on_progress=None) -> str:
        self.calls.append((asset.file_name, credential.token))
        if asset.file_name in self.started:
            self.started[asset.file_name].set()
        if on_progress:
            on_progress(10)
        if asset.file_name in self.blockers:
            await self.blockers[asset.file_name].wait()
        if on_progress:
            on_progress(60)
        await asyncio.sleep(0)

        outcomes = self.script.get(asset.file_name)
        outcome: Outcome = outcomes.pop(0) if outcomes else f"https://cdn.test/{asset.file_name}"
        if isinstance(outcome, BaseException):
            raise outcome
        if on_progress:
            on_progress(100)
        return outcome

    def uploaded_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class FakeRecordStore:
    """Records payloads; scripted failures are raised first."""

    def __init__(self, failures: Optional[list] = None, record_id: str = "prod_001"):
        self.failures = list(failures or [])
        self.record_id = record_id
        self.payloads: list[dict] = []
        self.blocker: Optional[asyncio.Event] = None

    async def create_product(self, draft: ProductDraft) -> str:
        self.payloads.append(draft.to_payload())
        if self.blocker is not None:
            await self.blocker.wait()
        await asyncio.sleep(0)
        if self.failures:
            raise self.failures.pop(0)
        return self.record_id


@pytest.fixture
def upload_settings():
    return UploaderSettings(
        auth_url="http://auth.test/api/imagekit-auth",
        upload_url="http://store.test/upload",
        record_url="http://records.test/products",
        chunk_size=4,
        timeout_seconds=5,
    )


@pytest.fixture
def catalog():
    return ReferenceCatalog(
        categories=[
            ReferenceItem(id="cat_shirts", name="Shirts"),
            ReferenceItem(id="cat_pants", name="Pants"),
        ],
        collections=[
            ReferenceItem(id="col_summer", name="Summer"),
            ReferenceItem(id="col_linen", name="Linen"),
        ],
    )


@pytest.fixture
def filled_form(catalog):
    """A form with every required field set."""
    form = ProductForm(catalog)
    form.name = "Linen Shirt"
    form.slug = "linen-shirt"
    form.description = "Breathable summer shirt"
    form.size = "S, M, L"
    form.add_color("Black", "#000")
    form.select_category("cat_shirts")
    form.add_collection("col_summer")
    form.set_price("49.999")
    return form


@pytest.fixture
def authorizer():
    return FakeAuthorizer()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def coordinator(authorizer, uploader, upload_settings):
    return BatchUploadCoordinator(
        authorizer,
        uploader,
        settings=upload_settings,
        retry_config=RetryConfig(max_retries=0),
        error_logger=ErrorLogger(max_history=50),
    )


@pytest.fixture
def auth_failure():
    return AuthFailure("Authorization provider returned HTTP 500", status=500)
