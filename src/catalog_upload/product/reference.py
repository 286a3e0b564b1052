"""Reference data (categories and collections) consumed by the product form."""

import asyncio
from typing import Optional, Protocol

import aiohttp
from pydantic import TypeAdapter, ValidationError

from catalog_upload.core import get_logger
from catalog_upload.core.config import UploaderSettings
from catalog_upload.core.errors import ReferenceDataError
from catalog_upload.product.models import ReferenceItem

logger = get_logger(__name__)

_ITEMS = TypeAdapter(list[ReferenceItem])


class ReferenceSource(Protocol):
    async def list_categories(self) -> list[ReferenceItem]: ...

    async def list_collections(self) -> list[ReferenceItem]: ...


class HttpReferenceSource:
    """Reads category and collection lists over HTTP."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        settings: Optional[UploaderSettings] = None,
    ):
        self.session = session
        self.settings = settings or UploaderSettings()

    async def list_categories(self) -> list[ReferenceItem]:
        return await self._fetch(self.settings.categories_url)

    async def list_collections(self) -> list[ReferenceItem]:
        return await self._fetch(self.settings.collections_url)

    async def _fetch(self, url: str) -> list[ReferenceItem]:
        try:
            async with self.session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            ) as response:
                if response.status >= 400:
                    raise ReferenceDataError(
                        f"HTTP {response.status} while loading reference data",
                        source_url=url,
                    )
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ReferenceDataError(f"Failed to load reference data: {e}", source_url=url) from e

        try:
            return _ITEMS.validate_python(body)
        except ValidationError as e:
            raise ReferenceDataError(f"Malformed reference data: {e}", source_url=url) from e


class StaticReferenceSource:
    """In-memory reference data, for fixtures and offline use."""

    def __init__(
        self,
        categories: Optional[list[ReferenceItem]] = None,
        collections: Optional[list[ReferenceItem]] = None,
    ):
        self._categories = list(categories or [])
        self._collections = list(collections or [])

    async def list_categories(self) -> list[ReferenceItem]:
        return list(self._categories)

    async def list_collections(self) -> list[ReferenceItem]:
        return list(self._collections)


class ReferenceCatalog:
    """Snapshot of valid category and collection identifiers.

    Lookups accept either the identifier or the display name, since the
    category picker submits names.
    """

    def __init__(
        self,
        categories: Optional[list[ReferenceItem]] = None,
        collections: Optional[list[ReferenceItem]] = None,
    ):
        self.categories = list(categories or [])
        self.collections = list(collections or [])

    @classmethod
    async def load(cls, source: ReferenceSource) -> "ReferenceCatalog":
        """Fetch both lists concurrently from a reference source.

        Both fetches always finish before the first error is raised.
        """
        results = await asyncio.gather(
            source.list_categories(),
            source.list_collections(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        categories, collections = results
        logger.info(
            "reference_data_loaded",
            categories=len(categories),
            collections=len(collections),
        )
        return cls(categories=categories, collections=collections)

    def resolve_category(self, value: str) -> Optional[ReferenceItem]:
        return _resolve(self.categories, value)

    def resolve_collection(self, value: str) -> Optional[ReferenceItem]:
        return _resolve(self.collections, value)

    def is_category(self, value: str) -> bool:
        return self.resolve_category(value) is not None

    def is_collection(self, value: str) -> bool:
        return self.resolve_collection(value) is not None


def _resolve(items: list[ReferenceItem], value: str) -> Optional[ReferenceItem]:
    for item in items:
        if item.id == value:
            return item
    for item in items:
        if item.name == value:
            return item
    return None
