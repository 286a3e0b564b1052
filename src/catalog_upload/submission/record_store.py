"""Client for the record store that creates product records."""

import asyncio
from typing import Optional, Protocol

import aiohttp

from catalog_upload.core import get_logger
from catalog_upload.core.config import UploaderSettings
from catalog_upload.core.errors import RecordStoreFailure
from catalog_upload.product.models import ProductDraft

logger = get_logger(__name__)


class RecordStore(Protocol):
    async def create_product(self, draft: ProductDraft) -> str: ...


class RecordStoreClient:
    """Posts one finished product payload and returns the new record id."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        settings: Optional[UploaderSettings] = None,
    ):
        self.session = session
        self.settings = settings or UploaderSettings()

    async def create_product(self, draft: ProductDraft) -> str:
        """Create a product record.

        Args:
            draft: Validated draft with resolved image URLs

        Returns:
            Identifier of the new record

        Raises:
            RecordStoreFailure: Non-2xx status, transport error, or no id in the body
        """
        url = self.settings.record_url
        try:
            async with self.session.post(
                url,
                json=draft.to_payload(),
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            ) as response:
                if response.status >= 400:
                    detail = await response.text()
                    logger.error(
                        "record_store_rejected",
                        status=response.status,
                        detail=detail[:200],
                    )
                    raise RecordStoreFailure(
                        f"Record store returned HTTP {response.status}: {detail[:200]}",
                        status=response.status,
                    )
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error("record_store_unreachable", url=url, error=str(e))
            raise RecordStoreFailure(f"Record store request failed: {e}") from e

        record_id = None
        if isinstance(body, dict):
            record_id = body.get("id") or body.get("_id")
        elif isinstance(body, str):
            record_id = body
        if not record_id:
            raise RecordStoreFailure("Record store response has no id", status=response.status)

        logger.info("product_record_created", record_id=record_id, slug=draft.slug)
        return str(record_id)
