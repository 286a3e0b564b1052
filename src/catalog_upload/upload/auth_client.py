"""Client for the authorization provider that issues upload credentials."""

import asyncio
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from catalog_upload.core import get_logger
from catalog_upload.core.config import UploaderSettings
from catalog_upload.core.errors import AuthFailure
from catalog_upload.upload.models import AuthorizationCredential

logger = get_logger(__name__)

REQUIRED_CREDENTIAL_FIELDS = ("signature", "expire", "token", "publicKey")


class AuthorizationClient:
    """Obtains one fresh credential per upload attempt.

    Credentials are never cached: every call to ``authorize`` is a network
    round trip to the provider.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        settings: Optional[UploaderSettings] = None,
    ):
        """Initialize authorization client.

        Args:
            session: Shared aiohttp session (owned by the caller)
            settings: Endpoint and timeout configuration
        """
        self.session = session
        self.settings = settings or UploaderSettings()

    async def authorize(self) -> AuthorizationCredential:
        """Request a single-use upload credential.

        Returns:
            AuthorizationCredential with signature, expiry, token and public key

        Raises:
            AuthFailure: Non-2xx status, malformed body, or transport failure
        """
        url = self.settings.auth_url
        try:
            async with self.session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            ) as response:
                if response.status >= 400:
                    logger.warning("authorization_rejected", url=url, status=response.status)
                    raise AuthFailure(
                        f"Authorization provider returned HTTP {response.status}",
                        status=response.status,
                    )
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise AuthFailure(
                        "Authorization provider returned a malformed body",
                        status=response.status,
                    ) from e
        except aiohttp.ClientError as e:
            logger.warning("authorization_transport_failed", url=url, error=str(e))
            raise AuthFailure(f"Authorization request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.warning("authorization_timed_out", url=url)
            raise AuthFailure("Authorization request timed out") from e

        return self._parse_credential(body)

    def _parse_credential(self, body: Any) -> AuthorizationCredential:
        if not isinstance(body, dict):
            raise AuthFailure("Authorization body is not an object")

        missing = [
            name for name in REQUIRED_CREDENTIAL_FIELDS
            if body.get(name) in (None, "")
        ]
        if missing:
            raise AuthFailure(
                f"Authorization body is missing: {', '.join(missing)}",
                missing_fields=missing,
            )

        try:
            credential = AuthorizationCredential.model_validate(body)
        except ValidationError as e:
            raise AuthFailure(f"Authorization body is malformed: {e}") from e

        logger.debug("credential_issued", expire=credential.expire)
        return credential
