"""Tests for the authorization client."""

import time

import pytest
from aiohttp import ClientSession, web

from catalog_upload.core.config import UploaderSettings
from catalog_upload.core.errors import AuthFailure, FailureKind
from catalog_upload.upload.auth_client import AuthorizationClient

from conftest import serve


def _auth_app(responses: list, calls: list) -> web.Application:
    """Serve scripted responses in order; the last one repeats."""

    async def issue(request: web.Request) -> web.Response:
        calls.append(request.path)
        status, body = responses[min(len(calls), len(responses)) - 1]
        if isinstance(body, str):
            return web.Response(text=body, status=status)
        return web.json_response(body, status=status)

    app = web.Application()
    app.router.add_get("/api/imagekit-auth", issue)
    return app


def _body(token: str = "tok-1") -> dict:
    return {
        "signature": "sig",
        "expire": int(time.time()) + 600,
        "token": token,
        "publicKey": "public_key",
    }


async def _authorize(responses: list, calls: list, times: int = 1):
    async with serve(_auth_app(responses, calls)) as server:
        settings = UploaderSettings(auth_url=str(server.make_url("/api/imagekit-auth")))
        async with ClientSession() as session:
            client = AuthorizationClient(session, settings)
            return [await client.authorize() for _ in range(times)]


class TestAuthorize:
    """Tests for credential retrieval."""

    @pytest.mark.asyncio
    async def test_returns_credential(self):
        calls = []
        [credential] = await _authorize([(200, _body("tok-9"))], calls)

        assert credential.token == "tok-9"
        assert credential.public_key == "public_key"
        assert credential.is_expired() is False

    @pytest.mark.asyncio
    async def test_every_call_hits_the_provider(self):
        calls = []
        credentials = await _authorize(
            [(200, _body("tok-1")), (200, _body("tok-2"))], calls, times=2
        )

        assert len(calls) == 2
        assert [c.token for c in credentials] == ["tok-1", "tok-2"]

    @pytest.mark.asyncio
    async def test_error_status_is_auth_failure(self):
        calls = []
        with pytest.raises(AuthFailure) as exc_info:
            await _authorize([(500, {"error": "boom"})], calls)

        assert exc_info.value.status == 500
        assert exc_info.value.kind == FailureKind.AUTH

    @pytest.mark.asyncio
    async def test_missing_fields_are_reported(self):
        calls = []
        body = _body()
        del body["signature"]
        body["token"] = ""

        with pytest.raises(AuthFailure) as exc_info:
            await _authorize([(200, body)], calls)

        assert exc_info.value.missing_fields == ["signature", "token"]

    @pytest.mark.asyncio
    async def test_non_json_body_is_auth_failure(self):
        calls = []
        with pytest.raises(AuthFailure, match="malformed"):
            await _authorize([(200, "not json")], calls)

    @pytest.mark.asyncio
    async def test_non_object_body_is_auth_failure(self):
        calls = []
        with pytest.raises(AuthFailure, match="not an object"):
            await _authorize([(200, ["sig", "tok"])], calls)

    @pytest.mark.asyncio
    async def test_unreachable_provider_is_auth_failure(self):
        settings = UploaderSettings(auth_url="http://127.0.0.1:1/auth", timeout_seconds=2)
        async with ClientSession() as session:
            client = AuthorizationClient(session, settings)
            with pytest.raises(AuthFailure, match="request failed"):
                await client.authorize()
