"""Tests for AiohttpTransport with a mocked aiohttp session."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import orjson
import pytest

from vnbrowse.services.vndb.transport import AiohttpTransport
from vnbrowse.shared.errors import ErrorCode, TransportFailure


def _session_returning(body: bytes, status: int = 200) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.read = AsyncMock(return_value=body)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock(spec=aiohttp.ClientSession)
    session.closed = False
    session.request = MagicMock(return_value=context)
    return session


def _session_raising(error: BaseException) -> MagicMock:
    session = MagicMock(spec=aiohttp.ClientSession)
    session.closed = False
    session.request = MagicMock(side_effect=error)
    return session


class TestRequest:
    """Request building and body decoding."""

    @pytest.mark.asyncio
    async def test_sends_json_body_and_token(self):
        # Given
        session = _session_returning(b'{"results": [], "more": false}')
        transport = AiohttpTransport(base_url="https://api.example/kana/", session=session)

        # When
        response = await transport.request("POST", "/vn", json_body={"a": 1}, token="tok")

        # Then
        args, kwargs = session.request.call_args
        assert args == ("POST", "https://api.example/kana/vn")
        assert orjson.loads(kwargs["data"]) == {"a": 1}
        assert kwargs["headers"]["Authorization"] == "Token tok"
        assert response.status == 200
        assert response.payload == {"results": [], "more": False}

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_decoded_leniently(self):
        session = _session_returning(b'{"results": ["\xff\xfe"], "more": false}')
        transport = AiohttpTransport(session=session)

        response = await transport.request("POST", "/vn", json_body={})

        assert response.status == 200
        assert response.payload["results"] == ["\ufffd\ufffd"]
        assert "\ufffd" in response.text

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        transport = AiohttpTransport(session=_session_returning(b"<html>busy</html>", 502))

        response = await transport.request("GET", "/stats")

        assert response.status == 502
        assert response.payload is None
        assert response.text == "<html>busy</html>"

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_failure(self):
        session = _session_raising(aiohttp.ClientConnectionError("refused"))
        transport = AiohttpTransport(session=session)

        with pytest.raises(TransportFailure) as exc_info:
            await transport.request("GET", "/authinfo", token="tok")

        assert exc_info.value.code is ErrorCode.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self):
        transport = AiohttpTransport(session=_session_raising(asyncio.TimeoutError()))

        with pytest.raises(TransportFailure) as exc_info:
            await transport.request("GET", "/stats")

        assert exc_info.value.code is ErrorCode.API_TIMEOUT

    @pytest.mark.asyncio
    async def test_injected_session_is_left_open(self):
        session = _session_returning(b"{}")
        transport = AiohttpTransport(session=session)

        await transport.close()

        session.close.assert_not_called()
