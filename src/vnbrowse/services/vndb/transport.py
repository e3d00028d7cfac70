"""HTTP transport for the catalog API.

The transport only moves bytes: it sends a request, decodes the JSON body
and reports the status. Deciding what a status means is the gateway's job.
Connection faults and timeouts are the one exception and are raised here as
:class:`TransportFailure`, since no status exists to hand back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
import orjson

from vnbrowse.shared.constants import APIConfig
from vnbrowse.shared.errors import ErrorCode, ErrorContext, TransportFailure
from vnbrowse.shared.logging import log_api_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    status: int
    payload: Any = None
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        token: str | None = None,
    ) -> TransportResponse: ...


class AiohttpTransport:
    """aiohttp backed transport.

    The session is created lazily on first use unless one is injected; an
    injected session is left open on :meth:`close`.

    Args:
        base_url: API root, e.g. ``https://api.vndb.org/kana``
        timeout: Total request timeout in seconds
        user_agent: User-Agent header value
        session: Optional externally managed session
    """

    def __init__(
        self,
        base_url: str = APIConfig.BASE_URL,
        timeout: float = APIConfig.TIMEOUT,
        user_agent: str = APIConfig.USER_AGENT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent, "Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        token: str | None = None,
    ) -> TransportResponse:
        url = f"{self.base_url}{path}"
        headers: dict[str, str] = {}
        data: bytes | None = None
        if json_body is not None:
            data = orjson.dumps(json_body)
            headers["Content-Type"] = "application/json"
        if token:
            headers["Authorization"] = f"{APIConfig.AUTH_SCHEME} {token}"

        session = await self._get_session()
        started = time.perf_counter()
        try:
            async with session.request(method, url, data=data, headers=headers) as response:
                body = await response.read()
                status = response.status
        except asyncio.TimeoutError as e:
            raise TransportFailure(
                ErrorCode.API_TIMEOUT,
                f"Request to {path} timed out",
                ErrorContext(operation="http_request", endpoint=path),
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            raise TransportFailure(
                ErrorCode.NETWORK_ERROR,
                f"Request to {path} failed: {e}",
                ErrorContext(operation="http_request", endpoint=path),
                original_error=e,
            ) from e

        # Invalid UTF-8 is replaced, never raised
        text = body.decode("utf-8", errors="replace")
        log_api_call(
            logger,
            path,
            method=method,
            status_code=status,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return TransportResponse(status=status, payload=_decode_body(text), text=text)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> AiohttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def _decode_body(text: str) -> Any:
    if not text:
        return None
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return None
