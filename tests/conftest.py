"""
Pytest configuration and shared fixtures for vnbrowse tests.

The network is replaced by :class:`ScriptedTransport`, which records every
request and answers from a queue or a routing function. The cache clock is
a :class:`FakeClock` so expiry is driven by the test, never by wall time.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import os
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

import orjson
import pytest
from aiolimiter import AsyncLimiter

from vnbrowse.services.cache import ResponseCache
from vnbrowse.services.session import AuthenticatedSession, InMemoryCredentialStore, SessionManager
from vnbrowse.services.vndb.gateway import CatalogQueryGateway
from vnbrowse.services.vndb.transport import TransportResponse

# Keep a developer's real token and config out of the test run
for _name in list(os.environ):
    if _name.startswith("VNBROWSE_"):
        del os.environ[_name]


@dataclass
class RecordedCall:
    method: str
    path: str
    json_body: Any
    token: str | None


Reply = Union[TransportResponse, BaseException]
Handler = Callable[[RecordedCall], Union[Reply, Awaitable[Reply]]]


def ok(payload: Any, status: int = 200) -> TransportResponse:
    """A successful response carrying ``payload``."""
    return TransportResponse(status=status, payload=payload, text=orjson.dumps(payload).decode())


def page(results: list[Any], more: bool = False) -> TransportResponse:
    """A ``{results, more}`` read response."""
    return ok({"results": results, "more": more})


def failure(status: int, text: str = "") -> TransportResponse:
    return TransportResponse(status=status, payload=None, text=text)


class ScriptedTransport:
    """Transport double answering from a queue or a routing handler."""

    ok = staticmethod(ok)
    page = staticmethod(page)
    failure = staticmethod(failure)

    def __init__(self, handler: Handler | None = None) -> None:
        self.handler = handler
        self.calls: list[RecordedCall] = []
        self._queue: deque[Reply] = deque()

    def enqueue(self, *replies: Reply) -> ScriptedTransport:
        self._queue.extend(replies)
        return self

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        token: str | None = None,
    ) -> TransportResponse:
        call = RecordedCall(method, path, copy.deepcopy(json_body), token)
        self.calls.append(call)

        if self.handler is not None:
            reply = self.handler(call)
            if asyncio.iscoroutine(reply) or isinstance(reply, asyncio.Future):
                reply = await reply
        elif self._queue:
            reply = self._queue.popleft()
        else:
            raise AssertionError(f"Unexpected request: {method} {path} {json_body!r}")

        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def close(self) -> None:
        return None

    def calls_to(self, path: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.path == path]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("vnbrowse")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def gateway(transport: ScriptedTransport, cache: ResponseCache) -> CatalogQueryGateway:
    return CatalogQueryGateway(transport, cache=cache, limiter=AsyncLimiter(1000, 1))


@pytest.fixture
def session() -> AuthenticatedSession:
    return AuthenticatedSession(
        user_id="u1",
        username="tester",
        token="secret-token",
        permissions=frozenset({"listread", "listwrite"}),
    )


@pytest.fixture
def read_only_session() -> AuthenticatedSession:
    return AuthenticatedSession(
        user_id="u1",
        username="tester",
        token="secret-token",
        permissions=frozenset({"listread"}),
    )


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def session_manager(
    gateway: CatalogQueryGateway,
    credential_store: InMemoryCredentialStore,
) -> SessionManager:
    return SessionManager(gateway, credential_store)
