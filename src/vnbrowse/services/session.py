"""Authenticated session handling.

A session is established by introspecting an API token through
``/authinfo``. A refused token is dropped from the credential store so
the caller falls back to the unauthenticated view.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional, Protocol

from vnbrowse.core.models import AuthInfo
from vnbrowse.services.vndb.gateway import CatalogQueryGateway
from vnbrowse.shared.constants import Permission
from vnbrowse.shared.errors import (
    AuthenticationFailure,
    create_authentication_required_error,
    create_permission_error,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedSession:
    """Identity and permissions behind a validated token."""

    user_id: str
    username: str
    token: str = field(repr=False)
    permissions: frozenset[str] = frozenset()

    @classmethod
    def from_auth_info(cls, info: AuthInfo, token: str) -> AuthenticatedSession:
        return cls(
            user_id=info.user_id,
            username=info.username,
            token=token,
            permissions=info.permissions,
        )

    @property
    def can_read_list(self) -> bool:
        return Permission.LIST_READ in self.permissions

    @property
    def can_write_list(self) -> bool:
        return Permission.LIST_WRITE in self.permissions


class CredentialStore(Protocol):
    def load(self) -> str | None: ...

    def save(self, token: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryCredentialStore:
    """Credential store that lives for the process only."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    def load(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None

    def __repr__(self) -> str:
        return f"InMemoryCredentialStore(token={'****' if self._token else '[empty]'})"


SessionListener = Callable[[Optional[AuthenticatedSession]], None]


class SessionManager:
    """Owns the current session and the persisted credential.

    Args:
        gateway: Gateway used for token introspection
        store: Where the token is persisted between runs
    """

    def __init__(
        self,
        gateway: CatalogQueryGateway,
        store: CredentialStore | None = None,
    ) -> None:
        self.gateway = gateway
        self.store: CredentialStore = store or InMemoryCredentialStore()
        self._session: AuthenticatedSession | None = None
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> AuthenticatedSession | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener`` for session changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_session(self, session: AuthenticatedSession | None) -> None:
        if session == self._session:
            return
        self._session = session
        for listener in list(self._listeners):
            listener(session)

    async def authenticate(self, token: str) -> AuthenticatedSession:
        """Validate ``token`` and make it the current session.

        Raises:
            AuthenticationFailure: The token was refused. The stored
                credential and the current session are cleared first.
        """
        token = token.strip()
        try:
            info = await self.gateway.fetch_auth_info(token)
        except AuthenticationFailure:
            self.handle_authentication_failure()
            raise

        session = AuthenticatedSession.from_auth_info(info, token)
        self.store.save(token)
        self._set_session(session)
        logger.info("Signed in as %s", session.username or session.user_id)
        return session

    async def restore(self) -> AuthenticatedSession | None:
        """Re-validate the stored token, if any.

        Returns None when there is no token or it was refused.
        """
        token = self.store.load()
        if not token:
            return None
        try:
            return await self.authenticate(token)
        except AuthenticationFailure:
            logger.warning("Stored API token was refused and has been removed")
            return None

    def sign_out(self) -> None:
        self.store.clear()
        self._set_session(None)

    def handle_authentication_failure(self) -> None:
        """Drop the credential after the remote refused it."""
        self.store.clear()
        self._set_session(None)

    def require_session(self, operation: str | None = None) -> AuthenticatedSession:
        if self._session is None:
            raise create_authentication_required_error(operation)
        return self._session

    def require_read(self, operation: str | None = None) -> AuthenticatedSession:
        session = self.require_session(operation)
        if not session.can_read_list:
            raise create_permission_error(Permission.LIST_READ, operation)
        return session

    def require_write(self, operation: str | None = None) -> AuthenticatedSession:
        session = self.require_session(operation)
        if not session.can_write_list:
            raise create_permission_error(Permission.LIST_WRITE, operation)
        return session
