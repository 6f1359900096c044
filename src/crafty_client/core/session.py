"""Session state: logged in or logged out, never in between."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from .api.client import CraftyClient
from .errors import AuthError, AuthErrorKind
from .models import LoginResult, Session

logger = logging.getLogger(__name__)


class SessionState:
    """Holds the current session for the owning process.

    Login replaces the session wholesale and logout clears it in one step, so
    base_url, token and user_id are either all set or all empty. Nothing is
    persisted.
    """

    def __init__(self) -> None:
        self._current: Session | None = None
        self.last_warning: str | None = None

    @property
    def current(self) -> Session | None:
        return self._current

    @property
    def is_logged_in(self) -> bool:
        return self._current is not None

    @property
    def base_url(self) -> str:
        return self._current.base_url if self._current else ""

    @property
    def token(self) -> str:
        return self._current.token if self._current else ""

    @property
    def user_id(self) -> str:
        return self._current.user_id if self._current else ""

    def require(self) -> Session:
        if self._current is None:
            raise AuthError(AuthErrorKind.NOT_LOGGED_IN)
        return self._current

    def replace(self, base_url: str, result: LoginResult) -> Session:
        """Install a new session built from a login result."""
        session = Session(base_url=base_url, token=result.token, user_id=result.user_id)
        self._current = session
        self.last_warning = result.warning
        return session

    async def login(
        self,
        client: CraftyClient,
        username: str,
        password: str,
        totp: str | None = None,
    ) -> Session:
        """Log in through `client`. On failure the previous state is kept."""
        result = await client.login(username, password, totp)
        return self.replace(client.base_url, result)

    def logout(self) -> None:
        if self._current is not None:
            logger.info("Logged out of %s", self._current.base_url)
        self._current = None
        self.last_warning = None

    @contextmanager
    def guard(self) -> Iterator[Session]:
        """Yield the session; drop it when the panel answers 401.

        There is no token refresh. A rejected token means a fresh login.
        """
        session = self.require()
        try:
            yield session
        except AuthError as e:
            if self._current is session and e.kind is AuthErrorKind.INVALID_CREDENTIALS:
                logger.warning("Token rejected; logging out")
                self.logout()
            raise
