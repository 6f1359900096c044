"""Crafty Controller `/api/v2` client.

One method per remote capability. Each method is a request/response mapping:
it validates inputs, calls the panel, checks the envelope and hands the
payload to the normalizer. No retries, no caching.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import ClientConfig
from ..errors import (
    ApiError,
    AuthError,
    AuthErrorKind,
    NetworkError,
    NetworkErrorKind,
    is_auth_status,
)
from ..models import ActionAck, LoginResult, ServerAction, ServerInfo, ServerStats, Session
from .normalize import normalize_server_info, normalize_stats
from .schemas import Envelope, LoginData, LoginRequest, StdinRequest
from .transport import create_client, normalize_base_url

logger = logging.getLogger(__name__)

_UNRESOLVED_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
    "unable to resolve host",
)


def _network_error(exc: httpx.RequestError) -> NetworkError:
    """Classify an httpx request failure (transport, decoding, redirects)."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(NetworkErrorKind.TIMEOUT, "Connection timed out.")
    text = str(exc).lower()
    if isinstance(exc, httpx.ConnectError) and any(h in text for h in _UNRESOLVED_HINTS):
        return NetworkError(
            NetworkErrorKind.UNRESOLVED_HOST,
            "Cannot reach the panel. Check the server address.",
        )
    if isinstance(exc, httpx.DecodingError):
        return NetworkError(NetworkErrorKind.OTHER, f"Unreadable response from the panel: {exc}")
    return NetworkError(NetworkErrorKind.OTHER, f"Connection error: {exc}")


def _parse_envelope(resp: httpx.Response) -> Envelope | None:
    """Decode the JSON envelope; None when the body is not one."""
    try:
        return Envelope.model_validate_json(resp.content)
    except ValidationError:
        return None


def coerce_action(action: ServerAction | str) -> ServerAction:
    if isinstance(action, ServerAction):
        return action
    try:
        return ServerAction(str(action).strip().lower())
    except ValueError as e:
        valid = ", ".join(a.value for a in ServerAction)
        raise ValueError(f"Unknown action '{action}'. Valid values: {valid}.") from e


class CraftyClient:
    """Async client for one panel base URL.

    Usage::

        async with CraftyClient("panel.example:8443") as client:
            result = await client.login("admin", "secret")
            session = Session(client.base_url, result.token, result.user_id)
            servers = await client.list_servers(session)
    """

    def __init__(
        self,
        base_url: str,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.base_url = normalize_base_url(base_url)
        self._http = create_client(
            self.base_url,
            insecure_skip_verify=self.config.insecure_skip_verify,
            timeout=self.config.timeout,
            ca_bundle=self.config.ca_bundle,
            transport=transport,
        )

    async def __aenter__(self) -> CraftyClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _check_session(self, session: Session) -> None:
        if session.base_url != self.base_url:
            raise ValueError(
                f"Session belongs to {session.base_url}, client is bound to {self.base_url}"
            )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        session: Session | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        if session is not None:
            self._check_session(session)
            headers["Authorization"] = session.authorization

        logger.debug("%s %s%s", method, self.base_url, path)
        try:
            resp = await self._http.request(method, path, json=json, headers=headers)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise _network_error(e) from e
        logger.debug("%s %s -> HTTP %s", method, path, resp.status_code)
        return resp

    async def _call(
        self,
        method: str,
        path: str,
        *,
        session: Session,
        json: dict[str, Any] | None = None,
    ) -> Envelope:
        """Authenticated request; returns an "ok" envelope or raises."""
        resp = await self._send(method, path, session=session, json=json)
        envelope = _parse_envelope(resp)
        message = envelope.error_message() if envelope is not None else None

        if is_auth_status(resp.status_code):
            raise AuthError.from_status(resp.status_code, message)
        if not resp.is_success:
            raise ApiError(resp.status_code, message)
        if envelope is None:
            raise ApiError(resp.status_code, "Panel returned a non-JSON response")
        if not envelope.ok:
            raise ApiError(resp.status_code, message)
        return envelope

    async def login(
        self,
        username: str,
        password: str,
        totp: str | None = None,
    ) -> LoginResult:
        """Exchange credentials for a bearer token.

        `totp` is only needed when the account has MFA enabled.
        """
        if not username or not username.strip():
            raise ValueError("username must not be blank")
        if not password:
            raise ValueError("password must not be blank")
        totp = (totp or "").strip() or None
        try:
            body = LoginRequest(username=username.strip(), password=password, totp=totp)
        except ValidationError as e:
            raise ValueError("totp must be a six-digit code") from e

        resp = await self._send(
            "POST", "api/v2/auth/login", json=body.model_dump(exclude_none=True)
        )
        envelope = _parse_envelope(resp)
        message = envelope.error_message() if envelope is not None else None

        if not resp.is_success:
            raise AuthError.from_status(resp.status_code, message)
        if envelope is None or not envelope.ok:
            raise AuthError(
                AuthErrorKind.UNKNOWN,
                message or "Login failed.",
                http_status=resp.status_code,
            )
        try:
            data = LoginData.model_validate(envelope.data)
        except ValidationError as e:
            raise AuthError(
                AuthErrorKind.UNKNOWN,
                "Login response did not include a token.",
                http_status=resp.status_code,
            ) from e

        if data.warning:
            logger.warning("Login warning for %s: %s", username, data.warning)
        logger.info("Logged in to %s as user %s", self.base_url, data.user_id)
        return LoginResult(token=data.token, user_id=data.user_id, warning=data.warning)

    async def list_servers(self, session: Session) -> list[ServerInfo]:
        envelope = await self._call("GET", "api/v2/servers", session=session)
        rows = envelope.data if isinstance(envelope.data, list) else []
        servers: list[ServerInfo] = []
        for row in rows:
            info = normalize_server_info(row)
            if info is None:
                logger.debug("Skipping server row without server_id: %r", row)
                continue
            servers.append(info)
        return servers

    async def get_server_stats(self, session: Session, server_id: str) -> ServerStats:
        envelope = await self._call("GET", f"api/v2/servers/{server_id}/stats", session=session)
        return normalize_stats(envelope.data, server_id)

    async def perform_action(
        self,
        session: Session,
        server_id: str,
        action: ServerAction | str,
    ) -> ActionAck:
        """Ask the panel to run a lifecycle action.

        Success means the panel accepted the request, not that it finished.
        """
        act = coerce_action(action)
        await self._call(
            "POST", f"api/v2/servers/{server_id}/action/{act.value}", session=session
        )
        logger.info("%s accepted for server %s", act.value, server_id)
        return ActionAck(server_id=server_id, action=act.value, message=f"{act.label} command sent.")

    async def send_console_command(
        self,
        session: Session,
        server_id: str,
        command: str,
    ) -> ActionAck:
        """Write a command to the server console verbatim."""
        if not command or not command.strip():
            raise ValueError("command must not be blank")
        body = StdinRequest(command=command)
        await self._call(
            "POST", f"api/v2/servers/{server_id}/stdin", session=session, json=body.model_dump()
        )
        logger.debug("Command sent to server %s", server_id)
        return ActionAck(server_id=server_id, action="stdin", command=command)

    async def get_logs(self, session: Session, server_id: str) -> list[str]:
        """Most recent log lines, in the order the panel returns them."""
        envelope = await self._call("GET", f"api/v2/servers/{server_id}/logs", session=session)
        data = envelope.data
        if isinstance(data, str):
            return data.splitlines()
        if not isinstance(data, list):
            return []
        return [line if isinstance(line, str) else str(line) for line in data]
