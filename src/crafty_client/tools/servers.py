"""MCP tool implementations.

Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures. Panel failures come back as
``{"ok": False, "error": {...}}`` so the caller can decide what to do.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from crafty_client.core.api.client import CraftyClient
from crafty_client.core.api.normalize import format_memory, memory_to_bytes
from crafty_client.core.api.transport import normalize_base_url
from crafty_client.core.config import ClientConfig, resolve_client_config
from crafty_client.core.dashboard import act_then_refresh, fetch_servers_with_stats, summarize
from crafty_client.core.errors import AuthError, AuthErrorKind, CraftyError
from crafty_client.core.logs import fetch_log_snapshot, filter_log_lines, resolve_level
from crafty_client.core.models import (
    ActionAck,
    ParsedLogLine,
    ServerInfo,
    ServerStats,
    ServerWithStats,
    Session,
)
from crafty_client.core.moderation import moderate_player
from crafty_client.core.session import SessionState

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 200
HARD_LOG_LIMIT = 5000


class PanelContext:
    """Session and client owned by the running server process."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        env: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._env = env if env is not None else os.environ
        self._transport = transport
        self._client: CraftyClient | None = None
        self.state = SessionState()

    @property
    def config(self) -> ClientConfig:
        if self._config is None:
            self._config = resolve_client_config(env=self._env)
        return self._config

    async def client_for(self, base_url: str) -> CraftyClient:
        """Return a client bound to `base_url`, replacing one bound elsewhere."""
        base_url = normalize_base_url(base_url)
        if self._client is not None and self._client.base_url != base_url:
            await self._client.aclose()
            self._client = None
        if self._client is None:
            self._client = CraftyClient(base_url, self.config, transport=self._transport)
        return self._client

    async def login(
        self,
        base_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        totp: str | None = None,
    ) -> Session:
        base_url = base_url or self._env.get("CRAFTY_URL")
        username = username or self._env.get("CRAFTY_USERNAME")
        password = password or self._env.get("CRAFTY_PASSWORD")
        totp = totp or self._env.get("CRAFTY_TOTP")
        if not base_url:
            raise ValueError("base_url is required (or set CRAFTY_URL)")
        if not username or not password:
            raise ValueError("username and password are required (or set CRAFTY_USERNAME/CRAFTY_PASSWORD)")

        client = await self.client_for(base_url)
        return await self.state.login(client, username, password, totp)

    async def ensure_session(self) -> Session:
        """Current session, logging in from CRAFTY_* env vars when possible."""
        if self.state.current is not None:
            return self.state.current
        if self._env.get("CRAFTY_URL") and self._env.get("CRAFTY_USERNAME"):
            logger.info("No session; logging in from environment")
            return await self.login()
        raise AuthError(AuthErrorKind.NOT_LOGGED_IN, "Not logged in. Call the login tool first.")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _error(e: CraftyError) -> dict[str, Any]:
    return {"ok": False, "error": e.to_dict()}


async def _with_session(
    ctx: PanelContext,
    fn: Callable[[CraftyClient, Session], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    try:
        await ctx.ensure_session()
        with ctx.state.guard() as session:
            client = await ctx.client_for(session.base_url)
            return await fn(client, session)
    except CraftyError as e:
        logger.info("Tool call failed: %s", e)
        return _error(e)


def server_info_to_dict(info: ServerInfo) -> dict[str, Any]:
    return {
        "server_id": info.server_id,
        "server_name": info.server_name,
        "type": info.type,
        "server_ip": info.server_ip,
        "server_port": info.server_port,
    }


def stats_to_dict(stats: ServerStats) -> dict[str, Any]:
    return {
        "server_id": stats.server_id,
        "running": stats.running,
        "crashed": stats.crashed,
        "cpu": stats.cpu,
        "mem": format_memory(stats.memory),
        "mem_bytes": memory_to_bytes(stats.memory),
        "mem_percent": stats.mem_percent,
        "online": stats.online,
        "max": stats.max_players,
        "players": list(stats.players),
        "version": stats.version,
        "world_name": stats.world_name,
        "updating": stats.updating,
        "waiting_start": stats.waiting_start,
    }


def server_with_stats_to_dict(entry: ServerWithStats) -> dict[str, Any]:
    d: dict[str, Any] = {
        "info": server_info_to_dict(entry.info),
        "stats": stats_to_dict(entry.stats) if entry.stats is not None else None,
    }
    if entry.error:
        d["error"] = entry.error
    return d


def ack_to_dict(ack: ActionAck) -> dict[str, Any]:
    d: dict[str, Any] = {"ok": True, "server_id": ack.server_id, "action": ack.action}
    if ack.command is not None:
        d["command"] = ack.command
    if ack.message:
        d["message"] = ack.message
    return d


def _log_line_to_dict(line: ParsedLogLine, *, include_raw: bool) -> dict[str, Any]:
    d: dict[str, Any] = {"time": line.time, "level": line.level.value, "message": line.message}
    if include_raw:
        d["raw"] = line.raw
    return d


async def login_impl(
    ctx: PanelContext,
    *,
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    totp: str | None = None,
) -> dict[str, Any]:
    try:
        session = await ctx.login(base_url, username, password, totp)
    except CraftyError as e:
        return _error(e)
    out: dict[str, Any] = {"ok": True, "base_url": session.base_url, "user_id": session.user_id}
    if ctx.state.last_warning:
        out["warning"] = ctx.state.last_warning
    return out


async def logout_impl(ctx: PanelContext) -> dict[str, Any]:
    ctx.state.logout()
    await ctx.aclose()
    return {"ok": True, "logged_in": False}


def session_impl(ctx: PanelContext) -> dict[str, Any]:
    # The token is never returned.
    return {
        "logged_in": ctx.state.is_logged_in,
        "base_url": ctx.state.base_url,
        "user_id": ctx.state.user_id,
    }


async def list_servers_impl(ctx: PanelContext) -> dict[str, Any]:
    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        servers = await client.list_servers(session)
        return {"ok": True, "count": len(servers), "servers": [server_info_to_dict(s) for s in servers]}

    return await _with_session(ctx, run)


async def dashboard_impl(ctx: PanelContext) -> dict[str, Any]:
    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        snapshot = await fetch_servers_with_stats(client, session)
        return {
            "ok": True,
            "summary": summarize(snapshot),
            "servers": [server_with_stats_to_dict(s) for s in snapshot.servers],
        }

    return await _with_session(ctx, run)


async def server_stats_impl(ctx: PanelContext, *, server_id: str) -> dict[str, Any]:
    _require_id(server_id)

    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        stats = await client.get_server_stats(session, server_id)
        return {"ok": True, "stats": stats_to_dict(stats)}

    return await _with_session(ctx, run)


async def server_action_impl(
    ctx: PanelContext,
    *,
    server_id: str,
    action: str,
    refresh: bool = False,
) -> dict[str, Any]:
    """Run a lifecycle action; with `refresh`, wait and return the new dashboard."""
    _require_id(server_id)

    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        if not refresh:
            return ack_to_dict(await client.perform_action(session, server_id, action))
        ack, snapshot = await act_then_refresh(client, session, server_id, action)
        out = ack_to_dict(ack)
        entry = snapshot.get(server_id)
        out["server"] = server_with_stats_to_dict(entry) if entry is not None else None
        return out

    return await _with_session(ctx, run)


async def send_command_impl(ctx: PanelContext, *, server_id: str, command: str) -> dict[str, Any]:
    _require_id(server_id)
    if not command or not command.strip():
        raise ValueError("command must not be blank")

    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        return ack_to_dict(await client.send_console_command(session, server_id, command))

    return await _with_session(ctx, run)


async def moderate_player_impl(
    ctx: PanelContext,
    *,
    server_id: str,
    verb: str,
    player: str,
) -> dict[str, Any]:
    _require_id(server_id)

    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        return ack_to_dict(await moderate_player(client, session, server_id, verb, player))

    return await _with_session(ctx, run)


async def players_impl(ctx: PanelContext, *, server_id: str) -> dict[str, Any]:
    _require_id(server_id)

    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        stats = await client.get_server_stats(session, server_id)
        return {
            "ok": True,
            "online": stats.online,
            "max": stats.max_players,
            "players": list(stats.players),
        }

    return await _with_session(ctx, run)


async def get_logs_impl(
    ctx: PanelContext,
    *,
    server_id: str,
    level: str = "all",
    limit: int | None = None,
    include_raw: bool = False,
) -> dict[str, Any]:
    """Parsed log lines, optionally filtered by level, newest `limit` kept."""
    _require_id(server_id)
    if limit is None:
        limit = DEFAULT_LOG_LIMIT
    if limit <= 0:
        raise ValueError("limit must be > 0")
    limit = min(limit, HARD_LOG_LIMIT)
    resolve_level(level)

    async def run(client: CraftyClient, session: Session) -> dict[str, Any]:
        snapshot = await fetch_log_snapshot(client, session, server_id)
        lines = filter_log_lines(snapshot.parsed, level)[-limit:]
        return {
            "ok": True,
            "count": len(lines),
            "lines": [_log_line_to_dict(line, include_raw=include_raw) for line in lines],
        }

    return await _with_session(ctx, run)


def _require_id(server_id: str) -> None:
    if not server_id or not str(server_id).strip():
        raise ValueError("server_id must not be blank")
