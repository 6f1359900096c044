"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: panel operations (login, dashboard, actions, console, logs)
- Resources: static reference data (help, action list, schemas, sample log)
- Prompts: reusable conversation templates that clients can invoke

Run locally (stdio):
    python -m crafty_client.server.crafty_server
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from crafty_client.prompts.registry import register_prompts
from crafty_client.resources.registry import register_resources
from crafty_client.tools.servers import (
    PanelContext,
    dashboard_impl,
    get_logs_impl,
    list_servers_impl,
    login_impl,
    logout_impl,
    moderate_player_impl,
    players_impl,
    send_command_impl,
    server_action_impl,
    server_stats_impl,
    session_impl,
)

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure logging on stderr; stdout carries the stdio transport."""
    level_name = os.getenv("CRAFTY_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO, URLs included.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


mcp = FastMCP("crafty-controller", json_response=True)
context = PanelContext()

register_resources(mcp, context)
register_prompts(mcp)


@mcp.tool()
async def login(
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    totp: str | None = None,
) -> dict[str, Any]:
    """Log in to a Crafty Controller panel.

    Parameters
    ----------
    base_url:
        Panel address, e.g. "panel.example.com:8443". https is assumed when
        no scheme is given. Falls back to CRAFTY_URL.
    username/password:
        Panel credentials. Fall back to CRAFTY_USERNAME / CRAFTY_PASSWORD.
    totp:
        Six-digit MFA code, only for accounts with MFA enabled.

    Returns
    -------
    dict:
        {"ok": true, "base_url": str, "user_id": str} or {"ok": false, "error": {...}}
    """
    return await login_impl(
        context, base_url=base_url, username=username, password=password, totp=totp
    )


@mcp.tool()
async def logout() -> dict[str, Any]:
    """Forget the current session."""
    return await logout_impl(context)


@mcp.tool()
def session() -> dict[str, Any]:
    """Report whether a session is active (the token is never returned)."""
    return session_impl(context)


@mcp.tool()
async def list_servers() -> dict[str, Any]:
    """List managed servers (identity only, no stats)."""
    return await list_servers_impl(context)


@mcp.tool()
async def dashboard() -> dict[str, Any]:
    """List servers with their latest stats plus fleet-wide aggregates.

    A server whose stats call failed is still listed, with "stats": null.
    """
    return await dashboard_impl(context)


@mcp.tool()
async def server_stats(server_id: str) -> dict[str, Any]:
    """Return normalized stats for one server."""
    return await server_stats_impl(context, server_id=server_id)


@mcp.tool()
async def server_action(server_id: str, action: str, refresh: bool = False) -> dict[str, Any]:
    """Start, stop, restart or kill a server.

    action is one of start_server, stop_server, restart_server, kill_server.
    Success means the panel accepted the request, not that it completed. With
    refresh=true the tool waits briefly and returns the server's new state.
    """
    return await server_action_impl(context, server_id=server_id, action=action, refresh=refresh)


@mcp.tool()
async def send_command(server_id: str, command: str) -> dict[str, Any]:
    """Send a console command verbatim (e.g. "say hello", "whitelist add Steve")."""
    return await send_command_impl(context, server_id=server_id, command=command)


@mcp.tool()
async def get_logs(
    server_id: str,
    level: str = "all",
    limit: int | None = None,
    include_raw: bool = False,
) -> dict[str, Any]:
    """Return recent log lines parsed into time, level and message.

    level filters by severity ("all", "info", "warn", "error", "debug", "fatal");
    limit keeps the newest N lines (default 200).
    """
    return await get_logs_impl(
        context, server_id=server_id, level=level, limit=limit, include_raw=include_raw
    )


@mcp.tool()
async def online_players(server_id: str) -> dict[str, Any]:
    """Return the names of players currently online."""
    return await players_impl(context, server_id=server_id)


@mcp.tool()
async def kick_player(server_id: str, player: str) -> dict[str, Any]:
    """Kick a player via the console."""
    return await moderate_player_impl(context, server_id=server_id, verb="kick", player=player)


@mcp.tool()
async def ban_player(server_id: str, player: str) -> dict[str, Any]:
    """Ban a player via the console."""
    return await moderate_player_impl(context, server_id=server_id, verb="ban", player=player)


@mcp.tool()
async def pardon_player(server_id: str, player: str) -> dict[str, Any]:
    """Lift a ban via the console."""
    return await moderate_player_impl(context, server_id=server_id, verb="pardon", player=player)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
