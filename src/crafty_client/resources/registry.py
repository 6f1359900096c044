"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from mcp.server.fastmcp import FastMCP

from crafty_client.core.api.normalize import UNIT_FACTORS
from crafty_client.core.api.schemas import Envelope, LoginData
from crafty_client.core.models import LogLevel, ServerAction
from crafty_client.tools.servers import PanelContext, get_logs_impl

SAMPLE_LOG = (
    "[08:12:01] [Server thread/INFO]: Starting minecraft server version 1.20.4\n"
    "[08:12:03] [Server thread/WARN]: Can't keep up! Is the server overloaded?\n"
    "[08:12:04] [Server thread/ERROR]: Encountered an unexpected exception\n"
    "[08:12:05] [Server thread/INFO]: Steve joined the game\n"
)


def register_resources(mcp: FastMCP, context: PanelContext) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://crafty/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        return (
            "Resources:\n"
            "- app://crafty/help\n"
            "- app://crafty/actions\n"
            "- app://crafty/config\n"
            "- app://crafty/memory-units\n"
            "- app://crafty/schemas/envelope\n"
            "- app://crafty/schemas/login\n"
            "- app://crafty/examples/sample-log\n"
            "- crafty://servers/{server_id}/logs (requires a session)\n"
            "\nSet CRAFTY_URL, CRAFTY_USERNAME and CRAFTY_PASSWORD to log in automatically.\n"
        )

    @mcp.resource("app://crafty/actions")
    def actions() -> dict[str, str]:
        """Map lifecycle action names to display labels."""
        return {a.value: a.label for a in ServerAction}

    @mcp.resource("app://crafty/config")
    def config() -> dict[str, Any]:
        """Return the effective client configuration."""
        return asdict(context.config)

    @mcp.resource("app://crafty/memory-units")
    def memory_units() -> dict[str, int]:
        """Return the byte factors used to convert memory labels like "3.7GB"."""
        return dict(UNIT_FACTORS)

    @mcp.resource("app://crafty/schemas/envelope")
    def envelope_schema() -> dict[str, Any]:
        """Return the JSON schema of the shared response envelope."""
        return Envelope.model_json_schema()

    @mcp.resource("app://crafty/schemas/login")
    def login_schema() -> dict[str, Any]:
        """Return the JSON schema of the login payload."""
        return LoginData.model_json_schema()

    @mcp.resource("app://crafty/examples/sample-log")
    def sample_log() -> str:
        """Return a tiny Minecraft log for demos and tests."""
        return SAMPLE_LOG

    @mcp.resource("app://crafty/log-levels")
    def log_levels() -> list[str]:
        return ["all", *(lvl.value.lower() for lvl in LogLevel)]

    @mcp.resource("crafty://servers/{server_id}/logs")
    async def server_logs(server_id: str) -> str:
        """Return the server's recent log lines as plain text."""
        out = await get_logs_impl(context, server_id=server_id, include_raw=True)
        if not out.get("ok"):
            raise RuntimeError(out["error"]["message"])
        return "\n".join(line["raw"] for line in out["lines"])
