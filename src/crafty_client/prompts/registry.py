"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def server_health_report(server_id: str | None = None) -> list[dict[str, Any]]:
        """Build a prompt that reviews server health from the dashboard."""
        if server_id:
            scope = (
                f"Focus on server_id={server_id}. Call `server_stats` for it and "
                "`get_logs` with level=\"error\" to look for recent failures."
            )
        else:
            scope = "Call the `dashboard` tool and review every server it returns."
        return [
            {
                "role": "system",
                "content": (
                    "You are an operator for Minecraft servers managed by Crafty Controller. "
                    "Use only data returned by the tools. Do not perform lifecycle actions "
                    "unless the user asks for them."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Give me a short health report.\n"
                    f"{scope}\n"
                    "Report for each server: running/crashed state, CPU %, memory, "
                    "players online vs max. Flag anything crashed, stuck updating, "
                    "waiting to start, above 80% CPU or memory, or missing stats."
                ),
            },
        ]

    @mcp.prompt()
    def triage_server_logs(server_id: str, level: str = "error", limit: int = 200) -> str:
        """Build a prompt for triaging a server's recent log lines."""
        return (
            "You are a log triage assistant for a Minecraft server.\n"
            f"1. Call `get_logs` with server_id={server_id!r}, level={level!r}, limit={limit}.\n"
            "2. Group the lines into distinct issues; cite their HH:MM:SS times.\n"
            "3. For each issue give a likely cause and one next step "
            "(a console command to try, a config to check, or a restart).\n"
            "Rules:\n"
            "- Only use evidence from the returned lines.\n"
            "- Prefer fewer, higher-quality findings.\n"
            "- If nothing looks wrong, say so.\n"
        )
