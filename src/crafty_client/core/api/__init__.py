"""Panel API access: transport, client and response normalization."""

from __future__ import annotations

from .client import CraftyClient, coerce_action
from .normalize import (
    format_bytes,
    format_memory,
    memory_to_bytes,
    normalize_server_info,
    normalize_stats,
    parse_memory,
    parse_players,
)
from .schemas import Envelope, LoginData, LoginRequest
from .transport import create_client, normalize_base_url

__all__ = [
    "CraftyClient",
    "Envelope",
    "LoginData",
    "LoginRequest",
    "coerce_action",
    "create_client",
    "format_bytes",
    "format_memory",
    "memory_to_bytes",
    "normalize_base_url",
    "normalize_server_info",
    "normalize_stats",
    "parse_memory",
    "parse_players",
]
