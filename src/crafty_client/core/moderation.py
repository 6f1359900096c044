"""Player moderation through console commands.

The panel has no kick/ban endpoints (and no ban list); these go through stdin.
"""

from __future__ import annotations

from .api.client import CraftyClient
from .models import ActionAck, Session

MODERATION_VERBS = ("kick", "ban", "pardon")


def moderation_command(verb: str, player: str) -> str:
    if verb not in MODERATION_VERBS:
        raise ValueError(f"Unknown moderation verb '{verb}'")
    name = (player or "").strip()
    if not name:
        raise ValueError("player name must not be blank")
    if any(ch.isspace() for ch in name):
        raise ValueError(f"Invalid player name: {player!r}")
    return f"{verb} {name}"


async def kick_player(client: CraftyClient, session: Session, server_id: str, player: str) -> ActionAck:
    return await client.send_console_command(session, server_id, moderation_command("kick", player))


async def ban_player(client: CraftyClient, session: Session, server_id: str, player: str) -> ActionAck:
    return await client.send_console_command(session, server_id, moderation_command("ban", player))


async def pardon_player(
    client: CraftyClient, session: Session, server_id: str, player: str
) -> ActionAck:
    return await client.send_console_command(
        session, server_id, moderation_command("pardon", player)
    )


_ACTIONS = {"kick": kick_player, "ban": ban_player, "pardon": pardon_player}


async def moderate_player(
    client: CraftyClient, session: Session, server_id: str, verb: str, player: str
) -> ActionAck:
    try:
        action = _ACTIONS[verb]
    except KeyError:
        raise ValueError(f"verb must be one of: {', '.join(MODERATION_VERBS)}") from None
    return await action(client, session, server_id, player)
