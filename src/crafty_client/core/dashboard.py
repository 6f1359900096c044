"""Server list with stats: bounded fan-out and dashboard aggregates."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from .api.client import CraftyClient
from .errors import CraftyError
from .models import (
    ActionAck,
    DashboardSnapshot,
    ServerAction,
    ServerInfo,
    ServerWithStats,
    Session,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


async def _stats_for(
    client: CraftyClient,
    session: Session,
    info: ServerInfo,
    semaphore: asyncio.Semaphore,
) -> ServerWithStats:
    async with semaphore:
        try:
            stats = await client.get_server_stats(session, info.server_id)
        except CraftyError as e:
            logger.warning("Stats unavailable for %s: %s", info.server_id, e)
            return ServerWithStats(info=info, stats=None, error=str(e))
    return ServerWithStats(info=info, stats=stats)


async def collect_stats(
    client: CraftyClient,
    session: Session,
    servers: list[ServerInfo],
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> list[ServerWithStats]:
    """Fetch stats for every server concurrently, preserving input order.

    A failing stats call degrades only its own entry.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be >= 1")
    semaphore = asyncio.Semaphore(max_concurrency)
    return list(
        await asyncio.gather(*(_stats_for(client, session, s, semaphore) for s in servers))
    )


async def fetch_servers_with_stats(
    client: CraftyClient,
    session: Session,
    *,
    max_concurrency: int | None = None,
) -> DashboardSnapshot:
    """List servers, then fan out one stats request per server and join."""
    if max_concurrency is None:
        max_concurrency = client.config.max_concurrency
    servers = await client.list_servers(session)
    joined = await collect_stats(client, session, servers, max_concurrency=max_concurrency)
    snapshot = DashboardSnapshot(servers=tuple(joined), fetched_at=datetime.now(UTC))
    logger.debug(
        "Dashboard refreshed: %d servers, %d without stats",
        len(joined),
        sum(1 for s in joined if s.stats is None),
    )
    return snapshot


async def act_then_refresh(
    client: CraftyClient,
    session: Session,
    server_id: str,
    action: ServerAction | str,
    *,
    settle_delay: float | None = None,
) -> tuple[ActionAck, DashboardSnapshot]:
    """Perform an action, give the panel a moment, then refresh the dashboard."""
    ack = await client.perform_action(session, server_id, action)
    if settle_delay is None:
        settle_delay = client.config.action_settle_delay
    if settle_delay > 0:
        await asyncio.sleep(settle_delay)
    return ack, await fetch_servers_with_stats(client, session)


def summarize(snapshot: DashboardSnapshot) -> dict[str, object]:
    """JSON-friendly aggregate view of a snapshot."""
    return {
        "server_count": len(snapshot.servers),
        "running_count": snapshot.running_count,
        "total_players": snapshot.total_players,
        "total_max_players": snapshot.total_max_players,
        "avg_cpu": round(snapshot.avg_cpu, 2),
        "avg_mem": round(snapshot.avg_mem, 2),
        "fetched_at": snapshot.fetched_at.isoformat(),
    }
