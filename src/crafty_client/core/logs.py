"""Minecraft log line parsing, filtering and fetching."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from .api.client import CraftyClient
from .models import ActionAck, LogLevel, LogSnapshot, ParsedLogLine, Session

ALL_LEVELS = "all"


@dataclass(frozen=True, slots=True)
class MinecraftLogParser:
    """Parse '[HH:MM:SS] [Thread/LEVEL]: message' lines."""

    default_level: LogLevel = LogLevel.INFO

    _re = re.compile(
        r"\[(?P<time>\d{2}:\d{2}:\d{2})\] \[.*?/(?P<level>INFO|WARN|ERROR|DEBUG|FATAL)\]: (?P<msg>.*)"
    )

    def parse(self, raw: str) -> ParsedLogLine:
        """Parse a line; unmatched lines keep the raw text as the message."""
        m = self._re.search(raw)
        if not m:
            return ParsedLogLine(raw=raw, time="", level=self.default_level, message=raw)
        return ParsedLogLine(
            raw=raw,
            time=m.group("time"),
            level=LogLevel(m.group("level")),
            message=m.group("msg"),
        )


_DEFAULT_PARSER = MinecraftLogParser()


def parse_log_line(raw: str) -> ParsedLogLine:
    return _DEFAULT_PARSER.parse(raw)


def parse_log_lines(lines: Iterable[str]) -> list[ParsedLogLine]:
    return [_DEFAULT_PARSER.parse(line) for line in lines]


def resolve_level(level: str | LogLevel) -> LogLevel | None:
    if isinstance(level, LogLevel):
        return level
    name = level.strip().upper()
    if name in ("", ALL_LEVELS.upper()):
        return None
    try:
        return LogLevel(name)
    except ValueError as e:
        valid = ", ".join([ALL_LEVELS, *(lvl.value.lower() for lvl in LogLevel)])
        raise ValueError(f"Unknown log level '{level}'. Valid values: {valid}.") from e


def filter_log_lines(
    lines: Sequence[ParsedLogLine],
    level: str | LogLevel = ALL_LEVELS,
) -> list[ParsedLogLine]:
    """Keep lines of one level; "all" keeps everything. Case-insensitive."""
    wanted = resolve_level(level)
    if wanted is None:
        return list(lines)
    return [line for line in lines if line.level is wanted]


async def fetch_log_snapshot(
    client: CraftyClient,
    session: Session,
    server_id: str,
) -> LogSnapshot:
    raw = await client.get_logs(session, server_id)
    return LogSnapshot(
        server_id=server_id,
        raw_lines=tuple(raw),
        parsed=tuple(parse_log_lines(raw)),
        fetched_at=datetime.now(UTC),
    )


async def send_and_refresh(
    client: CraftyClient,
    session: Session,
    server_id: str,
    command: str,
    *,
    settle_delay: float | None = None,
) -> tuple[ActionAck, LogSnapshot]:
    """Send a console command, wait briefly, then fetch the logs it produced."""
    ack = await client.send_console_command(session, server_id, command)
    if settle_delay is None:
        settle_delay = client.config.command_settle_delay
    if settle_delay > 0:
        await asyncio.sleep(settle_delay)
    return ack, await fetch_log_snapshot(client, session, server_id)
