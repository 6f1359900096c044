from __future__ import annotations

import pytest

from crafty_client.core.api.client import CraftyClient
from crafty_client.core.logs import (
    MinecraftLogParser,
    fetch_log_snapshot,
    filter_log_lines,
    parse_log_line,
    parse_log_lines,
    resolve_level,
    send_and_refresh,
)
from crafty_client.core.models import LogLevel, Session


def test_parse_log_line_splits_time_level_message() -> None:
    line = parse_log_line("[08:12:03] [Server thread/WARN]: Can't keep up!")
    assert line.time == "08:12:03"
    assert line.level is LogLevel.WARN
    assert line.message == "Can't keep up!"


def test_parse_log_line_finds_prefix_after_noise() -> None:
    line = parse_log_line("\x1b[0m[23:59:59] [User Authenticator #1/ERROR]: boom")
    assert line.time == "23:59:59"
    assert line.level is LogLevel.ERROR
    assert line.message == "boom"


@pytest.mark.parametrize(
    "raw",
    ["", "plain text", "[8:1:3] [main/INFO]: short time", "[08:12:03] [main/TRACE]: odd level", "\t"],
)
def test_unmatched_lines_keep_raw_text(raw: str) -> None:
    line = parse_log_line(raw)
    assert line.time == ""
    assert line.level is LogLevel.INFO
    assert line.message == raw
    assert line.raw == raw


def test_parser_default_level_is_configurable() -> None:
    parser = MinecraftLogParser(default_level=LogLevel.DEBUG)
    assert parser.parse("???").level is LogLevel.DEBUG


def test_filter_log_lines_by_level() -> None:
    lines = parse_log_lines(
        [
            "[08:00:00] [main/INFO]: a",
            "[08:00:01] [main/ERROR]: b",
            "[08:00:02] [main/WARN]: c",
            "[08:00:03] [main/ERROR]: d",
        ]
    )

    assert len(filter_log_lines(lines)) == 4
    assert [line.message for line in filter_log_lines(lines, "error")] == ["b", "d"]
    assert [line.message for line in filter_log_lines(lines, "Warn")] == ["c"]
    assert [line.message for line in filter_log_lines(lines, LogLevel.INFO)] == ["a"]


def test_resolve_level() -> None:
    assert resolve_level("all") is None
    assert resolve_level(" ") is None
    assert resolve_level("fatal") is LogLevel.FATAL
    with pytest.raises(ValueError):
        resolve_level("verbose")


@pytest.mark.asyncio
async def test_fetch_log_snapshot(client: CraftyClient, panel, session: Session) -> None:
    snapshot = await fetch_log_snapshot(client, session, "a")

    assert snapshot.server_id == "a"
    assert snapshot.raw_lines == tuple(panel.logs["a"])
    assert len(snapshot.parsed) == len(snapshot.raw_lines)
    assert snapshot.parsed[0].message.startswith("Starting minecraft server")


@pytest.mark.asyncio
async def test_send_and_refresh(client: CraftyClient, panel, session: Session) -> None:
    ack, snapshot = await send_and_refresh(client, session, "a", "say hi", settle_delay=0)

    assert panel.commands == [("a", "say hi")]
    assert ack.command == "say hi"
    assert snapshot.server_id == "a"
