from __future__ import annotations

from typing import Any

import pytest

from crafty_client.core.api.normalize import (
    format_bytes,
    format_memory,
    memory_to_bytes,
    normalize_server_info,
    normalize_stats,
    parse_memory,
    parse_players,
)
from crafty_client.core.models import LabelMemory, NumericMemory


@pytest.mark.parametrize("raw", [None, False, True, "", "False", "false", "[]", "  ", "None", "null"])
def test_parse_players_no_player_markers(raw: Any) -> None:
    assert parse_players(raw) == []


@pytest.mark.parametrize(
    "raw",
    [
        '["Steve", "Alex"]',
        "['Steve', 'Alex']",
        "[Steve, Alex]",
        "Steve, Alex",
        "Steve,Alex",
        ["Steve", "Alex"],
        ("Steve", "Alex"),
    ],
)
def test_parse_players_encodings_agree(raw: Any) -> None:
    assert parse_players(raw) == ["Steve", "Alex"]


def test_parse_players_keeps_order_and_single_name() -> None:
    assert parse_players("Zed, Amy, Bob") == ["Zed", "Amy", "Bob"]
    assert parse_players("Notch") == ["Notch"]


@pytest.mark.parametrize(
    "raw",
    [
        "[Steve",
        "Steve]",
        "[[1, 2]]",
        "[null]",
        "[[Alice]",
        "[Alice]]",
        '["Alice","Bob"]]',
        '[["Alice"]',
    ],
)
def test_parse_players_malformed_arrays_yield_empty(raw: str) -> None:
    assert parse_players(raw) == []


ENCODINGS = [
    '["Steve", "Alex"]',
    "['Steve', 'Alex']",
    "[Steve, Alex]",
    "Steve, Alex",
    "Steve",
    "False",
    "",
    ["Steve", " Alex "],
]


@pytest.mark.parametrize("raw", ENCODINGS)
def test_parse_players_is_idempotent(raw: Any) -> None:
    once = parse_players(raw)
    assert parse_players(once) == once
    assert parse_players(", ".join(once)) == once


@pytest.mark.parametrize(
    "raw",
    [0, 3.5, b"bytes", {"a": 1}, object(), [None, {"a": 1}, " "], "[,,]", "'", "[\"unterminated]"],
)
def test_parse_players_never_raises(raw: Any) -> None:
    result = parse_players(raw)
    assert isinstance(result, list)
    assert all(isinstance(name, str) and name for name in result)


def test_parse_memory_numbers_are_bytes() -> None:
    assert parse_memory(2048) == NumericMemory(2048.0)
    assert parse_memory("2048") == NumericMemory(2048.0)
    assert parse_memory(1.5) == NumericMemory(1.5)


def test_parse_memory_keeps_labels_and_defaults() -> None:
    assert parse_memory("3.7GB") == LabelMemory("3.7GB")
    assert parse_memory(None) == NumericMemory(0.0)
    assert parse_memory("") == NumericMemory(0.0)
    assert parse_memory({"x": 1}) == NumericMemory(0.0)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (NumericMemory(512.0), 512.0),
        (LabelMemory("1GB"), float(1024**3)),
        (LabelMemory("512 MB"), 512.0 * 1024**2),
        (LabelMemory("1.5GiB"), 1.5 * 1024**3),
        (LabelMemory("2k"), 2048.0),
        (LabelMemory("100"), 100.0),
    ],
)
def test_memory_to_bytes(value: Any, expected: float) -> None:
    assert memory_to_bytes(value) == pytest.approx(expected)


def test_memory_to_bytes_unknown_label_is_none() -> None:
    assert memory_to_bytes(LabelMemory("lots")) is None


def test_format_bytes_and_memory() -> None:
    assert format_bytes(0) == "0B"
    assert format_bytes(1536) == "1.5KB"
    assert format_bytes(3.7 * 1024**3) == "3.7GB"
    assert format_memory(LabelMemory("3.7GB")) == "3.7GB"
    assert format_memory(NumericMemory(2 * 1024**2)) == "2.0MB"


def test_normalize_stats_coerces_mixed_encodings() -> None:
    record = {
        "server_id": {"server_id": "abc", "server_name": "Survival"},
        "running": "true",
        "crashed": 0,
        "cpu": "12.5",
        "mem": "1.2GB",
        "mem_percent": "40%",
        "online": "2",
        "max": 20,
        "players": "['Steve', 'Alex']",
        "world_name": "world",
        "desc": "A Minecraft Server",
    }
    stats = normalize_stats(record, "fallback")

    assert stats.server_id == "abc"
    assert stats.running is True
    assert stats.crashed is False
    assert stats.cpu == 12.5
    assert stats.memory == LabelMemory("1.2GB")
    assert stats.mem_percent == 40.0
    assert stats.online == 2
    assert stats.max_players == 20
    assert stats.players == ("Steve", "Alex")
    assert stats.world_name == "world"
    assert stats.description == "A Minecraft Server"
    assert stats.version is None


def test_normalize_stats_defaults_for_garbage() -> None:
    stats = normalize_stats("not a dict", "abc")
    assert stats.server_id == "abc"
    assert stats.running is False
    assert stats.players == ()

    stats = normalize_stats({"cpu": "n/a", "online": None, "players": "False"}, "abc")
    assert stats.cpu == 0.0
    assert stats.online == 0
    assert stats.players == ()


def test_normalize_server_info() -> None:
    info = normalize_server_info({"server_id": 7, "server_port": "25565"})
    assert info is not None
    assert info.server_id == "7"
    assert info.server_name == "7"
    assert info.server_port == 25565

    assert normalize_server_info({"server_name": "no id"}) is None
    assert normalize_server_info("nope") is None  # type: ignore[arg-type]
