"""Response normalization.

The panel encodes the same logical field differently across versions and
deployments. Everything here is pure and total: unparseable input degrades to
an empty list, zero or the original string, and nothing raises.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from ..models import LabelMemory, MemoryValue, NumericMemory, ServerInfo, ServerStats

logger = logging.getLogger(__name__)

_EMPTY_PLAYER_MARKERS = {"", "false", "[]", "none", "null"}
_QUOTES = "\"'"

# Binary units, as the panel formats sizes.
UNIT_FACTORS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
    "PB": 1024**5,
}
_UNIT_ORDER = ("B", "KB", "MB", "GB", "TB", "PB")
_SIZE_RE = re.compile(r"^\s*(?P<num>\d+(?:\.\d+)?)\s*(?P<unit>[KMGTP]?)(?:i?B)?\s*$", re.IGNORECASE)
_TRUE_STRINGS = {"true", "1", "yes", "on"}


def _clean_names(items: list[Any]) -> list[str]:
    out: list[str] = []
    for item in items:
        if item is None or isinstance(item, (dict, list)):
            continue
        name = str(item).strip().strip(_QUOTES).strip()
        if name:
            out.append(name)
    return out


def _split_names(text: str) -> list[str]:
    return _clean_names(text.split(","))


def _parse_array_literal(text: str) -> list[str]:
    try:
        decoded = json.loads(text)
    except ValueError:
        decoded = None
    if isinstance(decoded, list):
        return _clean_names(decoded)
    # Python-repr quoting (['a', 'b']) is not JSON.
    inner = text[1:-1]
    if "[" in inner or "]" in inner:
        return []
    return _split_names(inner)


def parse_players(raw: Any) -> list[str]:
    """Normalize the `players` field into an ordered list of names.

    Accepts a JSON/Python array literal string, a comma-joined string, an
    actual list, or a "no players" marker ("False", "", "[]").
    """
    try:
        if raw is None or raw is False or raw is True:
            return []
        if isinstance(raw, (list, tuple)):
            return _clean_names(list(raw))

        text = str(raw).strip()
        if text.lower() in _EMPTY_PLAYER_MARKERS:
            return []

        opens, closes = text.startswith("["), text.endswith("]")
        if opens and closes:
            return _parse_array_literal(text)
        if opens or closes:
            return []
        return _split_names(text)
    except Exception:  # noqa: BLE001 - normalization must never fail the caller
        logger.debug("Unparseable players field: %r", raw)
        return []


def _as_float(raw: Any, default: float = 0.0) -> float:
    if isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip().rstrip("%"))
        except ValueError:
            return default
    return default


def _as_int(raw: Any, default: int = 0) -> int:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(float(raw.strip()))
        except ValueError:
            return default
    return default


def _as_optional_int(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    value = _as_int(raw, default=-1)
    return value if value >= 0 else None


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUE_STRINGS
    return False


def _as_optional_str(raw: Any) -> str | None:
    if raw is None or isinstance(raw, (dict, list)):
        return None
    text = str(raw).strip()
    return text or None


def parse_memory(raw: Any) -> MemoryValue:
    """Turn the `mem` field into a tagged memory value.

    Numbers (and purely numeric strings) are byte counts; any other string is
    kept as a display label.
    """
    if isinstance(raw, bool) or raw is None:
        return NumericMemory(0.0)
    if isinstance(raw, (int, float)):
        return NumericMemory(float(raw))
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return NumericMemory(0.0)
        try:
            return NumericMemory(float(text))
        except ValueError:
            return LabelMemory(text)
    return NumericMemory(0.0)


def memory_to_bytes(value: MemoryValue) -> float | None:
    """Bytes for a memory value, or None when a label has no known unit."""
    if isinstance(value, NumericMemory):
        return value.value
    m = _SIZE_RE.match(value.label)
    if not m:
        return None
    unit = (m.group("unit") or "").upper() + "B"
    return float(m.group("num")) * UNIT_FACTORS[unit]


def format_bytes(n: float) -> str:
    """Format a byte count like the panel does (e.g. "3.7GB")."""
    size = float(n)
    for unit in _UNIT_ORDER:
        if abs(size) < 1024.0 or unit == _UNIT_ORDER[-1]:
            if unit == "B":
                return f"{int(size)}B"
            return f"{size:.1f}{unit}"
        size /= 1024.0
    return f"{size:.1f}PB"  # pragma: no cover


def format_memory(value: MemoryValue) -> str:
    if isinstance(value, LabelMemory):
        return value.label
    return format_bytes(value.value)


def _nested_server_id(raw: Any) -> str | None:
    # Stats embed the whole server row under "server_id" on some versions.
    if isinstance(raw, Mapping):
        return _as_optional_str(raw.get("server_id"))
    return _as_optional_str(raw)


def normalize_server_info(record: Mapping[str, Any]) -> ServerInfo | None:
    """Build a ServerInfo from a `/servers` row. None when it has no id."""
    if not isinstance(record, Mapping):
        return None
    server_id = _as_optional_str(record.get("server_id"))
    if server_id is None:
        return None
    return ServerInfo(
        server_id=server_id,
        server_name=_as_optional_str(record.get("server_name")) or server_id,
        type=_as_optional_str(record.get("type")),
        server_ip=_as_optional_str(record.get("server_ip")),
        server_port=_as_optional_int(record.get("server_port")),
    )


def normalize_stats(record: Any, server_id: str) -> ServerStats:
    """Build ServerStats from a `/stats` payload, falling back to defaults."""
    if not isinstance(record, Mapping):
        return ServerStats(server_id=server_id)

    return ServerStats(
        server_id=_nested_server_id(record.get("server_id")) or server_id,
        running=_as_bool(record.get("running")),
        crashed=_as_bool(record.get("crashed")),
        cpu=_as_float(record.get("cpu")),
        memory=parse_memory(record.get("mem")),
        mem_percent=_as_float(record.get("mem_percent")),
        online=_as_int(record.get("online")),
        max_players=_as_int(record.get("max")),
        players=tuple(parse_players(record.get("players"))),
        version=_as_optional_str(record.get("version")),
        world_name=_as_optional_str(record.get("world_name")),
        updating=_as_bool(record.get("updating")),
        waiting_start=_as_bool(record.get("waiting_start")),
        started=_as_optional_str(record.get("started")),
        description=_as_optional_str(record.get("desc")),
    )
