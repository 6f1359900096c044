"""Core data models for the Crafty Controller client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union


class LogLevel(str, Enum):
    """Severity levels emitted by Minecraft server logs."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    DEBUG = "DEBUG"
    FATAL = "FATAL"


class ServerAction(str, Enum):
    """Lifecycle actions accepted by `/servers/{id}/action/{action}`."""

    START = "start_server"
    STOP = "stop_server"
    RESTART = "restart_server"
    KILL = "kill_server"

    @property
    def label(self) -> str:
        """Short display label (Start, Stop, ...)."""
        return self.value.split("_", 1)[0].capitalize()


@dataclass(frozen=True, slots=True)
class Session:
    """Authenticated panel session. All three fields are set together."""

    base_url: str
    token: str
    user_id: str

    def __post_init__(self) -> None:
        if not (self.base_url and self.token and self.user_id):
            raise ValueError("Session requires base_url, token and user_id")

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"


@dataclass(frozen=True, slots=True)
class LoginResult:
    token: str
    user_id: str
    warning: str | None = None  # set when a backup code was used


@dataclass(frozen=True, slots=True)
class ActionAck:
    """Panel accepted a request. Says nothing about completion."""

    server_id: str
    action: str
    command: str | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class ServerInfo:
    """Identity of one managed server."""

    server_id: str
    server_name: str
    type: str | None = None
    server_ip: str | None = None
    server_port: int | None = None


@dataclass(frozen=True, slots=True)
class NumericMemory:
    """Memory reported as a number, in bytes."""

    value: float


@dataclass(frozen=True, slots=True)
class LabelMemory:
    """Memory reported pre-formatted by the panel (e.g. "3.7GB")."""

    label: str


MemoryValue = Union[NumericMemory, LabelMemory]


@dataclass(frozen=True, slots=True)
class ServerStats:
    """Normalized stats for a single server at one point in time."""

    server_id: str
    running: bool = False
    crashed: bool = False
    cpu: float = 0.0
    memory: MemoryValue = field(default_factory=lambda: NumericMemory(0.0))
    mem_percent: float = 0.0
    online: int = 0
    max_players: int = 0
    players: tuple[str, ...] = ()
    version: str | None = None
    world_name: str | None = None
    updating: bool = False
    waiting_start: bool = False
    started: str | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ServerWithStats:
    """A server paired with its latest stats (None when the stats call failed)."""

    info: ServerInfo
    stats: ServerStats | None = None
    error: str | None = None

    @property
    def server_id(self) -> str:
        return self.info.server_id


@dataclass(frozen=True, slots=True)
class DashboardSnapshot:
    """One complete refresh of the server list with stats."""

    servers: tuple[ServerWithStats, ...]
    fetched_at: datetime

    @property
    def total_players(self) -> int:
        return sum(s.stats.online for s in self.servers if s.stats is not None)

    @property
    def total_max_players(self) -> int:
        return sum(s.stats.max_players for s in self.servers if s.stats is not None)

    @property
    def running_count(self) -> int:
        return sum(1 for s in self.servers if s.stats is not None and s.stats.running)

    @property
    def avg_cpu(self) -> float:
        if not self.servers:
            return 0.0
        return sum(s.stats.cpu if s.stats else 0.0 for s in self.servers) / len(self.servers)

    @property
    def avg_mem(self) -> float:
        if not self.servers:
            return 0.0
        return sum(s.stats.mem_percent if s.stats else 0.0 for s in self.servers) / len(
            self.servers
        )

    def get(self, server_id: str) -> ServerWithStats | None:
        for s in self.servers:
            if s.info.server_id == server_id:
                return s
        return None


@dataclass(frozen=True, slots=True)
class ParsedLogLine:
    """One log line split into time, level and message."""

    raw: str
    time: str  # HH:MM:SS, empty when the line did not match
    level: LogLevel
    message: str


@dataclass(frozen=True, slots=True)
class LogSnapshot:
    """Log lines fetched in one tick, raw and parsed."""

    server_id: str
    raw_lines: tuple[str, ...]
    parsed: tuple[ParsedLogLine, ...]
    fetched_at: datetime
