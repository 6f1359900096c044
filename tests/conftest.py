from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from crafty_client.core.api.client import CraftyClient
from crafty_client.core.models import Session

BASE_URL = "https://panel.test/"

SERVER_LOG = [
    "[08:12:01] [Server thread/INFO]: Starting minecraft server version 1.20.4",
    "[08:12:03] [Server thread/WARN]: Can't keep up! Is the server overloaded?",
    "[08:12:04] [Server thread/ERROR]: Encountered an unexpected exception",
    "[08:12:05] [Server thread/INFO]: Steve joined the game",
    "[08:12:09] [Server thread/ERROR]: Could not save chunk",
]

_SERVER_PATH = re.compile(r"^/api/v2/servers/(?P<sid>[^/]+)/(?P<rest>stats|logs|stdin|action/\w+)$")


def ok(data: Any = None) -> httpx.Response:
    return httpx.Response(200, json={"status": "ok", "data": data})


def error(status: int, message: str = "ERROR", error_data: str | None = None) -> httpx.Response:
    body: dict[str, Any] = {"status": "error", "error": message}
    if error_data is not None:
        body["error_data"] = error_data
    return httpx.Response(status, json=body)


class FakePanel:
    """In-memory Crafty panel served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.username = "admin"
        self.password = "secret"
        self.totp: str | None = None
        self.token = "tok-123"
        self.user_id: Any = 1
        self.login_warning: str | None = None

        self.servers: list[dict[str, Any]] = [
            {"server_id": "a", "server_name": "Survival", "type": "minecraft-java", "server_port": 25565},
            {"server_id": "b", "server_name": "Creative", "type": "minecraft-java", "server_port": "25566"},
        ]
        self.stats: dict[str, Any] = {
            "a": {
                "running": True,
                "cpu": 10.0,
                "mem": "1.5GB",
                "mem_percent": 30,
                "online": 2,
                "max": 20,
                "players": "['Steve', 'Alex']",
                "version": "1.20.4",
            },
            "b": {
                "running": False,
                "cpu": "0",
                "mem": 0,
                "mem_percent": "0",
                "online": 0,
                "max": "10",
                "players": "False",
            },
        }
        self.logs: dict[str, Any] = {"a": list(SERVER_LOG), "b": []}

        self.routes: dict[tuple[str, str], httpx.Response | Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []
        self.actions: list[tuple[str, str]] = []
        self.commands: list[tuple[str, str]] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        route = self.routes.get((request.method, path))
        if route is not None:
            return route(request) if callable(route) else route

        if path == "/api/v2/auth/login" and request.method == "POST":
            return self._login(request)

        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return error(401, "ACCESS_DENIED")

        if path == "/api/v2/servers" and request.method == "GET":
            return ok(self.servers)

        m = _SERVER_PATH.match(path)
        if m is None:
            return error(404, "NOT_FOUND")
        sid, rest = m.group("sid"), m.group("rest")

        if rest == "stats":
            stats = self.stats.get(sid)
            if isinstance(stats, int):
                return error(stats, "STATS_FAILED")
            if stats is None:
                return error(404, "NOT_FOUND", "Server not found")
            return ok({**stats, "server_id": {"server_id": sid}})
        if rest == "logs":
            return ok(self.logs.get(sid, []))
        if rest == "stdin":
            body = json.loads(request.content)
            self.commands.append((sid, body["command"]))
            return ok()
        self.actions.append((sid, rest.split("/", 1)[1]))
        return ok()

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body.get("username") != self.username or body.get("password") != self.password:
            return error(401, "INCORRECT_CREDENTIALS")
        if self.totp is not None and body.get("totp") != self.totp:
            return error(401, "INCORRECT_CREDENTIALS")
        data: dict[str, Any] = {"token": self.token, "user_id": self.user_id}
        if self.login_warning:
            data["warning"] = self.login_warning
        return ok(data)


@pytest.fixture
def panel() -> FakePanel:
    return FakePanel()


@pytest.fixture
def transport(panel: FakePanel) -> httpx.MockTransport:
    return httpx.MockTransport(panel.handle)


@pytest.fixture
def client(transport: httpx.MockTransport) -> CraftyClient:
    return CraftyClient(BASE_URL, transport=transport)


@pytest.fixture
def session(panel: FakePanel) -> Session:
    return Session(base_url=BASE_URL, token=panel.token, user_id="1")
