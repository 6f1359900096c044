from __future__ import annotations

import httpx
import pytest

from crafty_client.core.config import ClientConfig
from crafty_client.tools.servers import (
    PanelContext,
    dashboard_impl,
    get_logs_impl,
    list_servers_impl,
    login_impl,
    logout_impl,
    moderate_player_impl,
    players_impl,
    send_command_impl,
    server_action_impl,
    server_stats_impl,
    session_impl,
)

CREDS = {"base_url": "panel.test", "username": "admin", "password": "secret"}


@pytest.fixture
def ctx(transport: httpx.MockTransport) -> PanelContext:
    return PanelContext(ClientConfig(action_settle_delay=0.0), env={}, transport=transport)


@pytest.mark.asyncio
async def test_tools_require_login(ctx: PanelContext, panel) -> None:
    out = await list_servers_impl(ctx)

    assert out["ok"] is False
    assert out["error"]["type"] == "AuthError"
    assert out["error"]["kind"] == "not_logged_in"
    assert panel.requests == []


@pytest.mark.asyncio
async def test_login_then_session_never_exposes_token(ctx: PanelContext, panel) -> None:
    out = await login_impl(ctx, **CREDS)

    assert out == {"ok": True, "base_url": "https://panel.test/", "user_id": "1"}
    info = session_impl(ctx)
    assert info == {"logged_in": True, "base_url": "https://panel.test/", "user_id": "1"}
    assert panel.token not in repr(info)


@pytest.mark.asyncio
async def test_login_failure_is_reported_not_raised(ctx: PanelContext) -> None:
    out = await login_impl(ctx, **{**CREDS, "password": "wrong"})

    assert out["ok"] is False
    assert out["error"]["kind"] == "invalid_credentials"
    assert out["error"]["message"] == "Invalid username or password."
    assert session_impl(ctx)["logged_in"] is False


@pytest.mark.asyncio
async def test_login_requires_credentials(ctx: PanelContext) -> None:
    with pytest.raises(ValueError):
        await login_impl(ctx, base_url="panel.test")


@pytest.mark.asyncio
async def test_login_from_environment(panel, transport: httpx.MockTransport) -> None:
    env = {"CRAFTY_URL": "panel.test", "CRAFTY_USERNAME": "admin", "CRAFTY_PASSWORD": "secret"}
    ctx = PanelContext(env=env, transport=transport)

    out = await list_servers_impl(ctx)

    assert out["ok"] is True
    assert out["count"] == 2
    assert [s["server_id"] for s in out["servers"]] == ["a", "b"]
    assert ctx.state.is_logged_in


@pytest.mark.asyncio
async def test_dashboard_impl(ctx: PanelContext, panel) -> None:
    panel.stats["b"] = 500
    await login_impl(ctx, **CREDS)

    out = await dashboard_impl(ctx)

    assert out["ok"] is True
    assert out["summary"]["server_count"] == 2
    first, second = out["servers"]
    assert first["info"]["server_name"] == "Survival"
    assert first["stats"]["players"] == ["Steve", "Alex"]
    assert first["stats"]["mem"] == "1.5GB"
    assert first["stats"]["mem_bytes"] == pytest.approx(1.5 * 1024**3)
    assert second["stats"] is None
    assert "error" in second


@pytest.mark.asyncio
async def test_server_stats_and_players(ctx: PanelContext) -> None:
    await login_impl(ctx, **CREDS)

    stats = await server_stats_impl(ctx, server_id="b")
    assert stats["ok"] is True
    assert stats["stats"]["running"] is False
    assert stats["stats"]["players"] == []
    assert stats["stats"]["max"] == 10

    players = await players_impl(ctx, server_id="a")
    assert players == {"ok": True, "online": 2, "max": 20, "players": ["Steve", "Alex"]}


@pytest.mark.asyncio
async def test_server_action_impl(ctx: PanelContext, panel) -> None:
    await login_impl(ctx, **CREDS)

    out = await server_action_impl(ctx, server_id="a", action="stop_server")
    assert out == {"ok": True, "server_id": "a", "action": "stop_server", "message": "Stop command sent."}

    out = await server_action_impl(ctx, server_id="a", action="restart_server", refresh=True)
    assert out["server"]["info"]["server_id"] == "a"
    assert panel.actions == [("a", "stop_server"), ("a", "restart_server")]


@pytest.mark.asyncio
async def test_server_action_unknown_action_raises(ctx: PanelContext) -> None:
    await login_impl(ctx, **CREDS)
    with pytest.raises(ValueError):
        await server_action_impl(ctx, server_id="a", action="fly")


@pytest.mark.asyncio
async def test_send_command_and_moderation(ctx: PanelContext, panel) -> None:
    await login_impl(ctx, **CREDS)

    out = await send_command_impl(ctx, server_id="a", command="whitelist add Steve")
    assert out["command"] == "whitelist add Steve"
    await moderate_player_impl(ctx, server_id="a", verb="ban", player="Griefer")

    assert panel.commands == [("a", "whitelist add Steve"), ("a", "ban Griefer")]

    with pytest.raises(ValueError):
        await send_command_impl(ctx, server_id="a", command="  ")
    with pytest.raises(ValueError):
        await moderate_player_impl(ctx, server_id="a", verb="op", player="Griefer")


@pytest.mark.asyncio
async def test_get_logs_impl_filters_and_limits(ctx: PanelContext) -> None:
    await login_impl(ctx, **CREDS)

    out = await get_logs_impl(ctx, server_id="a", level="error", limit=1, include_raw=True)

    assert out["ok"] is True
    assert out["count"] == 1
    line = out["lines"][0]
    assert line == {
        "time": "08:12:09",
        "level": "ERROR",
        "message": "Could not save chunk",
        "raw": "[08:12:09] [Server thread/ERROR]: Could not save chunk",
    }

    everything = await get_logs_impl(ctx, server_id="a")
    assert everything["count"] == 5
    assert "raw" not in everything["lines"][0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [{"level": "verbose"}, {"limit": 0}, {"server_id": " "}],
)
async def test_get_logs_impl_validates_before_calling(ctx: PanelContext, panel, kwargs: dict) -> None:
    params = {"server_id": "a", **kwargs}
    with pytest.raises(ValueError):
        await get_logs_impl(ctx, **params)
    assert panel.requests == []


@pytest.mark.asyncio
async def test_rejected_token_logs_out(ctx: PanelContext, panel) -> None:
    await login_impl(ctx, **CREDS)
    panel.token = "rotated-elsewhere"

    out = await list_servers_impl(ctx)

    assert out["ok"] is False
    assert out["error"]["kind"] == "invalid_credentials"
    assert session_impl(ctx)["logged_in"] is False


@pytest.mark.asyncio
async def test_logout_impl(ctx: PanelContext) -> None:
    await login_impl(ctx, **CREDS)

    assert await logout_impl(ctx) == {"ok": True, "logged_in": False}
    assert session_impl(ctx) == {"logged_in": False, "base_url": "", "user_id": ""}
    out = await dashboard_impl(ctx)
    assert out["error"]["kind"] == "not_logged_in"
