from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import replace

import aiofiles

from crafty_client.core.api.client import CraftyClient, coerce_action
from crafty_client.core.api.normalize import format_memory
from crafty_client.core.config import ClientConfig, resolve_client_config
from crafty_client.core.dashboard import act_then_refresh, fetch_servers_with_stats
from crafty_client.core.errors import AuthError, AuthErrorKind, CraftyError
from crafty_client.core.logs import (
    ALL_LEVELS,
    fetch_log_snapshot,
    filter_log_lines,
    parse_log_lines,
    resolve_level,
    send_and_refresh,
)
from crafty_client.core.models import (
    DashboardSnapshot,
    LogSnapshot,
    ParsedLogLine,
    ServerAction,
    ServerStats,
    Session,
)
from crafty_client.core.moderation import MODERATION_VERBS, moderate_player
from crafty_client.core.poller import Poller
from crafty_client.core.session import SessionState

logger = logging.getLogger(__name__)

SEND_TAIL_LINES = 10


def _parse_action(s: str) -> ServerAction:
    # Accept "stop" as shorthand for "stop_server".
    name = s.strip().lower()
    if name and "_" not in name:
        name = f"{name}_server"
    try:
        return coerce_action(name)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _parse_level(s: str) -> str:
    try:
        resolve_level(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    return s


def _positive_float(s: str) -> float:
    value = float(s)
    if value <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return value


def _fmt_stats(stats: ServerStats | None) -> str:
    if stats is None:
        return "stats unavailable"
    state = "CRASHED" if stats.crashed else ("running" if stats.running else "stopped")
    if stats.updating:
        state += " (updating)"
    elif stats.waiting_start:
        state += " (waiting to start)"
    return (
        f"{state} cpu={stats.cpu:.1f}% mem={format_memory(stats.memory)} "
        f"({stats.mem_percent:.1f}%) players={stats.online}/{stats.max_players}"
    )


def _fmt_line(line: ParsedLogLine) -> str:
    ts = line.time or "--:--:--"
    return f"{ts} [{line.level.value}] {line.message}"


def _print_dashboard(snapshot: DashboardSnapshot) -> None:
    for entry in snapshot.servers:
        info = entry.info
        print(f"{info.server_id} {info.server_name}: {_fmt_stats(entry.stats)}")
    print(
        f"\n{len(snapshot.servers)} servers, {snapshot.running_count} running, "
        f"players {snapshot.total_players}/{snapshot.total_max_players}, "
        f"avg cpu {snapshot.avg_cpu:.1f}%, avg mem {snapshot.avg_mem:.1f}%"
    )


def _new_lines(previous: Sequence[str], current: Sequence[str]) -> list[str]:
    """Lines of `current` not already shown, assuming a sliding tail window."""
    if not previous:
        return list(current)
    max_overlap = min(len(previous), len(current))
    for k in range(max_overlap, 0, -1):
        if list(previous[-k:]) == list(current[:k]):
            return list(current[k:])
    return list(current)


async def _write_lines(path: str, lines: Sequence[str], *, append: bool) -> None:
    mode = "a" if append else "w"
    async with aiofiles.open(path, mode=mode, encoding="utf-8") as f:
        for line in lines:
            await f.write(line + "\n")


async def _follow_logs(
    client: CraftyClient,
    session: Session,
    args: argparse.Namespace,
    config: ClientConfig,
) -> None:
    shown: list[str] = []
    queue: asyncio.Queue[LogSnapshot | AuthError] = asyncio.Queue()

    async def refresh() -> LogSnapshot:
        try:
            return await fetch_log_snapshot(client, session, args.server_id)
        except AuthError as e:
            # A rejected token ends the follow.
            if e.kind is AuthErrorKind.INVALID_CREDENTIALS:
                queue.put_nowait(e)
            raise

    interval = args.interval or config.poll_interval
    logger.debug("Following logs of %s every %ss", args.server_id, interval)
    async with Poller[LogSnapshot](name=f"logs-{args.server_id}") as poller:
        poller.start(interval, refresh, queue.put_nowait)
        while True:
            snapshot = await queue.get()
            if isinstance(snapshot, AuthError):
                raise snapshot
            fresh = _new_lines(shown, snapshot.raw_lines)
            shown = list(snapshot.raw_lines)
            await _emit_logs(fresh, args, append=True)


async def _emit_logs(raw_lines: Sequence[str], args: argparse.Namespace, *, append: bool) -> None:
    lines = filter_log_lines(parse_log_lines(raw_lines), args.level)
    if args.output:
        await _write_lines(args.output, [line.raw for line in lines], append=append)
        return
    for line in lines:
        print(_fmt_line(line), flush=True)


async def _run(args: argparse.Namespace, config: ClientConfig) -> int:
    state = SessionState()
    async with CraftyClient(args.url, config) as client:
        await state.login(client, args.username, args.password, args.totp)
        if state.last_warning:
            print(f"Warning: {state.last_warning}", file=sys.stderr)

        with state.guard() as session:
            if args.command == "servers":
                _print_dashboard(await fetch_servers_with_stats(client, session))

            elif args.command == "stats":
                stats = await client.get_server_stats(session, args.server_id)
                print(f"{args.server_id}: {_fmt_stats(stats)}")
                if stats.version:
                    print(f"version: {stats.version}")
                if stats.world_name:
                    print(f"world: {stats.world_name}")

            elif args.command == "action":
                if args.wait:
                    ack, snapshot = await act_then_refresh(client, session, args.server_id, args.action)
                    print(ack.message)
                    entry = snapshot.get(args.server_id)
                    print(f"{args.server_id}: {_fmt_stats(entry.stats if entry else None)}")
                else:
                    ack = await client.perform_action(session, args.server_id, args.action)
                    print(ack.message)

            elif args.command == "send":
                text = " ".join(args.text)
                if args.wait:
                    _, snapshot = await send_and_refresh(client, session, args.server_id, text)
                    for line in snapshot.parsed[-SEND_TAIL_LINES:]:
                        print(_fmt_line(line))
                else:
                    await client.send_console_command(session, args.server_id, text)
                    print("Command sent.")

            elif args.command == "players":
                stats = await client.get_server_stats(session, args.server_id)
                for name in stats.players:
                    print(name)
                print(f"\n{stats.online}/{stats.max_players} online.")

            elif args.command == "player":
                ack = await moderate_player(client, session, args.server_id, args.verb, args.name)
                print(f"Sent: {ack.command}")

            elif args.command == "logs":
                if args.follow:
                    await _follow_logs(client, session, args, config)
                else:
                    snapshot = await fetch_log_snapshot(client, session, args.server_id)
                    raw = snapshot.raw_lines[-args.tail :] if args.tail else snapshot.raw_lines
                    await _emit_logs(raw, args, append=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="crafty",
        description="Manage Minecraft servers through a Crafty Controller panel.",
    )
    p.add_argument("--url", default=os.getenv("CRAFTY_URL"), help="Panel address (env: CRAFTY_URL)")
    p.add_argument("--username", default=os.getenv("CRAFTY_USERNAME"), help="env: CRAFTY_USERNAME")
    p.add_argument("--password", default=os.getenv("CRAFTY_PASSWORD"), help="env: CRAFTY_PASSWORD")
    p.add_argument("--totp", default=os.getenv("CRAFTY_TOTP"), help="Six-digit MFA code (env: CRAFTY_TOTP)")
    p.add_argument("--timeout", type=_positive_float, default=None, help="Per-request timeout in seconds")
    p.add_argument("--verify", dest="insecure", action="store_false", default=None,
                   help="Verify the panel's TLS certificate")
    p.add_argument("--insecure", dest="insecure", action="store_true",
                   help="Accept self-signed certificates (default)")
    p.add_argument("--ca-bundle", default=None, help="Trust only this CA bundle (certificate pinning)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("servers", help="List servers with stats and totals")

    sp = sub.add_parser("stats", help="Show stats for one server")
    sp.add_argument("server_id")

    sp = sub.add_parser("action", help="Start, stop, restart or kill a server")
    sp.add_argument("server_id")
    sp.add_argument("action", type=_parse_action, help="start|stop|restart|kill (or start_server, ...)")
    sp.add_argument("--wait", action="store_true", help="Wait briefly and show the new state")

    sp = sub.add_parser("send", help="Send a console command")
    sp.add_argument("server_id")
    sp.add_argument("text", nargs="+", help="Command text, sent verbatim")
    sp.add_argument("--wait", action="store_true", help="Wait briefly and show the newest log lines")

    sp = sub.add_parser("players", help="List online players")
    sp.add_argument("server_id")

    sp = sub.add_parser("player", help="Kick, ban or pardon a player")
    sp.add_argument("verb", choices=MODERATION_VERBS)
    sp.add_argument("server_id")
    sp.add_argument("name")

    sp = sub.add_parser("logs", help="Show recent log lines")
    sp.add_argument("server_id")
    sp.add_argument("--level", type=_parse_level, default=ALL_LEVELS,
                    help="all|info|warn|error|debug|fatal")
    sp.add_argument("--tail", type=int, default=None, help="Only the newest N lines")
    sp.add_argument("-f", "--follow", action="store_true", help="Keep polling for new lines")
    sp.add_argument("--interval", type=_positive_float, default=None, help="Poll interval in seconds")
    sp.add_argument("-o", "--output", default=None, help="Write raw lines to a file instead of stdout")
    return p


def main(argv: Sequence[str] | None = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.url:
        p.error("--url is required (or set CRAFTY_URL)")
    if not args.username or not args.password:
        p.error("--username and --password are required (or set CRAFTY_USERNAME/CRAFTY_PASSWORD)")

    try:
        config = resolve_client_config()
        overrides: dict[str, object] = {}
        if args.timeout is not None:
            overrides["timeout"] = args.timeout
        if args.insecure is not None:
            overrides["insecure_skip_verify"] = args.insecure
        if args.ca_bundle:
            overrides["ca_bundle"] = args.ca_bundle
        if overrides:
            config = replace(config, **overrides)

        code = asyncio.run(_run(args, config))
    except CraftyError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)
    except KeyboardInterrupt:
        code = 130

    raise SystemExit(code)


if __name__ == "__main__":
    main()
