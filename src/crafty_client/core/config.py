"""Client configuration and environment overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class ClientConfig:
    # Panels ship with a self-signed certificate.
    insecure_skip_verify: bool = True
    ca_bundle: str | None = None
    timeout: float = 10.0

    max_concurrency: int = 8
    poll_interval: float = 5.0
    action_settle_delay: float = 2.0
    command_settle_delay: float = 1.0


def _env_float(env: Mapping[str, str], name: str) -> float | None:
    raw = env.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def _env_int(env: Mapping[str, str], name: str) -> int | None:
    raw = env.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 1:
        raise ValueError(f"{name} must be >= 1")
    return value


def _env_bool(env: Mapping[str, str], name: str) -> bool | None:
    raw = env.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (true/false)")


def resolve_client_config(
    cfg: ClientConfig | None = None,
    env: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Return config with CRAFTY_* environment overrides applied."""
    if cfg is None:
        cfg = ClientConfig()
    if env is None:
        env = os.environ

    overrides: dict[str, object] = {}

    timeout = _env_float(env, "CRAFTY_TIMEOUT")
    if timeout is not None:
        overrides["timeout"] = timeout

    poll = _env_float(env, "CRAFTY_POLL_INTERVAL")
    if poll is not None:
        overrides["poll_interval"] = poll

    conc = _env_int(env, "CRAFTY_MAX_CONCURRENCY")
    if conc is not None:
        overrides["max_concurrency"] = conc

    insecure = _env_bool(env, "CRAFTY_INSECURE")
    if insecure is not None:
        overrides["insecure_skip_verify"] = insecure

    ca_bundle = env.get("CRAFTY_CA_BUNDLE")
    if ca_bundle:
        overrides["ca_bundle"] = ca_bundle

    if not overrides:
        return cfg
    return replace(cfg, **overrides)
