# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Server configuration read from the process environment."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os

from ..types import ReplayPolicy


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(slots=True)
class ServerConfig:
    """Runtime settings for the HTTP server and the per-session channels.

    ``session_idle_timeout`` and ``tool_timeout`` are ``None`` when disabled:
    sessions then live until they are terminated or the process stops, and
    tool calls run until they return or raise.
    """

    host: str = "0.0.0.0"
    port: int = 3000
    path: str = "/mcp"
    public_url: str | None = None
    json_response: bool = True
    event_log_size: int = 1000
    replay_policy: ReplayPolicy = ReplayPolicy.REPLAY_ALL
    session_idle_timeout: float | None = None
    sweep_interval: float = 30.0
    tool_timeout: float | None = None
    close_grace_period: float = 5.0
    auth_enabled: bool = True
    log_level: str = "info"

    @property
    def base_url(self) -> str:
        return self.public_url or f"http://localhost:{self.port}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        port = _int(env, "PORT", 3000)
        hostname = env.get("WEBSITE_HOSTNAME")
        return cls(
            host=env.get("HOST", "0.0.0.0"),
            port=port,
            public_url=f"https://{hostname}" if hostname else None,
            json_response=_bool(env, "SPOTIFY_MCP_JSON_RESPONSE", True),
            event_log_size=_int(env, "SPOTIFY_MCP_EVENT_LOG_SIZE", 1000),
            replay_policy=ReplayPolicy(env.get("SPOTIFY_MCP_REPLAY_POLICY", ReplayPolicy.REPLAY_ALL.value).lower()),
            session_idle_timeout=_seconds(env, "SPOTIFY_MCP_SESSION_IDLE_TIMEOUT"),
            tool_timeout=_seconds(env, "SPOTIFY_MCP_TOOL_TIMEOUT"),
            close_grace_period=_grace_period(env, "SPOTIFY_MCP_CLOSE_GRACE_PERIOD", 5.0),
            auth_enabled=_bool(env, "SPOTIFY_MCP_AUTH_ENABLED", True),
            log_level=env.get("SPOTIFY_MCP_LOG_LEVEL", "info").lower(),
        )


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def _seconds(env: Mapping[str, str], key: str) -> float | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number of seconds, got {raw!r}") from exc
    return value if value > 0 else None


def _grace_period(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number of seconds, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {raw!r}")
    return value


__all__ = ["ServerConfig"]
