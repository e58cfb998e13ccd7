# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared test helpers for the Spotify MCP server tests."""

from __future__ import annotations

from itertools import count
from typing import Any

import anyio
import httpx
from pydantic import BaseModel

from spotify_remote_mcp import types
from spotify_remote_mcp.context import Context
from spotify_remote_mcp.server import ToolRegistry
from spotify_remote_mcp.server.authorization import SPOTIFY_SCOPES, AuthorizationContext, AuthorizationError
from spotify_remote_mcp.spotify import SpotifyAPIError
from spotify_remote_mcp.tool import tool


PROTOCOL_VERSION = "2025-06-18"
JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json, text/event-stream"}

_REQUEST_COUNTER = count(1)


# ---------------------------------------------------------------------------
# JSON-RPC bodies
# ---------------------------------------------------------------------------


def initialize_body(request_id: int = 0, *, version: str = PROTOCOL_VERSION) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": version,
            "capabilities": {},
            "clientInfo": {"name": "pytest", "version": "1.0"},
        },
    }


def request_body(method: str, params: dict[str, Any] | None = None, *, request_id: int | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"jsonrpc": "2.0", "id": next(_REQUEST_COUNTER) if request_id is None else request_id}
    body["method"] = method
    if params is not None:
        body["params"] = params
    return body


def call_tool_body(name: str, arguments: dict[str, Any] | None = None, *, request_id: int | None = None) -> dict[str, Any]:
    return request_body("tools/call", {"name": name, "arguments": arguments or {}}, request_id=request_id)


def notification_body(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        body["params"] = params
    return body


def messages(*bodies: dict[str, Any]) -> list[types.JSONRPCMessage]:
    return [types.JSONRPCMessage.model_validate(body) for body in bodies]


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def asgi_client(app: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


async def open_session(client: httpx.AsyncClient, headers: dict[str, str] | None = None) -> str:
    response = await client.post("/mcp", json=initialize_body(), headers={**JSON_HEADERS, **(headers or {})})
    assert response.status_code == 200, response.text
    return response.headers["mcp-session-id"]


def session_headers(session_id: str) -> dict[str, str]:
    return {**JSON_HEADERS, "Mcp-Session-Id": session_id}


def parse_sse(text: str) -> list[dict[str, Any]]:
    """Split an SSE body into ``{"id", "event", "data"}`` dicts."""
    events: list[dict[str, Any]] = []
    for block in text.replace("\r\n", "\n").split("\n\n"):
        event: dict[str, Any] = {}
        for line in block.splitlines():
            if not line or line.startswith(":"):
                continue
            key, _, value = line.partition(":")
            event[key] = value[1:] if value.startswith(" ") else value
        if "data" in event:
            events.append(event)
    return events


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class StaticTokenProvider:
    """Accepts exactly one token and grants the configured scopes."""

    def __init__(self, token: str = "valid-token", scopes: list[str] | None = None) -> None:
        self.token = token
        self.scopes = scopes
        self.calls: list[str] = []

    async def validate(self, token: str) -> AuthorizationContext:
        self.calls.append(token)
        if token != self.token:
            raise AuthorizationError("Invalid or expired token: bad token")
        scopes = list(SPOTIFY_SCOPES) if self.scopes is None else list(self.scopes)
        return AuthorizationContext(token=token, subject="user-1", scopes=scopes)


def auth_context(token: str = "valid-token") -> AuthorizationContext:
    return AuthorizationContext(token=token, subject="user-1", scopes=[])


def tool_context(*, authenticated: bool = True) -> Context:
    return Context(request_id=1, session_id="session", auth=auth_context() if authenticated else None)


# ---------------------------------------------------------------------------
# Tools used by server tests
# ---------------------------------------------------------------------------


class EchoArgs(BaseModel):
    text: str


@tool("echo", description="Echo the text back", input_model=EchoArgs)
async def echo(args: EchoArgs, ctx: Context) -> str:
    await ctx.info("echoing", data={"text": args.text})
    return args.text


@tool("boom", description="Always fails")
async def boom(args: Any, ctx: Context) -> str:
    raise RuntimeError("kaboom")


@tool("whoami_test", description="Report the caller")
async def whoami_test(args: Any, ctx: Context) -> str:
    return "anonymous" if ctx.auth is None else str(ctx.auth.subject)


class SleepArgs(BaseModel):
    seconds: float = 10.0


@tool("sleep", description="Sleep for a while", input_model=SleepArgs)
async def sleep(args: SleepArgs, ctx: Context) -> str:
    await anyio.sleep(args.seconds)
    return "done"


def build_test_registry() -> ToolRegistry:
    registry = ToolRegistry()
    for fn in (echo, boom, whoami_test, sleep):
        registry.register(fn)
    return registry


# ---------------------------------------------------------------------------
# Fake Spotify client
# ---------------------------------------------------------------------------


class FakeSpotify:
    """Stand-in for :class:`SpotifyClient` recording every call.

    Responses are set as attributes; an attribute holding an exception is
    raised instead of returned.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.token: str | None = None
        self.profile: Any = {"id": "user-1", "display_name": "Test User"}
        self.search_result: Any = {"tracks": {"items": []}}
        self.recommendations: Any = {"tracks": []}
        self.playback_state: Any = None
        self.devices: Any = []
        self.start_result: Any = None
        self.pause_result: Any = None
        self.next_result: Any = None
        self.previous_result: Any = None
        self.volume_result: Any = None

    def __call__(self, access_token: str, **kwargs: Any) -> FakeSpotify:
        self.token = access_token
        return self

    async def __aenter__(self) -> FakeSpotify:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    def _answer(self, name: str, value: Any, *args: Any, **kwargs: Any) -> Any:
        self.calls.append((name, args, kwargs))
        if isinstance(value, BaseException):
            raise value
        return value

    def called(self, name: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    async def current_user_profile(self) -> Any:
        return self._answer("current_user_profile", self.profile)

    async def search(self, q: str, types: Any, **kwargs: Any) -> Any:
        return self._answer("search", self.search_result, q, list(types), **kwargs)

    async def get_recommendations(self, params: Any) -> Any:
        return self._answer("get_recommendations", self.recommendations, dict(params))

    async def get_playback_state(self, **kwargs: Any) -> Any:
        return self._answer("get_playback_state", self.playback_state, **kwargs)

    async def get_available_devices(self) -> Any:
        return self._answer("get_available_devices", self.devices)

    async def start_playback(self, device_id: str | None = None, **kwargs: Any) -> Any:
        return self._answer("start_playback", self.start_result, device_id, **kwargs)

    async def pause_playback(self, device_id: str | None = None) -> Any:
        return self._answer("pause_playback", self.pause_result, device_id)

    async def skip_to_next(self, device_id: str | None = None) -> Any:
        return self._answer("skip_to_next", self.next_result, device_id)

    async def skip_to_previous(self, device_id: str | None = None) -> Any:
        return self._answer("skip_to_previous", self.previous_result, device_id)

    async def set_volume(self, volume_percent: int, device_id: str | None = None) -> Any:
        return self._answer("set_volume", self.volume_result, volume_percent, device_id)


def api_error(message: str, status_code: int = 403) -> SpotifyAPIError:
    return SpotifyAPIError(status_code, message)
