# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""The Spotify tools driven through ``/mcp`` end to end."""

from __future__ import annotations

import pytest

from spotify_remote_mcp.server import MCPServer, ServerConfig
from tests.helpers import (
    JSON_HEADERS,
    StaticTokenProvider,
    asgi_client,
    call_tool_body,
    open_session,
    request_body,
)


def _server(*, auth_enabled: bool) -> MCPServer:
    return MCPServer(config=ServerConfig(auth_enabled=auth_enabled), provider=StaticTokenProvider())


@pytest.mark.anyio
async def test_tools_list_advertises_the_spotify_tools() -> None:
    async with asgi_client(_server(auth_enabled=False).build_app()) as client:
        session_id = await open_session(client)
        resp = await client.post(
            "/mcp", json=request_body("tools/list"), headers={**JSON_HEADERS, "Mcp-Session-Id": session_id}
        )

    tools = {entry["name"]: entry for entry in resp.json()["result"]["tools"]}
    assert len(tools) == 10
    assert tools["search"]["annotations"]["readOnlyHint"] is True
    assert tools["set_volume"]["inputSchema"]["required"] == ["volume_percent"]
    assert tools["whoami"]["inputSchema"]["properties"] == {}


@pytest.mark.anyio
async def test_unauthenticated_calls_are_answered_in_text(spotify) -> None:
    async with asgi_client(_server(auth_enabled=False).build_app()) as client:
        session_id = await open_session(client)
        resp = await client.post(
            "/mcp", json=call_tool_body("list_devices"), headers={**JSON_HEADERS, "Mcp-Session-Id": session_id}
        )

    result = resp.json()["result"]
    assert result["content"] == [{"type": "text", "text": "You are not authenticated."}]
    assert spotify.calls == []


@pytest.mark.anyio
async def test_bearer_token_reaches_spotify(spotify) -> None:
    spotify.devices = [{"id": "d1", "name": "Phone", "type": "Smartphone", "is_active": True}]
    headers = {**JSON_HEADERS, "Authorization": "Bearer valid-token"}

    async with asgi_client(_server(auth_enabled=True).build_app()) as client:
        session_id = await open_session(client, headers)
        resp = await client.post(
            "/mcp", json=call_tool_body("list_devices"), headers={**headers, "Mcp-Session-Id": session_id}
        )

    assert resp.json()["result"]["content"][0]["text"] == "Available Spotify devices:\n- Phone (Smartphone) (active)"
    assert spotify.token == "valid-token"


@pytest.mark.anyio
async def test_argument_validation_is_reported_as_a_tool_error(spotify) -> None:
    headers = {**JSON_HEADERS, "Authorization": "Bearer valid-token"}

    async with asgi_client(_server(auth_enabled=True).build_app()) as client:
        session_id = await open_session(client, headers)
        resp = await client.post(
            "/mcp",
            json=call_tool_body("set_volume", {"volume_percent": 150}),
            headers={**headers, "Mcp-Session-Id": session_id},
        )

    result = resp.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"].startswith("Invalid arguments for tool set_volume: volume_percent")
    assert spotify.calls == []
