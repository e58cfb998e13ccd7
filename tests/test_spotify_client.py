# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from spotify_remote_mcp.spotify import SpotifyAPIError, SpotifyClient


API = "https://api.spotify.com/v1"


@pytest.mark.anyio
async def test_requests_carry_the_bearer_token(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{API}/me", json={"id": "user-1"})

    async with SpotifyClient("token-abc") as spotify:
        profile = await spotify.current_user_profile()

    assert profile == {"id": "user-1"}
    assert httpx_mock.get_request().headers["authorization"] == "Bearer token-abc"


@pytest.mark.anyio
async def test_search_query_parameters(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(
        url=httpx.URL(f"{API}/search", params={"q": "daft punk", "type": "track,album", "limit": "5", "offset": "10", "market": "US"}),
        json={"tracks": {"items": []}},
    )

    async with SpotifyClient("t") as spotify:
        result = await spotify.search("daft punk", ["track", "album"], limit=5, offset=10)

    assert result == {"tracks": {"items": []}}


@pytest.mark.anyio
async def test_empty_playback_state_is_none(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{API}/me/player", status_code=204)

    async with SpotifyClient("t") as spotify:
        assert await spotify.get_playback_state() is None


@pytest.mark.anyio
async def test_devices_are_unwrapped(httpx_mock: HTTPXMock) -> None:
    devices = [{"id": "d1", "name": "Laptop", "type": "Computer", "is_active": True}]
    httpx_mock.add_response(url=f"{API}/me/player/devices", json={"devices": devices})

    async with SpotifyClient("t") as spotify:
        assert await spotify.get_available_devices() == devices


@pytest.mark.anyio
async def test_start_playback_body_and_device(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{API}/me/player/play?device_id=d1", method="PUT", status_code=204)

    async with SpotifyClient("t") as spotify:
        await spotify.start_playback("d1", uris=["spotify:track:1"])

    assert json.loads(httpx_mock.get_request().content) == {"uris": ["spotify:track:1"]}


@pytest.mark.anyio
async def test_player_commands(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{API}/me/player/pause", method="PUT", status_code=204)
    httpx_mock.add_response(url=f"{API}/me/player/next?device_id=d1", method="POST", status_code=204)
    httpx_mock.add_response(url=f"{API}/me/player/previous", method="POST", status_code=204)
    httpx_mock.add_response(url=f"{API}/me/player/volume?volume_percent=40", method="PUT", status_code=204)

    async with SpotifyClient("t") as spotify:
        await spotify.pause_playback()
        await spotify.skip_to_next("d1")
        await spotify.skip_to_previous()
        await spotify.set_volume(40)

    assert len(httpx_mock.get_requests()) == 4


@pytest.mark.anyio
async def test_non_json_success_body_is_ignored(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{API}/me/player/pause", method="PUT", text="ok")

    async with SpotifyClient("t") as spotify:
        assert await spotify.pause_playback() is None


@pytest.mark.anyio
async def test_api_error_payload(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(
        url=f"{API}/me/player/pause",
        method="PUT",
        status_code=403,
        json={"error": {"status": 403, "message": "Player command failed: Premium required", "reason": "PREMIUM_REQUIRED"}},
    )

    async with SpotifyClient("t") as spotify:
        with pytest.raises(SpotifyAPIError) as excinfo:
            await spotify.pause_playback()

    assert str(excinfo.value) == "Player command failed: Premium required"
    assert excinfo.value.status_code == 403
    assert excinfo.value.reason == "PREMIUM_REQUIRED"


@pytest.mark.anyio
async def test_oauth_style_and_plain_errors(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(
        url=f"{API}/me", status_code=401, json={"error": "invalid_token", "error_description": "Token expired"}
    )
    httpx_mock.add_response(url=f"{API}/me/player/devices", status_code=502, text="Bad gateway")

    async with SpotifyClient("t") as spotify:
        with pytest.raises(SpotifyAPIError, match="Token expired"):
            await spotify.current_user_profile()
        with pytest.raises(SpotifyAPIError, match="Bad gateway"):
            await spotify.get_available_devices()


@pytest.mark.anyio
async def test_shared_client_is_left_open(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{API}/me", json={"id": "u"})

    async with httpx.AsyncClient() as http:
        async with SpotifyClient("t", http_client=http) as spotify:
            await spotify.current_user_profile()
        assert not http.is_closed
