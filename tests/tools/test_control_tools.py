# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Pause, skip and volume commands."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from spotify_remote_mcp.tools._common import NO_ACTIVE_PLAYBACK
from spotify_remote_mcp.tools.controls import (
    DeviceArgs,
    SetVolumeArgs,
    pause_playback,
    set_volume,
    skip_to_next,
    skip_to_previous,
)
from tests.helpers import api_error


LAPTOP = {"id": "laptop-1", "name": "My Laptop", "type": "Computer", "is_active": True}


@pytest.mark.anyio
async def test_pause_uses_the_playback_device(spotify, ctx) -> None:
    spotify.playback_state = {"device": LAPTOP}

    assert await pause_playback(DeviceArgs(), ctx) == "Playback paused successfully on My Laptop (Computer)."
    assert spotify.called("pause_playback") == [(("laptop-1",), {})]


@pytest.mark.anyio
async def test_explicit_device_is_named_from_the_device_list(spotify, ctx) -> None:
    spotify.devices = [LAPTOP]

    assert await skip_to_next(DeviceArgs(device_id="laptop-1"), ctx) == (
        "Skipped to next track successfully on My Laptop (Computer)."
    )
    assert spotify.called("get_playback_state") == []


@pytest.mark.anyio
async def test_explicit_unknown_device_is_named_by_id(spotify, ctx) -> None:
    spotify.devices = [LAPTOP]

    assert await skip_to_previous(DeviceArgs(device_id="tv-9"), ctx) == (
        "Skipped to previous track successfully on device tv-9."
    )
    assert spotify.called("skip_to_previous") == [(("tv-9",), {})]


@pytest.mark.anyio
async def test_device_list_failure_still_sends_the_command(spotify, ctx) -> None:
    spotify.devices = api_error("Service unavailable", status_code=503)

    assert await pause_playback(DeviceArgs(device_id="tv-9"), ctx) == "Playback paused successfully on device tv-9."


@pytest.mark.anyio
async def test_nothing_playing(spotify, ctx) -> None:
    assert await pause_playback(DeviceArgs(), ctx) == NO_ACTIVE_PLAYBACK
    assert await set_volume(SetVolumeArgs(volume_percent=10), ctx) == NO_ACTIVE_PLAYBACK
    assert spotify.called("pause_playback") == []


@pytest.mark.anyio
async def test_unreadable_playback_state_sends_without_device(spotify, ctx) -> None:
    spotify.playback_state = api_error("Service unavailable", status_code=503)

    assert await skip_to_next(DeviceArgs(), ctx) == "Skipped to next track successfully."
    assert spotify.called("skip_to_next") == [((None,), {})]


@pytest.mark.anyio
async def test_set_volume(spotify, ctx) -> None:
    spotify.playback_state = {"device": LAPTOP}

    assert await set_volume(SetVolumeArgs(volume_percent=35), ctx) == (
        "Volume set to 35% successfully on My Laptop (Computer)."
    )
    assert spotify.called("set_volume") == [((35, "laptop-1"), {})]


def test_volume_is_bounded() -> None:
    with pytest.raises(ValidationError):
        SetVolumeArgs(volume_percent=101)
    with pytest.raises(ValidationError):
        SetVolumeArgs(volume_percent=-1)


@pytest.mark.anyio
async def test_commands_require_authentication(spotify, anonymous) -> None:
    assert await pause_playback(DeviceArgs(), anonymous) == "You are not authenticated."
    assert await skip_to_next(DeviceArgs(), anonymous) == "You are not authenticated."
    assert await skip_to_previous(DeviceArgs(), anonymous) == "You are not authenticated."
    assert await set_volume(SetVolumeArgs(volume_percent=1), anonymous) == "You are not authenticated."
    assert spotify.calls == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("message", "expected"),
    [
        (
            "Insufficient client scope",
            'Error: Insufficient permissions to control playback. The Spotify token needs the "user-modify-playback-state" scope to pause playback.',
        ),
        (
            "Player command failed: Premium required",
            "Error: This feature requires Spotify Premium. Playback control is only available for Premium users.",
        ),
        ("Device not found", "Error: The specified device was not found or is not available."),
        (
            "Player command failed: No active device found",
            "Error: No active device found. Please start playing music on a Spotify device first.",
        ),
        ("Something else", "Error pausing playback: Something else"),
    ],
)
async def test_pause_error_mapping(spotify, ctx, message: str, expected: str) -> None:
    spotify.playback_state = {"device": LAPTOP}
    spotify.pause_result = api_error(message)

    assert await pause_playback(DeviceArgs(), ctx) == expected


@pytest.mark.anyio
async def test_skip_error_mapping(spotify, ctx) -> None:
    spotify.playback_state = {"device": LAPTOP}
    spotify.next_result = api_error("No more tracks in queue")
    spotify.previous_result = api_error("No previous track available")

    assert await skip_to_next(DeviceArgs(), ctx) == (
        "Error: No more tracks to skip to. You may have reached the end of your queue or playlist."
    )
    assert await skip_to_previous(DeviceArgs(), ctx) == (
        "Error: No previous track to skip to. You may be at the beginning of your queue or playlist."
    )


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Volume not supported", "Error: Volume control is not supported on this device."),
        ("Invalid volume", "Error: Invalid volume value. Volume must be between 0 and 100."),
        (
            "Premium required",
            "Error: This feature requires Spotify Premium. Volume control is only available for Premium users.",
        ),
        ("Gateway timeout", "Error setting volume: Gateway timeout"),
    ],
)
async def test_volume_error_mapping(spotify, ctx, message: str, expected: str) -> None:
    spotify.playback_state = {"device": LAPTOP}
    spotify.volume_result = api_error(message)

    assert await set_volume(SetVolumeArgs(volume_percent=50), ctx) == expected
