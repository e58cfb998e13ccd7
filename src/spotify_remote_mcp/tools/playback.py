# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Playback state and starting playback.

``play_songs`` accepts ``spotify:<type>:<id>`` URIs and
``https://open.spotify.com/<type>/<id>`` links.  Tracks and episodes are
queued as a list; albums, playlists, artists and shows are played as a
context, and only the first one is used.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

from ._common import (
    NOT_AUTHENTICATED,
    SPOTIFY_ERRORS,
    describe_device,
    error_message,
    open_spotify,
    to_json,
)
from ..context import Context
from ..spotify import SpotifyClient
from ..tool import tool


# ---------------------------------------------------------------------------
# get_playback_state
# ---------------------------------------------------------------------------


class PlaybackStateArgs(BaseModel):
    market: str | None = Field(
        None,
        description=(
            "An ISO 3166-1 alpha-2 country code. If a country code is specified, "
            "only content that is available in that market will be returned."
        ),
    )
    additional_types: str | None = Field(
        None,
        description=(
            "A comma-separated list of item types that your client supports besides the default track type. "
            "Valid types are: track and episode."
        ),
    )


@tool(
    "get_playback_state",
    description=(
        "Get information about the user's current playback state, including track or episode, "
        "progress, and active device"
    ),
    input_model=PlaybackStateArgs,
    annotations={"readOnlyHint": True},
)
async def get_playback_state(args: PlaybackStateArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    try:
        async with open_spotify(ctx) as spotify:
            state = await spotify.get_playback_state(market=args.market, additional_types=args.additional_types)
    except SPOTIFY_ERRORS as exc:
        return f"Error retrieving playback state: {error_message(exc)}"

    if not state:
        return "No playback is currently active or the user is not playing anything."
    return f"Current playback state: {to_json(state, pretty=True)}"


# ---------------------------------------------------------------------------
# play_songs
# ---------------------------------------------------------------------------

_URI_PATTERNS = (
    re.compile(r"^spotify:(track|album|playlist|artist|episode|show):[^:]+"),
    re.compile(r"^https?://open\.spotify\.com/(track|album|playlist|artist|episode|show)/[^/?#]+"),
)
_LIST_TYPES = frozenset({"track", "episode"})

NO_URIS = "No URIs provided to play."
NO_VALID_URIS = "No valid Spotify URIs found. Please provide track, album, or playlist URIs."
NO_DEVICES = "No active Spotify devices found. Please open Spotify on a device and try again."
PLAY_SCOPE_ERROR = (
    "Error: Insufficient permissions to control playback. "
    'The Spotify token needs the "user-modify-playback-state" scope to play songs.'
)


def uri_type(uri: str) -> str | None:
    """Return the item type of a Spotify URI or open.spotify.com link."""
    for pattern in _URI_PATTERNS:
        match = pattern.match(uri.strip())
        if match:
            return match.group(1)
    return None


class PlaySongsArgs(BaseModel):
    uris: list[str] = Field(
        default_factory=list,
        description="Array of Spotify URIs (tracks, albums, playlists) to play",
    )
    device_name: str | None = Field(
        None,
        description=(
            "Name of the device to play on (case-insensitive, partial match). "
            "If not supplied, the currently active device is used."
        ),
    )


@tool(
    "play_songs",
    description=(
        "Start playing tracks, albums, or playlists on a Spotify device. If no device is specified, "
        "will use the currently active device or list available devices."
    ),
    input_model=PlaySongsArgs,
)
async def play_songs(args: PlaySongsArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    if not args.uris:
        return NO_URIS

    classified = [(uri, uri_type(uri)) for uri in args.uris]
    tracks = [uri for uri, kind in classified if kind in _LIST_TYPES]
    contexts = [(uri, kind) for uri, kind in classified if kind is not None and kind not in _LIST_TYPES]
    if not tracks and not contexts:
        return NO_VALID_URIS

    try:
        async with open_spotify(ctx) as spotify:
            selected = await _select_device(spotify, args.device_name)
            if isinstance(selected, str):
                return selected
            device_id = selected["id"]
            await ctx.debug("starting playback", data={"device_id": device_id})

            if contexts:
                context_uri, kind = contexts[0]
                await spotify.start_playback(device_id, context_uri=context_uri)
            else:
                await spotify.start_playback(device_id, uris=tracks)
    except SPOTIFY_ERRORS as exc:
        if "scope" in str(exc):
            return PLAY_SCOPE_ERROR
        return f"Error starting playback: {error_message(exc)}"

    device_line = f"Playing on device: {describe_device(selected)}"
    if not contexts:
        listing = "\n".join(f"{index}. {uri}" for index, uri in enumerate(tracks, start=1))
        return f"Successfully started playing {len(tracks)} track(s):\n{listing}\n\n{device_line}"

    lines = [f"Started playing {kind}: {context_uri}", "", device_line]
    notes = []
    if len(contexts) > 1:
        ignored = ", ".join(uri for uri, _ in contexts[1:])
        notes.append(f"Note: Only the first {kind} was played. Additional context URIs were ignored: {ignored}")
    if tracks:
        notes.append(f"Track URIs were ignored when playing {kind}: {', '.join(tracks)}")
    if notes:
        lines.extend(["", *notes])
    return "\n".join(lines)


async def _select_device(spotify: SpotifyClient, device_name: str | None) -> dict[str, Any] | str:
    """Pick the playback target, or return the message explaining why there is none."""
    if device_name:
        devices = await spotify.get_available_devices()
        needle = device_name.lower()
        for device in devices:
            if needle in str(device.get("name") or "").lower():
                return device
        listing = "\n".join(f"- {describe_device(device)}" for device in devices)
        return f'Device "{device_name}" not found. Available devices:\n{listing}'

    try:
        state = await spotify.get_playback_state()
    except SPOTIFY_ERRORS:
        state = None
    current = (state or {}).get("device") or {}
    if current.get("id") and current.get("name"):
        return current

    devices = await spotify.get_available_devices()
    if current.get("id"):
        for device in devices:
            if device.get("id") == current["id"]:
                return device
        return {"id": current["id"], "name": f"device {current['id']}", "type": current.get("type") or "unknown"}

    if not devices:
        return NO_DEVICES
    selected = next((device for device in devices if device.get("is_active")), devices[0])
    if not selected.get("id"):
        listing = "\n".join(f"- {describe_device(device)}" for device in devices)
        return f"Available devices found but no device IDs:\n{listing}\n\nPlease ensure Spotify is active on a device."
    return selected


__all__ = ["PlaySongsArgs", "PlaybackStateArgs", "get_playback_state", "play_songs", "uri_type"]
