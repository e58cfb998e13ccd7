# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Transport controls: pause, skip and volume.

All four commands need Spotify Premium and share device resolution
(:func:`~spotify_remote_mcp.tools._common.resolve_device_target`) and error
mapping (:func:`~spotify_remote_mcp.tools._common.control_error_message`).
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ._common import (
    DEVICE_ID_DESCRIPTION,
    NO_ACTIVE_PLAYBACK,
    NOT_AUTHENTICATED,
    SPOTIFY_ERRORS,
    control_error_message,
    open_spotify,
    resolve_device_target,
)
from ..context import Context
from ..tool import tool


class DeviceArgs(BaseModel):
    device_id: str | None = Field(None, description=DEVICE_ID_DESCRIPTION)


class SetVolumeArgs(DeviceArgs):
    volume_percent: int = Field(ge=0, le=100, description="The volume to set. Must be a value from 0 to 100 inclusive.")


@tool(
    "pause_playback",
    description="Pause playback on the user's account. This API only works for users who have Spotify Premium.",
    input_model=DeviceArgs,
)
async def pause_playback(args: DeviceArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    try:
        async with open_spotify(ctx) as spotify:
            target = await resolve_device_target(spotify, args.device_id)
            if target is None:
                return NO_ACTIVE_PLAYBACK
            await spotify.pause_playback(target.device_id)
    except SPOTIFY_ERRORS as exc:
        return control_error_message(
            exc,
            scope_action="pause playback",
            premium_feature="Playback control",
            fallback="Error pausing playback",
        )
    return f"Playback paused successfully{target.label}."


@tool(
    "skip_to_next",
    description="Skips to next track in the user's queue. This API only works for users who have Spotify Premium.",
    input_model=DeviceArgs,
)
async def skip_to_next(args: DeviceArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    try:
        async with open_spotify(ctx) as spotify:
            target = await resolve_device_target(spotify, args.device_id)
            if target is None:
                return NO_ACTIVE_PLAYBACK
            await spotify.skip_to_next(target.device_id)
    except SPOTIFY_ERRORS as exc:
        return control_error_message(
            exc,
            scope_action="skip tracks",
            premium_feature="Playback control",
            fallback="Error skipping to next track",
            extra=(
                (
                    "No more tracks",
                    "Error: No more tracks to skip to. You may have reached the end of your queue or playlist.",
                ),
            ),
        )
    return f"Skipped to next track successfully{target.label}."


@tool(
    "skip_to_previous",
    description=(
        "Skips to previous track in the user's queue. This API only works for users who have Spotify Premium."
    ),
    input_model=DeviceArgs,
)
async def skip_to_previous(args: DeviceArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    try:
        async with open_spotify(ctx) as spotify:
            target = await resolve_device_target(spotify, args.device_id)
            if target is None:
                return NO_ACTIVE_PLAYBACK
            await spotify.skip_to_previous(target.device_id)
    except SPOTIFY_ERRORS as exc:
        return control_error_message(
            exc,
            scope_action="skip tracks",
            premium_feature="Playback control",
            fallback="Error skipping to previous track",
            extra=(
                (
                    "No previous track",
                    "Error: No previous track to skip to. You may be at the beginning of your queue or playlist.",
                ),
            ),
        )
    return f"Skipped to previous track successfully{target.label}."


@tool(
    "set_volume",
    description=(
        "Set the volume for the user's current playback device. "
        "This API only works for users who have Spotify Premium."
    ),
    input_model=SetVolumeArgs,
)
async def set_volume(args: SetVolumeArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    try:
        async with open_spotify(ctx) as spotify:
            target = await resolve_device_target(spotify, args.device_id)
            if target is None:
                return NO_ACTIVE_PLAYBACK
            await spotify.set_volume(args.volume_percent, target.device_id)
    except SPOTIFY_ERRORS as exc:
        return control_error_message(
            exc,
            scope_action="set volume",
            premium_feature="Volume control",
            fallback="Error setting volume",
            extra=(
                ("Volume not supported", "Error: Volume control is not supported on this device."),
                ("Invalid volume", "Error: Invalid volume value. Volume must be between 0 and 100."),
            ),
        )
    return f"Volume set to {args.volume_percent}% successfully{target.label}."


__all__ = ["DeviceArgs", "SetVolumeArgs", "pause_playback", "set_volume", "skip_to_next", "skip_to_previous"]
