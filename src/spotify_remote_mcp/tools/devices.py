# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

from ._common import NOT_AUTHENTICATED, SPOTIFY_ERRORS, describe_device, error_message, open_spotify
from ..context import Context
from ..tool import NoArguments, tool


@tool("list_devices", annotations={"readOnlyHint": True})
async def list_devices(args: NoArguments, ctx: Context) -> str:
    """List available Spotify Connect devices that can be used for playback"""
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    try:
        async with open_spotify(ctx) as spotify:
            devices = await spotify.get_available_devices()
    except SPOTIFY_ERRORS as exc:
        return f"Error getting devices: {error_message(exc)}"

    if not devices:
        return "No Spotify devices found. Please open Spotify on a device and try again."
    lines = [
        f"- {describe_device(device)} {'(active)' if device.get('is_active') else '(inactive)'}" for device in devices
    ]
    return "Available Spotify devices:\n" + "\n".join(lines)


__all__ = ["list_devices"]
