# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Helpers shared by the Spotify tools."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any

import httpx

from ..context import Context
from ..spotify import SpotifyAPIError, SpotifyClient


NOT_AUTHENTICATED = "You are not authenticated."
NO_ACTIVE_PLAYBACK = "No active playback found. Make sure Spotify is playing music on a device."

# Failures a tool reports back as text instead of raising.
SPOTIFY_ERRORS = (SpotifyAPIError, httpx.HTTPError)

DEVICE_ID_DESCRIPTION = (
    "The id of the device this command is targeting. "
    "If not supplied, the user's currently active device is the target."
)


def open_spotify(ctx: Context) -> SpotifyClient:
    """Return a Web API client bound to the caller's bearer token."""
    if ctx.access_token is None:
        raise RuntimeError("open_spotify() requires an authenticated context")
    return SpotifyClient(ctx.access_token)


def error_message(exc: BaseException) -> str:
    return str(exc) or "Unknown error"


def to_json(value: Any, *, pretty: bool = False) -> str:
    if pretty:
        return json.dumps(value, indent=2, ensure_ascii=False)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def describe_device(device: dict[str, Any]) -> str:
    return f"{device.get('name')} ({device.get('type')})"


# ---------------------------------------------------------------------------
# Transport controls (pause, skip, volume)
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class DeviceTarget:
    """Device a playback command is sent to and how the reply names it."""

    device_id: str | None
    label: str = ""


async def resolve_device_target(spotify: SpotifyClient, device_id: str | None) -> DeviceTarget | None:
    """Work out which device a transport command addresses.

    Without an explicit id the active playback device is used.  Returns
    ``None`` when the playback state says nothing is playing; when the state
    cannot be read at all the command is sent without a device id.
    """
    if not device_id:
        try:
            state = await spotify.get_playback_state()
        except SPOTIFY_ERRORS:
            return DeviceTarget(device_id=None)
        device = (state or {}).get("device") or {}
        if not device.get("id"):
            return None
        return DeviceTarget(device_id=device["id"], label=f" on {describe_device(device)}")

    try:
        devices = await spotify.get_available_devices()
    except SPOTIFY_ERRORS:
        return DeviceTarget(device_id=device_id, label=f" on device {device_id}")
    for device in devices:
        if device.get("id") == device_id:
            return DeviceTarget(device_id=device_id, label=f" on {describe_device(device)}")
    return DeviceTarget(device_id=device_id, label=f" on device {device_id}")


_SHARED_CONTROL_ERRORS: tuple[tuple[str, str], ...] = (
    ("Device not found", "Error: The specified device was not found or is not available."),
    ("No active device", "Error: No active device found. Please start playing music on a Spotify device first."),
)


def control_error_message(
    exc: BaseException,
    *,
    scope_action: str,
    premium_feature: str,
    fallback: str,
    extra: tuple[tuple[str, str], ...] = (),
) -> str:
    """Map a failed transport command onto the message shown to the user."""
    message = str(exc)
    if "scope" in message:
        return (
            "Error: Insufficient permissions to control playback. "
            f'The Spotify token needs the "user-modify-playback-state" scope to {scope_action}.'
        )
    if "Premium" in message:
        return (
            "Error: This feature requires Spotify Premium. "
            f"{premium_feature} is only available for Premium users."
        )
    for needle, text in _SHARED_CONTROL_ERRORS + extra:
        if needle in message:
            return text
    return f"{fallback}: {error_message(exc)}"


__all__ = [
    "DEVICE_ID_DESCRIPTION",
    "NOT_AUTHENTICATED",
    "NO_ACTIVE_PLAYBACK",
    "SPOTIFY_ERRORS",
    "DeviceTarget",
    "control_error_message",
    "describe_device",
    "error_message",
    "open_spotify",
    "resolve_device_target",
    "to_json",
]
