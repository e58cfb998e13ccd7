# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Spotify tools exposed by the server."""

from __future__ import annotations

from .controls import pause_playback, set_volume, skip_to_next, skip_to_previous
from .devices import list_devices
from .playback import get_playback_state, play_songs
from .profile import whoami
from .recommendations import get_recommendations
from .search import search
from ..server.registry import ToolRegistry


SPOTIFY_TOOLS = (
    search,
    whoami,
    get_recommendations,
    play_songs,
    list_devices,
    get_playback_state,
    pause_playback,
    skip_to_next,
    skip_to_previous,
    set_volume,
)


def register_spotify_tools(registry: ToolRegistry) -> ToolRegistry:
    for fn in SPOTIFY_TOOLS:
        registry.register(fn)
    return registry


def default_registry() -> ToolRegistry:
    """Build a fresh registry holding every Spotify tool."""
    return register_spotify_tools(ToolRegistry())


__all__ = ["SPOTIFY_TOOLS", "default_registry", "register_spotify_tools"]
