# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Protocol types shared across the server.

The JSON-RPC and MCP payload models come from ``mcp.types`` and are re-exported
here so the rest of the package has one import site.  The names defined below
are specific to the Streamable HTTP routing layer: header names, channel and
session lifecycle states, and the replay policy for unknown resume markers.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

from mcp import types as _types
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS


_MCP_NAMES = tuple(name for name in dir(_types) if not name.startswith("_"))
globals().update({name: getattr(_types, name) for name in _MCP_NAMES})

# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

MCP_SESSION_ID_HEADER: Final[str] = "mcp-session-id"
MCP_PROTOCOL_VERSION_HEADER: Final[str] = "mcp-protocol-version"
LAST_EVENT_ID_HEADER: Final[str] = "last-event-id"

CONTENT_TYPE_JSON: Final[str] = "application/json"
CONTENT_TYPE_SSE: Final[str] = "text/event-stream"

# JSON-RPC code used for transport level rejections (bad or unknown session).
SESSION_ERROR: Final[int] = -32000


class ChannelState(str, Enum):
    """Lifecycle of a per-session channel; ``CLOSED`` is terminal."""

    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionState(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


class ReplayPolicy(str, Enum):
    """What a channel does when a client resumes from a marker it no longer holds."""

    REPLAY_ALL = "replay_all"
    REJECT = "reject"


__all__ = [
    *_MCP_NAMES,
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_SSE",
    "LAST_EVENT_ID_HEADER",
    "MCP_PROTOCOL_VERSION_HEADER",
    "MCP_SESSION_ID_HEADER",
    "SESSION_ERROR",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "ChannelState",
    "ReplayPolicy",
    "SessionState",
]
