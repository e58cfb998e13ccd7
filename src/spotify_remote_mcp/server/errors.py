# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Error types raised by the routing layer.

Two families live here.  :class:`ProtocolError` and its subclasses describe
expected, client-caused rejections; the router turns them into the JSON-RPC
error envelope with the attached HTTP status and logs them at ``info``.  The
remaining classes signal programming or lifecycle faults and surface as a
generic 500.
"""

from __future__ import annotations

from typing import Any

from .. import types


class ProtocolError(Exception):
    """Expected rejection carrying a JSON-RPC code and an HTTP status."""

    code: int = types.SESSION_ERROR
    status_code: int = 400

    def __init__(self, message: str, *, code: int | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_envelope(self, request_id: types.RequestId | None = None) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "error": {"code": self.code, "message": self.message},
            "id": request_id,
        }


class SessionNotFoundError(ProtocolError):
    """The supplied session id was never issued or has been closed."""

    def __init__(self, message: str = "Bad Request: No valid session ID provided", *, status_code: int = 400) -> None:
        super().__init__(message, status_code=status_code)


class MissingSessionError(ProtocolError):
    def __init__(
        self,
        message: str = "Bad Request: Mcp-Session-Id header is required for non-initialize requests",
    ) -> None:
        super().__init__(message)


class ChannelClosedError(ProtocolError):
    """The channel is closing or closed and accepts no new requests."""

    def __init__(self, message: str = "Session is closing") -> None:
        super().__init__(message, status_code=404)


class StreamConflictError(ProtocolError):
    def __init__(self, message: str = "Conflict: Only one SSE stream is allowed per session") -> None:
        super().__init__(message, status_code=409)


class UnknownEventError(ProtocolError):
    """A resume marker is outside the retained event window and replay is rejected."""

    def __init__(self, marker: str) -> None:
        super().__init__(f"Bad Request: Unknown Last-Event-ID {marker!r}; reinitialize to resynchronize")
        self.marker = marker


class DuplicateToolError(ValueError):
    """A tool name was registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool {name!r} is already registered")
        self.name = name


class SessionConflictError(RuntimeError):
    """A session id was published while live or after it had been retired."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session id {session_id!r} is already in use or retired")
        self.session_id = session_id


__all__ = [
    "ChannelClosedError",
    "DuplicateToolError",
    "MissingSessionError",
    "ProtocolError",
    "SessionConflictError",
    "SessionNotFoundError",
    "StreamConflictError",
    "UnknownEventError",
]
