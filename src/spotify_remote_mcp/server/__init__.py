# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Server-side building blocks: registry, channels, sessions and routing."""

from __future__ import annotations

from .app import MCPServer
from .authorization import AuthorizationConfig, AuthorizationContext, AuthorizationError, AuthorizationManager
from .channel import Channel, generate_session_id
from .config import ServerConfig
from .errors import (
    ChannelClosedError,
    DuplicateToolError,
    MissingSessionError,
    ProtocolError,
    SessionConflictError,
    SessionNotFoundError,
    StreamConflictError,
    UnknownEventError,
)
from .event_log import EventLog
from .registry import BoundTool, ToolRegistry
from .router import RequestRouter
from .sessions import Session, SessionStore


__all__ = [
    "AuthorizationConfig",
    "AuthorizationContext",
    "AuthorizationError",
    "AuthorizationManager",
    "BoundTool",
    "Channel",
    "ChannelClosedError",
    "DuplicateToolError",
    "EventLog",
    "MCPServer",
    "MissingSessionError",
    "ProtocolError",
    "RequestRouter",
    "ServerConfig",
    "Session",
    "SessionConflictError",
    "SessionNotFoundError",
    "SessionStore",
    "StreamConflictError",
    "UnknownEventError",
    "ToolRegistry",
    "generate_session_id",
]
