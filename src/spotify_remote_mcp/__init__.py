# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Remote MCP server for the Spotify Web API."""

from __future__ import annotations

from . import types
from .context import Context, get_context
from .server import MCPServer, ServerConfig, ToolRegistry
from .server.authorization import AuthorizationConfig
from .tool import ToolSpec, tool
from .tools import default_registry


__all__ = [
    "AuthorizationConfig",
    "Context",
    "MCPServer",
    "ServerConfig",
    "ToolRegistry",
    "ToolSpec",
    "default_registry",
    "get_context",
    "tool",
    "types",
]
