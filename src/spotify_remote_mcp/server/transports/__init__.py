# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Transport adapters for the Spotify MCP server."""

from __future__ import annotations

from ._asgi import ASGITransportBase, RouterHandler
from .base import BaseTransport, TransportFactory
from .streamable_http import StreamableHTTPTransport


__all__ = [
    "ASGITransportBase",
    "BaseTransport",
    "RouterHandler",
    "StreamableHTTPTransport",
    "TransportFactory",
]
