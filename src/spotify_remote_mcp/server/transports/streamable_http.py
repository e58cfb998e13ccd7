# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Streamable HTTP transport adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.routing import Route

from ._asgi import ASGITransportBase, RouterHandler
from ..router import RequestRouter


if TYPE_CHECKING:
    from collections.abc import Iterable


class StreamableHTTPTransport(ASGITransportBase):
    """Serve an :class:`~spotify_remote_mcp.server.MCPServer` over Streamable HTTP."""

    TRANSPORT = ("streamable-http", "Streamable HTTP", "shttp", "http")

    def _build_router(self) -> RequestRouter:
        server = self.server
        return RequestRouter(
            server.registry,
            config=server.config,
            server_info=server.server_info,
            instructions=server.instructions,
        )

    def _build_routes(self, *, path: str, handler: RouterHandler) -> Iterable[Route]:
        return [Route(path, handler)]


__all__ = ["StreamableHTTPTransport"]
