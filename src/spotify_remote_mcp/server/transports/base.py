# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared transport primitives for :mod:`spotify_remote_mcp.server`."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from ..app import MCPServer


class BaseTransport(ABC):
    """Common base for server transports.

    Subclasses receive the owning :class:`MCPServer` so they can read its
    configuration, tool registry and authorization manager.
    """

    TRANSPORT: tuple[str, ...] = ()

    def __init__(self, server: MCPServer) -> None:
        self._server = server

    @property
    def server(self) -> MCPServer:
        return self._server

    @property
    def transport_display_name(self) -> str:
        if len(self.TRANSPORT) > 1:
            return self.TRANSPORT[1]
        return type(self).__name__

    @abstractmethod
    async def run(self, **kwargs: Any) -> None:
        """Start the transport and serve until cancelled."""


@runtime_checkable
class TransportFactory(Protocol):
    """Callable that produces a configured transport for an ``MCPServer``."""

    def __call__(self, server: MCPServer) -> BaseTransport: ...


__all__ = ["BaseTransport", "TransportFactory"]
