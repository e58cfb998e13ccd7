# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Process-level assembly of the Spotify MCP server.

:class:`MCPServer` wires the pieces together once at startup: the tool
registry, the authorization manager with its Spotify-backed verifier and the
Streamable HTTP transport that hosts the request router.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import httpx

from .authorization import AuthorizationConfig, AuthorizationManager, AuthorizationProvider
from .config import ServerConfig
from .registry import ToolRegistry
from .transports import BaseTransport, StreamableHTTPTransport, TransportFactory
from .verifier import SpotifyTokenVerifier, fetch_oauth_metadata
from .. import types
from ..utils import get_logger


if TYPE_CHECKING:
    from starlette.types import ASGIApp


SERVER_NAME = "spotify-unofficial"
SERVER_VERSION = "0.1.0"


class MCPServer:
    """Spotify MCP server: registry, authorization and transport in one place."""

    def __init__(
        self,
        *,
        config: ServerConfig | None = None,
        registry: ToolRegistry | None = None,
        authorization: AuthorizationConfig | None = None,
        provider: AuthorizationProvider | None = None,
        instructions: str | None = None,
        name: str = SERVER_NAME,
        version: str = SERVER_VERSION,
    ) -> None:
        if registry is None:
            from ..tools import default_registry

            registry = default_registry()

        self.config = config or ServerConfig.from_env()
        self.registry = registry
        self.instructions = instructions
        self.server_info = types.Implementation(name=name, version=version)
        self._logger = get_logger(f"spotify_remote_mcp.server.{name}")

        auth_config = authorization or AuthorizationConfig(
            enabled=self.config.auth_enabled,
            resource_url=f"{self.config.base_url}/",
        )
        self._authorization_manager = AuthorizationManager(auth_config, provider or SpotifyTokenVerifier())

        self._transport_factories: dict[str, TransportFactory] = {}
        self.register_transport(
            "streamable-http", StreamableHTTPTransport, aliases=("streamable_http", "shttp", "http")
        )

    @property
    def name(self) -> str:
        return self.server_info.name

    @property
    def authorization_manager(self) -> AuthorizationManager:
        return self._authorization_manager

    def set_authorization_provider(self, provider: AuthorizationProvider) -> None:
        self._authorization_manager.set_provider(provider)

    # ------------------------------------------------------------------
    # Transport registry
    # ------------------------------------------------------------------

    def register_transport(self, name: str, factory: TransportFactory, *, aliases: Iterable[str] | None = None) -> None:
        self._transport_factories[name.lower()] = factory
        for alias in aliases or ():
            self._transport_factories[alias.lower()] = factory

    def _transport_for_name(self, name: str) -> BaseTransport:
        factory = self._transport_factories.get(name.lower())
        if factory is None:
            raise ValueError(f"Unsupported transport '{name}'.")
        transport = factory(self)
        if not isinstance(transport, BaseTransport):
            raise TypeError("Transport factory must return a BaseTransport instance")
        return transport

    # ------------------------------------------------------------------
    # Serving
    # ------------------------------------------------------------------

    def build_app(self, transport: str = "streamable-http") -> ASGIApp:
        """Return the ASGI application without starting a server."""
        selected = self._transport_for_name(transport)
        if not hasattr(selected, "build_app"):
            raise TypeError(f"Transport '{transport}' does not expose an ASGI application")
        return selected.build_app()

    async def load_oauth_metadata(self, http_client: httpx.AsyncClient | None = None) -> dict[str, Any]:
        """Fetch the authorization-server metadata served on the discovery route."""
        metadata = await fetch_oauth_metadata(http_client)
        self._authorization_manager.set_server_metadata(metadata)
        return metadata

    async def serve(self, *, transport: str = "streamable-http", **transport_kwargs: Any) -> None:
        if self._authorization_manager.enabled and self._authorization_manager.server_metadata is None:
            await self.load_oauth_metadata()

        selected = self._transport_for_name(transport)
        self._logger.info(
            "Serving %s via %s transport",
            self.name,
            selected.transport_display_name,
            extra={"event": "server.start", "tools": self.registry.tool_names},
        )
        await selected.run(**transport_kwargs)


__all__ = ["MCPServer", "SERVER_NAME", "SERVER_VERSION"]
