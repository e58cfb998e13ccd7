# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared ASGI transport primitives.

:class:`ASGITransportBase` assembles the Starlette application (the MCP route,
the OAuth discovery routes and the bearer-token middleware) around a request
handler supplied by the concrete transport, and runs it under uvicorn.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterable  # noqa: TC003
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from starlette.applications import Starlette
from uvicorn import Config, Server

from .base import BaseTransport
from ...utils import get_logger


if TYPE_CHECKING:
    from starlette.routing import BaseRoute
    from starlette.types import ASGIApp, Receive, Scope, Send


class RequestHandlerProtocol(Protocol):
    """What the ASGI layer needs from a request router."""

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None: ...

    def run(self) -> AbstractAsyncContextManager[None]: ...


@dataclass(slots=True)
class RouterHandler:
    """ASGI adapter that forwards the MCP route to the request router."""

    router: RequestHandlerProtocol
    transport_label: str
    allowed_scopes: tuple[str, ...]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        scope_type = scope.get("type")
        if scope_type not in self.allowed_scopes:
            allowed = ", ".join(self.allowed_scopes)
            message = f"{self.transport_label} only handles ASGI scopes: {allowed} (got {scope_type!r})."
            raise TypeError(message)

        await self.router.handle_request(scope, receive, send)

    def lifespan(self) -> Callable[[Starlette], AbstractAsyncContextManager[None]]:
        """Return an ASGI lifespan hook bound to the router."""

        @asynccontextmanager
        async def _lifespan(_app: Starlette) -> AsyncIterator[None]:
            async with self.router.run():
                yield

        return _lifespan


class ASGITransportBase(BaseTransport, ABC):
    """Template for transports that present an :class:`MCPServer` via ASGI."""

    ALLOWED_SCOPES: tuple[str, ...] = ("http",)

    def build_app(self) -> ASGIApp:
        """Assemble the ASGI application without starting a server."""
        config = self.server.config
        handler = self._build_handler(self._build_router())
        routes = list(self._build_routes(path=config.path, handler=handler))

        authorization = self.server.authorization_manager
        if authorization.enabled:
            routes.extend(authorization.starlette_routes())

        app: ASGIApp = Starlette(routes=routes, lifespan=handler.lifespan())
        if authorization.enabled:
            app = authorization.wrap_asgi(app)
        return app

    async def run(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        log_level: str | None = None,
        **uvicorn_options: Any,
    ) -> None:
        config = self.server.config
        host = host or config.host
        port = port or config.port
        log_level = log_level or config.log_level

        get_logger("spotify_remote_mcp.transport").info(
            "serving %s on http://%s:%s%s",
            self.transport_display_name,
            host,
            port,
            config.path,
            extra={"event": "server.start", "public_url": config.base_url},
        )
        uvicorn_config = Config(app=self.build_app(), host=host, port=port, log_level=log_level, **uvicorn_options)
        await Server(uvicorn_config).serve()

    def _build_handler(self, router: RequestHandlerProtocol) -> RouterHandler:
        return RouterHandler(
            router=router,
            transport_label=self.transport_display_name,
            allowed_scopes=self.ALLOWED_SCOPES,
        )

    @abstractmethod
    def _build_router(self) -> RequestHandlerProtocol: ...

    @abstractmethod
    def _build_routes(self, *, path: str, handler: RouterHandler) -> Iterable[BaseRoute]: ...


__all__ = ["ASGITransportBase", "RouterHandler"]
