# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Bearer-token enforcement and OAuth discovery metadata.

The MCP endpoint is an OAuth 2.1 protected resource.  Clients discover the
authorization server through two unauthenticated documents and then present a
bearer token on every ``/mcp`` call.

Key pieces:

* :class:`AuthorizationConfig` - scopes, authorization servers and metadata paths.
* :class:`AuthorizationProvider` protocol - pluggable token validation.
* :class:`AuthorizationManager` - serves the metadata documents and wraps the
  ASGI app with bearer-token enforcement.

The verified :class:`AuthorizationContext` is stored in the ASGI scope under
:data:`AUTH_SCOPE_KEY`, where the router picks it up and hands it to tools.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import time
from typing import Any, Protocol

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import ASGIApp

from ..utils import get_logger


AUTH_SCOPE_KEY = "spotify_remote_mcp.auth"

SPOTIFY_SCOPES: tuple[str, ...] = (
    "user-read-private",
    "user-read-email",
    "user-read-playback-state",
    "user-modify-playback-state",
)


@dataclass(slots=True)
class AuthorizationConfig:
    """Server-side authorization configuration."""

    enabled: bool = True
    metadata_path: str = "/.well-known/oauth-protected-resource"
    server_metadata_path: str = "/.well-known/oauth-authorization-server"
    authorization_servers: list[str] = field(default_factory=lambda: ["https://accounts.spotify.com"])
    required_scopes: list[str] = field(default_factory=lambda: list(SPOTIFY_SCOPES))
    resource_name: str = "Spotify (Unofficial)"
    resource_url: str | None = None
    cache_ttl: int = 300
    fail_open: bool = False


@dataclass(slots=True)
class AuthorizationContext:
    """Identity returned by providers after successful validation."""

    token: str
    subject: str | None = None
    scopes: list[str] = field(default_factory=list)
    expires_at: float | None = None
    claims: dict[str, Any] = field(default_factory=dict)


class AuthorizationError(Exception):
    """Raised when token validation fails."""


class AuthorizationProvider(Protocol):
    async def validate(self, token: str) -> AuthorizationContext:
        """Validate a bearer token and return the associated context."""


class _NoopAuthorizationProvider:
    async def validate(self, token: str) -> AuthorizationContext:
        raise AuthorizationError("authorization provider not configured")


class AuthorizationManager:
    """Coordinates metadata serving and ASGI middleware for authorization."""

    def __init__(
        self,
        config: AuthorizationConfig,
        provider: AuthorizationProvider | None = None,
        *,
        server_metadata: dict[str, Any] | None = None,
    ) -> None:
        self.config = config
        self._provider: AuthorizationProvider = provider or _NoopAuthorizationProvider()
        self._server_metadata = server_metadata
        self._logger = get_logger("spotify_remote_mcp.authorization")

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def server_metadata(self) -> dict[str, Any] | None:
        return self._server_metadata

    def set_provider(self, provider: AuthorizationProvider) -> None:
        self._provider = provider

    def set_server_metadata(self, metadata: dict[str, Any]) -> None:
        self._server_metadata = metadata

    @property
    def public_paths(self) -> frozenset[str]:
        return frozenset({self.config.metadata_path, self.config.server_metadata_path})

    # ------------------------------------------------------------------
    # Starlette integration
    # ------------------------------------------------------------------

    def starlette_routes(self) -> list[Route]:
        async def resource_metadata(request: Request) -> Response:
            payload: dict[str, Any] = {
                "resource": self._resource_url(request),
                "authorization_servers": self.config.authorization_servers,
                "scopes_supported": self.config.required_scopes,
                "resource_name": self.config.resource_name,
                "bearer_methods_supported": ["header"],
            }
            return JSONResponse(payload, headers=self._cache_headers())

        async def server_metadata(request: Request) -> Response:
            if self._server_metadata is None:
                return JSONResponse({"error": "not_found"}, status_code=404)
            return JSONResponse(self._server_metadata, headers=self._cache_headers())

        return [
            Route(self.config.metadata_path, resource_metadata, methods=["GET"]),
            Route(self.config.server_metadata_path, server_metadata, methods=["GET"]),
        ]

    def wrap_asgi(self, app: ASGIApp) -> ASGIApp:
        manager = self

        class _Middleware(BaseHTTPMiddleware):
            async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
                if request.url.path in manager.public_paths:
                    return await call_next(request)

                auth_header = request.headers.get("authorization")
                if not auth_header or not auth_header.lower().startswith("bearer "):
                    return manager._challenge_response(request, "Missing Authorization header")

                token = auth_header[7:].strip()
                try:
                    context = await manager._authorize(token)
                except AuthorizationError as exc:
                    manager._logger.warning(
                        "authorization failed",
                        extra={"event": "auth.reject", "reason": str(exc), "path": request.url.path},
                    )
                    if manager.config.fail_open:
                        manager._logger.warning(
                            "authorization fail-open engaged; allowing request",
                            extra={"event": "auth.fail_open"},
                        )
                        request.scope[AUTH_SCOPE_KEY] = None
                        return await call_next(request)
                    return manager._challenge_response(request, str(exc))

                missing = [scope for scope in manager.config.required_scopes if scope not in context.scopes]
                if missing:
                    manager._logger.warning(
                        "insufficient scope",
                        extra={"event": "auth.reject", "reason": "insufficient_scope", "missing": missing},
                    )
                    return manager._challenge_response(
                        request, "Insufficient scope", error="insufficient_scope", status_code=403
                    )

                request.scope[AUTH_SCOPE_KEY] = context
                return await call_next(request)

        return _Middleware(app)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _authorize(self, token: str) -> AuthorizationContext:
        if not token:
            raise AuthorizationError("Missing bearer token")
        context = await self._provider.validate(token)
        if context.expires_at is not None and context.expires_at < time.time():
            raise AuthorizationError("Token has expired")
        return context

    def _challenge_response(
        self,
        request: Request,
        reason: str,
        *,
        error: str = "invalid_token",
        status_code: int = 401,
    ) -> Response:
        metadata_url = f"{self._canonical_base(request)}{self.config.metadata_path}"
        challenge = f'Bearer error="{error}", error_description="{_header_safe(reason)}", resource_metadata="{metadata_url}"'
        if error == "insufficient_scope":
            challenge += f', scope="{" ".join(self.config.required_scopes)}"'
        headers = {"WWW-Authenticate": challenge}
        payload = {"error": error, "error_description": reason}
        return JSONResponse(payload, status_code=status_code, headers=headers)

    def _cache_headers(self) -> dict[str, str]:
        return {"Cache-Control": f"public, max-age={self.config.cache_ttl}"}

    def _resource_url(self, request: Request) -> str:
        if self.config.resource_url:
            return self.config.resource_url
        return f"{self._canonical_base(request)}/"

    def _canonical_base(self, request: Request) -> str:
        if self.config.resource_url:
            return self.config.resource_url.rstrip("/")
        # scheme://host[:port] without trailing slash
        scheme = request.headers.get("x-forwarded-proto", request.url.scheme)
        host = request.headers.get("x-forwarded-host", request.headers.get("host", ""))
        if not host:
            host = request.url.netloc
        return f"{scheme}://{host}".rstrip("/")


def _header_safe(text: str) -> str:
    return " ".join(text.replace('"', "'").split())


__all__ = [
    "AUTH_SCOPE_KEY",
    "SPOTIFY_SCOPES",
    "AuthorizationConfig",
    "AuthorizationContext",
    "AuthorizationError",
    "AuthorizationManager",
    "AuthorizationProvider",
]
