# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import time

import pytest
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from spotify_remote_mcp.server import MCPServer, ServerConfig
from spotify_remote_mcp.server.authorization import (
    AUTH_SCOPE_KEY,
    SPOTIFY_SCOPES,
    AuthorizationConfig,
    AuthorizationContext,
    AuthorizationError,
    AuthorizationManager,
)
from tests.helpers import (
    JSON_HEADERS,
    StaticTokenProvider,
    asgi_client,
    build_test_registry,
    call_tool_body,
    initialize_body,
)


@pytest.fixture
def auth_config() -> AuthorizationConfig:
    return AuthorizationConfig(
        enabled=True,
        authorization_servers=["https://as.example"],
        required_scopes=["user-read-private", "user-modify-playback-state"],
        cache_ttl=123,
    )


@pytest.fixture
def manager(auth_config: AuthorizationConfig) -> AuthorizationManager:
    return AuthorizationManager(
        auth_config,
        StaticTokenProvider(scopes=["user-read-private", "user-modify-playback-state"]),
    )


def _protected_app(manager: AuthorizationManager) -> TestClient:
    async def endpoint(request):
        ctx = request.scope.get(AUTH_SCOPE_KEY)
        if ctx is None:
            return JSONResponse({"subject": None})
        return JSONResponse({"subject": ctx.subject, "scopes": ctx.scopes})

    routes = [Route("/mcp", endpoint, methods=["GET", "POST"]), *manager.starlette_routes()]
    return TestClient(manager.wrap_asgi(Starlette(routes=routes)))


# ==============================================================================
# Discovery documents
# ==============================================================================


def test_resource_metadata_document(manager: AuthorizationManager) -> None:
    client = TestClient(Starlette(routes=manager.starlette_routes()))

    resp = client.get("/.well-known/oauth-protected-resource")

    assert resp.status_code == 200
    assert resp.json() == {
        "resource": "http://testserver/",
        "authorization_servers": ["https://as.example"],
        "scopes_supported": ["user-read-private", "user-modify-playback-state"],
        "resource_name": "Spotify (Unofficial)",
        "bearer_methods_supported": ["header"],
    }
    assert resp.headers["cache-control"] == "public, max-age=123"


def test_resource_metadata_respects_forwarded_headers(manager: AuthorizationManager) -> None:
    client = TestClient(Starlette(routes=manager.starlette_routes()))

    resp = client.get(
        "/.well-known/oauth-protected-resource",
        headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "api.example.com"},
    )

    assert resp.json()["resource"] == "https://api.example.com/"


def test_resource_metadata_prefers_configured_url(auth_config: AuthorizationConfig) -> None:
    auth_config.resource_url = "https://spotify-mcp.example.com/"
    client = TestClient(Starlette(routes=AuthorizationManager(auth_config).starlette_routes()))

    resp = client.get("/.well-known/oauth-protected-resource", headers={"Host": "internal:8080"})

    assert resp.json()["resource"] == "https://spotify-mcp.example.com/"


def test_metadata_routes_only_accept_get(manager: AuthorizationManager) -> None:
    client = TestClient(Starlette(routes=manager.starlette_routes()))

    assert client.post("/.well-known/oauth-protected-resource").status_code == 405
    assert client.delete("/.well-known/oauth-authorization-server").status_code == 405


def test_authorization_server_metadata(manager: AuthorizationManager) -> None:
    client = TestClient(Starlette(routes=manager.starlette_routes()))

    assert client.get("/.well-known/oauth-authorization-server").status_code == 404

    manager.set_server_metadata({"issuer": "https://accounts.spotify.com"})
    resp = client.get("/.well-known/oauth-authorization-server")

    assert resp.status_code == 200
    assert resp.json() == {"issuer": "https://accounts.spotify.com"}
    assert resp.headers["cache-control"] == "public, max-age=123"


# ==============================================================================
# Bearer token middleware
# ==============================================================================


def test_missing_token_gets_a_challenge(manager: AuthorizationManager) -> None:
    client = _protected_app(manager)

    resp = client.post("/mcp")

    assert resp.status_code == 401
    assert resp.json() == {"error": "invalid_token", "error_description": "Missing Authorization header"}
    challenge = resp.headers["WWW-Authenticate"]
    assert challenge.startswith("Bearer ")
    assert 'error="invalid_token"' in challenge
    assert 'resource_metadata="http://testserver/.well-known/oauth-protected-resource"' in challenge


@pytest.mark.parametrize("header", ["", "just-a-token", "Bearer", "Bearer "])
def test_malformed_authorization_headers(manager: AuthorizationManager, header: str) -> None:
    client = _protected_app(manager)

    resp = client.get("/mcp", headers={"Authorization": header})

    assert resp.status_code == 401


def test_invalid_token_is_rejected(manager: AuthorizationManager) -> None:
    client = _protected_app(manager)

    resp = client.get("/mcp", headers={"Authorization": "Bearer bad-token"})

    assert resp.status_code == 401
    assert resp.json()["error_description"] == "Invalid or expired token: bad token"


def test_valid_token_reaches_the_app(manager: AuthorizationManager) -> None:
    client = _protected_app(manager)

    resp = client.get("/mcp", headers={"Authorization": "bearer   valid-token  "})

    assert resp.status_code == 200
    assert resp.json()["subject"] == "user-1"


def test_insufficient_scope_is_forbidden(auth_config: AuthorizationConfig) -> None:
    manager = AuthorizationManager(auth_config, StaticTokenProvider(scopes=["user-read-private"]))
    client = _protected_app(manager)

    resp = client.get("/mcp", headers={"Authorization": "Bearer valid-token"})

    assert resp.status_code == 403
    assert resp.json()["error"] == "insufficient_scope"
    assert 'scope="user-read-private user-modify-playback-state"' in resp.headers["WWW-Authenticate"]


def test_expired_token_is_rejected(auth_config: AuthorizationConfig) -> None:
    class ExpiredProvider:
        async def validate(self, token: str) -> AuthorizationContext:
            return AuthorizationContext(token=token, scopes=list(auth_config.required_scopes), expires_at=time.time() - 1)

    client = _protected_app(AuthorizationManager(auth_config, ExpiredProvider()))

    resp = client.get("/mcp", headers={"Authorization": "Bearer valid-token"})

    assert resp.status_code == 401
    assert resp.json()["error_description"] == "Token has expired"


def test_unconfigured_provider_rejects_everything(auth_config: AuthorizationConfig) -> None:
    client = _protected_app(AuthorizationManager(auth_config))

    resp = client.get("/mcp", headers={"Authorization": "Bearer valid-token"})

    assert resp.status_code == 401


def test_fail_open_lets_the_request_through(auth_config: AuthorizationConfig) -> None:
    auth_config.fail_open = True

    class FailingProvider:
        async def validate(self, token: str) -> AuthorizationContext:
            raise AuthorizationError("boom")

    client = _protected_app(AuthorizationManager(auth_config, FailingProvider()))

    resp = client.get("/mcp", headers={"Authorization": "Bearer anything"})

    assert resp.status_code == 200
    assert resp.json() == {"subject": None}


def test_metadata_paths_bypass_the_middleware(manager: AuthorizationManager) -> None:
    client = _protected_app(manager)

    assert client.get("/.well-known/oauth-protected-resource").status_code == 200


# ==============================================================================
# Assembled server
# ==============================================================================


def _protected_server(provider: StaticTokenProvider) -> MCPServer:
    return MCPServer(
        config=ServerConfig(auth_enabled=True, public_url="https://spotify-mcp.example.com"),
        registry=build_test_registry(),
        provider=provider,
    )


@pytest.mark.anyio
async def test_server_requires_a_bearer_token() -> None:
    provider = StaticTokenProvider()
    async with asgi_client(_protected_server(provider).build_app()) as client:
        resp = await client.post("/mcp", json=initialize_body(), headers=JSON_HEADERS)
        metadata = await client.get("/.well-known/oauth-protected-resource")

    assert resp.status_code == 401
    assert (
        'resource_metadata="https://spotify-mcp.example.com/.well-known/oauth-protected-resource"'
        in resp.headers["www-authenticate"]
    )
    assert metadata.status_code == 200
    assert metadata.json()["resource"] == "https://spotify-mcp.example.com/"
    assert metadata.json()["scopes_supported"] == list(SPOTIFY_SCOPES)
    assert provider.calls == []


@pytest.mark.anyio
async def test_server_hands_the_caller_identity_to_tools() -> None:
    provider = StaticTokenProvider()
    headers = {**JSON_HEADERS, "Authorization": "Bearer valid-token"}
    async with asgi_client(_protected_server(provider).build_app()) as client:
        init = await client.post("/mcp", json=initialize_body(), headers=headers)
        session_headers = {**headers, "Mcp-Session-Id": init.headers["mcp-session-id"]}
        resp = await client.post("/mcp", json=call_tool_body("whoami_test"), headers=session_headers)

    assert resp.status_code == 200
    assert resp.json()["result"]["content"][0]["text"] == "user-1"
    assert provider.calls == ["valid-token", "valid-token"]


def test_disabled_authorization_serves_no_metadata(server: MCPServer) -> None:
    client = TestClient(server.build_app())

    assert client.get("/.well-known/oauth-protected-resource").status_code == 404
