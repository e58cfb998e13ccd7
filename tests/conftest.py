# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from spotify_remote_mcp.server import MCPServer, ServerConfig, ToolRegistry
from spotify_remote_mcp.server.authorization import AuthorizationConfig
from tests.helpers import StaticTokenProvider, build_test_registry


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def registry() -> ToolRegistry:
    return build_test_registry()


@pytest.fixture
def config() -> ServerConfig:
    return ServerConfig(auth_enabled=False)


@pytest.fixture
def server(registry: ToolRegistry, config: ServerConfig) -> MCPServer:
    return MCPServer(
        config=config,
        registry=registry,
        authorization=AuthorizationConfig(enabled=False),
        provider=StaticTokenProvider(),
    )
