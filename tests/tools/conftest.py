# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from spotify_remote_mcp.context import Context
from tests.helpers import FakeSpotify, tool_context


@pytest.fixture
def spotify(monkeypatch: pytest.MonkeyPatch) -> FakeSpotify:
    fake = FakeSpotify()
    monkeypatch.setattr("spotify_remote_mcp.tools._common.SpotifyClient", fake)
    return fake


@pytest.fixture
def ctx() -> Context:
    return tool_context()


@pytest.fixture
def anonymous() -> Context:
    return tool_context(authenticated=False)
