# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""``spotify-remote-mcp`` console entry point."""

from __future__ import annotations

import anyio

from .server import MCPServer, ServerConfig
from .utils import setup_logger


def main() -> None:
    config = ServerConfig.from_env()
    setup_logger(level=config.log_level.upper())
    server = MCPServer(config=config)
    anyio.run(server.serve)


if __name__ == "__main__":
    main()
