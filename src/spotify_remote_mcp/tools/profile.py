# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

from ._common import NOT_AUTHENTICATED, open_spotify, to_json
from ..context import Context
from ..tool import NoArguments, tool


@tool("whoami", annotations={"readOnlyHint": True})
async def whoami(args: NoArguments, ctx: Context) -> str:
    """A tool that returns the authenticated user's information"""
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    async with open_spotify(ctx) as spotify:
        profile = await spotify.current_user_profile()
    return f"Here is the result of the Spotify Profile: {to_json(profile)}."


__all__ = ["whoami"]
