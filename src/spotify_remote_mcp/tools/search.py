# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Catalog search."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ._common import NOT_AUTHENTICATED, open_spotify, to_json
from ..context import Context
from ..tool import tool


SearchType = Literal["album", "artist", "playlist", "track", "show", "episode", "audiobook"]

_QUERY_DESCRIPTION = """Your search query.
You can narrow down your search using field filters. The available filters are album, artist, track, year, upc, tag:hipster, tag:new, isrc, and genre. Each field filter only applies to certain result types.
The artist and year filters can be used while searching albums, artists and tracks. You can filter on a single year or a range (e.g. 1955-1960).
The album filter can be used while searching albums and tracks.
The genre filter can be used while searching artists and tracks.
The isrc and track filters can be used while searching tracks.
The upc, tag:new and tag:hipster filters can only be used while searching albums. The tag:new filter will return albums released in the past two weeks and tag:hipster can be used to return only albums with the lowest 10% popularity."""


class SearchArgs(BaseModel):
    q: str = Field(description=_QUERY_DESCRIPTION)
    type: list[SearchType] = Field(
        description="list of item types to search across. Search results include hits from all the specified item types.",
    )
    limit: int = Field(20, ge=0, le=50, description="The maximum number of results to return in each item type.")
    offset: int = Field(
        0,
        description=(
            "The index of the first result to return. "
            "Use this parameter along with limit to get the next set of results."
        ),
    )


@tool(
    "search",
    description=(
        "Get Spotify catalog information about albums, artists, playlists, tracks, shows, episodes or audiobooks "
        "that match a keyword string. Audiobooks are only available within the US, UK, Canada, Ireland, "
        "New Zealand and Australia markets."
    ),
    input_model=SearchArgs,
    annotations={"readOnlyHint": True},
)
async def search(args: SearchArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    async with open_spotify(ctx) as spotify:
        result = await spotify.search(args.q, args.type, market="US", limit=args.limit, offset=args.offset)
    return f"Here is the result of the Spotify Search: {to_json(result)}."


__all__ = ["SearchArgs", "search"]
