# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Genre-seeded track recommendations.

Audio-feature bounds are taken on a 0-100 scale and converted to the 0-1
scale of the Web API before the request is sent.  Loudness (dB) and tempo
(BPM) are passed through unchanged.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from ._common import NOT_AUTHENTICATED, SPOTIFY_ERRORS, error_message, open_spotify
from ..context import Context
from ..tool import tool


GENRES: tuple[str, ...] = (
    "acoustic", "afrobeat", "alt-rock", "alternative", "ambient", "anime", "black-metal", "bluegrass", "blues",
    "bossanova", "brazil", "breakbeat", "british", "cantopop", "chicago-house", "children", "chill", "classical",
    "club", "comedy", "country", "dance", "dancehall", "death-metal", "deep-house", "detroit-techno", "disco",
    "disney", "drum-and-bass", "dub", "dubstep", "edm", "electro", "electronic", "emo", "folk", "forro",
    "french", "funk", "garage", "german", "gospel", "goth", "grindcore", "groove", "grunge", "guitar",
    "happy", "hard-rock", "hardcore", "hardstyle", "heavy-metal", "hip-hop", "holidays", "honky-tonk",
    "house", "idm", "indian", "indie", "indie-pop", "industrial", "iranian", "j-dance", "j-idol", "j-pop",
    "j-rock", "jazz", "k-pop", "kids", "latin", "latino", "malay", "mandopop", "metal", "metal-misc",
    "metalcore", "minimal-techno", "movies", "mpb", "new-age", "new-release", "opera", "pagode", "party",
    "philippines-opm", "piano", "pop", "pop-film", "post-dubstep", "power-pop", "progressive-house", "psych-rock",
    "punk", "punk-rock", "r-n-b", "rainy-day", "reggae", "reggaeton", "road-trip", "rock", "rock-n-roll",
    "rockabilly", "romance", "sad", "salsa", "samba", "sertanejo", "show-tunes", "singer-songwriter", "ska",
    "sleep", "songwriter", "soul", "soundtracks", "spanish", "study", "summer", "swedish", "synth-pop",
    "tango", "techno", "trance", "trip-hop", "turkish", "work-out", "world-music",
)  # fmt: skip

Genre = Literal[GENRES]  # type: ignore[valid-type]

PERCENT_FEATURES = frozenset(
    {"acousticness", "danceability", "energy", "instrumentalness", "liveness", "popularity", "speechiness", "valence"}
)


def _percent(label: str) -> Any:
    return Field(None, ge=0, le=100, description=f"{label} value (0-100)")


class RecommendationArgs(BaseModel):
    seed_genres: list[Genre] = Field(description="The ONLY VALID seed genres to choose from")
    min_acousticness: float | None = _percent("Minimum acousticness")
    max_acousticness: float | None = _percent("Maximum acousticness")
    min_danceability: float | None = _percent("Minimum danceability")
    max_danceability: float | None = _percent("Maximum danceability")
    min_energy: float | None = _percent("Minimum energy")
    max_energy: float | None = _percent("Maximum energy")
    min_instrumentalness: float | None = _percent("Minimum instrumentalness")
    max_instrumentalness: float | None = _percent("Maximum instrumentalness")
    min_liveness: float | None = _percent("Minimum liveness")
    max_liveness: float | None = _percent("Maximum liveness")
    min_loudness: float | None = Field(None, ge=-60, le=0, description="Minimum loudness value in dB (-60 to 0)")
    max_loudness: float | None = Field(None, ge=-60, le=0, description="Maximum loudness value in dB (-60 to 0)")
    min_popularity: float | None = _percent("Minimum popularity")
    max_popularity: float | None = _percent("Maximum popularity")
    min_speechiness: float | None = _percent("Minimum speechiness")
    max_speechiness: float | None = _percent("Maximum speechiness")
    min_tempo: float | None = Field(None, ge=0, le=250, description="Minimum tempo in BPM (0-250)")
    max_tempo: float | None = Field(None, ge=0, le=250, description="Maximum tempo in BPM (0-250)")
    min_valence: float | None = _percent("Minimum valence/positivity")
    max_valence: float | None = _percent("Maximum valence/positivity")
    limit: int = Field(10, ge=1, le=100, description="The number of recommendations to return (1-100)")


def recommendation_params(args: RecommendationArgs) -> dict[str, Any]:
    """Translate tool arguments into ``/recommendations`` query parameters."""
    params: dict[str, Any] = {"seed_genres": ",".join(args.seed_genres), "limit": args.limit}
    for key, value in args.model_dump(exclude={"seed_genres", "limit"}, exclude_none=True).items():
        feature = key.split("_", 1)[1]
        params[key] = value / 100 if feature in PERCENT_FEATURES else value
    return params


def format_duration(duration_ms: int) -> str:
    minutes, remainder = divmod(int(duration_ms), 60_000)
    return f"{minutes}:{remainder // 1000:02d}"


def format_track(index: int, track: dict[str, Any]) -> str:
    artists = ", ".join(artist.get("name", "") for artist in track.get("artists") or [])
    return (
        f"{index}. **{track.get('name')}** by {artists}\n"
        f"   Album: {(track.get('album') or {}).get('name')}\n"
        f"   Duration: {format_duration(track.get('duration_ms') or 0)} | Popularity: {track.get('popularity')}/100\n"
        f"   Spotify: {(track.get('external_urls') or {}).get('spotify')}\n"
        f"   URI: {track.get('uri')}\n"
    )


@tool(
    "get_recommendations",
    description="Call Spotify's API to get track recommendations",
    input_model=RecommendationArgs,
    annotations={"readOnlyHint": True},
)
async def get_recommendations(args: RecommendationArgs, ctx: Context) -> str:
    if ctx.auth is None:
        return NOT_AUTHENTICATED
    try:
        async with open_spotify(ctx) as spotify:
            result = await spotify.get_recommendations(recommendation_params(args))
    except SPOTIFY_ERRORS as exc:
        return f"Error getting recommendations: {error_message(exc)}"

    tracks = (result or {}).get("tracks") or []
    listing = "\n".join(format_track(index, track) for index, track in enumerate(tracks, start=1))
    return f"Found {len(tracks)} recommendations:\n\n{listing}"


__all__ = ["GENRES", "RecommendationArgs", "format_duration", "get_recommendations", "recommendation_params"]
