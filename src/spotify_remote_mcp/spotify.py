# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Minimal async client for the Spotify Web API.

Only the endpoints the tools need are wrapped.  The client is bound to the
caller's bearer token; tokens are never refreshed here, the MCP client owns the
OAuth flow.  Error payloads of the form ``{"error": {"status", "message"}}``
raise :class:`SpotifyAPIError` whose string form is Spotify's message, e.g.
``"Player command failed: Premium required"``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import httpx


SPOTIFY_API_BASE = "https://api.spotify.com/v1"
DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)


class SpotifyAPIError(Exception):
    """Non-success answer from the Web API."""

    def __init__(self, status_code: int, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.reason = reason


class SpotifyClient:
    """Thin wrapper around ``httpx.AsyncClient`` bound to one access token.

    Use it as an async context manager, or pass a shared ``http_client`` whose
    lifetime the caller manages.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = SPOTIFY_API_BASE,
        http_client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._token = access_token
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> SpotifyClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Users and catalog
    # ------------------------------------------------------------------

    async def current_user_profile(self) -> dict[str, Any]:
        return await self._request("GET", "/me")

    async def search(
        self,
        q: str,
        types: Iterable[str],
        *,
        market: str | None = "US",
        limit: int = 20,
        offset: int = 0,
    ) -> dict[str, Any]:
        params = {"q": q, "type": ",".join(types), "limit": limit, "offset": offset}
        if market:
            params["market"] = market
        return await self._request("GET", "/search", params=params)

    async def get_recommendations(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return await self._request("GET", "/recommendations", params=dict(params))

    # ------------------------------------------------------------------
    # Player
    # ------------------------------------------------------------------

    async def get_playback_state(
        self, *, market: str | None = None, additional_types: str | None = None
    ) -> dict[str, Any] | None:
        """Return the playback state, or ``None`` when nothing is playing."""
        params = _compact({"market": market, "additional_types": additional_types})
        return await self._request("GET", "/me/player", params=params)

    async def get_available_devices(self) -> list[dict[str, Any]]:
        payload = await self._request("GET", "/me/player/devices")
        return list((payload or {}).get("devices") or [])

    async def start_playback(
        self,
        device_id: str | None = None,
        *,
        context_uri: str | None = None,
        uris: list[str] | None = None,
    ) -> None:
        body = _compact({"context_uri": context_uri, "uris": uris})
        await self._request("PUT", "/me/player/play", params=_compact({"device_id": device_id}), json=body)

    async def pause_playback(self, device_id: str | None = None) -> None:
        await self._request("PUT", "/me/player/pause", params=_compact({"device_id": device_id}))

    async def skip_to_next(self, device_id: str | None = None) -> None:
        await self._request("POST", "/me/player/next", params=_compact({"device_id": device_id}))

    async def skip_to_previous(self, device_id: str | None = None) -> None:
        await self._request("POST", "/me/player/previous", params=_compact({"device_id": device_id}))

    async def set_volume(self, volume_percent: int, device_id: str | None = None) -> None:
        params = _compact({"volume_percent": volume_percent, "device_id": device_id})
        await self._request("PUT", "/me/player/volume", params=params)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        response = await self._http.request(
            method,
            f"{self._base_url}{path}",
            params=params or None,
            json=json,
            headers={"Authorization": f"Bearer {self._token}"},
        )
        if response.status_code >= 400:
            raise _error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Player endpoints sometimes answer 200 with a non-JSON body.
            return None


def _error_from_response(response: httpx.Response) -> SpotifyAPIError:
    message = response.text or response.reason_phrase
    reason = None
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = str(error.get("message") or message)
            reason = error.get("reason")
        elif isinstance(error, str):
            message = str(payload.get("error_description") or error)
    return SpotifyAPIError(response.status_code, message, reason=reason)


def _compact(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


__all__ = ["SPOTIFY_API_BASE", "SpotifyAPIError", "SpotifyClient"]
