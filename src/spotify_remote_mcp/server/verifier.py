# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Spotify-backed token validation and authorization-server discovery.

Spotify access tokens are opaque, so a token is considered valid when the Web
API accepts it for ``GET /me``.  The profile id becomes the subject of the
returned :class:`AuthorizationContext`; the scopes are the ones this server
asks for, since Spotify does not report the scopes of a token.
"""

from __future__ import annotations

from collections.abc import Sequence
import time
from typing import Any

import httpx

from .authorization import SPOTIFY_SCOPES, AuthorizationContext, AuthorizationError
from ..spotify import SPOTIFY_API_BASE
from ..utils import get_logger


OPENID_CONFIGURATION_URL = "https://accounts.spotify.com/.well-known/openid-configuration"
TOKEN_LIFETIME = 3600

FALLBACK_OAUTH_METADATA: dict[str, Any] = {
    "issuer": "https://accounts.spotify.com",
    "authorization_endpoint": "https://accounts.spotify.com/oauth2/v2/auth",
    "token_endpoint": "https://accounts.spotify.com/api/token",
    "revocation_endpoint": "https://accounts.spotify.com/oauth2/revoke/v1",
    "response_types_supported": ["code", "none"],
    "grant_types_supported": ["authorization_code", "refresh_token"],
    "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_post"],
}

_logger = get_logger("spotify_remote_mcp.verifier")


class SpotifyTokenVerifier:
    """:class:`AuthorizationProvider` that asks Spotify whether a token works."""

    def __init__(
        self,
        *,
        scopes: Sequence[str] = SPOTIFY_SCOPES,
        api_base: str = SPOTIFY_API_BASE,
        http_client: httpx.AsyncClient | None = None,
        token_lifetime: int = TOKEN_LIFETIME,
    ) -> None:
        self._scopes = list(scopes)
        self._profile_url = f"{api_base.rstrip('/')}/me"
        self._http = http_client
        self._token_lifetime = token_lifetime

    async def validate(self, token: str) -> AuthorizationContext:
        try:
            if self._http is not None:
                response = await self._http.get(self._profile_url, headers={"Authorization": f"Bearer {token}"})
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.get(self._profile_url, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as exc:
            raise AuthorizationError(f"Invalid or expired token: {exc}") from exc

        if not response.is_success:
            raise AuthorizationError(f"Invalid or expired token: {response.text}")

        try:
            profile = response.json()
        except ValueError:
            profile = {}
        subject = profile.get("id") if isinstance(profile, dict) else None
        return AuthorizationContext(
            token=token,
            subject=subject,
            scopes=list(self._scopes),
            expires_at=time.time() + self._token_lifetime,
            claims={"display_name": profile.get("display_name")} if isinstance(profile, dict) else {},
        )


async def fetch_oauth_metadata(
    http_client: httpx.AsyncClient | None = None,
    *,
    url: str = OPENID_CONFIGURATION_URL,
) -> dict[str, Any]:
    """Fetch Spotify's authorization-server metadata, falling back to a built-in copy."""
    try:
        if http_client is not None:
            response = await http_client.get(url)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(url)
        response.raise_for_status()
        metadata = response.json()
        if not isinstance(metadata, dict):
            raise ValueError("metadata document is not a JSON object")
        return metadata
    except (httpx.HTTPError, ValueError) as exc:
        _logger.warning(
            "could not fetch OAuth metadata; using built-in fallback",
            extra={"event": "auth.metadata_fallback", "reason": str(exc)},
        )
        return dict(FALLBACK_OAUTH_METADATA)


__all__ = ["FALLBACK_OAUTH_METADATA", "OPENID_CONFIGURATION_URL", "SpotifyTokenVerifier", "fetch_oauth_metadata"]
