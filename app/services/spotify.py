"""
Spotify API service for looking up a work's canonical track by ISRC.

Uses the Spotify Web API with client credentials flow.
https://developer.spotify.com/documentation/web-api

Access tokens come from an injected CredentialCache; lookups are cached in
memory to minimize API requests and avoid rate limits.
"""
from __future__ import annotations

import base64
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

import httpx

from app.core.config import settings
from app.core.credentials import AccessToken, CredentialCache
from app.services.errors import ProviderError

logger = logging.getLogger(__name__)

PROVIDER = "spotify"
CACHE_TTL = timedelta(hours=24)  # Cache results for 24 hours


class SpotifyService:
    """
    Service for interacting with Spotify API.

    Handles authentication through the credential cache and resolves
    ISRC codes to track metadata.
    """

    BASE_URL = "https://api.spotify.com/v1"
    AUTH_URL = "https://accounts.spotify.com/api/token"

    def __init__(
        self,
        credentials: CredentialCache | None = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials or CredentialCache()
        self.client_id = settings.SPOTIFY_CLIENT_ID if client_id is None else client_id
        self.client_secret = settings.SPOTIFY_CLIENT_SECRET if client_secret is None else client_secret
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport
        self._cache: Dict[str, tuple[Any, datetime]] = {}

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _get_cached(self, key: str) -> tuple[bool, Any]:
        """Return (hit, value); a cached None is a hit (known miss)."""
        if key in self._cache:
            value, expires = self._cache[key]
            if self.credentials.clock() < expires:
                logger.debug(f"Cache hit for {key}")
                return True, value
            del self._cache[key]
        return False, None

    def _set_cached(self, key: str, value: Any) -> None:
        self._cache[key] = (value, self.credentials.clock() + CACHE_TTL)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _fetch_token(self) -> AccessToken:
        """Client credentials flow (no user authorization required)."""
        if not self.configured:
            raise ProviderError("Spotify credentials not configured")

        credentials = f"{self.client_id}:{self.client_secret}"
        encoded = base64.b64encode(credentials.encode()).decode()

        try:
            async with self._client() as client:
                response = await client.post(
                    self.AUTH_URL,
                    headers={
                        "Authorization": f"Basic {encoded}",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                    data={"grant_type": "client_credentials"},
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Spotify unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"Failed to get Spotify token: {response.text}")
            raise ProviderError("Failed to authenticate with Spotify")

        data = response.json()
        return AccessToken.from_expires_in(
            data["access_token"],
            data.get("expires_in", 3600),
            now=self.credentials.clock(),
        )

    async def _get(self, client: httpx.AsyncClient, endpoint: str, params: dict = None) -> httpx.Response:
        token = await self.credentials.get(PROVIDER, self._fetch_token)
        return await client.get(
            f"{self.BASE_URL}{endpoint}",
            headers={"Authorization": f"Bearer {token}"},
            params=params,
        )

    async def _request(self, endpoint: str, params: dict = None) -> dict:
        """Make an authenticated request to Spotify API."""
        try:
            async with self._client() as client:
                response = await self._get(client, endpoint, params)

                if response.status_code == 401:
                    # Token revoked before expiry, refresh and retry once
                    self.credentials.invalidate(PROVIDER)
                    response = await self._get(client, endpoint, params)
        except httpx.HTTPError as e:
            raise ProviderError(f"Spotify unreachable: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Spotify API error: {response.status_code} - {response.text}")
            return {}

        return response.json()

    async def search_track_by_isrc(self, isrc: str) -> Optional[dict]:
        """
        Search for a track by ISRC code.

        Returns:
            Dict with track and album info, or None if not found.

        Raises:
            ProviderError: credentials missing or Spotify unreachable
        """
        isrc = isrc.strip().upper()
        cache_key = f"track:isrc:{isrc}"
        hit, cached = self._get_cached(cache_key)
        if hit:
            return cached

        result = await self._request("/search", {
            "q": f"isrc:{isrc}",
            "type": "track",
            "limit": 1,
        })

        tracks = result.get("tracks", {}).get("items", [])
        if not tracks:
            self._set_cached(cache_key, None)
            return None

        track = tracks[0]
        album = track.get("album", {})
        images = album.get("images", [])

        data = {
            "spotify_id": track.get("id"),
            "name": track.get("name"),
            "album_name": album.get("name"),
            "image_url": images[0]["url"] if images else None,
            "artists": [a.get("name") for a in track.get("artists", [])],
            "duration_ms": track.get("duration_ms"),
            "external_url": track.get("external_urls", {}).get("spotify"),
        }
        self._set_cached(cache_key, data)
        return data


# Default service instance
spotify_service = SpotifyService()
