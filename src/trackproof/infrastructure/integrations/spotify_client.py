"""Spotify Web API client (authenticated streaming catalog)."""

import logging
from typing import Any, cast

import httpx

from trackproof.config.settings import SpotifySettings
from trackproof.domain.dtos import CatalogMatch, PlatformCandidate
from trackproof.domain.entities import Platform, PlatformId
from trackproof.domain.exceptions import AuthenticationError, RateLimitExceededError
from trackproof.domain.ports import IStreamingCatalog
from trackproof.domain.value_objects.identifiers import (
    extract_platform_id,
    is_valid_platform_id,
    normalize_isrc,
)
from trackproof.infrastructure.rate_limiter import RateLimiter, get_spotify_limiter

logger = logging.getLogger(__name__)


class SpotifyClient(IStreamingCatalog):
    """HTTP client for Spotify track search with a caller-supplied bearer token.

    Hey future me - we NEVER own the token. The host app runs OAuth and hands us a fresh
    access token per call. A 401 means "your token is dead": we raise AuthenticationError
    and let the caller refresh. Everything else (5xx, timeouts, 429 after retries) is logged
    and degrades to "no result", because a flaky Spotify must not fail a whole import.
    """

    source_name = "spotify"
    platform = Platform.SPOTIFY
    requires_auth = True

    API_BASE_URL = "https://api.spotify.com/v1"

    def __init__(
        self, settings: SpotifySettings, rate_limiter: RateLimiter | None = None
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            rate_limiter: Shared limiter (defaults to the process-wide Spotify limiter)
        """
        self.settings = settings
        self.rate_limiter = rate_limiter or get_spotify_limiter(settings.requests_per_second)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Hey future me - CENTRALIZED API REQUEST with Rate Limiting!
    # - Token Bucket rate limiting (prevents 429s)
    # - Automatic retry on 429, honoring Retry-After
    # - max_retries from settings to prevent infinite loops
    async def _api_request(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make rate-limited API request with automatic retry on 429.

        Args:
            method: HTTP method
            url: Full URL to request
            access_token: OAuth access token
            params: Query parameters

        Returns:
            httpx.Response object

        Raises:
            RateLimitExceededError: Still 429 after all retries
            httpx.HTTPError: On transport failures
        """
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {access_token}"}
        max_retries = self.settings.max_retries

        for attempt in range(max_retries + 1):
            async with self.rate_limiter:
                response = await client.request(
                    method=method, url=url, params=params, headers=headers
                )

            if response.status_code != 429:
                return response

            retry_after_str = response.headers.get("Retry-After")
            retry_after = float(retry_after_str) if retry_after_str else None

            if attempt >= max_retries:
                raise RateLimitExceededError(
                    f"Spotify API rate limited (429) after {max_retries} retries. "
                    f"Retry-After: {retry_after or 'not provided'} seconds.",
                    service="spotify",
                    retry_after=retry_after,
                )

            wait_time = await self.rate_limiter.handle_rate_limit_response(retry_after)
            logger.warning(
                f"Spotify 429 Rate Limit (attempt {attempt + 1}/{max_retries}): "
                f"Waited {wait_time:.1f}s, retrying"
            )

        return response

    async def search_tracks(
        self, query: str, access_token: str | None, limit: int = 5
    ) -> list[dict[str, Any]]:
        """
        Track search returning raw track objects.

        Args:
            query: Spotify search query (supports isrc:/artist:/track: filters)
            access_token: OAuth access token
            limit: Maximum number of results

        Returns:
            Track dicts (empty on not-found or degraded failure)

        Raises:
            AuthenticationError: No token, or Spotify rejected it (401)
        """
        if not access_token:
            raise AuthenticationError("Spotify search requires an access token", platform="spotify")

        params: dict[str, Any] = {"q": query, "type": "track", "limit": limit}
        if self.settings.market:
            params["market"] = self.settings.market

        try:
            response = await self._api_request(
                "GET", f"{self.API_BASE_URL}/search", access_token, params=params
            )
        except (RateLimitExceededError, httpx.HTTPError) as e:
            logger.warning(f"Spotify search failed for '{query}': {e}")
            return []

        if response.status_code == 401:
            raise AuthenticationError(
                "Spotify session expired. Please sign in again.",
                platform="spotify",
                http_status=401,
            )

        if response.status_code >= 400:
            logger.warning(f"Spotify search error {response.status_code} for '{query}'")
            return []

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Spotify search returned invalid JSON for '{query}': {e}")
            return []
        return cast(list[dict[str, Any]], (data.get("tracks") or {}).get("items") or [])

    def _to_candidate(self, track: dict[str, Any]) -> PlatformCandidate:
        artists = track.get("artists") or []
        duration_ms = track.get("duration_ms")
        return PlatformCandidate(
            id=track["id"],
            title=track.get("name") or "",
            artist=artists[0].get("name", "") if artists else "",
            album=(track.get("album") or {}).get("name"),
            duration=round(duration_ms / 1000) if duration_ms else None,
            url=self.build_track_url(track["id"]),
            uri=track.get("uri") or self.build_track_uri(track["id"]),
            isrc=(track.get("external_ids") or {}).get("isrc"),
        )

    def _to_catalog_match(self, track: dict[str, Any]) -> CatalogMatch:
        candidate = self._to_candidate(track)
        album = track.get("album") or {}
        images = album.get("images") or []
        release_date = album.get("release_date") or ""
        return CatalogMatch(
            source=self.source_name,
            id=candidate.id,
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            year=release_date[:4] or None,
            duration=candidate.duration,
            duration_ms=track.get("duration_ms"),
            isrc=candidate.isrc,
            preview_url=track.get("preview_url"),
            artwork_url=images[0].get("url") if images else None,
            url=candidate.url,
            uri=candidate.uri,
            platform_ids={
                Platform.SPOTIFY: PlatformId(id=candidate.id, url=candidate.url, uri=candidate.uri)
            },
        )

    async def resolve_by_identifier(
        self, identifier: str, access_token: str
    ) -> CatalogMatch | None:
        """
        Exact ISRC lookup (q=isrc:...).

        Raises:
            ValidationError: If the ISRC is blank or malformed
            AuthenticationError: No token, or token rejected
        """
        isrc = normalize_isrc(identifier)
        tracks = await self.search_tracks(f"isrc:{isrc}", access_token, limit=1)
        if not tracks:
            return None
        return self._to_catalog_match(tracks[0])

    async def resolve_by_text(
        self, artist: str, title: str, access_token: str
    ) -> CatalogMatch | None:
        """Top hit for `artist:... track:...` (NOT sanity-checked)."""
        tracks = await self.search_tracks(f"artist:{artist} track:{title}", access_token, limit=1)
        if not tracks:
            return None
        return self._to_catalog_match(tracks[0])

    # Yo future me, the quoted field filters make this the "soft" search: Spotify only
    # returns tracks whose artist AND track fields contain those phrases.
    async def search_structured(
        self, artist: str, title: str, access_token: str | None, limit: int = 3
    ) -> list[PlatformCandidate]:
        query = f'track:"{title}" artist:"{artist}"'
        return [self._to_candidate(t) for t in await self.search_tracks(query, access_token, limit)]

    async def search_free_text(
        self, query: str, access_token: str | None, limit: int = 5
    ) -> list[PlatformCandidate]:
        return [self._to_candidate(t) for t in await self.search_tracks(query, access_token, limit)]

    def extract_direct_id(
        self, platform_id: str | None, service_uri: str | None, service_url: str | None
    ) -> str | None:
        """Stored ID if well-formed, else parse spotify:track:... / open.spotify.com URLs."""
        if is_valid_platform_id(Platform.SPOTIFY, platform_id):
            return platform_id
        return extract_platform_id(Platform.SPOTIFY, service_uri) or extract_platform_id(
            Platform.SPOTIFY, service_url
        )

    def build_track_url(self, track_id: str) -> str:
        return f"https://open.spotify.com/track/{track_id}"

    def build_track_uri(self, track_id: str) -> str | None:
        return f"spotify:track:{track_id}"

    async def __aenter__(self) -> "SpotifyClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
