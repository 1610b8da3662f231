"""YouTube Data API client (video platform search for export and "listen on" links).

Hey future me - YouTube is NOT a music catalog. A search returns VIDEOS whose titles follow
loose conventions ("Artist - Title (Official Video)", "Title by Artist", "Artist | Title").
parse_video_title() turns those back into artist/title so the smart resolver can score them
like any other candidate. Auto-generated "Artist - Topic" channels are the cleanest source.

Quota: every search.list call costs 100 units out of a 10k/day default. Quota errors are
logged and degrade to "no result"; they must never fail a batch.
"""

import html
import logging
import re
from typing import Any, cast

import httpx

from trackproof.config.settings import YouTubeSettings
from trackproof.domain.dtos import PlatformCandidate
from trackproof.domain.entities import Platform
from trackproof.domain.exceptions import AuthenticationError, ConfigurationError
from trackproof.domain.ports import IPlatformSearchClient
from trackproof.domain.value_objects.identifiers import extract_platform_id, is_valid_platform_id
from trackproof.infrastructure.rate_limiter import RateLimiter, get_youtube_limiter

logger = logging.getLogger(__name__)

_VIDEO_DECORATION = re.compile(
    r"\s*[\(\[][^\)\]]*"
    r"\b(?:official|video|audio|lyrics?|hd|4k|visuali[sz]er|music video)\b"
    r"[^\)\]]*[\)\]]",
    re.IGNORECASE,
)
_TITLE_SEPARATORS = (" - ", " – ", " — ", " | ", " : ", ": ")
_BY_SEPARATOR = re.compile(r"\s+by\s+", re.IGNORECASE)
_CHANNEL_NOISE = re.compile(r"(?:\s+-\s+Topic|VEVO|\s+Official)$", re.IGNORECASE)

QUOTA_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded"})


def parse_video_title(video_title: str) -> tuple[str, str]:
    """
    Split a video title into (artist, title).

    Examples:
        "Queen - Bohemian Rhapsody (Official Video)" -> ("Queen", "Bohemian Rhapsody")
        "Halo by Beyoncé" -> ("Beyoncé", "Halo")
        "Bohemian Rhapsody" -> ("", "Bohemian Rhapsody")

    Returns:
        (artist, title); artist is "" when no convention matched
    """
    cleaned = _VIDEO_DECORATION.sub("", html.unescape(video_title)).strip()

    for separator in _TITLE_SEPARATORS:
        if separator in cleaned:
            artist, _, title = cleaned.partition(separator)
            if artist.strip() and title.strip():
                return artist.strip(), title.strip()

    parts = _BY_SEPARATOR.split(cleaned, maxsplit=1)
    if len(parts) == 2 and parts[0].strip() and parts[1].strip():
        return parts[1].strip(), parts[0].strip()

    return "", cleaned


def clean_channel_title(channel_title: str | None) -> str:
    """'Queen - Topic' / 'QueenVEVO' -> 'Queen'."""
    if not channel_title:
        return ""
    return _CHANNEL_NOISE.sub("", html.unescape(channel_title)).strip()


class YouTubeClient(IPlatformSearchClient):
    """HTTP client for YouTube Data API v3 video search."""

    platform = Platform.YOUTUBE

    API_BASE_URL = "https://www.googleapis.com/youtube/v3"
    MUSIC_CATEGORY_ID = "10"

    def __init__(
        self, settings: YouTubeSettings, rate_limiter: RateLimiter | None = None
    ) -> None:
        """
        Initialize YouTube client.

        Args:
            settings: YouTube configuration settings (API key optional)
            rate_limiter: Shared limiter (defaults to the process-wide YouTube limiter)
        """
        self.settings = settings
        self.rate_limiter = rate_limiter or get_youtube_limiter(settings.requests_per_second)
        self._client: httpx.AsyncClient | None = None

    # Hey future me - with an API key, public search needs no user at all. Without one the
    # caller's OAuth token is the only way in, so the resolver must demand it up front.
    @property
    def requires_auth(self) -> bool:  # type: ignore[override]
        return not self.settings.is_configured

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.API_BASE_URL, timeout=15.0)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _api_request(
        self, path: str, params: dict[str, Any], access_token: str | None
    ) -> httpx.Response:
        """Rate-limited GET authenticated with the API key, or the bearer token if no key."""
        client = await self._get_client()
        headers: dict[str, str] = {}

        if self.settings.is_configured:
            params = {**params, "key": self.settings.api_key}
        elif access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        else:
            raise ConfigurationError("YouTube search needs an API key or an access token")

        async with self.rate_limiter:
            return await client.get(path, params=params, headers=headers)

    @staticmethod
    def _error_reason(response: httpx.Response) -> str | None:
        try:
            errors = response.json().get("error", {}).get("errors") or []
        except ValueError:
            return None
        return cast(str | None, errors[0].get("reason")) if errors else None

    async def search_videos(
        self, query: str, access_token: str | None, max_results: int = 5
    ) -> list[dict[str, Any]]:
        """
        Music-category video search.

        Returns:
            search.list items (empty on not-found, quota exhaustion or transport failure)

        Raises:
            AuthenticationError: Token missing (no API key) or rejected
        """
        if self.requires_auth and not access_token:
            raise AuthenticationError(
                "YouTube search requires an access token", platform="youtube"
            )

        params = {
            "part": "snippet",
            "type": "video",
            "videoCategoryId": self.MUSIC_CATEGORY_ID,
            "q": query,
            "maxResults": max_results,
        }
        try:
            response = await self._api_request("/search", params, access_token)
        except httpx.HTTPError as e:
            logger.warning(f"YouTube search failed for '{query}': {e}")
            return []

        if response.status_code in (401, 403):
            reason = self._error_reason(response)
            if reason in QUOTA_REASONS:
                logger.warning(f"YouTube quota exhausted ({reason}) - skipping search")
                return []
            raise AuthenticationError(
                "YouTube rejected the credentials. Please sign in again.",
                platform="youtube",
                http_status=response.status_code,
            )

        if response.status_code >= 400:
            logger.warning(f"YouTube search error {response.status_code} for '{query}'")
            return []

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"YouTube search returned invalid JSON for '{query}': {e}")
            return []
        return cast(list[dict[str, Any]], data.get("items") or [])

    def _to_candidate(self, item: dict[str, Any]) -> PlatformCandidate | None:
        video_id = (item.get("id") or {}).get("videoId")
        if not video_id:
            return None
        snippet = item.get("snippet") or {}
        artist, title = parse_video_title(snippet.get("title") or "")
        return PlatformCandidate(
            id=video_id,
            title=title,
            artist=artist or clean_channel_title(snippet.get("channelTitle")),
            url=self.build_track_url(video_id),
        )

    async def search_structured(
        self, artist: str, title: str, access_token: str | None, limit: int = 3
    ) -> list[PlatformCandidate]:
        # YouTube has no field filters; the closest thing is "artist title" in that order
        items = await self.search_videos(f"{artist} {title}", access_token, limit)
        return [c for c in map(self._to_candidate, items) if c is not None]

    async def search_free_text(
        self, query: str, access_token: str | None, limit: int = 5
    ) -> list[PlatformCandidate]:
        items = await self.search_videos(query, access_token, limit)
        return [c for c in map(self._to_candidate, items) if c is not None]

    def extract_direct_id(
        self, platform_id: str | None, service_uri: str | None, service_url: str | None
    ) -> str | None:
        """Stored 11-char ID, else youtube:video:ID / watch?v= / youtu.be links."""
        if is_valid_platform_id(Platform.YOUTUBE, platform_id):
            return platform_id
        return extract_platform_id(Platform.YOUTUBE, service_uri) or extract_platform_id(
            Platform.YOUTUBE, service_url
        )

    def build_track_url(self, track_id: str) -> str:
        return f"https://www.youtube.com/watch?v={track_id}"

    async def __aenter__(self) -> "YouTubeClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
