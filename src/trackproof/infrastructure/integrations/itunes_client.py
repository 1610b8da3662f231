"""iTunes Search API client (preview catalog).

Hey future me - iTunes Search is FREE and needs NO authentication, which makes it tier B of
the cascade and our source of 30-second preview clips. It has no real ISRC parameter: you
pass the ISRC as the search `term` and iTunes happens to index it. Works surprisingly well.

The catch: free-text search ALWAYS returns something. "Made Up Band - Fake Song" gets you a
random top hit. resolve_by_text() returns iTunes' top hit as-is; the caller MUST sanity
check it (see text_matching.is_plausible_match).

API Docs: https://performance-partners.apple.com/search-api
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, cast

import httpx

from trackproof.config.settings import ITunesSettings
from trackproof.domain.dtos import CatalogMatch
from trackproof.domain.entities import Platform, PlatformId
from trackproof.domain.exceptions import ValidationError
from trackproof.domain.ports import IPreviewCatalog
from trackproof.domain.value_objects.identifiers import normalize_isrc
from trackproof.domain.value_objects.text_matching import is_plausible_match
from trackproof.infrastructure.rate_limiter import RateLimiter, get_itunes_limiter

logger = logging.getLogger(__name__)


class ITunesClient(IPreviewCatalog):
    """HTTP client for the iTunes Search API."""

    source_name = "itunes"

    SEARCH_URL = "https://itunes.apple.com/search"

    # Artwork URLs embed the size; the CDN renders any size we ask for
    _ARTWORK_SIZES = ("100x100bb", "60x60bb", "30x30bb")
    ARTWORK_SIZE = "600x600bb"

    def __init__(
        self, settings: ITunesSettings, rate_limiter: RateLimiter | None = None
    ) -> None:
        """
        Initialize iTunes client.

        Args:
            settings: iTunes configuration settings
            rate_limiter: Shared limiter (defaults to the process-wide iTunes limiter)
        """
        self.settings = settings
        self.rate_limiter = rate_limiter or get_itunes_limiter()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json"}, timeout=15.0
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Hey future me - iTunes doesn't send Retry-After, it just answers 403/429 when you're
    # too fast. One adaptive-backoff retry is enough; beyond that we degrade to "no result".
    async def _api_request(self, params: dict[str, Any], max_retries: int = 1) -> httpx.Response:
        """Make a rate-limited search request with retry on 429."""
        client = await self._get_client()

        for attempt in range(max_retries + 1):
            async with self.rate_limiter:
                response = await client.get(self.SEARCH_URL, params=params)

            if response.status_code == 429 and attempt < max_retries:
                await self.rate_limiter.handle_rate_limit_response(None)
                continue

            return response

        return response

    async def search(self, term: str, limit: int | None = None) -> list[dict[str, Any]]:
        """
        Raw song search.

        Args:
            term: Search term (free text or an ISRC)
            limit: Max results (defaults to settings.search_limit)

        Returns:
            Result dicts with kind == "song" (empty on not-found or transport failure)
        """
        params = {
            "term": term,
            "entity": "song",
            "limit": limit or self.settings.search_limit,
            "country": self.settings.country,
        }
        try:
            response = await self._api_request(params)
            if response.status_code == 404:
                return []
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"iTunes search failed for '{term}': {e}")
            return []

        results = cast(list[dict[str, Any]], data.get("results", []))
        return [r for r in results if r.get("kind", "song") == "song" and r.get("trackId")]

    @classmethod
    def upgrade_artwork_url(cls, url: str | None) -> str | None:
        """Swap the thumbnail size in an iTunes artwork URL for 600x600."""
        if not url:
            return None
        for size in cls._ARTWORK_SIZES:
            if size in url:
                return url.replace(size, cls.ARTWORK_SIZE)
        return url

    @staticmethod
    def build_track_url(track: dict[str, Any]) -> str:
        """trackViewUrl, else an album-scoped URL, else a bare song URL."""
        if track.get("trackViewUrl"):
            return cast(str, track["trackViewUrl"])
        track_id = track["trackId"]
        if track.get("collectionId"):
            return f"https://music.apple.com/us/album/{track['collectionId']}?i={track_id}"
        return f"https://music.apple.com/us/song/{track_id}"

    def _to_catalog_match(self, track: dict[str, Any], isrc: str | None = None) -> CatalogMatch:
        track_id = str(track["trackId"])
        url = self.build_track_url(track)
        duration_ms = track.get("trackTimeMillis")
        release_date = track.get("releaseDate") or ""

        return CatalogMatch(
            source=self.source_name,
            id=track_id,
            title=track.get("trackName") or "",
            artist=track.get("artistName") or "",
            album=track.get("collectionName"),
            year=release_date[:4] or None,
            duration=round(duration_ms / 1000) if duration_ms else None,
            duration_ms=duration_ms,
            isrc=isrc,
            preview_url=track.get("previewUrl"),
            artwork_url=self.upgrade_artwork_url(track.get("artworkUrl100")),
            url=url,
            platform_ids={Platform.APPLE: PlatformId(id=track_id, url=url)},
        )

    async def resolve_by_identifier(self, identifier: str) -> CatalogMatch | None:
        """
        ISRC lookup (ISRC passed as the search term).

        Raises:
            ValidationError: If the ISRC is blank or malformed
        """
        isrc = normalize_isrc(identifier)
        results = await self.search(isrc, limit=1)
        if not results:
            logger.debug(f"No iTunes track for ISRC {isrc}")
            return None
        return self._to_catalog_match(results[0], isrc=isrc)

    async def resolve_by_text(self, artist: str, title: str) -> CatalogMatch | None:
        """Top song hit for "{title} {artist}" (NOT sanity-checked)."""
        results = await self.search(f"{title} {artist}".strip())
        if not results:
            return None
        return self._to_catalog_match(results[0])

    async def get_preview_url(
        self, artist: str, title: str, isrc: str | None = None
    ) -> str | None:
        """
        30-second preview URL for a song.

        ISRC first (exact), then text search with a plausibility check so a random top hit
        never becomes the preview of the wrong song.
        """
        if isrc:
            try:
                match = await self.resolve_by_identifier(isrc)
            except ValidationError as e:
                logger.debug(f"Skipping ISRC preview lookup: {e.message}")
                match = None
            if match and match.preview_url:
                return match.preview_url

        if not artist or not title:
            return None

        match = await self.resolve_by_text(artist, title)
        if match and is_plausible_match(artist, title, match.artist, match.title):
            return match.preview_url
        return None

    # Hey future me - this is the ONE fan-out in the whole core. Chunks of batch_size run
    # concurrently with gather(), then we breathe for batch_delay before the next chunk.
    # Results come back in INPUT order (gather preserves order), one entry per song.
    async def batch_get_previews(
        self,
        songs: Sequence[tuple[str, str, str | None]],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[str | None]:
        """
        Bulk preview hydration.

        Args:
            songs: (artist, title, isrc) tuples
            on_progress: Called with (done, total) after each chunk

        Returns:
            Preview URL (or None) per input song, in input order
        """
        total = len(songs)
        size = self.settings.batch_size
        previews: list[str | None] = []

        for start in range(0, total, size):
            chunk = songs[start : start + size]
            chunk_results = await asyncio.gather(
                *(self.get_preview_url(artist, title, isrc) for artist, title, isrc in chunk)
            )
            previews.extend(chunk_results)

            if on_progress:
                on_progress(len(previews), total)

            if start + size < total:
                await asyncio.sleep(self.settings.batch_delay)

        logger.info(
            f"iTunes preview batch: {sum(1 for p in previews if p)}/{total} previews found"
        )
        return previews

    async def __aenter__(self) -> "ITunesClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
