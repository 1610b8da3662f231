"""CoverArtArchive HTTP client implementation.

Hey future me - CoverArtArchive (CAA) is the artwork sidecar of MusicBrainz. It's keyed by
MusicBrainz Release IDs, free, no API key. We only ever need ONE thing from it: "is there a
front cover for this release, and what's a stable URL for it?"

Thumbnails are pre-generated at fixed sizes (250/500/1200). 500px is the sweet spot for
playlist rows; 250px is the fallback for releases that only have small scans.

GOTCHA: Not all releases have artwork! Many older/indie releases have no CAA coverage.
A 404 is an answer, not an error.
"""

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class CoverArtArchiveClient:
    """HTTP client for CoverArtArchive front-cover lookups.

    Usage:
        async with CoverArtArchiveClient() as client:
            url = await client.get_front_cover_url(release_mbid)
    """

    API_BASE_URL = "https://coverartarchive.org"

    # CAA has no strict limit like MB, 200ms between probes keeps us polite
    RATE_LIMIT_DELAY = 0.2

    # Sizes probed in order. The first that exists wins.
    THUMBNAIL_SIZES = (500, 250)

    def __init__(
        self, user_agent: str = "TrackProof/0.4.0 ( https://github.com/trackproof/trackproof )"
    ) -> None:
        """Initialize CoverArtArchive client.

        Args:
            user_agent: Sent with every request (archive.org likes to know who's calling)
        """
        self.user_agent = user_agent
        self._client: httpx.AsyncClient | None = None
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={"User-Agent": self.user_agent},
                timeout=15.0,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _rate_limited_request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """Make a rate-limited request to CoverArtArchive."""
        async with self._rate_limit_lock:
            current_time = asyncio.get_event_loop().time()
            time_since_last = current_time - self._last_request_time

            if time_since_last < self.RATE_LIMIT_DELAY:
                await asyncio.sleep(self.RATE_LIMIT_DELAY - time_since_last)

            client = await self._get_client()
            response = await client.request(method, url, **kwargs)

            self._last_request_time = asyncio.get_event_loop().time()

            return response

    # Hey future me - we return the CAA URL itself, NOT the archive.org Location the redirect
    # points at. The CAA URL is stable forever; the archive.org one can move between mirrors.
    # A HEAD with follow_redirects=False never downloads the image: 307 (redirect to the
    # image) or 200 both mean "exists".
    async def get_front_cover_url(self, release_mbid: str) -> str | None:
        """Get a front cover thumbnail URL for a release.

        Args:
            release_mbid: MusicBrainz Release ID

        Returns:
            CAA URL of the 500px (or 250px) front thumbnail, or None if there's no artwork
        """
        if not release_mbid:
            return None

        for size in self.THUMBNAIL_SIZES:
            path = f"/release/{release_mbid}/front-{size}"
            try:
                response = await self._rate_limited_request(
                    "HEAD", path, follow_redirects=False
                )
            except httpx.HTTPError as e:
                logger.debug(f"CAA front cover error for {release_mbid}: {e}")
                return None

            if response.status_code in (200, 307):
                return f"{self.API_BASE_URL}{path}"

        logger.debug(f"No artwork found for release {release_mbid}")
        return None

    async def __aenter__(self) -> "CoverArtArchiveClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
