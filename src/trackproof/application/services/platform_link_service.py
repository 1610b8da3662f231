"""On-demand platform links ("Listen on Spotify / Apple Music / YouTube").

Hey future me - resolution order per click:
1. PlatformLinkCache (memory, then the song's persisted platform_ids)
2. Platform lookup: ISRC first (exact), then artist + title text search (plausibility-checked)
3. Manual search URL - ALWAYS returns something the UI can open

Step 3 is also the answer to EVERY failure: missing token, expired session, API down,
unsupported platform. A link button must never throw. Manual results are never cached and
never written into platform_ids (the cache refuses them).
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from urllib.parse import quote

from trackproof.application.cache.platform_link_cache import PlatformLinkCache
from trackproof.config.settings import VerificationSettings
from trackproof.domain.dtos import CatalogMatch
from trackproof.domain.entities import LinkFetchResult, LinkTier, Platform, PlatformLinkResult, Song
from trackproof.domain.ports import IPlatformSearchClient, IPreviewCatalog, IStreamingCatalog
from trackproof.domain.value_objects.text_matching import is_plausible_match

logger = logging.getLogger(__name__)

MANUAL_ID = "manual"

MANUAL_SEARCH_URLS: dict[Platform, str] = {
    Platform.SPOTIFY: "https://open.spotify.com/search/{query}",
    Platform.APPLE: "https://music.apple.com/search?term={query}",
    Platform.TIDAL: "https://tidal.com/search?q={query}",
    Platform.YOUTUBE: "https://www.youtube.com/results?search_query={query}",
    Platform.QOBUZ: "https://www.qobuz.com/search?q={query}",
}


def build_manual_search_url(song: Song, platform: Platform) -> str:
    """Platform search page for "artist title"."""
    query = quote(f"{song.artist} {song.title}".strip(), safe="")
    return MANUAL_SEARCH_URLS[platform].format(query=query)


def manual_search_result(song: Song, platform: Platform) -> PlatformLinkResult:
    return PlatformLinkResult(
        id=MANUAL_ID,
        url=build_manual_search_url(song, platform),
        tier=LinkTier.MANUAL,
        is_manual_search=True,
    )


class PlatformLinkService:
    """Cache-first link lookup with a manual-search fallback."""

    def __init__(
        self,
        cache: PlatformLinkCache,
        preview_catalog: IPreviewCatalog,
        streaming_catalog: IStreamingCatalog,
        settings: VerificationSettings,
        youtube: IPlatformSearchClient | None = None,
    ) -> None:
        """
        Initialize the link service.

        Args:
            cache: Session link cache (shared with whoever else reads links)
            preview_catalog: iTunes adapter, serves Apple Music links
            streaming_catalog: Spotify adapter
            settings: Batch size / pause for pre-resolution
            youtube: YouTube adapter (optional, needs an API key or OAuth token)
        """
        self.cache = cache
        self.preview_catalog = preview_catalog
        self.streaming_catalog = streaming_catalog
        self.settings = settings
        self.youtube = youtube

    @staticmethod
    def _from_match(match: CatalogMatch, tier: LinkTier) -> PlatformLinkResult | None:
        if not match.url:
            return None
        return PlatformLinkResult(id=match.id, url=match.url, tier=tier)

    async def _fetch_spotify(
        self, song: Song, access_token: str | None
    ) -> PlatformLinkResult | None:
        if not access_token:
            logger.debug(f"No Spotify token, manual link for {song.display_name}")
            return None

        if song.isrc:
            match = await self.streaming_catalog.resolve_by_identifier(song.isrc, access_token)
            if match:
                return self._from_match(match, LinkTier.ISRC)

        match = await self.streaming_catalog.resolve_by_text(song.artist, song.title, access_token)
        if match and is_plausible_match(song.artist, song.title, match.artist, match.title):
            return self._from_match(match, LinkTier.TEXT)
        return None

    async def _fetch_apple(self, song: Song) -> PlatformLinkResult | None:
        if song.isrc:
            match = await self.preview_catalog.resolve_by_identifier(song.isrc)
            if match:
                return self._from_match(match, LinkTier.ISRC)

        match = await self.preview_catalog.resolve_by_text(song.artist, song.title)
        if match and is_plausible_match(song.artist, song.title, match.artist, match.title):
            return self._from_match(match, LinkTier.TEXT)
        return None

    async def _fetch_youtube(
        self, song: Song, access_token: str | None
    ) -> PlatformLinkResult | None:
        if self.youtube is None or (self.youtube.requires_auth and not access_token):
            logger.debug(f"YouTube search unavailable, manual link for {song.display_name}")
            return None

        candidates = await self.youtube.search_structured(song.artist, song.title, access_token)
        for candidate in candidates:
            if is_plausible_match(song.artist, song.title, candidate.artist, candidate.title):
                url = candidate.url or self.youtube.build_track_url(candidate.id)
                return PlatformLinkResult(id=candidate.id, url=url, tier=LinkTier.TEXT)
        return None

    async def _fetch(
        self, song: Song, platform: Platform, access_token: str | None
    ) -> PlatformLinkResult | None:
        if platform == Platform.SPOTIFY:
            return await self._fetch_spotify(song, access_token)
        if platform == Platform.APPLE:
            return await self._fetch_apple(song)
        if platform == Platform.YOUTUBE:
            return await self._fetch_youtube(song, access_token)
        # Tidal / Qobuz: no public search API
        return None

    async def get_cached_or_fetch_link(
        self, song: Song, platform: Platform, access_token: str | None = None
    ) -> LinkFetchResult:
        """
        Link for one song on one platform.

        Args:
            song: Song to link
            platform: Target platform
            access_token: Bearer token (Spotify, YouTube OAuth)

        Returns:
            LinkFetchResult; updated_song carries the new platform ID when one was found,
            otherwise it's the input song unchanged
        """
        cached = await self.cache.get(song, platform)
        if cached:
            return LinkFetchResult(result=cached, updated_song=song)

        try:
            result = await self._fetch(song, platform, access_token)
        except Exception as e:
            logger.warning(f"Link lookup on {platform.value} failed for {song.display_name}: {e}")
            result = None

        if result is None:
            return LinkFetchResult(result=manual_search_result(song, platform), updated_song=song)

        updated = await self.cache.put(song, platform, result)
        logger.debug(f"Resolved {platform.value} link via {result.tier.value}: {song.display_name}")
        return LinkFetchResult(result=result, updated_song=updated)

    # Hey future me - "resolve all links" button for a playlist. Chunks run concurrently,
    # with a pause between chunks so Spotify/iTunes don't start answering 429. Output order
    # equals input order; songs that only got a manual link come back unchanged.
    async def batch_pre_resolve_links(
        self,
        songs: Sequence[Song],
        platform: Platform,
        access_token: str | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[Song]:
        """
        Resolve links for many songs ahead of time.

        Returns:
            Songs in input order, updated where a real link was found
        """
        total = len(songs)
        size = self.settings.link_batch_size
        updated: list[Song] = []

        for start in range(0, total, size):
            chunk = songs[start : start + size]
            fetched = await asyncio.gather(
                *(self.get_cached_or_fetch_link(song, platform, access_token) for song in chunk)
            )
            updated.extend(item.updated_song for item in fetched)

            if on_progress:
                on_progress(len(updated), total)

            if start + size < total:
                await asyncio.sleep(self.settings.link_batch_delay)

        linked = sum(1 for song in updated if song.platform_id(platform))
        logger.info(f"Pre-resolved {platform.value} links: {linked}/{total}")
        return updated
