"""Platform link cache.

Hey future me - this backs the "Listen on Spotify/Apple/YouTube" buttons. Two layers:
1. Memory (InMemoryCache, keyed by (song_id, platform), NO TTL - a track ID doesn't expire)
2. The song's own platform_ids (whatever was persisted by the host app)

Memory is checked first; a hit in platform_ids warms memory so the next click is free.
Manual search URLs are NEVER stored: they're a fallback, not an answer, and caching one
would hide a real link forever.
"""

import logging

from trackproof.application.cache.base_cache import InMemoryCache
from trackproof.domain.entities import LinkTier, Platform, PlatformId, PlatformLinkResult, Song

logger = logging.getLogger(__name__)

CacheKey = tuple[str, Platform]


class PlatformLinkCache:
    """Cache for resolved platform links.

    Injected into PlatformLinkService (never a module global), so tests and separate
    sessions each get their own.
    """

    def __init__(self) -> None:
        """Initialize platform link cache."""
        self._cache: InMemoryCache[CacheKey, PlatformLinkResult] = InMemoryCache()

    @staticmethod
    def _make_key(song_id: str, platform: Platform) -> CacheKey:
        return (song_id, platform)

    async def get(self, song: Song, platform: Platform) -> PlatformLinkResult | None:
        """
        Cached link for a song on a platform.

        Args:
            song: Song whose link is requested
            platform: Target platform

        Returns:
            The result exactly as it was put (tier=cached when warmed from the
            song's stored platform_ids), or None on a miss
        """
        key = self._make_key(song.id, platform)
        cached = await self._cache.get(key)
        if cached:
            return cached

        stored = song.platform_id(platform)
        if stored and stored.id and stored.url:
            result = PlatformLinkResult(id=stored.id, url=stored.url, tier=LinkTier.CACHED)
            await self._cache.set(key, result)
            logger.debug(f"Warmed link cache from stored {platform.value} ID: {song.display_name}")
            return result

        return None

    async def put(self, song: Song, platform: Platform, result: PlatformLinkResult) -> Song:
        """
        Store a resolved link and return the song carrying it.

        Manual-search results are refused: the song comes back unchanged.

        Returns:
            Updated copy of the song (or the same object for manual results)
        """
        if result.is_manual_search or result.tier == LinkTier.MANUAL:
            return song

        await self._cache.set(self._make_key(song.id, platform), result)

        existing = song.platform_id(platform)
        uri = existing.uri if existing and existing.id == result.id else None
        return song.with_platform_id(platform, PlatformId(id=result.id, url=result.url, uri=uri))

    async def clear(self) -> None:
        """Wipe the memory layer. Persisted platform_ids on songs are untouched."""
        await self._cache.clear()

    def stats(self) -> dict[str, int]:
        """Entry counts, total and per platform."""
        keys = self._cache.keys()
        counts: dict[str, int] = {"total_entries": len(keys)}
        for _, platform in keys:
            counts[platform.value] = counts.get(platform.value, 0) + 1
        return counts
