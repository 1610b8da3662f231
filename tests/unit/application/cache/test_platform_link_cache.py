"""Tests for the in-memory cache and the platform link cache."""

import pytest

from trackproof.application.cache import InMemoryCache, PlatformLinkCache
from trackproof.domain.entities import LinkTier, Platform, PlatformId, PlatformLinkResult, Song

SPOTIFY_ID = "4uLU6hMCjMI75M1A2tKUQC"


@pytest.fixture
def song() -> Song:
    return Song(id="song-1", title="Mr. Brightside", artist="The Killers")


@pytest.fixture
def link_cache() -> PlatformLinkCache:
    return PlatformLinkCache()


class TestInMemoryCache:
    """Test the generic in-memory cache."""

    @pytest.mark.asyncio
    async def test_set_get_clear(self) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache()
        await cache.set("a", 1)
        await cache.set("a", 2)

        assert await cache.get("a") == 2
        assert await cache.get("missing") is None
        assert cache.keys() == ["a"]
        assert len(cache) == 1

        await cache.clear()

        assert await cache.get("a") is None
        assert len(cache) == 0


class TestPlatformLinkCache:
    """Test the platform link cache."""

    @pytest.mark.asyncio
    async def test_miss(self, link_cache: PlatformLinkCache, song: Song) -> None:
        assert await link_cache.get(song, Platform.SPOTIFY) is None

    @pytest.mark.asyncio
    async def test_put_then_get(self, link_cache: PlatformLinkCache, song: Song) -> None:
        result = PlatformLinkResult(
            id=SPOTIFY_ID, url=f"https://open.spotify.com/track/{SPOTIFY_ID}", tier=LinkTier.ISRC
        )

        updated = await link_cache.put(song, Platform.SPOTIFY, result)
        cached = await link_cache.get(song, Platform.SPOTIFY)

        assert cached is not None
        assert cached == result
        assert updated.platform_id(Platform.SPOTIFY) == PlatformId(id=SPOTIFY_ID, url=result.url)
        assert song.platform_ids == {}

    @pytest.mark.asyncio
    async def test_manual_results_are_refused(
        self, link_cache: PlatformLinkCache, song: Song
    ) -> None:
        manual = PlatformLinkResult(
            id="manual",
            url="https://open.spotify.com/search/The%20Killers",
            tier=LinkTier.MANUAL,
            is_manual_search=True,
        )

        updated = await link_cache.put(song, Platform.SPOTIFY, manual)

        assert updated is song
        assert Platform.SPOTIFY not in updated.platform_ids
        assert await link_cache.get(song, Platform.SPOTIFY) is None

    @pytest.mark.asyncio
    async def test_persisted_platform_id_warms_memory(self, link_cache: PlatformLinkCache) -> None:
        stored = Song(
            id="song-2",
            title="Halo",
            artist="Beyoncé",
            platform_ids={Platform.APPLE: PlatformId(id="123", url="https://music.apple.com/x")},
        )

        first = await link_cache.get(stored, Platform.APPLE)
        # Same song id without the persisted entry: memory answers now
        second = await link_cache.get(
            Song(id="song-2", title="Halo", artist="Beyoncé"), Platform.APPLE
        )

        assert first == second
        assert first is not None and first.tier == LinkTier.CACHED

    @pytest.mark.asyncio
    async def test_clear_and_stats(self, link_cache: PlatformLinkCache, song: Song) -> None:
        result = PlatformLinkResult(id="123", url="https://music.apple.com/x", tier=LinkTier.TEXT)
        await link_cache.put(song, Platform.APPLE, result)

        assert link_cache.stats() == {"total_entries": 1, "apple": 1}

        await link_cache.clear()

        assert link_cache.stats() == {"total_entries": 0}
        assert await link_cache.get(song, Platform.APPLE) is None
