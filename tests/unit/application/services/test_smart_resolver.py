"""Tests for the smart platform resolver."""

import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from trackproof.application.services.smart_resolver import SmartPlatformResolver
from trackproof.config.settings import SpotifySettings, VerificationSettings
from trackproof.domain.entities import (
    Platform,
    PlatformId,
    ResolutionTier,
    Song,
    VerificationStatus,
)
from trackproof.domain.exceptions import AuthenticationError, ValidationError
from trackproof.infrastructure.integrations.spotify_client import SpotifyClient
from trackproof.infrastructure.rate_limiter import RateLimiter

SPOTIFY_ID = "4uLU6hMCjMI75M1A2tKUQC"
OTHER_ID = "7ouMYWpwJ422jRcDASZB7P"


def _track(track_id: str, name: str, artist: str, duration_ms: int | None = None) -> dict[str, Any]:
    return {
        "id": track_id,
        "name": name,
        "artists": [{"name": artist}],
        "album": {"name": "Hot Fuss"},
        "duration_ms": duration_ms,
        "uri": f"spotify:track:{track_id}",
    }


@pytest.fixture
def settings() -> VerificationSettings:
    return VerificationSettings(resolve_delay=0.01)


@pytest.fixture
def spotify() -> SpotifyClient:
    return SpotifyClient(SpotifySettings(), rate_limiter=RateLimiter(name="test"))


@pytest.fixture
def resolver(spotify: SpotifyClient, settings: VerificationSettings) -> SmartPlatformResolver:
    return SmartPlatformResolver({Platform.SPOTIFY: spotify}, settings)


@pytest.fixture
def song() -> Song:
    return Song(id="s1", title="Mr. Brightside", artist="The Killers", duration=222)


class TestDirectTier:
    """Songs that already carry an ID never hit the network."""

    @pytest.mark.asyncio
    async def test_existing_platform_id(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        search = mocker.patch.object(spotify, "search_tracks", new_callable=AsyncMock)
        song = song.with_platform_id(Platform.SPOTIFY, PlatformId(id=SPOTIFY_ID))

        result = await resolver.resolve_for_platform(song, Platform.SPOTIFY, "token")

        assert result.tier == ResolutionTier.DIRECT
        assert result.confidence == 1.0
        assert result.platform_specific_id == SPOTIFY_ID
        assert result.platform_url == f"https://open.spotify.com/track/{SPOTIFY_ID}"
        assert result.platform_uri == f"spotify:track:{SPOTIFY_ID}"
        search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_direct_tier_needs_no_token(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        search = mocker.patch.object(spotify, "search_tracks", new_callable=AsyncMock)
        song = song.with_updates(service_uri=f"spotify:track:{SPOTIFY_ID}")

        result = await resolver.resolve_for_platform(song, Platform.SPOTIFY, None)

        assert result.tier == ResolutionTier.DIRECT
        assert result.platform_specific_id == SPOTIFY_ID
        search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_platform_without_client_still_uses_stored_id(
        self, resolver: SmartPlatformResolver, song: Song
    ) -> None:
        song = song.with_platform_id(
            Platform.TIDAL, PlatformId(id="12345", url="https://tidal.com/browse/track/12345")
        )

        result = await resolver.resolve_for_platform(song, Platform.TIDAL)

        assert result.tier == ResolutionTier.DIRECT
        assert result.platform_url == "https://tidal.com/browse/track/12345"


class TestSearchTiers:
    """Soft and hard tiers."""

    @pytest.mark.asyncio
    async def test_verified_song_soft_match(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        search = mocker.patch.object(
            spotify,
            "search_tracks",
            new_callable=AsyncMock,
            return_value=[_track(SPOTIFY_ID, "Mr. Brightside", "The Killers", 222000)],
        )
        song = song.with_updates(verification_status=VerificationStatus.VERIFIED)

        result = await resolver.resolve_for_platform(song, Platform.SPOTIFY, "token")

        assert result.tier == ResolutionTier.SOFT
        assert 0.8 <= result.confidence <= 1.0
        assert result.platform_specific_id == SPOTIFY_ID
        assert result.attempted_tiers == [ResolutionTier.DIRECT, ResolutionTier.SOFT]
        assert search.await_count == 1
        assert search.await_args.args[0] == 'track:"Mr. Brightside" artist:"The Killers"'

    @pytest.mark.asyncio
    async def test_unverified_song_skips_soft_tier(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        search = mocker.patch.object(
            spotify,
            "search_tracks",
            new_callable=AsyncMock,
            return_value=[
                _track(OTHER_ID, "Somebody Told Me", "The Killers", 197000),
                _track(SPOTIFY_ID, "Mr. Brightside", "The Killers", 222000),
            ],
        )

        result = await resolver.resolve_for_platform(song, Platform.SPOTIFY, "token")

        assert result.tier == ResolutionTier.HARD
        assert result.platform_specific_id == SPOTIFY_ID
        assert result.confidence >= 0.75
        assert result.attempted_tiers == [ResolutionTier.DIRECT, ResolutionTier.HARD]
        assert search.await_args.args[0] == "Mr. Brightside The Killers"

    @pytest.mark.asyncio
    async def test_soft_miss_falls_through_to_hard(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            spotify,
            "search_tracks",
            new_callable=AsyncMock,
            side_effect=[[], [_track(SPOTIFY_ID, "Mr. Brightside", "The Killers", 222000)]],
        )
        song = song.with_updates(verification_status=VerificationStatus.VERIFIED)

        result = await resolver.resolve_for_platform(song, Platform.SPOTIFY, "token")

        assert result.tier == ResolutionTier.HARD
        assert result.attempted_tiers == [
            ResolutionTier.DIRECT,
            ResolutionTier.SOFT,
            ResolutionTier.HARD,
        ]

    @pytest.mark.asyncio
    async def test_best_candidate_below_threshold_fails(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            spotify,
            "search_tracks",
            new_callable=AsyncMock,
            return_value=[_track(OTHER_ID, "Shake It Off", "Taylor Swift", 219000)],
        )

        result = await resolver.resolve_for_platform(song, Platform.SPOTIFY, "token")

        assert result.tier == ResolutionTier.FAILED
        assert not result.is_resolved
        assert result.platform_specific_id is None
        assert "below threshold 0.75" in (result.reason or "")

    @pytest.mark.asyncio
    async def test_no_candidates(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        mocker.patch.object(spotify, "search_tracks", new_callable=AsyncMock, return_value=[])

        result = await resolver.resolve_for_platform(song, Platform.SPOTIFY, "token")

        assert result.tier == ResolutionTier.FAILED
        assert result.reason == "No match found on spotify"

    @pytest.mark.asyncio
    async def test_fabricated_title_never_resolves(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            spotify,
            "search_tracks",
            new_callable=AsyncMock,
            return_value=[
                _track(SPOTIFY_ID, "Mr. Brightside", "The Killers", 222000),
                _track(OTHER_ID, "Shake It Off", "Taylor Swift", 219000),
            ],
        )
        fake = Song(id="fake", title=str(uuid.uuid4()), artist="The Killers")

        result = await resolver.resolve_for_platform(fake, Platform.SPOTIFY, "token")

        assert result.tier == ResolutionTier.FAILED

    @pytest.mark.asyncio
    async def test_platform_without_search_client(
        self, resolver: SmartPlatformResolver, song: Song
    ) -> None:
        result = await resolver.resolve_for_platform(song, Platform.QOBUZ, "token")

        assert result.tier == ResolutionTier.FAILED
        assert result.reason == "Search is not supported on qobuz"


class TestErrors:
    """Validation and auth failures raise."""

    @pytest.mark.asyncio
    async def test_blank_song_raises(self, resolver: SmartPlatformResolver) -> None:
        with pytest.raises(ValidationError):
            await resolver.resolve_for_platform(
                Song(id="x", title=" ", artist=""), Platform.SPOTIFY, "token"
            )

    @pytest.mark.asyncio
    async def test_missing_token_raises(self, resolver: SmartPlatformResolver, song: Song) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            await resolver.resolve_for_platform(song, Platform.SPOTIFY, None)
        assert exc_info.value.token_missing

    @pytest.mark.asyncio
    async def test_expired_token_propagates(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, song: Song, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            spotify,
            "search_tracks",
            new_callable=AsyncMock,
            side_effect=AuthenticationError("expired", platform="spotify", http_status=401),
        )

        with pytest.raises(AuthenticationError):
            await resolver.resolve_for_platform(song, Platform.SPOTIFY, "stale")


class TestResolveBatch:
    """Batch export resolution."""

    @pytest.mark.asyncio
    async def test_order_progress_and_pacing(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            spotify,
            "search_tracks",
            new_callable=AsyncMock,
            return_value=[_track(OTHER_ID, "Halo", "Beyoncé", 261000)],
        )
        sleep = mocker.patch(
            "trackproof.application.services.smart_resolver.asyncio.sleep",
            new_callable=AsyncMock,
        )
        songs = [
            Song(id="1", title="Mr. Brightside", artist="The Killers").with_platform_id(
                Platform.SPOTIFY, PlatformId(id=SPOTIFY_ID)
            ),
            Song(id="2", title="Halo", artist="Beyoncé"),
            Song(id="3", title="Halo", artist="Beyoncé"),
        ]
        progress: list[tuple[int, int]] = []

        results, elapsed_ms = await resolver.resolve_batch(
            songs, Platform.SPOTIFY, "token", on_progress=lambda d, t: progress.append((d, t))
        )

        assert [r.song.id for r in results] == ["1", "2", "3"]
        assert [r.tier for r in results] == [
            ResolutionTier.DIRECT,
            ResolutionTier.HARD,
            ResolutionTier.HARD,
        ]
        assert progress == [(1, 3), (2, 3), (3, 3)]
        # Only song 2 paused: song 1 was direct, song 3 is last
        assert sleep.await_count == 1
        assert elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_malformed_song_fails_without_stopping_batch(
        self, resolver: SmartPlatformResolver, spotify: SpotifyClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(spotify, "search_tracks", new_callable=AsyncMock, return_value=[])
        mocker.patch(
            "trackproof.application.services.smart_resolver.asyncio.sleep",
            new_callable=AsyncMock,
        )
        songs = [Song(id="1", title="", artist=""), Song(id="2", title="Halo", artist="Beyoncé")]

        results, _ = await resolver.resolve_batch(songs, Platform.SPOTIFY, "token")

        assert len(results) == 2
        assert results[0].tier == ResolutionTier.FAILED
        assert results[0].reason == "Song has neither artist nor title"
        assert results[1].tier == ResolutionTier.FAILED
