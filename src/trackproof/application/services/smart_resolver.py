"""Smart platform resolver - tiered matching of one song to one platform track.

Hey future me: this is what runs at export time ("push this playlist to Spotify") and as
tier C of the verification cascade. Three tiers, cheapest first:

1. DIRECT - the song already carries an ID (platform_ids, or a parseable service URI/URL
   from the import). Confidence 1.0, ZERO network calls.
2. SOFT   - only for songs some catalog already VERIFIED. One structured search by exact
   artist + title fields; accept an exact or near-exact hit. Confidence 0.8..1.0.
3. HARD   - free-text search, up to N candidates, each scored by score_candidate(). The
   best wins only if it clears the threshold. Confidence = its score.

Soft search is gated on verification because streaming search quota is the scarcest thing
we have; unverified songs go straight to the scored search, which protects against false
positives.

Raises only for malformed songs (ValidationError) and auth problems (AuthenticationError).
"Not found" is a FAILED result with a reason, never an exception.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping, Sequence

from trackproof.application.services.match_scoring import score_candidate
from trackproof.config.settings import VerificationSettings
from trackproof.domain.dtos import PlatformCandidate
from trackproof.domain.entities import Platform, ResolutionTier, SmartResolveResult, Song
from trackproof.domain.exceptions import AuthenticationError, ValidationError
from trackproof.domain.ports import IPlatformSearchClient
from trackproof.domain.value_objects.identifiers import extract_platform_id, is_valid_platform_id
from trackproof.domain.value_objects.text_matching import (
    artist_similarity,
    is_near_exact,
    normalize_artist,
    title_similarity,
)

logger = logging.getLogger(__name__)

SOFT_CONFIDENCE_FLOOR = 0.8


class SmartPlatformResolver:
    """Resolve songs to platform track IDs through direct → soft → hard tiers."""

    def __init__(
        self,
        search_clients: Mapping[Platform, IPlatformSearchClient],
        settings: VerificationSettings,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            search_clients: One search client per platform we can query
            settings: Thresholds and limits for the soft/hard tiers
        """
        self._clients = dict(search_clients)
        self.settings = settings

    # =========================================================================
    # TIER 1: DIRECT
    # =========================================================================

    def _direct_id(self, song: Song, platform: Platform) -> str | None:
        stored = song.platform_id(platform)
        stored_id = stored.id if stored else None

        client = self._clients.get(platform)
        if client is not None:
            return client.extract_direct_id(stored_id, song.service_uri, song.service_url)

        if is_valid_platform_id(platform, stored_id):
            return stored_id
        return extract_platform_id(platform, song.service_uri) or extract_platform_id(
            platform, song.service_url
        )

    def _direct_result(self, song: Song, platform: Platform, track_id: str) -> SmartResolveResult:
        stored = song.platform_id(platform)
        client = self._clients.get(platform)

        url = stored.url if stored and stored.id == track_id else None
        uri = stored.uri if stored and stored.id == track_id else None
        if client is not None:
            url = url or client.build_track_url(track_id)
            uri = uri or client.build_track_uri(track_id)

        return SmartResolveResult(
            song=song,
            platform=platform,
            tier=ResolutionTier.DIRECT,
            confidence=1.0,
            platform_specific_id=track_id,
            platform_url=url,
            platform_uri=uri,
            attempted_tiers=[ResolutionTier.DIRECT],
        )

    # =========================================================================
    # TIER 2: SOFT
    # =========================================================================

    def _soft_match(
        self, song: Song, candidates: Sequence[PlatformCandidate]
    ) -> tuple[PlatformCandidate, float] | None:
        """Best near-exact candidate and its confidence, or None."""
        min_similarity = self.settings.soft_match_min_similarity
        best: tuple[PlatformCandidate, float] | None = None

        for candidate in candidates:
            title_ok = is_near_exact(song.title, candidate.title, min_similarity)
            artist_ok = (
                normalize_artist(song.artist) == normalize_artist(candidate.artist)
                or artist_similarity(song.artist, candidate.artist) >= min_similarity
            )
            if not (title_ok and artist_ok):
                continue

            mean = (
                title_similarity(song.title, candidate.title)
                + artist_similarity(song.artist, candidate.artist)
            ) / 2
            confidence = SOFT_CONFIDENCE_FLOOR + (1.0 - SOFT_CONFIDENCE_FLOOR) * mean
            if best is None or confidence > best[1]:
                best = (candidate, confidence)

        return best

    # =========================================================================
    # TIER 3: HARD
    # =========================================================================

    def _hard_match(
        self, song: Song, candidates: Sequence[PlatformCandidate]
    ) -> tuple[PlatformCandidate, float] | None:
        """Highest-scoring candidate regardless of threshold, or None if no candidates."""
        best: tuple[PlatformCandidate, float] | None = None
        for candidate in candidates:
            score = score_candidate(song, candidate)
            logger.debug(
                f"Hard candidate '{candidate.artist} - {candidate.title}' scored {score:.2f}"
            )
            if best is None or score > best[1]:
                best = (candidate, score)
        return best

    def _matched_result(
        self,
        song: Song,
        platform: Platform,
        client: IPlatformSearchClient,
        tier: ResolutionTier,
        candidate: PlatformCandidate,
        confidence: float,
        attempted: list[ResolutionTier],
    ) -> SmartResolveResult:
        return SmartResolveResult(
            song=song,
            platform=platform,
            tier=tier,
            confidence=round(min(1.0, max(0.0, confidence)), 4),
            platform_specific_id=candidate.id,
            platform_url=candidate.url or client.build_track_url(candidate.id),
            platform_uri=candidate.uri or client.build_track_uri(candidate.id),
            attempted_tiers=attempted,
        )

    # =========================================================================
    # ENTRYPOINTS
    # =========================================================================

    async def resolve_for_platform(
        self, song: Song, platform: Platform, access_token: str | None = None
    ) -> SmartResolveResult:
        """
        Resolve one song to one platform.

        Args:
            song: Song to resolve
            platform: Target platform
            access_token: Bearer token for platforms that need one

        Returns:
            SmartResolveResult (tier=failed with a reason when nothing matched)

        Raises:
            ValidationError: Artist and title are both blank
            AuthenticationError: Platform needs a token and none was given, or it was rejected
        """
        artist = (song.artist or "").strip()
        title = (song.title or "").strip()
        if not artist and not title:
            raise ValidationError("Song has neither artist nor title")

        direct_id = self._direct_id(song, platform)
        if direct_id:
            return self._direct_result(song, platform, direct_id)

        attempted = [ResolutionTier.DIRECT]
        client = self._clients.get(platform)
        if client is None:
            return SmartResolveResult(
                song=song,
                platform=platform,
                tier=ResolutionTier.FAILED,
                confidence=0.0,
                reason=f"Search is not supported on {platform.value}",
                attempted_tiers=attempted,
            )

        if client.requires_auth and not access_token:
            raise AuthenticationError(
                f"Not authenticated with {platform.value}", platform=platform.value
            )

        if song.is_verified and artist and title:
            attempted.append(ResolutionTier.SOFT)
            candidates = await client.search_structured(artist, title, access_token, limit=3)
            soft = self._soft_match(song, candidates)
            if soft:
                logger.debug(f"Soft match on {platform.value} for {song.display_name}")
                return self._matched_result(
                    song, platform, client, ResolutionTier.SOFT, soft[0], soft[1], attempted
                )

        attempted.append(ResolutionTier.HARD)
        query = f"{title} {artist}".strip()
        candidates = await client.search_free_text(
            query, access_token, limit=self.settings.hard_search_limit
        )
        hard = self._hard_match(song, candidates)
        threshold = self.settings.hard_search_threshold

        if hard and hard[1] >= threshold:
            return self._matched_result(
                song, platform, client, ResolutionTier.HARD, hard[0], hard[1], attempted
            )

        if hard:
            reason = f"Best match scored {hard[1]:.2f}, below threshold {threshold:.2f}"
        else:
            reason = f"No match found on {platform.value}"

        return SmartResolveResult(
            song=song,
            platform=platform,
            tier=ResolutionTier.FAILED,
            confidence=hard[1] if hard else 0.0,
            reason=reason,
            attempted_tiers=attempted,
        )

    # Hey future me - export path. Sequential on purpose (streaming quota), and we only pause
    # after songs that actually hit the network: a playlist of direct IDs resolves instantly.
    # AuthenticationError aborts the whole batch - every following song would fail the same way.
    async def resolve_batch(
        self,
        songs: Sequence[Song],
        platform: Platform,
        access_token: str | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> tuple[list[SmartResolveResult], int]:
        """
        Resolve many songs for export.

        Args:
            songs: Songs in playlist order
            platform: Target platform
            access_token: Bearer token for platforms that need one
            on_progress: Called with (done, total) after each song

        Returns:
            (results in input order, elapsed milliseconds)

        Raises:
            AuthenticationError: Token missing or rejected
        """
        started = time.monotonic()
        results: list[SmartResolveResult] = []
        total = len(songs)

        for index, song in enumerate(songs):
            try:
                result = await self.resolve_for_platform(song, platform, access_token)
            except ValidationError as e:
                result = SmartResolveResult(
                    song=song,
                    platform=platform,
                    tier=ResolutionTier.FAILED,
                    confidence=0.0,
                    reason=e.message,
                )
            results.append(result)

            if on_progress:
                on_progress(index + 1, total)

            if result.used_network and index < total - 1:
                await asyncio.sleep(self.settings.resolve_delay)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        resolved = sum(1 for r in results if r.is_resolved)
        logger.info(f"Resolved {resolved}/{total} songs on {platform.value} in {elapsed_ms}ms")
        return results, elapsed_ms
