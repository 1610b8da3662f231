"""Verification orchestrator - "does this song actually exist?" for a whole import.

Hey future me, the cascade per song (first success wins, later tiers are NOT called):

  A. MusicBrainz   ISRC lookup (if the song has one), then scored artist/title search
  B. iTunes        top text hit, only accepted if artist/title are plausible
  C. Spotify       SmartPlatformResolver, ONLY when the token provider hands us a token
  D. failed        with a message that says which tiers were tried and why C was skipped

After a tier-A success we do best-effort enrichment (Spotify ID via ISRC, Apple ID +
artwork + preview via iTunes). Enrichment can fail in any way it likes: it's logged and
the song stays verified.

Songs with a blank artist or title are not sent anywhere: they stay `unverified` and count
as skipped. Any other exception inside one song marks THAT song failed and the batch goes on.
The only thing that escapes verify_batch is VerificationCancelledError.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime

from trackproof.application.services.smart_resolver import SmartPlatformResolver
from trackproof.config.settings import VerificationSettings
from trackproof.domain.dtos import CatalogMatch
from trackproof.domain.entities import (
    FailedSongEntry,
    Platform,
    PlatformId,
    Song,
    VerificationBatchResult,
    VerificationProgress,
    VerificationSource,
    VerificationStatus,
    VerificationSummary,
)
from trackproof.domain.exceptions import (
    AuthenticationError,
    DomainException,
    ValidationError,
    VerificationCancelledError,
)
from trackproof.domain.ports import IMetadataCatalog, IPreviewCatalog, IStreamingCatalog
from trackproof.domain.value_objects.text_matching import is_plausible_match
from trackproof.infrastructure.observability import set_correlation_id

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]
ProgressCallback = Callable[[VerificationProgress], None]

NOT_AUTHENTICATED_CONTEXT = "Spotify check skipped (not signed in to Spotify)."
SESSION_EXPIRED_CONTEXT = "Spotify check skipped (session expired, please sign in again)."
NOT_ON_SPOTIFY_CONTEXT = "Not found on Spotify either."


def merge_catalog_match(song: Song, match: CatalogMatch, source: VerificationSource) -> Song:
    """
    Mark a song verified and fill its gaps from a catalog match.

    Fields the song already has win over catalog values (the user's import is the truth for
    what they typed); platform IDs are merged the same way, existing entries win.
    """
    platform_ids = {**match.platform_ids, **song.platform_ids}
    if song.preview_url:
        preview_url, preview_source = song.preview_url, song.preview_source
    else:
        preview_url = match.preview_url
        preview_source = match.source if match.preview_url else None

    return song.with_updates(
        verification_status=VerificationStatus.VERIFIED,
        verification_source=source,
        verification_error=None,
        verified_at=datetime.now(UTC),
        isrc=song.isrc or match.isrc,
        album=song.album or match.album,
        year=song.year or match.year,
        duration=song.duration or match.duration,
        duration_ms=song.duration_ms or match.duration_ms,
        album_art_url=song.album_art_url or match.artwork_url,
        preview_url=preview_url,
        preview_source=preview_source,
        musicbrainz_id=match.id if match.source == "musicbrainz" else song.musicbrainz_id,
        release_id=match.release_id or song.release_id,
        platform_ids=platform_ids,
    )


class VerificationOrchestrator:
    """Run the verification cascade over a batch of songs."""

    def __init__(
        self,
        metadata_catalog: IMetadataCatalog,
        preview_catalog: IPreviewCatalog,
        streaming_catalog: IStreamingCatalog,
        resolver: SmartPlatformResolver,
        settings: VerificationSettings,
        token_provider: TokenProvider | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            metadata_catalog: Tier A (MusicBrainz)
            preview_catalog: Tier B + enrichment (iTunes)
            streaming_catalog: ISRC enrichment (Spotify)
            resolver: Tier C (smart resolver with a Spotify search client)
            settings: Concurrency and pacing
            token_provider: Async callable returning a fresh Spotify token, or None when
                the user isn't signed in. Called lazily, only when a tier needs it.
        """
        self.metadata_catalog = metadata_catalog
        self.preview_catalog = preview_catalog
        self.streaming_catalog = streaming_catalog
        self.resolver = resolver
        self.settings = settings
        self.token_provider = token_provider

    async def _get_token(self) -> str | None:
        if self.token_provider is None:
            return None
        try:
            return await self.token_provider()
        except Exception as e:
            logger.warning(f"Spotify token provider failed: {e}")
            return None

    # =========================================================================
    # TIER A: METADATA CATALOG
    # =========================================================================

    async def _verify_metadata(self, song: Song) -> tuple[CatalogMatch | None, str | None]:
        """(match, None) on success, (None, human-readable reason) otherwise."""
        if song.isrc:
            try:
                match = await self.metadata_catalog.resolve_by_identifier(song.isrc)
            except ValidationError as e:
                logger.debug(f"Ignoring ISRC of {song.display_name}: {e.message}")
                match = None
            if match:
                return match, None

        verification = await self.metadata_catalog.verify_recording(song.artist, song.title)
        return verification.match, verification.error

    async def _enrich_spotify(self, song: Song) -> Song:
        if song.platform_id(Platform.SPOTIFY) or not song.isrc:
            return song

        token = await self._get_token()
        if not token:
            return song

        try:
            match = await self.streaming_catalog.resolve_by_identifier(song.isrc, token)
        except Exception as e:
            logger.warning(f"Spotify ISRC enrichment failed for {song.display_name}: {e}")
            return song

        if match and match.platform_ids.get(Platform.SPOTIFY):
            return song.with_platform_id(Platform.SPOTIFY, match.platform_ids[Platform.SPOTIFY])
        return song

    async def _enrich_itunes(self, song: Song) -> Song:
        if song.platform_id(Platform.APPLE) and song.album_art_url and song.preview_url:
            return song

        try:
            match = await self.preview_catalog.resolve_by_text(song.artist, song.title)
        except Exception as e:
            logger.warning(f"iTunes enrichment failed for {song.display_name}: {e}")
            return song

        if not match or not is_plausible_match(song.artist, song.title, match.artist, match.title):
            return song

        enriched = song.with_updates(
            platform_ids={**match.platform_ids, **song.platform_ids},
            album_art_url=song.album_art_url or match.artwork_url,
        )
        if not enriched.preview_url and match.preview_url:
            enriched = enriched.with_updates(
                preview_url=match.preview_url, preview_source=match.source
            )
        return enriched

    # =========================================================================
    # TIER C: STREAMING PLATFORM
    # =========================================================================

    async def _verify_streaming(self, song: Song) -> tuple[Song | None, str]:
        """(verified song, "") on success, (None, token context for the error) otherwise."""
        token = await self._get_token()
        if not token:
            return None, NOT_AUTHENTICATED_CONTEXT

        try:
            result = await self.resolver.resolve_for_platform(song, Platform.SPOTIFY, token)
        except AuthenticationError as e:
            logger.info(f"Spotify rejected token during verification: {e.message}")
            return None, SESSION_EXPIRED_CONTEXT

        if not result.is_resolved or result.platform_specific_id is None:
            return None, NOT_ON_SPOTIFY_CONTEXT

        verified = song.with_updates(
            verification_status=VerificationStatus.VERIFIED,
            verification_source=VerificationSource.STREAMING_PLATFORM,
            verification_error=None,
            verified_at=datetime.now(UTC),
        ).with_platform_id(
            Platform.SPOTIFY,
            PlatformId(
                id=result.platform_specific_id,
                url=result.platform_url,
                uri=result.platform_uri,
            ),
        )

        if not verified.preview_url:
            try:
                preview = await self.preview_catalog.get_preview_url(
                    song.artist, song.title, song.isrc
                )
            except Exception as e:
                logger.warning(f"Preview lookup failed for {song.display_name}: {e}")
                preview = None
            if preview:
                verified = verified.with_updates(
                    preview_url=preview, preview_source=self.preview_catalog.source_name
                )

        return verified, ""

    # =========================================================================
    # ONE SONG
    # =========================================================================

    async def verify_song(self, song: Song) -> Song:
        """
        Run the cascade for one song.

        Returns:
            New Song with verification fields set (input object is never mutated).
            Status `unverified` means the song was skipped for missing artist/title.
        """
        if not song.has_required_fields:
            logger.debug(f"Skipping song without artist/title: '{song.display_name}'")
            return song.with_updates(verification_status=VerificationStatus.UNVERIFIED)

        # Tier A
        match, metadata_error = await self._verify_metadata(song)
        if match:
            verified = merge_catalog_match(song, match, VerificationSource.METADATA_CATALOG)
            verified = await self._enrich_spotify(verified)
            verified = await self._enrich_itunes(verified)
            return verified

        # Tier B
        preview_match = await self.preview_catalog.resolve_by_text(song.artist, song.title)
        if preview_match and is_plausible_match(
            song.artist, song.title, preview_match.artist, preview_match.title
        ):
            return merge_catalog_match(song, preview_match, VerificationSource.PREVIEW_CATALOG)

        # Tier C
        streaming_verified, token_context = await self._verify_streaming(song)
        if streaming_verified:
            return streaming_verified

        # Tier D
        details = metadata_error or "No details available."
        error = f"Not found in MusicBrainz or Apple Music. {details}"
        if token_context:
            error = f"{error} {token_context}"
        return song.with_updates(
            verification_status=VerificationStatus.FAILED,
            verification_source=VerificationSource.MULTI,
            verification_error=error,
        )

    async def _verify_song_safely(self, song: Song) -> Song:
        try:
            return await self.verify_song(song)
        except Exception as e:
            message = e.message if isinstance(e, DomainException) else str(e)
            logger.error(f"Verification crashed for {song.display_name}: {e}", exc_info=True)
            return song.with_updates(
                verification_status=VerificationStatus.FAILED,
                verification_source=VerificationSource.MULTI,
                verification_error=message or "Verification failed",
            )

    # =========================================================================
    # BATCH
    # =========================================================================

    @staticmethod
    def _record(summary: VerificationSummary, song: Song) -> None:
        if song.verification_status == VerificationStatus.VERIFIED:
            summary.verified += 1
        elif song.verification_status == VerificationStatus.FAILED:
            summary.failed += 1
            summary.failed_songs.append(
                FailedSongEntry(
                    title=song.title,
                    artist=song.artist,
                    error=song.verification_error or "Verification failed",
                )
            )
        else:
            summary.skipped += 1

    # Listen up future me - ordering guarantees:
    # - results and progress callbacks are in INPUT order, even with max_concurrency > 1
    #   (a group is gathered, then recorded in order)
    # - cancel_event is checked before each group; with the default max_concurrency=1 that's
    #   before each song, so "cancel after song k" leaves exactly k songs processed
    # - no inter-song pause after the last group
    async def verify_batch(
        self,
        songs: Sequence[Song],
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> VerificationBatchResult:
        """
        Verify a batch of songs.

        Args:
            songs: Songs in import order
            on_progress: Called after each song with cumulative counters
            cancel_event: Set it to stop before the next song starts

        Returns:
            VerificationBatchResult with one song per input song, in input order

        Raises:
            VerificationCancelledError: cancel_event was set; carries the partial result
        """
        batch_id = set_correlation_id()
        total = len(songs)
        summary = VerificationSummary(total=total)
        processed: list[Song] = []
        group_size = self.settings.max_concurrency

        logger.info(f"Verification batch {batch_id} started: {total} songs")

        for start in range(0, total, group_size):
            if cancel_event is not None and cancel_event.is_set():
                done = len(processed)
                logger.info(f"Verification batch {batch_id} cancelled after {done}/{total} songs")
                raise VerificationCancelledError(
                    songs=processed + list(songs[done:]),
                    summary=summary,
                    processed=done,
                )

            group = songs[start : start + group_size]
            outcomes = await asyncio.gather(*(self._verify_song_safely(song) for song in group))

            for outcome in outcomes:
                processed.append(outcome)
                self._record(summary, outcome)
                if on_progress:
                    on_progress(
                        VerificationProgress(
                            total=total,
                            current=len(processed),
                            verified=summary.verified,
                            failed=summary.failed,
                            current_song=outcome.display_name,
                        )
                    )

            if start + group_size < total:
                await asyncio.sleep(self.settings.inter_song_delay)

        logger.info(
            f"Verification batch {batch_id} finished: {summary.verified} verified, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )
        return VerificationBatchResult(verified_songs=processed, summary=summary)
