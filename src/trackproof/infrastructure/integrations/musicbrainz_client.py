"""MusicBrainz HTTP client implementation with rate limiting."""

import asyncio
import logging
from typing import Any, cast

import httpx

from trackproof.config.settings import MusicBrainzSettings
from trackproof.domain.dtos import CatalogMatch, RecordingVerification
from trackproof.domain.exceptions import ExternalServiceError, RateLimitExceededError
from trackproof.domain.ports import IMetadataCatalog
from trackproof.domain.value_objects.identifiers import normalize_isrc, platform_ids_from_urls
from trackproof.domain.value_objects.text_matching import token_overlap
from trackproof.infrastructure.integrations.coverartarchive_client import CoverArtArchiveClient

logger = logging.getLogger(__name__)

NO_MATCHES_ERROR = "No matches found in MusicBrainz"
LOW_CONFIDENCE_ERROR = "No confident match found (similarity too low)"


class MusicBrainzClient(IMetadataCatalog):
    """HTTP client for MusicBrainz recording lookups with rate limiting.

    This is tier A of the verification cascade: free, no auth, and the only catalog that
    hands us cross-platform IDs (via URL relations) for nothing.
    """

    source_name = "musicbrainz"

    API_BASE_URL = "https://musicbrainz.org/ws/2"
    RECORDING_INCLUDES = "url-rels+artist-credits+releases+isrcs"

    # Hey future me, MusicBrainz is STRICT about rate limiting - 1 req/sec, NO EXCEPTIONS!
    # That's why we track _last_request_time and have a lock. If you violate this, they'll
    # IP-ban you for hours. The lock keeps us compliant even with max_concurrency > 1.
    def __init__(
        self,
        settings: MusicBrainzSettings,
        cover_art_client: CoverArtArchiveClient | None = None,
    ) -> None:
        """
        Initialize MusicBrainz client.

        Args:
            settings: MusicBrainz configuration settings
            cover_art_client: Artwork lookups for matched releases (created if omitted)
        """
        self.settings = settings
        self.cover_art = cover_art_client or CoverArtArchiveClient(user_agent=self.user_agent)
        self._client: httpx.AsyncClient | None = None
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()

    # Listen future me, MusicBrainz REQUIRES a User-Agent with app name, version AND contact.
    # Without it they answer 403. The format matters: "AppName/Version ( contact )" with
    # those exact spaces and parens.
    @property
    def user_agent(self) -> str:
        return (
            f"{self.settings.app_name}/{self.settings.app_version} "
            f"( {self.settings.contact} )"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP clients (ours and the Cover Art Archive one)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self.cover_art.close()

    # Yo future me, this is THE CORE of our rate limiting. The lock ensures only one request
    # happens at a time. We update _last_request_time AFTER the request completes, not
    # before, so slow responses don't accidentally speed us up past 1 req/sec.
    async def _rate_limited_request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """
        Make a rate-limited request to MusicBrainz API.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Additional request parameters

        Returns:
            HTTP response

        Raises:
            httpx.HTTPError: If the request fails
        """
        async with self._rate_limit_lock:
            current_time = asyncio.get_event_loop().time()
            time_since_last = current_time - self._last_request_time

            if time_since_last < self.settings.rate_limit_delay:
                await asyncio.sleep(self.settings.rate_limit_delay - time_since_last)

            client = await self._get_client()
            response = await client.request(method, url, **kwargs)

            self._last_request_time = asyncio.get_event_loop().time()

            return response

    # Hey future me, MusicBrainz answers 503 when you're over the limit (it doesn't use 429).
    # We back off 1s, 2s, 4s... capped at max_backoff and give up after max_retries. Network
    # blips (TransportError) get the same treatment. Any other 4xx/5xx is NOT retried: it
    # won't get better by asking again.
    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any] | None:
        """
        GET with 503/transport retry. Returns None on 404.

        Raises:
            RateLimitExceededError: Still 503 after all retries
            ExternalServiceError: Any other non-2xx status, or a body that isn't JSON
            httpx.TransportError: Network failure after all retries
        """
        delay = self.settings.initial_backoff
        params = {"fmt": "json", **params}

        for attempt in range(self.settings.max_retries + 1):
            last_attempt = attempt == self.settings.max_retries
            try:
                response = await self._rate_limited_request("GET", url, params=params)
            except httpx.TransportError as e:
                logger.warning(
                    f"MusicBrainz request failed (attempt {attempt + 1}): {e}"
                )
                if last_attempt:
                    raise
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.settings.max_backoff)
                continue

            if response.status_code == 404:
                return None

            if response.status_code == 503:
                logger.warning(
                    f"MusicBrainz rate limited (503) - waiting {delay:.1f}s before retry"
                )
                if last_attempt:
                    raise RateLimitExceededError(
                        "MusicBrainz rate limit exceeded (HTTP 503)", service="musicbrainz"
                    )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.settings.max_backoff)
                continue

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise ExternalServiceError(
                    f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
                    service="musicbrainz",
                ) from e

            # A maintenance page comes back as 200 text/html
            try:
                return cast(dict[str, Any], response.json())
            except ValueError as e:
                raise ExternalServiceError(
                    f"Invalid JSON from MusicBrainz: {e}", service="musicbrainz"
                ) from e

        return None

    # Hey future me, MusicBrainz search uses Lucene query syntax. The quotes around artist
    # and title are IMPORTANT for exact phrase matching. Without quotes, "The Beatles" becomes
    # "the OR beatles" and you get garbage results. Embedded quotes are escaped so a title
    # like 'The "Heroes" Medley' doesn't break the query.
    async def search_recording(
        self, artist: str, title: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """
        Search for recordings by artist and title.

        Args:
            artist: Artist name
            title: Track title
            limit: Maximum number of results (defaults to settings.search_limit)

        Returns:
            List of recording matches (may be empty)
        """
        query_parts = []
        if artist:
            query_parts.append(f'artist:"{_escape_lucene(artist)}"')
        if title:
            query_parts.append(f'recording:"{_escape_lucene(title)}"')

        data = await self._get_json(
            "/recording",
            {
                "query": " AND ".join(query_parts),
                "limit": limit or self.settings.search_limit,
            },
        )
        if not data:
            return []
        return cast(list[dict[str, Any]], data.get("recordings", []))

    async def get_recording(self, mbid: str) -> dict[str, Any] | None:
        """
        Recording detail with URL relations, artist credits, releases and ISRCs.

        Returns:
            Recording JSON or None if the MBID doesn't exist (merged/deleted)
        """
        return await self._get_json(f"/recording/{mbid}", {"inc": self.RECORDING_INCLUDES})

    # Listen up, ISRC lookup is GOLD when it works, but ISRCs are often missing in MB. One ISRC
    # can map to several recordings (remasters, re-releases); the first one is usually the
    # canonical version. 404 means "ISRC unknown" - that's normal, not an error!
    async def lookup_recording_by_isrc(self, isrc: str) -> dict[str, Any] | None:
        """
        Lookup a recording by ISRC code.

        Args:
            isrc: International Standard Recording Code (already normalized)

        Returns:
            First recording for the ISRC or None if not found
        """
        data = await self._get_json(f"/isrc/{isrc}", {"inc": self.RECORDING_INCLUDES})
        if data and data.get("recordings"):
            return cast(dict[str, Any], data["recordings"][0])
        return None

    def calculate_confidence(
        self, artist: str, title: str, recording: dict[str, Any]
    ) -> float:
        """
        Match confidence of one search hit.

        Weighted: artist 40%, title 40%, MusicBrainz's own search score 20%.

        Returns:
            Confidence in [0, 1]
        """
        recording_artist = _artist_credit_name(recording)
        recording_title = recording.get("title") or ""

        artist_similarity = token_overlap(artist, recording_artist)
        title_similarity = token_overlap(title, recording_title)
        mb_score = float(recording.get("score") or 0) / 100.0

        return artist_similarity * 0.4 + title_similarity * 0.4 + mb_score * 0.2

    def find_best_match(
        self, artist: str, title: str, recordings: list[dict[str, Any]]
    ) -> tuple[dict[str, Any], float] | None:
        """Highest-confidence recording, or None if it's below settings.min_confidence."""
        best: tuple[dict[str, Any], float] | None = None
        for recording in recordings:
            confidence = self.calculate_confidence(artist, title, recording)
            if best is None or confidence > best[1]:
                best = (recording, confidence)

        if best and best[1] >= self.settings.min_confidence:
            return best
        return None

    async def _to_catalog_match(
        self, recording: dict[str, Any], score: float | None
    ) -> CatalogMatch:
        """Narrow a recording JSON (with url-rels/releases/isrcs) into a CatalogMatch."""
        releases = recording.get("releases") or []
        first_release = releases[0] if releases else {}
        release_id = first_release.get("id")
        release_date = first_release.get("date") or ""
        isrcs = recording.get("isrcs") or []
        duration_ms = recording.get("length")

        urls = [
            relation["url"]["resource"]
            for relation in recording.get("relations") or []
            if relation.get("url", {}).get("resource")
        ]

        artwork_url = None
        if release_id:
            artwork_url = await self.cover_art.get_front_cover_url(release_id)

        return CatalogMatch(
            source=self.source_name,
            id=recording["id"],
            title=recording.get("title") or "",
            artist=_artist_credit_name(recording),
            album=first_release.get("title"),
            year=release_date[:4] or None,
            duration=round(duration_ms / 1000) if duration_ms else None,
            duration_ms=duration_ms,
            isrc=isrcs[0] if isrcs else None,
            artwork_url=artwork_url,
            url=f"https://musicbrainz.org/recording/{recording['id']}",
            release_id=release_id,
            platform_ids=platform_ids_from_urls(urls),
            score=score,
        )

    # Hey future me, this is the main tier-A entrypoint. It NEVER raises: every failure turns
    # into a RecordingVerification with a human-readable error, because the orchestrator
    # quotes that text in the song's verification_error when all tiers fail.
    async def verify_recording(self, artist: str, title: str) -> RecordingVerification:
        """
        Search, pick the best confident match and load its full detail.

        Args:
            artist: Artist name
            title: Track title

        Returns:
            RecordingVerification with either a match or a reason
        """
        try:
            recordings = await self.search_recording(artist, title)
            if not recordings:
                return RecordingVerification(error=NO_MATCHES_ERROR)

            best = self.find_best_match(artist, title, recordings)
            if best is None:
                return RecordingVerification(error=LOW_CONFIDENCE_ERROR)

            recording, confidence = best
            detail = await self.get_recording(recording["id"])
            if detail is None:
                return RecordingVerification(error=NO_MATCHES_ERROR)

            match = await self._to_catalog_match(detail, score=confidence)
            platforms = sorted(p.value for p in match.platform_ids)
            logger.debug(
                f"MusicBrainz match for '{artist} - {title}': {match.id} "
                f"(confidence {confidence:.2f}, platforms: {platforms})"
            )
            return RecordingVerification(match=match)

        except (ExternalServiceError, httpx.HTTPError) as e:
            logger.warning(f"MusicBrainz verification failed for '{artist} - {title}': {e}")
            return RecordingVerification(error=str(e) or type(e).__name__)

    async def resolve_by_identifier(self, identifier: str) -> CatalogMatch | None:
        """
        Exact lookup by ISRC.

        Raises:
            ValidationError: If the ISRC is blank or malformed
        """
        isrc = normalize_isrc(identifier)
        try:
            recording = await self.lookup_recording_by_isrc(isrc)
            if recording is None:
                return None
            match = await self._to_catalog_match(recording, score=1.0)
            # The /isrc endpoint doesn't always echo the code back
            if match.isrc is None:
                match.isrc = isrc
            return match
        except (ExternalServiceError, httpx.HTTPError) as e:
            logger.warning(f"MusicBrainz ISRC lookup failed for {isrc}: {e}")
            return None

    async def resolve_by_text(self, artist: str, title: str) -> CatalogMatch | None:
        """Best confident match for artist/title, or None."""
        return (await self.verify_recording(artist, title)).match

    async def __aenter__(self) -> "MusicBrainzClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


def _artist_credit_name(recording: dict[str, Any]) -> str:
    """Name of the first credited artist ("" if none)."""
    credits = recording.get("artist-credit") or []
    if not credits:
        return ""
    first = credits[0]
    return first.get("name") or first.get("artist", {}).get("name", "")


def _escape_lucene(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')
