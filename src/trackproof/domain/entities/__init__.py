"""Domain entities."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from trackproof.domain.entities.results import (
    ExportedSong,
    ExportReport,
    ExportVerification,
    FailedExport,
    FailedExportSong,
    FailedSongEntry,
    LinkFetchResult,
    LinkTier,
    PlatformLinkResult,
    ResolutionTier,
    SmartResolveResult,
    TierBreakdown,
    VerificationBatchResult,
    VerificationProgress,
    VerificationSummary,
)


# Hey future me, Platform is where a song can be MATCHED to, not where it was verified.
# The string values double as the keys of Song.platform_ids and as the names used in
# manual search URLs, so don't rename them casually.
class Platform(str, Enum):
    """External service a song can be linked or exported to."""

    SPOTIFY = "spotify"
    APPLE = "apple"
    YOUTUBE = "youtube"
    TIDAL = "tidal"
    QOBUZ = "qobuz"


class VerificationStatus(str, Enum):
    """Lifecycle of a song's existence check."""

    UNVERIFIED = "unverified"
    CHECKING = "checking"
    VERIFIED = "verified"
    FAILED = "failed"


# Yo, the values are the catalog names (that's what the UI badges show), the member names
# are the ROLE each catalog plays in the cascade. MULTI means "we tried everything".
class VerificationSource(str, Enum):
    """Which cascade tier confirmed (or failed to confirm) a song."""

    METADATA_CATALOG = "musicbrainz"
    PREVIEW_CATALOG = "itunes"
    STREAMING_PLATFORM = "spotify"
    MULTI = "multi"


@dataclass(frozen=True)
class PlatformId:
    """A song's identity on one platform."""

    id: str
    url: str | None = None
    uri: str | None = None  # only Spotify has URIs ("spotify:track:...")


# Hey future me, Song is treated as IMMUTABLE by the core. Every step that changes it goes
# through with_updates() (dataclasses.replace) and returns a NEW object. That's what lets
# the cancellation path hand back the untouched tail of a batch as the caller's own
# objects. platform_ids is copied on write for the same reason - never mutate it in place!
@dataclass
class Song:
    """A song record as seen by the verification core."""

    id: str
    title: str
    artist: str
    album: str | None = None
    year: str | None = None
    duration: int | None = None  # seconds (coarse)
    duration_ms: int | None = None  # milliseconds (accurate, from catalogs)
    isrc: str | None = None

    # Import hints (e.g. a Spotify URI that came with a CSV row)
    service_uri: str | None = None
    service_url: str | None = None

    # Fields owned by the verification core
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    verification_source: VerificationSource | None = None
    verification_error: str | None = None
    verified_at: datetime | None = None
    musicbrainz_id: str | None = None
    release_id: str | None = None
    album_art_url: str | None = None
    preview_url: str | None = None
    preview_source: str | None = None
    platform_ids: dict[Platform, PlatformId] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """'Artist - Title' as shown in progress messages."""
        return f"{self.artist} - {self.title}"

    @property
    def has_required_fields(self) -> bool:
        """Both artist and title are non-blank."""
        return bool(self.artist and self.artist.strip() and self.title and self.title.strip())

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    def platform_id(self, platform: Platform) -> PlatformId | None:
        """Stored identity for a platform, if any."""
        return self.platform_ids.get(platform)

    def with_updates(self, **changes: Any) -> "Song":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def with_platform_id(self, platform: Platform, platform_id: PlatformId) -> "Song":
        """Return a copy with one platform entry set (at most one entry per platform)."""
        platform_ids = dict(self.platform_ids)
        platform_ids[platform] = platform_id
        return replace(self, platform_ids=platform_ids)


__all__ = [
    # Enums
    "Platform",
    "VerificationStatus",
    "VerificationSource",
    "ResolutionTier",
    "LinkTier",
    # Core
    "PlatformId",
    "Song",
    # Results
    "SmartResolveResult",
    "PlatformLinkResult",
    "LinkFetchResult",
    "VerificationProgress",
    "VerificationSummary",
    "VerificationBatchResult",
    "FailedSongEntry",
    "TierBreakdown",
    "ExportedSong",
    "FailedExport",
    "ExportReport",
    "FailedExportSong",
    "ExportVerification",
]
