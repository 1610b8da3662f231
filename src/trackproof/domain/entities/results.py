"""Result and report entities produced by the verification core.

Hey future me - everything in here is EPHEMERAL. None of these objects are persisted;
they live for one batch run, one export or one "listen on X" click. The only thing that
survives is what ends up on the Song itself (platform_ids, verification fields).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trackproof.domain.entities import Platform, Song


class ResolutionTier(str, Enum):
    """How a song was matched to a platform, in decreasing confidence."""

    DIRECT = "direct"  # existing platform ID, zero API calls
    SOFT = "soft"  # structured exact search (verified songs only)
    HARD = "hard"  # free-text search + fuzzy scoring
    FAILED = "failed"


class LinkTier(str, Enum):
    """How an on-demand platform link was obtained."""

    CACHED = "cached"
    ISRC = "isrc"
    TEXT = "text"
    MANUAL = "manual"  # search URL only, no confirmed track


@dataclass
class SmartResolveResult:
    """Outcome of resolving one song against one platform."""

    song: Song
    platform: Platform
    tier: ResolutionTier
    confidence: float
    platform_specific_id: str | None = None
    platform_url: str | None = None
    platform_uri: str | None = None
    reason: str | None = None
    attempted_tiers: list[ResolutionTier] = field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return self.tier != ResolutionTier.FAILED and self.platform_specific_id is not None

    @property
    def used_network(self) -> bool:
        """True if any tier beyond the direct one was attempted."""
        return any(
            tier in (ResolutionTier.SOFT, ResolutionTier.HARD) for tier in self.attempted_tiers
        )


@dataclass(frozen=True)
class PlatformLinkResult:
    """A playable link for a song on one platform."""

    id: str
    url: str
    tier: LinkTier
    is_manual_search: bool = False


@dataclass
class LinkFetchResult:
    """Link plus the (possibly) updated song carrying the new platform ID."""

    result: PlatformLinkResult
    updated_song: Song


@dataclass(frozen=True)
class VerificationProgress:
    """Cumulative progress snapshot emitted after each song."""

    total: int
    current: int
    verified: int
    failed: int
    current_song: str | None = None

    @property
    def percent(self) -> float:
        return (self.current / self.total * 100.0) if self.total else 100.0


@dataclass(frozen=True)
class FailedSongEntry:
    """Human-readable record of one song that failed verification."""

    title: str
    artist: str
    error: str


@dataclass
class VerificationSummary:
    """Aggregate counters for one verification batch."""

    total: int
    verified: int = 0
    failed: int = 0
    skipped: int = 0
    failed_songs: list[FailedSongEntry] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.verified + self.failed + self.skipped


@dataclass
class VerificationBatchResult:
    """Return value of VerificationOrchestrator.verify_batch."""

    verified_songs: list[Song]
    summary: VerificationSummary


@dataclass
class TierBreakdown:
    """Successful exports per resolution tier."""

    direct: int = 0
    soft: int = 0
    hard: int = 0

    @property
    def total(self) -> int:
        return self.direct + self.soft + self.hard


@dataclass(frozen=True)
class ExportedSong:
    """A song that resolved to a platform track."""

    song: Song
    tier: ResolutionTier
    confidence: float
    platform_url: str


@dataclass(frozen=True)
class FailedExport:
    """A song that could not be resolved for export."""

    song: Song
    reason: str
    attempted_tiers: tuple[ResolutionTier, ...]


@dataclass
class ExportReport:
    """Statistics for one export resolution pass."""

    platform: Platform
    total_songs: int
    success_rate: float  # percentage 0-100
    tier_breakdown: TierBreakdown
    average_confidence: float  # 0-1 over successful songs
    duration_ms: int
    successful: list[ExportedSong] = field(default_factory=list)
    failed: list[FailedExport] = field(default_factory=list)
    playlist_name: str | None = None

    @property
    def success(self) -> bool:
        """True when at least one song made it."""
        return bool(self.successful)

    @property
    def retry_candidates(self) -> list[Song]:
        """Failed songs, in input order, for a retry pass."""
        return [failed.song for failed in self.failed]


@dataclass(frozen=True)
class FailedExportSong:
    """A requested song that did not end up in the platform playlist."""

    song_id: str
    artist: str
    title: str
    reason: str


@dataclass
class ExportVerification:
    """Comparison of requested songs vs. songs actually added to a playlist."""

    total_requested: int
    total_successful: int
    total_failed: int
    success_rate: float  # percentage 0-100
    failed_songs: list[FailedExportSong] = field(default_factory=list)
