"""
Data Transfer Objects returned by the catalog adapters.

Hey future me - these DTOs are the ONLY shape that leaves an adapter. MusicBrainz,
iTunes, Spotify and YouTube all answer with wildly different JSON; each client parses
its payload into these dataclasses right at the boundary. Services never see raw dicts.

Flow: Catalog JSON → DTO (narrowed) → Service → updated Song
"""

from dataclasses import dataclass, field

from trackproof.domain.entities import Platform, PlatformId


@dataclass
class CatalogMatch:
    """A recording found in one catalog.

    Optional fields allow partial data (not every catalog knows everything).
    `source` says which catalog produced it ("musicbrainz", "itunes", "spotify").
    """

    source: str
    id: str
    title: str
    artist: str
    album: str | None = None
    year: str | None = None
    duration: int | None = None  # seconds
    duration_ms: int | None = None
    isrc: str | None = None
    preview_url: str | None = None
    artwork_url: str | None = None
    url: str | None = None
    uri: str | None = None
    release_id: str | None = None
    # Cross-platform IDs the catalog knows about (MusicBrainz URL relations)
    platform_ids: dict[Platform, PlatformId] = field(default_factory=dict)
    score: float | None = None  # 0-1 match confidence where the adapter computed one


# Hey future me - PlatformCandidate is what the smart resolver scores. It's deliberately
# smaller than CatalogMatch: the resolver only needs identity + the four scoring signals
# (title, artist, duration, album) + a link to hand back.
@dataclass
class PlatformCandidate:
    """One search hit on a target platform."""

    id: str
    title: str
    artist: str
    album: str | None = None
    duration: int | None = None  # seconds
    url: str | None = None
    uri: str | None = None
    isrc: str | None = None


@dataclass
class RecordingVerification:
    """Metadata-catalog verdict for one artist/title pair.

    Exactly one of `match` / `error` is set. `error` is a human-readable reason
    ("No matches found in MusicBrainz") that ends up in Song.verification_error.
    """

    match: CatalogMatch | None = None
    error: str | None = None

    @property
    def verified(self) -> bool:
        return self.match is not None


__all__ = ["CatalogMatch", "PlatformCandidate", "RecordingVerification"]
