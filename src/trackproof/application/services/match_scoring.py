"""Fuzzy scoring of platform search candidates against a song.

Hey future me: this is the hard tier's judge. A free-text search ALWAYS returns something,
so every candidate gets a 0..1 score and the resolver only accepts the best one if it clears
the threshold (0.75 by default, see VerificationSettings.hard_search_threshold).

Weights: artist > title > duration > album. A perfect title by the wrong artist is a cover
or a namesake and must not pass. Duration and album are often missing on one side; a missing
signal is not a mismatch, its weight is shared among the signals that are present.
"""

from trackproof.domain.dtos import PlatformCandidate
from trackproof.domain.entities import Song
from trackproof.domain.value_objects.text_matching import (
    artist_similarity,
    normalize_title,
    text_similarity,
    title_similarity,
)

WEIGHTS: dict[str, float] = {
    "artist": 0.45,
    "title": 0.35,
    "duration": 0.12,
    "album": 0.08,
}

# Either core field below this caps the whole score at that similarity
MIN_FIELD_SIMILARITY = 0.5

# Durations within this many seconds count as identical (radio edit vs album rounding)
DURATION_TOLERANCE_SECONDS = 2
DURATION_ZERO_AT_SECONDS = 30


def duration_similarity(expected: int | None, found: int | None) -> float | None:
    """Similarity of two durations in seconds, None if either is unknown."""
    if not expected or not found:
        return None

    diff = abs(expected - found)
    if diff <= DURATION_TOLERANCE_SECONDS:
        return 1.0
    span = DURATION_ZERO_AT_SECONDS - DURATION_TOLERANCE_SECONDS
    return max(0.0, 1.0 - (diff - DURATION_TOLERANCE_SECONDS) / span)


def album_similarity(expected: str | None, found: str | None) -> float | None:
    """Similarity of two album titles, None if either is unknown."""
    if not expected or not found:
        return None
    return text_similarity(normalize_title(expected), normalize_title(found))


def song_duration_seconds(song: Song) -> int | None:
    """Prefer the accurate catalog duration over the coarse one."""
    if song.duration_ms:
        return round(song.duration_ms / 1000)
    return song.duration


def score_signals(song: Song, candidate: PlatformCandidate) -> dict[str, float | None]:
    """Per-signal similarities (None = signal absent on one side)."""
    return {
        "artist": artist_similarity(song.artist, candidate.artist),
        "title": title_similarity(song.title, candidate.title),
        "duration": duration_similarity(song_duration_seconds(song), candidate.duration),
        "album": album_similarity(song.album, candidate.album),
    }


def score_candidate(song: Song, candidate: PlatformCandidate) -> float:
    """
    Weighted match score of one candidate.

    Args:
        song: What we're looking for
        candidate: One search hit on the target platform

    Returns:
        Score in [0, 1]; 1.0 means every available signal matched perfectly
    """
    signals = score_signals(song, candidate)

    present = {name: value for name, value in signals.items() if value is not None}
    total_weight = sum(WEIGHTS[name] for name in present)
    if total_weight == 0:
        return 0.0

    score = sum(WEIGHTS[name] * value for name, value in present.items()) / total_weight

    weakest_core = min(present["artist"] or 0.0, present["title"] or 0.0)
    if weakest_core < MIN_FIELD_SIMILARITY:
        score = min(score, weakest_core)

    return round(max(0.0, min(1.0, score)), 4)
