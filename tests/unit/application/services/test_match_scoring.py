"""Tests for fuzzy candidate scoring."""

import uuid

import pytest

from trackproof.application.services.match_scoring import (
    WEIGHTS,
    duration_similarity,
    score_candidate,
    score_signals,
    song_duration_seconds,
)
from trackproof.domain.dtos import PlatformCandidate
from trackproof.domain.entities import Song


def _song(**kwargs: object) -> Song:
    defaults: dict[str, object] = {"id": "s1", "title": "Mr. Brightside", "artist": "The Killers"}
    defaults.update(kwargs)
    return Song(**defaults)  # type: ignore[arg-type]


def _candidate(**kwargs: object) -> PlatformCandidate:
    defaults: dict[str, object] = {"id": "c1", "title": "Mr. Brightside", "artist": "The Killers"}
    defaults.update(kwargs)
    return PlatformCandidate(**defaults)  # type: ignore[arg-type]


def test_weight_table_order() -> None:
    assert WEIGHTS["artist"] > WEIGHTS["title"] > WEIGHTS["duration"] > WEIGHTS["album"]
    assert sum(WEIGHTS.values()) == pytest.approx(1.0)


class TestDurationSimilarity:
    """Test duration signal."""

    def test_within_tolerance(self) -> None:
        assert duration_similarity(222, 223) == 1.0

    def test_far_apart(self) -> None:
        assert duration_similarity(200, 230) == 0.0

    def test_in_between(self) -> None:
        assert 0.0 < duration_similarity(200, 215) < 1.0  # type: ignore[operator]

    def test_missing(self) -> None:
        assert duration_similarity(None, 200) is None
        assert duration_similarity(200, 0) is None


def test_song_duration_prefers_milliseconds() -> None:
    assert song_duration_seconds(_song(duration=100, duration_ms=222600)) == 223
    assert song_duration_seconds(_song(duration=100)) == 100


class TestScoreCandidate:
    """Test the weighted score."""

    def test_perfect_match(self) -> None:
        song = _song(album="Hot Fuss", duration=222)
        candidate = _candidate(album="Hot Fuss", duration=222)
        assert score_candidate(song, candidate) == 1.0

    def test_missing_signals_do_not_penalize(self) -> None:
        assert score_candidate(_song(), _candidate()) == 1.0
        signals = score_signals(_song(), _candidate())
        assert signals["duration"] is None
        assert signals["album"] is None

    def test_wrong_duration_lowers_score(self) -> None:
        exact = score_candidate(_song(duration=222), _candidate(duration=222))
        off = score_candidate(_song(duration=222), _candidate(duration=400))
        assert off < exact

    def test_same_title_wrong_artist_rejected(self) -> None:
        song = _song(title="Hello", artist="Adele")
        candidate = _candidate(title="Hello", artist="Lionel Richie")
        assert score_candidate(song, candidate) < 0.75

    def test_fabricated_title_rejected(self) -> None:
        song = _song(title=str(uuid.uuid4()), artist="Nobody Known")
        candidate = _candidate(title="Shake It Off", artist="Taylor Swift", duration=219)
        assert score_candidate(song, candidate) < 0.75

    def test_remaster_suffix_still_matches(self) -> None:
        song = _song(title="Come Together", artist="The Beatles")
        candidate = _candidate(title="Come Together - Remastered 2009", artist="The Beatles")
        assert score_candidate(song, candidate) == 1.0

    def test_score_in_unit_interval(self) -> None:
        score = score_candidate(_song(duration=222), _candidate(title="Somebody Told Me"))
        assert 0.0 <= score <= 1.0
