"""Tests for the Spotify client."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from trackproof.config.settings import SpotifySettings
from trackproof.domain.entities import Platform
from trackproof.domain.exceptions import AuthenticationError, RateLimitExceededError
from trackproof.infrastructure.integrations.spotify_client import SpotifyClient
from trackproof.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig

SPOTIFY_ID = "4uLU6hMCjMI75M1A2tKUQC"


def _response(
    status_code: int = 200,
    payload: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.headers = headers or {}
    return response


def _track() -> dict[str, Any]:
    return {
        "id": SPOTIFY_ID,
        "name": "Mr. Brightside",
        "artists": [{"name": "The Killers"}],
        "album": {
            "name": "Hot Fuss",
            "release_date": "2004-06-07",
            "images": [{"url": "https://i.scdn.co/image/abc"}],
        },
        "duration_ms": 222075,
        "uri": f"spotify:track:{SPOTIFY_ID}",
        "external_ids": {"isrc": "USIR20400274"},
        "preview_url": None,
    }


@pytest.fixture
def spotify_client() -> SpotifyClient:
    # Fast refill so the post-429 token wait is negligible
    limiter = RateLimiter(config=RateLimiterConfig(refill_rate=1000.0), name="test")
    return SpotifyClient(SpotifySettings(max_retries=1), rate_limiter=limiter)


class TestSpotifySearch:
    """Test track search error handling."""

    @pytest.mark.asyncio
    async def test_missing_token(self, spotify_client: SpotifyClient) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            await spotify_client.search_tracks("anything", None)
        assert exc_info.value.token_missing

    @pytest.mark.asyncio
    async def test_expired_token(self, spotify_client: SpotifyClient, mocker: MagicMock) -> None:
        mocker.patch.object(spotify_client, "_api_request", return_value=_response(401))

        with pytest.raises(AuthenticationError) as exc_info:
            await spotify_client.search_tracks("anything", "stale")
        assert exc_info.value.http_status == 401
        assert not exc_info.value.token_missing

    @pytest.mark.asyncio
    async def test_server_error_degrades_to_empty(
        self, spotify_client: SpotifyClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(spotify_client, "_api_request", return_value=_response(502))

        assert await spotify_client.search_tracks("anything", "token") == []

    @pytest.mark.asyncio
    async def test_non_json_body_degrades_to_empty(
        self, spotify_client: SpotifyClient, mocker: MagicMock
    ) -> None:
        response = _response()
        response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        mocker.patch.object(spotify_client, "_api_request", return_value=response)

        assert await spotify_client.search_tracks("anything", "token") == []

    @pytest.mark.asyncio
    async def test_rate_limit_degrades_to_empty(
        self, spotify_client: SpotifyClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            spotify_client,
            "_api_request",
            side_effect=RateLimitExceededError("429", service="spotify", retry_after=30.0),
        )

        assert await spotify_client.search_tracks("anything", "token") == []

    @pytest.mark.asyncio
    async def test_market_is_sent(self, mocker: MagicMock) -> None:
        client = SpotifyClient(SpotifySettings(market="DE"), rate_limiter=RateLimiter(name="test"))
        request = mocker.patch.object(
            client, "_api_request", return_value=_response(payload={"tracks": {"items": []}})
        )

        await client.search_tracks("q", "token", limit=3)

        assert request.await_args.kwargs["params"] == {
            "q": "q",
            "type": "track",
            "limit": 3,
            "market": "DE",
        }


class TestSpotifyRetry:
    """Test the 429 retry loop."""

    @pytest.mark.asyncio
    async def test_retries_after_429(
        self, spotify_client: SpotifyClient, mocker: MagicMock
    ) -> None:
        http = MagicMock()
        http.request = AsyncMock(
            side_effect=[
                _response(429, headers={"Retry-After": "0"}),
                _response(payload={"tracks": {"items": [_track()]}}),
            ]
        )
        mocker.patch.object(spotify_client, "_get_client", return_value=http)

        tracks = await spotify_client.search_tracks("q", "token")

        assert [t["id"] for t in tracks] == [SPOTIFY_ID]
        assert http.request.await_count == 2
        assert http.request.await_args.kwargs["headers"] == {"Authorization": "Bearer token"}

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(
        self, spotify_client: SpotifyClient, mocker: MagicMock
    ) -> None:
        http = MagicMock()
        http.request = AsyncMock(return_value=_response(429, headers={"Retry-After": "0"}))
        mocker.patch.object(spotify_client, "_get_client", return_value=http)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await spotify_client._api_request("GET", "https://api.spotify.com/v1/search", "token")

        assert exc_info.value.retry_after == 0.0
        assert http.request.await_count == 2


class TestSpotifyCatalog:
    """Test catalog lookups and ID helpers."""

    @pytest.mark.asyncio
    async def test_resolve_by_identifier(
        self, spotify_client: SpotifyClient, mocker: MagicMock
    ) -> None:
        request = mocker.patch.object(
            spotify_client,
            "_api_request",
            return_value=_response(payload={"tracks": {"items": [_track()]}}),
        )

        match = await spotify_client.resolve_by_identifier("USIR20400274", "token")

        assert request.await_args.kwargs["params"]["q"] == "isrc:USIR20400274"
        assert match is not None
        assert match.url == f"https://open.spotify.com/track/{SPOTIFY_ID}"
        assert match.uri == f"spotify:track:{SPOTIFY_ID}"
        assert match.artwork_url == "https://i.scdn.co/image/abc"
        assert match.duration == 222
        assert match.platform_ids[Platform.SPOTIFY].id == SPOTIFY_ID

    @pytest.mark.asyncio
    async def test_free_text_candidates(
        self, spotify_client: SpotifyClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            spotify_client,
            "_api_request",
            return_value=_response(payload={"tracks": {"items": [_track()]}}),
        )

        candidates = await spotify_client.search_free_text("Mr. Brightside The Killers", "token")

        assert len(candidates) == 1
        assert candidates[0].artist == "The Killers"
        assert candidates[0].album == "Hot Fuss"
        assert candidates[0].isrc == "USIR20400274"

    @pytest.mark.parametrize(
        ("platform_id", "service_uri", "service_url", "expected"),
        [
            (SPOTIFY_ID, None, None, SPOTIFY_ID),
            ("not-an-id", f"spotify:track:{SPOTIFY_ID}", None, SPOTIFY_ID),
            (None, None, f"https://open.spotify.com/track/{SPOTIFY_ID}?si=abc", SPOTIFY_ID),
            (None, None, "https://example.com", None),
        ],
    )
    def test_extract_direct_id(
        self,
        spotify_client: SpotifyClient,
        platform_id: str | None,
        service_uri: str | None,
        service_url: str | None,
        expected: str | None,
    ) -> None:
        assert spotify_client.extract_direct_id(platform_id, service_uri, service_url) == expected
