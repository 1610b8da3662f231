"""Tests for the iTunes Search client."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from trackproof.config.settings import ITunesSettings
from trackproof.domain.entities import Platform
from trackproof.infrastructure.integrations.itunes_client import ITunesClient
from trackproof.infrastructure.rate_limiter import RateLimiter


def _response(payload: dict[str, Any], status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


def _track(**kwargs: Any) -> dict[str, Any]:
    track: dict[str, Any] = {
        "kind": "song",
        "trackId": 1440837096,
        "collectionId": 1440836319,
        "trackName": "Mr. Brightside",
        "artistName": "The Killers",
        "collectionName": "Hot Fuss",
        "trackTimeMillis": 222200,
        "releaseDate": "2004-06-07T07:00:00Z",
        "previewUrl": "https://audio-ssl.itunes.apple.com/preview.m4a",
        "artworkUrl100": "https://is1-ssl.mzstatic.com/image/thumb/Music/100x100bb.jpg",
        "trackViewUrl": "https://music.apple.com/us/album/hot-fuss/1440836319?i=1440837096",
    }
    track.update(kwargs)
    return track


@pytest.fixture
def itunes_client() -> ITunesClient:
    return ITunesClient(
        ITunesSettings(batch_size=2, batch_delay=0.0), rate_limiter=RateLimiter(name="test")
    )


class TestITunesHelpers:
    """Test URL helpers."""

    def test_upgrade_artwork_url(self) -> None:
        assert ITunesClient.upgrade_artwork_url(
            "https://is1-ssl.mzstatic.com/image/thumb/Music/100x100bb.jpg"
        ) == ("https://is1-ssl.mzstatic.com/image/thumb/Music/600x600bb.jpg")
        assert ITunesClient.upgrade_artwork_url(None) is None

    def test_build_track_url_fallbacks(self) -> None:
        assert ITunesClient.build_track_url({"trackId": 1, "collectionId": 2}) == (
            "https://music.apple.com/us/album/2?i=1"
        )
        assert ITunesClient.build_track_url({"trackId": 1}) == "https://music.apple.com/us/song/1"


class TestITunesSearch:
    """Test search and lookups."""

    @pytest.mark.asyncio
    async def test_search_drops_non_songs(
        self, itunes_client: ITunesClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            itunes_client,
            "_api_request",
            return_value=_response(
                {"results": [_track(), {"kind": "music-video", "trackId": 5}, {"kind": "song"}]}
            ),
        )

        results = await itunes_client.search("Mr. Brightside The Killers")

        assert [r["trackId"] for r in results] == [1440837096]

    @pytest.mark.asyncio
    async def test_search_transport_failure_is_empty(
        self, itunes_client: ITunesClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            itunes_client, "_api_request", side_effect=httpx.ConnectError("connection refused")
        )

        assert await itunes_client.search("anything") == []

    @pytest.mark.asyncio
    async def test_search_non_json_body_is_empty(
        self, itunes_client: ITunesClient, mocker: MagicMock
    ) -> None:
        response = _response({})
        response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        mocker.patch.object(itunes_client, "_api_request", return_value=response)

        assert await itunes_client.search("Mr. Brightside The Killers") == []
        assert await itunes_client.resolve_by_text("The Killers", "Mr. Brightside") is None

    @pytest.mark.asyncio
    async def test_resolve_by_identifier(
        self, itunes_client: ITunesClient, mocker: MagicMock
    ) -> None:
        request = mocker.patch.object(
            itunes_client, "_api_request", return_value=_response({"results": [_track()]})
        )

        match = await itunes_client.resolve_by_identifier("usir20400274")

        params = request.await_args.args[0]
        assert params["term"] == "USIR20400274"
        assert params["limit"] == 1
        assert params["entity"] == "song"
        assert match is not None
        assert match.source == "itunes"
        assert match.isrc == "USIR20400274"
        assert match.duration == 222
        assert match.year == "2004"
        assert match.artwork_url.endswith("600x600bb.jpg")  # type: ignore[union-attr]
        assert match.platform_ids[Platform.APPLE].id == "1440837096"


class TestITunesPreviews:
    """Test preview lookups."""

    @pytest.mark.asyncio
    async def test_isrc_preview_wins(self, itunes_client: ITunesClient, mocker: MagicMock) -> None:
        request = mocker.patch.object(
            itunes_client, "_api_request", return_value=_response({"results": [_track()]})
        )

        preview = await itunes_client.get_preview_url(
            "The Killers", "Mr. Brightside", "USIR20400274"
        )

        assert preview == "https://audio-ssl.itunes.apple.com/preview.m4a"
        assert request.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_isrc_falls_back_to_text(
        self, itunes_client: ITunesClient, mocker: MagicMock
    ) -> None:
        request = mocker.patch.object(
            itunes_client, "_api_request", return_value=_response({"results": [_track()]})
        )

        preview = await itunes_client.get_preview_url("The Killers", "Mr. Brightside", "bogus")

        assert preview is not None
        assert request.await_args.args[0]["term"] == "Mr. Brightside The Killers"

    @pytest.mark.asyncio
    async def test_implausible_top_hit_is_rejected(
        self, itunes_client: ITunesClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            itunes_client,
            "_api_request",
            return_value=_response(
                {"results": [_track(trackName="Shake It Off", artistName="Taylor Swift")]}
            ),
        )

        assert await itunes_client.get_preview_url("Fake Band", "Made Up Song") is None

    @pytest.mark.asyncio
    async def test_batch_keeps_input_order(
        self, itunes_client: ITunesClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            itunes_client,
            "get_preview_url",
            new_callable=AsyncMock,
            side_effect=["https://p/1", None, "https://p/3"],
        )
        sleep = mocker.patch(
            "trackproof.infrastructure.integrations.itunes_client.asyncio.sleep",
            new_callable=AsyncMock,
        )
        progress: list[tuple[int, int]] = []

        previews = await itunes_client.batch_get_previews(
            [("A", "1", None), ("B", "2", None), ("C", "3", None)],
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert previews == ["https://p/1", None, "https://p/3"]
        assert progress == [(2, 3), (3, 3)]
        assert sleep.await_count == 1
