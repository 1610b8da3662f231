"""External integration client implementations."""

from trackproof.infrastructure.integrations.coverartarchive_client import CoverArtArchiveClient
from trackproof.infrastructure.integrations.itunes_client import ITunesClient
from trackproof.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from trackproof.infrastructure.integrations.spotify_client import SpotifyClient
from trackproof.infrastructure.integrations.youtube_client import YouTubeClient

__all__ = [
    "CoverArtArchiveClient",
    "ITunesClient",
    "MusicBrainzClient",
    "SpotifyClient",
    "YouTubeClient",
]
