"""Configuration module for TrackProof."""

from .settings import (
    ITunesSettings,
    MusicBrainzSettings,
    ObservabilitySettings,
    Settings,
    SpotifySettings,
    VerificationSettings,
    YouTubeSettings,
    get_settings,
)

__all__ = [
    "ITunesSettings",
    "MusicBrainzSettings",
    "ObservabilitySettings",
    "Settings",
    "SpotifySettings",
    "VerificationSettings",
    "YouTubeSettings",
    "get_settings",
]
