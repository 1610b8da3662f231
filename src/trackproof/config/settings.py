"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MusicBrainzSettings(BaseSettings):
    """MusicBrainz metadata catalog configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACKPROOF_MUSICBRAINZ_", extra="ignore")

    # Hey future me, MusicBrainz rejects requests without a proper User-Agent. The contact
    # MUST be a real email or URL, they use it to reach you when your app misbehaves.
    app_name: str = Field(default="TrackProof", description="User-Agent application name")
    app_version: str = Field(default="0.4.0", description="User-Agent application version")
    contact: str = Field(
        default="https://github.com/trackproof/trackproof",
        description="User-Agent contact (email or URL)",
    )
    rate_limit_delay: float = Field(default=1.0, ge=0.0, description="Seconds between requests")
    max_retries: int = Field(default=3, ge=0, description="Retries on 503 / transport errors")
    initial_backoff: float = Field(default=1.0, ge=0.0)
    max_backoff: float = Field(default=10.0, ge=0.0)
    search_limit: int = Field(default=5, ge=1, le=100)
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class ITunesSettings(BaseSettings):
    """iTunes Search (preview catalog) configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACKPROOF_ITUNES_", extra="ignore")

    country: str = Field(default="US", min_length=2, max_length=2)
    search_limit: int = Field(default=5, ge=1, le=200)
    batch_size: int = Field(default=10, ge=1, description="Concurrent lookups per chunk")
    batch_delay: float = Field(default=0.1, ge=0.0, description="Pause between chunks (s)")


class SpotifySettings(BaseSettings):
    """Spotify Web API configuration.

    Tokens are NOT configured here - the caller passes a bearer token obtained
    through its own OAuth flow.
    """

    model_config = SettingsConfigDict(env_prefix="TRACKPROOF_SPOTIFY_", extra="ignore")

    market: str | None = Field(default=None, description="ISO country code for search")
    requests_per_second: float = Field(default=10.0, gt=0.0)
    max_retries: int = Field(default=3, ge=0)


class YouTubeSettings(BaseSettings):
    """YouTube Data API configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACKPROOF_YOUTUBE_", extra="ignore")

    api_key: str | None = Field(default=None, description="Data API key (public search)")
    requests_per_second: float = Field(default=5.0, gt=0.0)

    @property
    def is_configured(self) -> bool:
        """True when search can run without a user token."""
        return bool(self.api_key and self.api_key.strip())


class VerificationSettings(BaseSettings):
    """Tunables for the verification cascade and the smart resolver."""

    model_config = SettingsConfigDict(env_prefix="TRACKPROOF_VERIFICATION_", extra="ignore")

    # Hey future me - max_concurrency=1 is ON PURPOSE. MusicBrainz allows 1 req/sec and
    # Spotify search is the scarcest quota we have. Raising this runs songs in parallel
    # groups; expect 503s from MusicBrainz and non-monotonic wall-clock progress if you do.
    max_concurrency: int = Field(default=1, ge=1, le=10)
    inter_song_delay: float = Field(default=0.1, ge=0.0)
    hard_search_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    soft_match_min_similarity: float = Field(default=0.9, ge=0.0, le=1.0)
    hard_search_limit: int = Field(default=5, ge=1, le=50)
    resolve_delay: float = Field(default=0.1, ge=0.0)
    link_batch_size: int = Field(default=10, ge=1)
    link_batch_delay: float = Field(default=0.2, ge=0.0)


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACKPROOF_OBSERVABILITY_", extra="ignore")

    log_level: str = Field(default="INFO")
    log_json_format: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Reject unknown level names early instead of silently falling back."""
        normalized = value.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return normalized


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="TRACKPROOF_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    itunes: ITunesSettings = Field(default_factory=ITunesSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    youtube: YouTubeSettings = Field(default_factory=YouTubeSettings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


# Listen, settings are read ONCE per process. Tests that tweak env vars must call
# get_settings.cache_clear() or build Settings() directly.
@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
