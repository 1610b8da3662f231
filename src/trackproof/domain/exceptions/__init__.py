"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so callers can show it without
    # parsing str(exception). Never raise this directly - use a specific subclass so
    # callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    Raised for malformed input reaching the core: a song with neither artist
    nor title, an ISRC that isn't shaped like an ISRC, an unknown platform.

    Example:
        raise ValidationError("Song has neither artist nor title")
    """

    pass


class ConfigurationError(DomainException):
    """Required configuration is missing or invalid.

    Example:
        raise ConfigurationError("YouTube search needs an API key or an access token")
    """

    pass


class AuthenticationError(DomainException):
    """Access token missing, expired or rejected by the platform.

    Hey future me - the core NEVER refreshes tokens. When this bubbles up, the caller
    has to run its own OAuth refresh and call us again.

    Example:
        raise AuthenticationError("Spotify rejected the access token (401)")
    """

    def __init__(
        self,
        message: str = "Authentication required. Please sign in again.",
        platform: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.platform = platform
        self.http_status = http_status

    @property
    def token_missing(self) -> bool:
        """True when no token was supplied at all (vs. a rejected token)."""
        return self.http_status is None


class ExternalServiceError(DomainException):
    """External catalog returned an error we can't interpret as "not found".

    Example:
        raise ExternalServiceError("MusicBrainz API error: 502 Bad Gateway")
    """

    def __init__(self, message: str, service: str | None = None) -> None:
        super().__init__(message)
        self.service = service


class RateLimitExceededError(ExternalServiceError):
    """External service kept answering 429 / 503 after all retries.

    Example:
        raise RateLimitExceededError("Spotify rate limit exceeded - retry after 30s")
    """

    def __init__(
        self, message: str, service: str | None = None, retry_after: float | None = None
    ) -> None:
        super().__init__(message, service=service)
        self.retry_after = retry_after


class VerificationCancelledError(DomainException):
    """A verification batch was cancelled by the caller.

    Carries everything that was done before the stop so the UI can say
    "Cancelled - kept 7/20 verified" instead of showing a crash.

    Attributes:
        songs: Full batch in input order - processed songs first (updated copies),
            then the untouched input objects that were never started.
        summary: Partial VerificationSummary for the processed songs only.
        processed: Number of songs that finished before cancellation.
    """

    def __init__(self, songs: list[Any], summary: Any, processed: int) -> None:
        super().__init__(f"Verification cancelled after {processed}/{len(songs)} songs")
        self.songs = songs
        self.summary = summary
        self.processed = processed


__all__ = [
    "DomainException",
    "ValidationError",
    "ConfigurationError",
    "AuthenticationError",
    "ExternalServiceError",
    "RateLimitExceededError",
    "VerificationCancelledError",
]
