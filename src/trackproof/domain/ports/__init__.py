"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from trackproof.domain.dtos import CatalogMatch, PlatformCandidate, RecordingVerification
from trackproof.domain.entities import Platform


class ICatalogAdapter(ABC):
    """Port for a public (no-auth) music catalog.

    Contract shared by every catalog: "not found" is None, never an exception.
    Transport failures are logged by the adapter and also come back as None.
    Only malformed input raises (ValidationError).
    """

    source_name: str

    @abstractmethod
    async def resolve_by_identifier(self, identifier: str) -> CatalogMatch | None:
        """
        Exact lookup by canonical code (ISRC).

        Args:
            identifier: ISRC code

        Returns:
            Match or None if not found
        """
        pass

    @abstractmethod
    async def resolve_by_text(self, artist: str, title: str) -> CatalogMatch | None:
        """
        Free-text search, top-ranked candidate per the catalog's own ranking.

        The caller must sanity-check the result - obscure queries can return an
        unrelated top hit.

        Args:
            artist: Artist name
            title: Track title

        Returns:
            Top candidate or None
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources."""
        pass


class IMetadataCatalog(ICatalogAdapter):
    """Port for the metadata catalog (tier A of the cascade)."""

    @abstractmethod
    async def verify_recording(self, artist: str, title: str) -> RecordingVerification:
        """
        Search, pick the best confident match and load its full detail.

        Args:
            artist: Artist name
            title: Track title

        Returns:
            RecordingVerification with either a match or a human-readable error
        """
        pass


class IPreviewCatalog(ICatalogAdapter):
    """Port for the preview-clip catalog (tier B + cosmetic enrichment)."""

    @abstractmethod
    async def get_preview_url(
        self, artist: str, title: str, isrc: str | None = None
    ) -> str | None:
        """Preview URL via ISRC first, text search second."""
        pass

    @abstractmethod
    async def batch_get_previews(
        self,
        songs: Sequence[tuple[str, str, str | None]],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[str | None]:
        """
        Bulk preview hydration for (artist, title, isrc) tuples.

        Chunking and pacing are the adapter's job, not the caller's.
        """
        pass


class IPlatformSearchClient(ABC):
    """Port for a platform the smart resolver can search (Spotify, YouTube, ...)."""

    platform: Platform
    requires_auth: bool

    @abstractmethod
    async def search_structured(
        self, artist: str, title: str, access_token: str | None, limit: int = 3
    ) -> list[PlatformCandidate]:
        """
        Field-scoped search (exact artist + title fields).

        Raises:
            AuthenticationError: If the platform rejects the token
        """
        pass

    @abstractmethod
    async def search_free_text(
        self, query: str, access_token: str | None, limit: int = 5
    ) -> list[PlatformCandidate]:
        """
        Broad free-text search returning several candidates.

        Raises:
            AuthenticationError: If the platform rejects the token
        """
        pass

    @abstractmethod
    def extract_direct_id(
        self, platform_id: str | None, service_uri: str | None, service_url: str | None
    ) -> str | None:
        """Parse a well-formed platform ID out of what the song already carries."""
        pass

    @abstractmethod
    def build_track_url(self, track_id: str) -> str:
        """Canonical web URL for a track ID."""
        pass

    def build_track_uri(self, track_id: str) -> str | None:
        """Platform URI for a track ID, when the platform has URIs."""
        return None


class IStreamingCatalog(IPlatformSearchClient):
    """Port for the authenticated streaming catalog (tier C + ISRC enrichment)."""

    source_name: str

    @abstractmethod
    async def resolve_by_identifier(
        self, identifier: str, access_token: str
    ) -> CatalogMatch | None:
        """Exact ISRC lookup with a bearer token."""
        pass

    @abstractmethod
    async def resolve_by_text(
        self, artist: str, title: str, access_token: str
    ) -> CatalogMatch | None:
        """Top text-search hit with a bearer token."""
        pass


__all__ = [
    "ICatalogAdapter",
    "IMetadataCatalog",
    "IPreviewCatalog",
    "IPlatformSearchClient",
    "IStreamingCatalog",
]
