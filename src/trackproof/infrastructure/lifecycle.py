"""Startup and shutdown wiring for the verification stack.

Builds every catalog client from Settings, hands them to the services and closes
them again on the way out. Callers (CLI, web app, scripts) use one context manager
instead of juggling five HTTP clients themselves.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from trackproof.application.cache import PlatformLinkCache
from trackproof.application.services import (
    PlatformLinkService,
    SmartPlatformResolver,
    VerificationOrchestrator,
)
from trackproof.application.services.verification_orchestrator import TokenProvider
from trackproof.config import Settings, get_settings
from trackproof.domain.entities import Platform
from trackproof.infrastructure.integrations import (
    ITunesClient,
    MusicBrainzClient,
    SpotifyClient,
    YouTubeClient,
)
from trackproof.infrastructure.observability import configure_logging

logger = logging.getLogger(__name__)


@dataclass
class VerificationStack:
    """Everything a caller needs to verify songs and resolve links."""

    settings: Settings
    musicbrainz: MusicBrainzClient
    itunes: ITunesClient
    spotify: SpotifyClient
    youtube: YouTubeClient
    resolver: SmartPlatformResolver
    link_cache: PlatformLinkCache
    links: PlatformLinkService
    orchestrator: VerificationOrchestrator


# Hey future me, the finally block MUST close every client even if the caller blew up
# mid-batch. Each close is wrapped on its own so one broken client can't leak the others.
@asynccontextmanager
async def verification_stack(
    settings: Settings | None = None,
    token_provider: TokenProvider | None = None,
) -> AsyncGenerator[VerificationStack, None]:
    """Build the verification stack and tear it down afterwards.

    Args:
        settings: Settings to use (defaults to the process-wide get_settings())
        token_provider: Returns the signed-in user's OAuth token, or None

    Yields:
        Fully wired VerificationStack
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.observability.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.musicbrainz.app_name.lower(),
    )
    logger.info(
        "Starting verification stack (max_concurrency=%d)", settings.verification.max_concurrency
    )

    musicbrainz = MusicBrainzClient(settings.musicbrainz)
    itunes = ITunesClient(settings.itunes)
    spotify = SpotifyClient(settings.spotify)
    youtube = YouTubeClient(settings.youtube)

    if not settings.youtube.is_configured:
        logger.info("No YouTube API key configured, YouTube lookups need a user token")

    resolver = SmartPlatformResolver(
        {Platform.SPOTIFY: spotify, Platform.YOUTUBE: youtube}, settings.verification
    )
    link_cache = PlatformLinkCache()

    stack = VerificationStack(
        settings=settings,
        musicbrainz=musicbrainz,
        itunes=itunes,
        spotify=spotify,
        youtube=youtube,
        resolver=resolver,
        link_cache=link_cache,
        links=PlatformLinkService(
            link_cache, itunes, spotify, settings.verification, youtube=youtube
        ),
        orchestrator=VerificationOrchestrator(
            musicbrainz,
            itunes,
            spotify,
            resolver,
            settings.verification,
            token_provider=token_provider,
        ),
    )

    try:
        yield stack
    finally:
        logger.info("Shutting down verification stack")
        for name, client in (
            ("musicbrainz", musicbrainz),
            ("itunes", itunes),
            ("spotify", spotify),
            ("youtube", youtube),
        ):
            try:
                await client.close()
            except Exception as e:
                logger.warning("Error closing %s client: %s", name, e)
