"""Parsing and validation of recording codes and platform track IDs.

Hey future me - every place that pulls an ID out of a URL or URI goes through here: the
MusicBrainz URL relations, import hints like "spotify:track:..." on a CSV row, and the
smart resolver's direct tier. One regex per platform, one source of truth.
"""

import re

from trackproof.domain.entities import Platform, PlatformId
from trackproof.domain.exceptions import ValidationError

# ISRC: CC-XXX-YY-NNNNN -> 2 letters country, 3 alnum registrant, 2 digit year, 5 digit id
ISRC_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{3}\d{7}$")

# Bare IDs as stored in Song.platform_ids
SPOTIFY_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{22}$")
YOUTUBE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")
NUMERIC_ID_PATTERN = re.compile(r"^\d+$")
QOBUZ_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")

# IDs embedded in URLs/URIs. Order matters for Platform iteration below.
_URL_PATTERNS: dict[Platform, re.Pattern[str]] = {
    Platform.SPOTIFY: re.compile(r"(?:spotify:track:|spotify\.com/track/)([A-Za-z0-9]{22})"),
    Platform.APPLE: re.compile(r"(?:music\.apple\.com/.*[?&]i=|itunes\.apple\.com/.*[?&]i=)(\d+)"),
    Platform.TIDAL: re.compile(r"tidal\.com/(?:browse/)?track/(\d+)"),
    Platform.QOBUZ: re.compile(r"qobuz\.com/.*/([A-Za-z0-9-]+)"),
    Platform.YOUTUBE: re.compile(
        r"(?:youtube:video:|youtube\.com/watch\?(?:.*&)?v=|youtu\.be/)([A-Za-z0-9_-]{11})"
    ),
}

_ID_PATTERNS: dict[Platform, re.Pattern[str]] = {
    Platform.SPOTIFY: SPOTIFY_ID_PATTERN,
    Platform.APPLE: NUMERIC_ID_PATTERN,
    Platform.TIDAL: NUMERIC_ID_PATTERN,
    Platform.QOBUZ: QOBUZ_ID_PATTERN,
    Platform.YOUTUBE: YOUTUBE_ID_PATTERN,
}


def normalize_isrc(isrc: str | None) -> str:
    """Uppercase an ISRC and drop separators.

    Raises:
        ValidationError: If the code is blank or not ISRC-shaped
    """
    if not isrc or not isrc.strip():
        raise ValidationError("ISRC is empty")

    code = re.sub(r"[\s-]", "", isrc).upper()
    if not ISRC_PATTERN.match(code):
        raise ValidationError(f"Malformed ISRC: {isrc!r}")
    return code


def is_valid_platform_id(platform: Platform, platform_id: str | None) -> bool:
    """True if a bare ID is well-formed for the platform."""
    if not platform_id:
        return False
    return bool(_ID_PATTERNS[platform].match(platform_id))


def extract_platform_id(platform: Platform, value: str | None) -> str | None:
    """Pull a platform track ID out of a URL or URI.

    Args:
        platform: Which platform's pattern to apply
        value: URL ("https://open.spotify.com/track/...") or URI ("spotify:track:...")

    Returns:
        The bare ID, or None if the value doesn't point at a track on that platform
    """
    if not value:
        return None
    match = _URL_PATTERNS[platform].search(value)
    return match.group(1) if match else None


def platform_ids_from_urls(urls: list[str]) -> dict[Platform, PlatformId]:
    """Map a list of external URLs (MusicBrainz url-rels) to platform IDs.

    First URL per platform wins. Spotify and YouTube URLs are rebuilt canonically;
    other platforms keep the URL as MusicBrainz stored it.
    """
    found: dict[Platform, PlatformId] = {}

    for url in urls:
        for platform, pattern in _URL_PATTERNS.items():
            if platform in found:
                continue
            match = pattern.search(url)
            if not match:
                continue

            track_id = match.group(1)
            if platform == Platform.SPOTIFY:
                found[platform] = PlatformId(
                    id=track_id,
                    url=f"https://open.spotify.com/track/{track_id}",
                    uri=f"spotify:track:{track_id}",
                )
            elif platform == Platform.YOUTUBE:
                found[platform] = PlatformId(
                    id=track_id, url=f"https://www.youtube.com/watch?v={track_id}"
                )
            else:
                found[platform] = PlatformId(id=track_id, url=url)
            # One URL names one platform
            break

    return found
