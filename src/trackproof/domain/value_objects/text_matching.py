"""Title/artist normalization and similarity for catalog matching.

Hey future me - this module is the ONLY place that decides whether two strings name the
same song. Adapters use it to sanity-check a catalog's top hit, the smart resolver uses it
for the soft tier and the fuzzy scorer builds on it. Keep it pure: no I/O, no logging.

The tricky cases this handles:
- "Beyoncé" vs "Beyonce" (accents)
- "Don't Stop Me Now" vs "Dont Stop Me Now" (punctuation)
- "Come Together - Remastered 2009" vs "Come Together" (version suffixes)
- "Artist feat. Someone" vs "Artist" (featured artists)

Examples:
    >>> normalize_text("Beyoncé - Halo!")
    'beyonce halo'
    >>> strip_version_suffix("Come Together - Remastered 2009")
    'Come Together'
"""

import re
import unicodedata

from rapidfuzz import fuzz

# =============================================================================
# VERSION SUFFIXES
# Hey future me - catalogs love decorating titles with release info. These patterns
# strip "(Remastered 2009)", "- Radio Edit", "[Live at Wembley]" and friends so the bare
# title can be compared. Order matters: bracketed forms first, dash forms second.
# =============================================================================

_VERSION_KEYWORDS = (
    r"remaster(?:ed)?|re-?master(?:ed)?|remix(?:ed)?|mix|edit|version|live|"
    r"mono|stereo|deluxe|single|radio|acoustic|demo|instrumental|explicit|clean|"
    r"bonus(?: track)?|anniversary|original|extended|album"
)

_BRACKETED_VERSION = re.compile(
    rf"\s*[\(\[][^\)\]]*\b(?:{_VERSION_KEYWORDS})\b[^\)\]]*[\)\]]",
    re.IGNORECASE,
)
_DASHED_VERSION = re.compile(
    rf"\s+[-–—]\s+[^-–—]*\b(?:{_VERSION_KEYWORDS})\b.*$",
    re.IGNORECASE,
)
# "with" only counts inside brackets: "(with X)" is a credit, "Stay With Me" is a title
_FEATURING = re.compile(
    r"\s*[\(\[]\s*(?:feat\.?|ft\.?|featuring|with)\s+[^\)\]]*[\)\]]"
    r"|\s+(?:feat\.?|ft\.?|featuring)\s+.*$",
    re.IGNORECASE,
)
_NON_ALNUM = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: str | None) -> str:
    """Lowercase, strip accents, turn punctuation into spaces and collapse whitespace.

    Args:
        value: Raw title or artist

    Returns:
        Normalized string ("" for None/blank input)
    """
    if not value:
        return ""

    decomposed = unicodedata.normalize("NFKD", value)
    without_accents = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    # Apostrophes vanish instead of splitting a word ("Don't" -> "dont")
    without_accents = without_accents.replace("'", "").replace("’", "")
    spaced = _NON_ALNUM.sub(" ", without_accents.lower())
    return _WHITESPACE.sub(" ", spaced).strip()


def strip_version_suffix(title: str | None) -> str:
    """Remove remaster/remix/live decorations and featured-artist credits from a title."""
    if not title:
        return ""

    stripped = _BRACKETED_VERSION.sub("", title)
    stripped = _DASHED_VERSION.sub("", stripped)
    stripped = _FEATURING.sub("", stripped)
    return stripped.strip() or title.strip()


def primary_artist(artist: str | None) -> str:
    """First credited artist ("A feat. B", "A & B", "A, B" -> "A")."""
    if not artist:
        return ""

    head = _FEATURING.sub("", artist)
    head = re.split(r"\s*(?:,|&|\bx\b|\band\b|;)\s*", head, maxsplit=1, flags=re.IGNORECASE)[0]
    return head.strip() or artist.strip()


def normalize_title(title: str | None) -> str:
    """Normalized title with version suffixes removed."""
    return normalize_text(strip_version_suffix(title))


def normalize_artist(artist: str | None) -> str:
    """Normalized primary artist."""
    return normalize_text(primary_artist(artist))


def text_similarity(left: str | None, right: str | None) -> float:
    """Token similarity of two already-meaningful strings in [0, 1].

    Hey future me - token_sort_ratio makes word order irrelevant ("Beatles The" vs
    "The Beatles"). Do NOT switch to partial_ratio: "Stay" would become a perfect match
    for "Stay With Me". Featured artists and version suffixes are stripped by the callers.
    """
    a = normalize_text(left)
    b = normalize_text(right)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return fuzz.token_sort_ratio(a, b) / 100.0


def token_overlap(left: str | None, right: str | None) -> float:
    """Shared-token ratio |A ∩ B| / max(|A|, |B|) of the normalized word sets.

    Stricter than text_similarity: "Yesterday" vs "Yesterday Once More" is 1/3, not ~0.9.
    MusicBrainz confidence uses this because its search already does the fuzzy part.
    """
    tokens_a = set(normalize_text(left).split())
    tokens_b = set(normalize_text(right).split())
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / max(len(tokens_a), len(tokens_b))


def title_similarity(left: str | None, right: str | None) -> float:
    """Similarity of two titles after stripping version suffixes."""
    a = normalize_title(left)
    b = normalize_title(right)
    if a and a == b:
        return 1.0
    return max(text_similarity(a, b), text_similarity(left, right))


def artist_similarity(left: str | None, right: str | None) -> float:
    """Similarity of two artist credits, comparing primary artists as well."""
    full = text_similarity(left, right)
    if full == 1.0:
        return full
    return max(full, text_similarity(primary_artist(left), primary_artist(right)))


def is_near_exact(left: str | None, right: str | None, min_similarity: float = 0.9) -> bool:
    """True if two titles (or artists) are equal modulo decoration, or very similar."""
    if normalize_title(left) and normalize_title(left) == normalize_title(right):
        return True
    return title_similarity(left, right) >= min_similarity


def is_plausible_match(
    expected_artist: str,
    expected_title: str,
    found_artist: str | None,
    found_title: str | None,
    threshold: float = 0.6,
) -> bool:
    """Sanity check for a catalog's top hit.

    Hey future me - free-text catalogs ALWAYS return something, even for songs that don't
    exist ("Fake Band - Made Up Song" happily returns a random hit). Both artist AND title
    must be reasonably close, otherwise it's a false positive and the song stays unverified.

    Args:
        expected_artist: Artist we asked for
        expected_title: Title we asked for
        found_artist: Artist the catalog returned
        found_title: Title the catalog returned
        threshold: Minimum similarity for BOTH fields

    Returns:
        True if the hit plausibly is the requested song
    """
    if not found_artist or not found_title:
        return False
    return (
        artist_similarity(expected_artist, found_artist) >= threshold
        and title_similarity(expected_title, found_title) >= threshold
    )
