"""Export and import reporting.

Pure functions, no I/O. They turn resolver results / verification summaries into the
numbers and sentences the UI shows after an export ("42/50 songs, 38 direct, 3 soft, 1 hard")
or an import ("Verified 8/10 songs; 1 failed; 1 skipped").
"""

import logging
from collections.abc import Iterable, Sequence

from trackproof.domain.entities import (
    ExportedSong,
    ExportReport,
    ExportVerification,
    FailedExport,
    FailedExportSong,
    Platform,
    ResolutionTier,
    SmartResolveResult,
    Song,
    TierBreakdown,
    VerificationStatus,
    VerificationSummary,
)
from trackproof.domain.value_objects.identifiers import extract_platform_id

logger = logging.getLogger(__name__)


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100.0, 1) if whole else 0.0


def build_export_report(
    results: Sequence[SmartResolveResult],
    platform: Platform,
    duration_ms: int,
    playlist_name: str | None = None,
) -> ExportReport:
    """
    Summarize one resolve_batch run.

    Args:
        results: Resolver results in playlist order
        platform: Export target
        duration_ms: Elapsed time reported by resolve_batch
        playlist_name: Shown in the report header, if known

    Returns:
        ExportReport; average_confidence covers successful songs only
    """
    breakdown = TierBreakdown()
    successful: list[ExportedSong] = []
    failed: list[FailedExport] = []

    for result in results:
        if result.is_resolved and result.platform_url:
            successful.append(
                ExportedSong(
                    song=result.song,
                    tier=result.tier,
                    confidence=result.confidence,
                    platform_url=result.platform_url,
                )
            )
            if result.tier == ResolutionTier.DIRECT:
                breakdown.direct += 1
            elif result.tier == ResolutionTier.SOFT:
                breakdown.soft += 1
            else:
                breakdown.hard += 1
        else:
            failed.append(
                FailedExport(
                    song=result.song,
                    reason=result.reason or f"No match found on {platform.value}",
                    attempted_tiers=tuple(result.attempted_tiers),
                )
            )

    average_confidence = (
        round(sum(s.confidence for s in successful) / len(successful), 4) if successful else 0.0
    )

    return ExportReport(
        platform=platform,
        total_songs=len(results),
        success_rate=_percentage(len(successful), len(results)),
        tier_breakdown=breakdown,
        average_confidence=average_confidence,
        duration_ms=duration_ms,
        successful=successful,
        failed=failed,
        playlist_name=playlist_name,
    )


def _has_platform_id(song: Song, platform: Platform) -> bool:
    stored = song.platform_id(platform)
    if stored and stored.id:
        return True
    return bool(
        extract_platform_id(platform, song.service_uri)
        or extract_platform_id(platform, song.service_url)
    )


def explain_export_failure(song: Song, platform: Platform) -> str:
    """Most likely reason a requested song is missing from the platform playlist."""
    if not _has_platform_id(song, platform):
        return f"No {platform.value} ID found - song may not exist on {platform.value}"
    if song.verification_status in (VerificationStatus.FAILED, VerificationStatus.UNVERIFIED):
        return "Song was not verified - may not exist on platform"
    return f"Unable to add song to playlist - it may not be available on {platform.value}"


def verify_export(
    requested_songs: Sequence[Song],
    successful_song_ids: Iterable[str],
    platform: Platform,
) -> ExportVerification:
    """
    Compare what we asked the platform to add with what it actually added.

    Args:
        requested_songs: Songs sent to the platform
        successful_song_ids: IDs of songs the platform accepted
        platform: Export target

    Returns:
        ExportVerification with one explained entry per missing song, in input order
    """
    accepted = set(successful_song_ids)
    failed_songs = [
        FailedExportSong(
            song_id=song.id,
            artist=song.artist,
            title=song.title,
            reason=explain_export_failure(song, platform),
        )
        for song in requested_songs
        if song.id not in accepted
    ]

    total = len(requested_songs)
    succeeded = total - len(failed_songs)
    verification = ExportVerification(
        total_requested=total,
        total_successful=succeeded,
        total_failed=len(failed_songs),
        success_rate=_percentage(succeeded, total),
        failed_songs=failed_songs,
    )

    logger.info(
        f"Export to {platform.value}: {succeeded}/{total} songs added "
        f"({verification.success_rate:.1f}%)"
    )
    return verification


def build_verification_report(summary: VerificationSummary) -> list[str]:
    """
    Human-readable import report.

    First line is the headline ("Verified 8/10 songs; 1 failed; 1 skipped"), followed by one
    line per failed song with its reason.
    """
    parts = [f"Verified {summary.verified}/{summary.total} songs"]
    if summary.failed:
        parts.append(f"{summary.failed} failed")
    if summary.skipped:
        parts.append(f"{summary.skipped} skipped")

    lines = ["; ".join(parts)]
    lines.extend(
        f"{entry.artist} - {entry.title}: {entry.error}" for entry in summary.failed_songs
    )
    return lines
