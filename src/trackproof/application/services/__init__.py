"""Application services - verification cascade, smart resolver, links and reports."""

from trackproof.application.services.export_report import (
    build_export_report,
    build_verification_report,
    verify_export,
)
from trackproof.application.services.match_scoring import score_candidate
from trackproof.application.services.platform_link_service import (
    PlatformLinkService,
    build_manual_search_url,
)
from trackproof.application.services.smart_resolver import SmartPlatformResolver
from trackproof.application.services.verification_orchestrator import VerificationOrchestrator

__all__ = [
    "PlatformLinkService",
    "SmartPlatformResolver",
    "VerificationOrchestrator",
    "build_export_report",
    "build_manual_search_url",
    "build_verification_report",
    "score_candidate",
    "verify_export",
]
